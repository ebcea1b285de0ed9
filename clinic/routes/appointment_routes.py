import logging
from datetime import date, datetime, time, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.auth.dependencies import require_permissions
from clinic.auth.permissions import (
    APPOINTMENTS_DELETE,
    APPOINTMENTS_READ,
    APPOINTMENTS_WRITE,
    BOOKABLE_ROLES,
    DOCTOR,
    can_access_appointment,
    can_access_clinic,
)
from clinic.core.log_sanitizer import sanitize_for_log
from clinic.database import SessionLocal, ensure_appointment_schema
from clinic.models.appointment import Appointment
from clinic.models.patient import Patient
from clinic.models.profile import Profile
from clinic.scheduling.conflicts import Booking
from clinic.scheduling.errors import ConflictError, InvalidTransitionError, SchedulingError, ValidationError
from clinic.scheduling.interval import to_clinic_time
from clinic.scheduling.service import AppointmentCandidate, evaluate_appointment, schedule_appointment
from clinic.scheduling.status import (
    ACTIVE_STATUSES,
    INITIAL_STATUSES,
    RESCHEDULABLE_STATUSES,
    UNDELETABLE_STATUSES,
    AppointmentStatus,
    ensure_transition,
)

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_NOTES_LENGTH = 1000
MIN_STORED_DURATION_MINUTES = 15
MAX_STORED_DURATION_MINUTES = 480
DEFAULT_DURATION_MINUTES = 60
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'
SORT_FIELDS = {
    'start_time': Appointment.start_time,
    'created_at': Appointment.created_at,
    'status': Appointment.status,
    'duration_minutes': Appointment.duration_minutes,
}
# Fields that may be cleared with an explicit null on update.
NULLABLE_UPDATE_FIELDS = {'description', 'notes', 'calendar_event_id'}


def _normalize_optional_text(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')

    return normalized


def _normalize_title(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if len(normalized) < MIN_TITLE_LENGTH:
        raise ValueError(f'Title must be at least {MIN_TITLE_LENGTH} characters.')
    if len(normalized) > MAX_TITLE_LENGTH:
        raise ValueError(f'Title must be {MAX_TITLE_LENGTH} characters or fewer.')
    return normalized


def _check_stored_duration(value: int | None) -> int | None:
    if value is None:
        return None
    if not MIN_STORED_DURATION_MINUTES <= value <= MAX_STORED_DURATION_MINUTES:
        raise ValueError(
            f'Duration must be between {MIN_STORED_DURATION_MINUTES} '
            f'and {MAX_STORED_DURATION_MINUTES} minutes.'
        )
    return value


class CreateAppointmentRequest(BaseModel):
    patient_id: int
    doctor_id: int
    clinic_id: int
    title: str
    description: str | None = None
    start_time: datetime
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    status: str = AppointmentStatus.SCHEDULED.value
    notes: str | None = None
    calendar_event_id: str | None = None
    reminder_sent: bool = False

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _normalize_title(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_DESCRIPTION_LENGTH, 'Description')

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_NOTES_LENGTH, 'Notes')

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int) -> int:
        return _check_stored_duration(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {item.value for item in INITIAL_STATUSES}:
            raise ValueError('New appointments must be scheduled or confirmed.')
        return normalized


class UpdateAppointmentRequest(BaseModel):
    doctor_id: int | None = None
    title: str | None = None
    description: str | None = None
    start_time: datetime | None = None
    duration_minutes: int | None = None
    status: str | None = None
    notes: str | None = None
    calendar_event_id: str | None = None
    reminder_sent: bool | None = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str | None) -> str | None:
        return _normalize_title(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_DESCRIPTION_LENGTH, 'Description')

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_NOTES_LENGTH, 'Notes')

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        return _check_stored_duration(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in {item.value for item in AppointmentStatus}:
            raise ValueError('Invalid appointment status.')
        return normalized


class CheckAppointmentRequest(BaseModel):
    doctor_id: int
    start_time: datetime
    duration_minutes: int = Field(ge=0, le=MAX_STORED_DURATION_MINUTES)
    exclude_id: int | None = None


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    clinic_id: int
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: str
    notes: str | None = None
    calendar_event_id: str | None = None
    reminder_sent: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class AppointmentListResponse(BaseModel):
    data: list[AppointmentResponse]
    page: int
    limit: int
    total: int
    total_pages: int


class ViolationResponse(BaseModel):
    code: str
    message: str


class ConflictResponse(BaseModel):
    id: int | None
    start_time: datetime
    end_time: datetime


class CheckAppointmentResponse(BaseModel):
    ok: bool
    start_time: datetime
    end_time: datetime
    violations: list[ViolationResponse]
    conflicts: list[ConflictResponse]


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def scheduling_http_error(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                'error': 'validation',
                'violations': [violation.to_dict() for violation in exc.violations],
            },
        )
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                'error': 'conflict',
                'message': 'Doctor already has an appointment at this time.',
                'conflicts': [conflict.to_dict() for conflict in exc.conflicts],
            },
        )
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={'error': 'invalid_transition', 'message': str(exc)},
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    day_start = datetime.combine(moment.date(), time(0, 0))
    return day_start, day_start + timedelta(days=1)


def load_day_bookings(db: Session, doctor_id: int, day: datetime) -> list[Booking]:
    """Active appointments of ``doctor_id`` on the local day of ``day``."""
    day_start, day_end = day_bounds(day)
    appointments = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.status.in_([item.value for item in ACTIVE_STATUSES]),
        Appointment.start_time >= day_start,
        Appointment.start_time < day_end,
    ).all()
    return [Booking.from_appointment(appointment) for appointment in appointments]


def lock_doctor(db: Session, doctor_id: int) -> Profile | None:
    # Row lock serializes concurrent bookings for one doctor until commit.
    return db.query(Profile).filter(Profile.id == doctor_id).with_for_update().first()


def get_bookable_doctor(db: Session, doctor_id: int, clinic_id: int) -> Profile:
    doctor = lock_doctor(db, doctor_id)

    if doctor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor not found.',
        )

    if doctor.clinic_id != clinic_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Doctor does not belong to this clinic.',
        )

    if doctor.role not in BOOKABLE_ROLES or not doctor.is_active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='The selected profile is not an active doctor.',
        )

    return doctor


def clinic_now() -> datetime:
    return to_clinic_time(datetime.now(timezone.utc))


def ensure_future_start(start_time: datetime) -> None:
    # start_time is naive clinic-local, so compare against the clinic clock.
    if start_time <= clinic_now():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointments must be scheduled in the future.',
        )


def get_accessible_appointment(db: Session, appointment_id: int, current_user: Profile) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()

    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )

    if not can_access_appointment(current_user, appointment):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You do not have access to this appointment.',
        )

    return appointment


@router.get('', response_model=AppointmentListResponse)
def list_appointments(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    clinic_id: int | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias='status'),
    doctor_id: int | None = Query(default=None),
    patient_id: int | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    search: str | None = Query(default=None),
    sort: str = Query(default='start_time'),
    order: str = Query(default='desc', pattern='^(asc|desc)$'),
    current_user: Profile = Depends(require_permissions(APPOINTMENTS_READ)),
    db: Session = Depends(get_db),
):
    target_clinic_id = clinic_id or current_user.clinic_id
    if not can_access_clinic(current_user, target_clinic_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You do not have access to appointments of this clinic.',
        )

    sort_column = SORT_FIELDS.get(sort)
    if sort_column is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Cannot sort by {sort}.',
        )

    ensure_database_ready()

    try:
        query = db.query(Appointment).filter(Appointment.clinic_id == target_clinic_id)

        if current_user.role == DOCTOR:
            query = query.filter(Appointment.doctor_id == current_user.id)
        elif doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)

        if status_filter:
            query = query.filter(Appointment.status == status_filter.strip().lower())

        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)

        if date_from is not None:
            query = query.filter(Appointment.start_time >= datetime.combine(date_from, time(0, 0)))

        if date_to is not None:
            query = query.filter(Appointment.start_time < datetime.combine(date_to + timedelta(days=1), time(0, 0)))

        if search and search.strip():
            pattern = f'%{search.strip()}%'
            query = query.join(Patient, Patient.id == Appointment.patient_id).filter(
                or_(
                    Patient.full_name.ilike(pattern),
                    Appointment.title.ilike(pattern),
                    Appointment.notes.ilike(pattern),
                )
            )

        total = query.count()
        ordering = sort_column.asc() if order == 'asc' else sort_column.desc()
        appointments = query.order_by(ordering).offset((page - 1) * limit).limit(limit).all()

        return AppointmentListResponse(
            data=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit,
        )
    except SQLAlchemyError as exc:
        logger.exception('Failed to list appointments for clinic %s', target_clinic_id)
        raise database_unavailable() from exc


@router.post('/check', response_model=CheckAppointmentResponse)
def check_appointment(
    data: CheckAppointmentRequest,
    current_user: Profile = Depends(require_permissions(APPOINTMENTS_READ)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        doctor = db.query(Profile).filter(Profile.id == data.doctor_id).first()
        if doctor is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Doctor not found.',
            )

        if not can_access_clinic(current_user, doctor.clinic_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='You do not have access to this doctor.',
            )

        candidate = AppointmentCandidate(
            doctor_id=data.doctor_id,
            start_time=data.start_time,
            duration_minutes=data.duration_minutes,
        )
        bookings = load_day_bookings(db, data.doctor_id, to_clinic_time(data.start_time))
        result = evaluate_appointment(candidate, bookings, exclude_id=data.exclude_id)

        return CheckAppointmentResponse(
            ok=result.ok,
            start_time=result.interval.start,
            end_time=result.interval.end,
            violations=[ViolationResponse(**violation.to_dict()) for violation in result.violations],
            conflicts=[
                ConflictResponse(id=conflict.appointment_id, start_time=conflict.start_time, end_time=conflict.end_time)
                for conflict in result.conflicts
            ],
        )
    except SQLAlchemyError as exc:
        logger.exception('Failed to check availability for doctor %s', data.doctor_id)
        raise database_unavailable() from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: Profile = Depends(require_permissions(APPOINTMENTS_READ)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_accessible_appointment(db, appointment_id, current_user)
    except SQLAlchemyError as exc:
        logger.exception('Failed to load appointment %s', appointment_id)
        raise database_unavailable() from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: Profile = Depends(require_permissions(APPOINTMENTS_WRITE)),
    db: Session = Depends(get_db),
):
    if not can_access_clinic(current_user, data.clinic_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You do not have permission to create appointments in this clinic.',
        )

    ensure_database_ready()

    try:
        patient = db.query(Patient).filter(Patient.id == data.patient_id).first()
        if patient is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Patient not found.',
            )

        if patient.clinic_id != data.clinic_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Patient does not belong to this clinic.',
            )

        get_bookable_doctor(db, data.doctor_id, data.clinic_id)

        start_time = to_clinic_time(data.start_time).replace(second=0, microsecond=0)
        ensure_future_start(start_time)

        candidate = AppointmentCandidate(
            doctor_id=data.doctor_id,
            start_time=start_time,
            duration_minutes=data.duration_minutes,
        )
        try:
            interval = schedule_appointment(candidate, load_day_bookings(db, data.doctor_id, start_time))
        except SchedulingError as exc:
            raise scheduling_http_error(exc) from exc

        appointment = Appointment(
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            clinic_id=data.clinic_id,
            title=data.title,
            description=data.description,
            start_time=interval.start,
            duration_minutes=interval.duration_minutes,
            status=data.status,
            notes=data.notes,
            calendar_event_id=data.calendar_event_id,
            reminder_sent=data.reminder_sent,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        logger.info(
            'Appointment %s created by profile %s: %s',
            appointment.id,
            current_user.id,
            sanitize_for_log(data.model_dump(mode='json')),
        )
        return appointment
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create appointment for doctor %s', data.doctor_id)
        raise database_unavailable() from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    current_user: Profile = Depends(require_permissions(APPOINTMENTS_WRITE)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_accessible_appointment(db, appointment_id, current_user)
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_UPDATE_FIELDS
        }

        if 'status' in changes:
            try:
                changes['status'] = ensure_transition(appointment.status, changes['status']).value
            except SchedulingError as exc:
                raise scheduling_http_error(exc) from exc

        if changes.keys() & {'start_time', 'duration_minutes', 'doctor_id'}:
            if appointment.status not in {item.value for item in RESCHEDULABLE_STATUSES}:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail='Only scheduled or confirmed appointments can be rescheduled.',
                )

            doctor_id = changes.get('doctor_id', appointment.doctor_id)
            if doctor_id != appointment.doctor_id:
                get_bookable_doctor(db, doctor_id, appointment.clinic_id)
            else:
                lock_doctor(db, doctor_id)

            start_time = appointment.start_time
            if 'start_time' in changes:
                start_time = to_clinic_time(changes['start_time']).replace(second=0, microsecond=0)
                ensure_future_start(start_time)

            candidate = AppointmentCandidate(
                doctor_id=doctor_id,
                start_time=start_time,
                duration_minutes=changes.get('duration_minutes', appointment.duration_minutes),
            )
            try:
                interval = schedule_appointment(
                    candidate,
                    load_day_bookings(db, doctor_id, start_time),
                    exclude_id=appointment.id,
                )
            except SchedulingError as exc:
                raise scheduling_http_error(exc) from exc

            changes['doctor_id'] = doctor_id
            changes['start_time'] = interval.start
            changes['duration_minutes'] = interval.duration_minutes

        for field, value in changes.items():
            setattr(appointment, field, value)

        db.commit()
        db.refresh(appointment)

        logger.info(
            'Appointment %s updated by profile %s: %s',
            appointment.id,
            current_user.id,
            sanitize_for_log(data.model_dump(mode='json', exclude_unset=True)),
        )
        return appointment
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update appointment %s', appointment_id)
        raise database_unavailable() from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    current_user: Profile = Depends(require_permissions(APPOINTMENTS_DELETE)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_accessible_appointment(db, appointment_id, current_user)

        if appointment.status in {item.value for item in UNDELETABLE_STATUSES}:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Appointments in progress or completed cannot be deleted.',
            )

        db.delete(appointment)
        db.commit()
        logger.info('Appointment %s deleted by profile %s', appointment_id, current_user.id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete appointment %s', appointment_id)
        raise database_unavailable() from exc

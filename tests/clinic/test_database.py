import os

import pytest
from sqlalchemy import create_engine, inspect

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic import database  # noqa: E402
from clinic.database import Base, ensure_appointment_schema  # noqa: E402
from clinic.models.appointment import Appointment  # noqa: E402
from clinic.models.clinic import Clinic  # noqa: E402
from clinic.models.patient import Patient  # noqa: E402
from clinic.models.profile import Profile  # noqa: E402


@pytest.fixture
def memory_engine(monkeypatch: pytest.MonkeyPatch):
    engine = create_engine('sqlite:///:memory:')
    monkeypatch.setattr(database, 'engine', engine)
    monkeypatch.setattr(database, '_appointment_schema_checked', False)
    try:
        yield engine
    finally:
        engine.dispose()


def test_ensure_appointment_schema_creates_lookup_indexes(memory_engine) -> None:
    tables = [Clinic.__table__, Profile.__table__, Patient.__table__, Appointment.__table__]
    Base.metadata.create_all(bind=memory_engine, tables=tables)

    ensure_appointment_schema()
    ensure_appointment_schema()

    index_names = {index['name'] for index in inspect(memory_engine).get_indexes('appointments')}
    assert {
        'idx_appointments_doctor_start',
        'idx_appointments_clinic_start',
        'idx_appointments_status_start',
    } <= index_names
    assert {column['name'] for column in inspect(memory_engine).get_columns('appointments')} == set(
        Appointment.__table__.columns.keys()
    )


def test_ensure_appointment_schema_skips_missing_table(memory_engine) -> None:
    ensure_appointment_schema()

    assert database._appointment_schema_checked is True
    assert inspect(memory_engine).get_table_names() == []

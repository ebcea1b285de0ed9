"""Staff profile model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from clinic.database import Base


class Profile(Base):
    """Represents a clinic staff member, doctors included."""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    role = Column(String)  # super_admin/admin/doctor/nurse/receptionist/assistant
    clinic_id = Column(Integer, ForeignKey("clinics.id"), index=True)
    is_active = Column(Boolean, default=True)

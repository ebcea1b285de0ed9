"""Patient model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from clinic.database import Base


class Patient(Base):
    """Represents a patient registered at a clinic."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), index=True)
    full_name = Column(String, nullable=False)
    email = Column(String)
    phone = Column(String)

"""Clinic model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from clinic.database import Base


class Clinic(Base):
    """Represents a tenant clinic."""
    __tablename__ = "clinics"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)

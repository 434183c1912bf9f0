"""Specialty model definitions."""

from sqlalchemy import Column, Integer, String
from clinic_backend.database import Base


class Specialty(Base):
    """Represents a medical specialty doctors are grouped under."""
    __tablename__ = "specialties"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)

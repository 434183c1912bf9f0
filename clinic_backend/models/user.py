"""User model definitions."""

from sqlalchemy import Column, Integer, String
from clinic_backend.database import Base


class User(Base):
    """Represents an application user: a patient, a doctor or clinic staff."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    role = Column(String)  # patient/doctor/receptionist/admin

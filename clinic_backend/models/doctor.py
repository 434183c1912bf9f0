"""Doctor model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String
from clinic_backend.database import Base


class Doctor(Base):
    """Represents a doctor and the fees they publish per appointment type."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)
    full_name = Column(String, nullable=False)
    specialty_id = Column(Integer, ForeignKey("specialties.id"), index=True, nullable=False)
    examination_fee = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    consultation_fee = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)

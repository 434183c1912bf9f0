"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String
from clinic_backend.database import Base


class Appointment(Base):
    """Represents a booking placed into one dated slot of a schedule template."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_slot_status", "schedule_id", "appointment_date", "status"),
        Index("idx_appointments_patient_date", "patient_id", "appointment_date"),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    schedule_id = Column(Integer, ForeignKey("schedule_templates.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), index=True, nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_type = Column(String, nullable=False)
    status = Column(String, nullable=False)
    fee_paid = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    booking_timestamp = Column(DateTime, nullable=False, default=datetime.now)
    parent_appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)
    status_changed_at = Column(DateTime, nullable=True)

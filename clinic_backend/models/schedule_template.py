"""Schedule template model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, Time, UniqueConstraint
from clinic_backend.database import Base


class ScheduleTemplate(Base):
    """Represents a doctor's recurring weekly availability in one room."""
    __tablename__ = "schedule_templates"
    __table_args__ = (
        UniqueConstraint("doctor_id", "weekday", "start_time", name="uq_schedule_templates_doctor_day_start"),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), index=True, nullable=False)
    weekday = Column(Integer, nullable=False)  # Weekday ordinal, 0 = Monday
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    max_capacity = Column(Integer, nullable=False)

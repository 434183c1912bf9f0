"""Room model definitions."""

from sqlalchemy import Column, Integer, String
from clinic_backend.database import Base


class Room(Base):
    """Represents a consultation room."""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)

"""Doctor weekly availability model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Time, func
from backend.database import Base


class DoctorAvailability(Base):
    """One (weekday, slot) cell of a doctor's weekly availability grid.

    The row (day_of_week=0, is_available=False) is the marker for a doctor who
    saved an empty grid; see ``backend.scheduling.engine.encode_rules``.
    """
    __tablename__ = "doctor_availability"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 1=Monday..6=Saturday
    time_slot = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

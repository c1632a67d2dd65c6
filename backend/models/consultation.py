"""Consultation history model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Time, func
from backend.database import Base


class ConsultationRecord(Base):
    """One entry in a patient's consultation history."""
    __tablename__ = "consultation_history"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    consultation_date = Column(Date, nullable=False)
    consultation_time = Column(Time, nullable=False)
    diagnosis = Column(String)
    notes = Column(String)
    created_at = Column(DateTime, server_default=func.now())

"""Appointment model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Time, func, text
from backend.database import ACTIVE_SLOT_INDEX_NAME, Base

ACTIVE_STATUS_CLAUSE = "status IN ('pending', 'confirmed')"


class Appointment(Base):
    """Represents a patient appointment with a doctor."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    consultation_type = Column(String)
    reason = Column(String)
    status = Column(String, nullable=False, default='pending')
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_appointments_date_doctor', 'appointment_date', 'doctor_id'),
        Index(
            ACTIVE_SLOT_INDEX_NAME,
            'doctor_id',
            'appointment_date',
            'appointment_time',
            unique=True,
            postgresql_where=text(ACTIVE_STATUS_CLAUSE),
            sqlite_where=text(ACTIVE_STATUS_CLAUSE),
        ),
    )

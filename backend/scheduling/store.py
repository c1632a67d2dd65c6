"""Database reads and writes the availability engine depends on."""

import logging
from datetime import date, time

from sqlalchemy.orm import Session

from backend.core import config
from backend.models.appointment import Appointment
from backend.models.availability import DoctorAvailability
from backend.scheduling.engine import (
    ACTIVE_STATUSES,
    AssignmentResult,
    AvailabilityConfig,
    classify_rules,
    encode_rules,
    parse_slot_catalogue,
    validate_assignment,
)

logger = logging.getLogger(__name__)


def get_slot_catalogue() -> list[time]:
    return parse_slot_catalogue(config.CLINIC_TIME_SLOTS)


def load_doctor_rules(doctor_id: int, db: Session) -> list[DoctorAvailability]:
    return db.query(DoctorAvailability).filter(
        DoctorAvailability.doctor_id == doctor_id,
    ).all()


def load_doctor_config(doctor_id: int, db: Session) -> AvailabilityConfig:
    return classify_rules(load_doctor_rules(doctor_id, db))


def load_active_appointments(doctor_id: int, slot_date: date, db: Session) -> list[Appointment]:
    return db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == slot_date,
        Appointment.status.in_(ACTIVE_STATUSES),
    ).order_by(Appointment.appointment_time.asc()).all()


def replace_doctor_rules(doctor_id: int, availability: AvailabilityConfig, db: Session) -> None:
    """Delete every stored rule for the doctor and insert the new grid.

    Runs in the caller's transaction; the caller commits or rolls back.
    """
    db.query(DoctorAvailability).filter(
        DoctorAvailability.doctor_id == doctor_id,
    ).delete(synchronize_session=False)

    rows = encode_rules(availability)
    db.add_all(
        DoctorAvailability(
            doctor_id=doctor_id,
            day_of_week=rule.day_of_week,
            time_slot=rule.time_slot,
            is_available=rule.is_available,
        )
        for rule in rows
    )
    db.flush()
    logger.info('Replaced availability for doctor %s with %d rows', doctor_id, len(rows))


def check_assignment(
    doctor_id: int,
    slot_date: date,
    slot_time: time,
    db: Session,
    exclude_appointment_id: int | None = None,
) -> AssignmentResult:
    """Re-read rules and bookings and validate the slot right before a write."""
    result = validate_assignment(
        load_doctor_config(doctor_id, db),
        load_active_appointments(doctor_id, slot_date, db),
        slot_date,
        slot_time,
        get_slot_catalogue(),
        exclude_appointment_id=exclude_appointment_id,
    )
    if result is not AssignmentResult.OK:
        logger.info(
            'Rejected slot %s %s for doctor %s: %s',
            slot_date,
            slot_time,
            doctor_id,
            result.value,
        )
    return result

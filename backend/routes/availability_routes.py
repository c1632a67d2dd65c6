import logging
from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import DOCTOR_ROLE, SessionContext, get_current_user
from backend.models.user import User
from backend.routes.common import database_unavailable, ensure_database_ready, get_db
from backend.scheduling.engine import (
    WORKING_DAYS,
    AvailabilityConfig,
    Empty,
    Rules,
    Unset,
    available_slots,
    format_slot,
    require_whole_minute,
)
from backend.scheduling.store import (
    get_slot_catalogue,
    load_active_appointments,
    load_doctor_config,
    replace_doctor_rules,
)

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)

CONFIG_STATE_NAMES = {
    Unset: 'unset',
    Empty: 'empty',
    Rules: 'configured',
}


class ReplaceAvailabilityRequest(BaseModel):
    days: dict[int, list[time]] = {}

    @field_validator('days')
    @classmethod
    def validate_days(cls, value: dict[int, list[time]]) -> dict[int, list[time]]:
        for day in value:
            if day not in WORKING_DAYS:
                raise ValueError('Days must be between 1 (Monday) and 6 (Saturday).')

        return {day: sorted({require_whole_minute(slot) for slot in slots}) for day, slots in value.items()}


class AvailabilityRulesResponse(BaseModel):
    doctor_id: int
    state: str
    days: dict[int, list[str]]


class AvailableSlotsResponse(BaseModel):
    doctor_id: int
    date: date
    slots: list[str]


def get_doctor_or_404(doctor_id: int, db: Session) -> User:
    doctor = db.query(User).filter(User.id == doctor_id, User.role == DOCTOR_ROLE).first()
    if not doctor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor not found.',
        )
    return doctor


def build_rules_response(doctor_id: int, availability: AvailabilityConfig) -> AvailabilityRulesResponse:
    days: dict[int, list[str]] = {}
    if isinstance(availability, Rules):
        days = {
            day: [format_slot(slot) for slot in sorted(availability.slots_for(day))]
            for day in WORKING_DAYS
            if availability.slots_for(day)
        }

    return AvailabilityRulesResponse(
        doctor_id=doctor_id,
        state=CONFIG_STATE_NAMES[type(availability)],
        days=days,
    )


def config_from_request(data: ReplaceAvailabilityRequest, catalogue: list[time]) -> AvailabilityConfig:
    allowed = set(catalogue)
    slots_by_day = {}

    for day, slots in data.days.items():
        for slot in slots:
            if slot not in allowed:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f'{format_slot(slot)} is not part of the clinic schedule.',
                )
        if slots:
            slots_by_day[day] = frozenset(slots)

    if not slots_by_day:
        return Empty()
    return Rules(slots_by_day)


@router.get('/time-slots', response_model=list[str])
def list_time_slots():
    return [format_slot(slot) for slot in get_slot_catalogue()]


@router.get('/doctors/{doctor_id}/rules', response_model=AvailabilityRulesResponse)
def get_doctor_rules(
    doctor_id: int,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        get_doctor_or_404(doctor_id, db)
        return build_rules_response(doctor_id, load_doctor_config(doctor_id, db))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/doctors/{doctor_id}/rules', response_model=AvailabilityRulesResponse)
def replace_doctor_rules_route(
    doctor_id: int,
    data: ReplaceAvailabilityRequest,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    if current_user.role != DOCTOR_ROLE or current_user.user_id != doctor_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the doctor can change their own availability.',
        )

    availability = config_from_request(data, get_slot_catalogue())

    ensure_database_ready()

    try:
        get_doctor_or_404(doctor_id, db)
        replace_doctor_rules(doctor_id, availability, db)
        db.commit()

        return build_rules_response(doctor_id, load_doctor_config(doctor_id, db))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to replace availability for doctor %s', doctor_id)
        raise database_unavailable() from exc


@router.get('/doctors/{doctor_id}/slots', response_model=AvailableSlotsResponse)
def list_available_slots(
    doctor_id: int,
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        get_doctor_or_404(doctor_id, db)
        slots = available_slots(
            load_doctor_config(doctor_id, db),
            load_active_appointments(doctor_id, slot_date, db),
            slot_date,
            get_slot_catalogue(),
        )

        return AvailableSlotsResponse(
            doctor_id=doctor_id,
            date=slot_date,
            slots=[format_slot(slot) for slot in slots],
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

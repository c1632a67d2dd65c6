import logging
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import RECEPTIONIST_ROLE, SessionContext, get_current_user, require_role
from backend.models.appointment import Appointment
from backend.models.patient import Patient
from backend.routes.availability_routes import get_doctor_or_404
from backend.routes.common import database_unavailable, ensure_database_ready, get_db
from backend.scheduling.engine import (
    AppointmentStatus,
    AssignmentResult,
    can_transition,
    is_terminal,
    require_whole_minute,
)
from backend.scheduling.store import check_assignment

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 600
ALREADY_BOOKED_DETAIL = 'This time is already booked for this doctor.'
ASSIGNMENT_CONFLICT_DETAILS = {
    AssignmentResult.SLOT_NOT_AVAILABLE: 'The selected time is not available for this doctor.',
    AssignmentResult.SLOT_ALREADY_BOOKED: ALREADY_BOOKED_DETAIL,
}
STATUS_VALUES = [appointment_status.value for appointment_status in AppointmentStatus]


def _normalize_status(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in STATUS_VALUES:
        raise ValueError('Invalid appointment status.')
    return normalized


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    patient_id: int
    appointment_date: date
    appointment_time: time
    consultation_type: str
    reason: str | None = None

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: time) -> time:
        return require_whole_minute(value)

    @field_validator('consultation_type')
    @classmethod
    def validate_consultation_type(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Consultation type is required.')
        return normalized

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')

        return normalized


class UpdateStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _normalize_status(value)


class RescheduleRequest(BaseModel):
    appointment_time: time
    appointment_date: date | None = None

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: time) -> time:
        return require_whole_minute(value)


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    appointment_date: date
    appointment_time: time
    consultation_type: str | None = None
    reason: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class DailyStatsResponse(BaseModel):
    date: date
    doctor_id: int | None = None
    total: int
    pending: int
    confirmed: int
    completed: int
    cancelled: int


def raise_for_assignment(result: AssignmentResult) -> None:
    if result is not AssignmentResult.OK:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ASSIGNMENT_CONFLICT_DETAILS[result],
        )


def get_appointment_or_404(appointment_id: int, db: Session) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    require_role(current_user, RECEPTIONIST_ROLE, detail='Only receptionists can book appointments.')

    ensure_database_ready()

    try:
        get_doctor_or_404(data.doctor_id, db)

        patient = db.query(Patient).filter(Patient.id == data.patient_id).first()
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Patient not found.',
            )

        raise_for_assignment(
            check_assignment(data.doctor_id, data.appointment_date, data.appointment_time, db)
        )

        appointment = Appointment(
            doctor_id=data.doctor_id,
            patient_id=data.patient_id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            consultation_type=data.consultation_type,
            reason=data.reason,
            status=AppointmentStatus.PENDING.value,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        logger.info(
            'Booked appointment %s for doctor %s on %s at %s by user %s',
            appointment.id,
            appointment.doctor_id,
            appointment.appointment_date,
            appointment.appointment_time,
            current_user.user_id,
        )
        return appointment
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ALREADY_BOOKED_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    appointment_date: date | None = Query(default=None, alias='date'),
    doctor_id: int | None = Query(default=None),
    patient_id: int | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias='status'),
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    if status_filter is not None and status_filter != 'all':
        try:
            status_filter = _normalize_status(status_filter)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Invalid appointment status.',
            ) from exc

    ensure_database_ready()

    try:
        query = db.query(Appointment)
        if appointment_date is not None:
            query = query.filter(Appointment.appointment_date == appointment_date)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if status_filter is not None and status_filter != 'all':
            query = query.filter(Appointment.status == status_filter)

        return query.order_by(
            Appointment.appointment_date.asc(),
            Appointment.appointment_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/stats', response_model=DailyStatsResponse)
def get_daily_stats(
    appointment_date: date = Query(..., alias='date'),
    doctor_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment.status, func.count(Appointment.id)).filter(
            Appointment.appointment_date == appointment_date,
        )
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)

        counts = {status_value: 0 for status_value in STATUS_VALUES}
        for status_value, count in query.group_by(Appointment.status).all():
            if status_value in counts:
                counts[status_value] = count

        return DailyStatsResponse(
            date=appointment_date,
            doctor_id=doctor_id,
            total=sum(counts.values()),
            **counts,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)

        if appointment.status == data.status:
            return appointment

        if not can_transition(appointment.status, data.status):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Cannot change an appointment from {appointment.status} to {data.status}.',
            )

        previous_status = appointment.status
        appointment.status = data.status
        db.commit()
        db.refresh(appointment)

        logger.info(
            'Appointment %s moved from %s to %s by user %s',
            appointment.id,
            previous_status,
            appointment.status,
            current_user.user_id,
        )
        return appointment
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/time', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)

        if is_terminal(appointment.status):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'A {appointment.status} appointment cannot be rescheduled.',
            )

        new_date = data.appointment_date or appointment.appointment_date
        raise_for_assignment(
            check_assignment(
                appointment.doctor_id,
                new_date,
                data.appointment_time,
                db,
                exclude_appointment_id=appointment.id,
            )
        )

        appointment.appointment_date = new_date
        appointment.appointment_time = data.appointment_time
        db.commit()
        db.refresh(appointment)

        logger.info(
            'Rescheduled appointment %s to %s at %s by user %s',
            appointment.id,
            appointment.appointment_date,
            appointment.appointment_time,
            current_user.user_id,
        )
        return appointment
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ALREADY_BOOKED_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

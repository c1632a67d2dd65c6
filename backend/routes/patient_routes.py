import logging
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import (
    ADMINISTRATOR_ROLE,
    DOCTOR_ROLE,
    SessionContext,
    get_current_user,
    require_role,
)
from backend.models.consultation import ConsultationRecord
from backend.models.patient import Patient
from backend.models.patient_note import PatientNote
from backend.routes.common import database_unavailable, ensure_database_ready, get_db
from backend.scheduling.engine import require_whole_minute

router = APIRouter(tags=['patients'])

logger = logging.getLogger(__name__)

MAX_NOTE_LENGTH = 2000
DUPLICATE_RUT_DETAIL = 'A patient with this RUT already exists.'


def _required_text(value: str, field_label: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{field_label} is required.')
    return normalized


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class CreatePatientRequest(BaseModel):
    rut: str
    first_name: str
    last_name: str
    phone: str | None = None
    email: str | None = None
    date_of_birth: date | None = None

    @field_validator('rut')
    @classmethod
    def validate_rut(cls, value: str) -> str:
        # Stored exactly as entered; check-digit validation lives in the front end.
        if not value.strip():
            raise ValueError('RUT is required.')
        return value

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, value: str) -> str:
        return _required_text(value, 'Name')

    @field_validator('phone', 'email')
    @classmethod
    def validate_contact(cls, value: str | None) -> str | None:
        return _optional_text(value)


class PatientResponse(BaseModel):
    id: int
    rut: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    email: str | None = None
    date_of_birth: date | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CreateNoteRequest(BaseModel):
    note: str

    @field_validator('note')
    @classmethod
    def validate_note(cls, value: str) -> str:
        normalized = _required_text(value, 'Note')
        if len(normalized) > MAX_NOTE_LENGTH:
            raise ValueError(f'Note must be {MAX_NOTE_LENGTH} characters or fewer.')
        return normalized


class NoteResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    note: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class CreateConsultationRequest(BaseModel):
    consultation_date: date
    consultation_time: time
    diagnosis: str | None = None
    notes: str | None = None

    @field_validator('consultation_time')
    @classmethod
    def validate_consultation_time(cls, value: time) -> time:
        return require_whole_minute(value)

    @field_validator('diagnosis', 'notes')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return _optional_text(value)


class ConsultationResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    consultation_date: date
    consultation_time: time
    diagnosis: str | None = None
    notes: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


def get_patient_or_404(patient_id: int, db: Session) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Patient not found.',
        )
    return patient


@router.get('', response_model=PatientResponse)
def find_patient_by_rut(
    rut: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        patient = db.query(Patient).filter(Patient.rut == rut).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if not patient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Patient not found.',
        )
    return patient


@router.post('', response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def create_patient(
    data: CreatePatientRequest,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        if db.query(Patient).filter(Patient.rut == data.rut).first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=DUPLICATE_RUT_DETAIL,
            )

        patient = Patient(**data.model_dump())
        db.add(patient)
        db.commit()
        db.refresh(patient)

        logger.info('Registered patient %s by user %s', patient.id, current_user.user_id)
        return patient
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=DUPLICATE_RUT_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{patient_id}', response_model=PatientResponse)
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        return get_patient_or_404(patient_id, db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{patient_id}/notes', response_model=list[NoteResponse])
def list_patient_notes(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    require_role(current_user, DOCTOR_ROLE, detail='Only doctors can read clinical notes.')

    ensure_database_ready()

    try:
        get_patient_or_404(patient_id, db)
        return (
            db.query(PatientNote)
            .filter(PatientNote.patient_id == patient_id)
            .order_by(PatientNote.created_at.desc(), PatientNote.id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/{patient_id}/notes', response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def add_patient_note(
    patient_id: int,
    data: CreateNoteRequest,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    require_role(current_user, DOCTOR_ROLE, detail='Only doctors can write clinical notes.')

    ensure_database_ready()

    try:
        get_patient_or_404(patient_id, db)

        note = PatientNote(patient_id=patient_id, doctor_id=current_user.user_id, note=data.note)
        db.add(note)
        db.commit()
        db.refresh(note)

        logger.info('Doctor %s added note %s for patient %s', current_user.user_id, note.id, patient_id)
        return note
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{patient_id}/notes/{note_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_patient_note(
    patient_id: int,
    note_id: int,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    require_role(current_user, DOCTOR_ROLE, detail='Only doctors can delete clinical notes.')

    ensure_database_ready()

    try:
        note = (
            db.query(PatientNote)
            .filter(PatientNote.id == note_id, PatientNote.patient_id == patient_id)
            .first()
        )
        if not note:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Note not found.',
            )

        if note.doctor_id != current_user.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the author can delete this note.',
            )

        db.delete(note)
        db.commit()

        logger.info('Doctor %s deleted note %s for patient %s', current_user.user_id, note_id, patient_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{patient_id}/history', response_model=list[ConsultationResponse])
def list_consultation_history(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    require_role(
        current_user,
        DOCTOR_ROLE,
        ADMINISTRATOR_ROLE,
        detail='Only doctors and administrators can read consultation history.',
    )

    ensure_database_ready()

    try:
        get_patient_or_404(patient_id, db)
        return (
            db.query(ConsultationRecord)
            .filter(ConsultationRecord.patient_id == patient_id)
            .order_by(
                ConsultationRecord.consultation_date.desc(),
                ConsultationRecord.consultation_time.desc(),
            )
            .all()
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/{patient_id}/history', response_model=ConsultationResponse, status_code=status.HTTP_201_CREATED)
def record_consultation(
    patient_id: int,
    data: CreateConsultationRequest,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    require_role(current_user, DOCTOR_ROLE, detail='Only doctors can record consultations.')

    ensure_database_ready()

    try:
        get_patient_or_404(patient_id, db)

        record = ConsultationRecord(
            patient_id=patient_id,
            doctor_id=current_user.user_id,
            consultation_date=data.consultation_date,
            consultation_time=data.consultation_time,
            diagnosis=data.diagnosis,
            notes=data.notes,
        )
        db.add(record)
        db.commit()
        db.refresh(record)

        logger.info('Doctor %s recorded consultation %s for patient %s', current_user.user_id, record.id, patient_id)
        return record
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import (
    ADMINISTRATOR_ROLE,
    DOCTOR_ROLE,
    STAFF_ROLES,
    SessionContext,
    get_current_user,
    require_role,
)
from backend.models.appointment import Appointment
from backend.models.availability import DoctorAvailability
from backend.models.consultation import ConsultationRecord
from backend.models.patient_note import PatientNote
from backend.models.user import User
from backend.routes.common import database_unavailable, ensure_database_ready, get_db

router = APIRouter(tags=['staff'])

logger = logging.getLogger(__name__)

ADMIN_ONLY_DETAIL = 'Only administrators can manage staff.'
DUPLICATE_EMAIL_DETAIL = 'A staff member with this email already exists.'


class CreateStaffRequest(BaseModel):
    email: str
    name: str
    role: str
    specialty: str | None = None
    phone: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid email is required.')
        return normalized

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in STAFF_ROLES:
            raise ValueError('Role must be doctor, receptionist or administrator.')
        return normalized

    @field_validator('specialty', 'phone')
    @classmethod
    def validate_optional(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class StaffResponse(BaseModel):
    id: int
    email: str
    name: str | None = None
    role: str
    specialty: str | None = None
    phone: str | None = None

    class Config:
        from_attributes = True


def has_clinical_records(user_id: int, db: Session) -> bool:
    for model in (Appointment, PatientNote, ConsultationRecord):
        if db.query(model.id).filter(model.doctor_id == user_id).first():
            return True
    return False


@router.get('', response_model=list[StaffResponse])
def list_staff(
    role: str | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    require_role(current_user, ADMINISTRATOR_ROLE, detail=ADMIN_ONLY_DETAIL)

    ensure_database_ready()

    try:
        query = db.query(User).filter(User.role.in_(STAFF_ROLES))
        if role is not None:
            query = query.filter(User.role == role.strip().lower())
        return query.order_by(User.role.asc(), User.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def create_staff_member(
    data: CreateStaffRequest,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    require_role(current_user, ADMINISTRATOR_ROLE, detail=ADMIN_ONLY_DETAIL)

    ensure_database_ready()

    try:
        if db.query(User).filter(User.email == data.email).first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=DUPLICATE_EMAIL_DETAIL,
            )

        user = User(
            email=data.email,
            name=data.name,
            role=data.role,
            specialty=data.specialty if data.role == DOCTOR_ROLE else None,
            phone=data.phone,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info('Administrator %s created %s %s', current_user.user_id, user.role, user.id)
        return user
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=DUPLICATE_EMAIL_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{user_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_staff_member(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    require_role(current_user, ADMINISTRATOR_ROLE, detail=ADMIN_ONLY_DETAIL)

    if user_id == current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Administrators cannot delete their own account.',
        )

    ensure_database_ready()

    try:
        user = db.query(User).filter(User.id == user_id, User.role.in_(STAFF_ROLES)).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Staff member not found.',
            )

        if has_clinical_records(user_id, db):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This staff member has appointments or clinical records and cannot be deleted.',
            )

        role = user.role
        db.query(DoctorAvailability).filter(DoctorAvailability.doctor_id == user_id).delete(synchronize_session=False)
        db.delete(user)
        db.commit()

        logger.info('Administrator %s deleted %s %s', current_user.user_id, role, user_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

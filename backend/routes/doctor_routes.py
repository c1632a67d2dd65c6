from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import DOCTOR_ROLE, SessionContext, get_current_user
from backend.models.user import User
from backend.routes.common import database_unavailable, ensure_database_ready, get_db

router = APIRouter(tags=['doctors'])


class DoctorResponse(BaseModel):
    id: int
    name: str | None = None
    specialty: str | None = None

    class Config:
        from_attributes = True


@router.get('', response_model=list[DoctorResponse])
def list_doctors(
    db: Session = Depends(get_db),
    current_user: SessionContext = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        return db.query(User).filter(User.role == DOCTOR_ROLE).order_by(User.name.asc(), User.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.models.user import User
from backend.routes.common import get_db

security = HTTPBearer()

DOCTOR_ROLE = "doctor"
RECEPTIONIST_ROLE = "receptionist"
ADMINISTRATOR_ROLE = "administrator"
STAFF_ROLES = frozenset({DOCTOR_ROLE, RECEPTIONIST_ROLE, ADMINISTRATOR_ROLE})


@dataclass(frozen=True)
class SessionContext:
    """Identity of the staff member making the current request."""

    user_id: int
    email: str
    name: str | None
    role: str

    @classmethod
    def from_user(cls, user: User) -> "SessionContext":
        return cls(user_id=user.id, email=user.email, name=user.name, role=user.role)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> SessionContext:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if user.role not in STAFF_ROLES:
        raise HTTPException(status_code=403, detail="Unknown staff role")
    return SessionContext.from_user(user)


def require_role(session: SessionContext, *roles: str, detail: str) -> None:
    if session.role not in roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

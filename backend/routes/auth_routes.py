from fastapi import APIRouter, Depends

from backend.auth.dependencies import SessionContext, get_current_user

router = APIRouter(tags=['auth'])


@router.get("/me")
def me(current_user: SessionContext = Depends(get_current_user)):
    return {
        "id": current_user.user_id,
        "email": current_user.email,
        "name": current_user.name,
        "role": current_user.role,
    }

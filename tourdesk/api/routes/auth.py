from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy.orm import Session
from ...core import security
from ...db.session import get_db
from ...db import models
from .. import deps


router = APIRouter(prefix="/auth", tags=["auth"])


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


def _admin_payload(admin: models.AdminUser) -> dict:
    return {"id": admin.id, "login": admin.login, "role": admin.role}


@router.post("/login", response_model=TokenResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    admin = db.query(models.AdminUser).filter_by(login=form_data.username).first()
    if not admin or not security.verify_password(form_data.password, admin.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    token = security.create_access_token(admin.login, admin.role.value)
    admin.last_login_at = datetime.now(timezone.utc)
    db.commit()
    return TokenResponse(access_token=token, user=_admin_payload(admin))


@router.get("/me")
def me(current: models.AdminUser = Depends(deps.get_current_admin)):
    return _admin_payload(current)

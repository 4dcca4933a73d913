from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from ...api import deps
from ...core.exceptions import TransientIOError
from ...db.session import get_db
from ...db import models, schemas
from ...services import conflict_resolver

router = APIRouter(prefix="/conflicts", tags=["conflicts"])


@router.post("/sweep", response_model=list[schemas.ConflictResolution])
def sweep_conflicts(
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin")),
):
    try:
        return conflict_resolver.sweep_all(db, datetime.now(timezone.utc))
    except TransientIOError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.run import PaceRead
from app.services.run_lifecycle import RunLifecycle, get_run_lifecycle

router = APIRouter(prefix="/pace", tags=["pace"])


@router.get("/{email}", response_model=PaceRead)
def get_pace(
    email: str,
    db: Session = Depends(get_db),
    lifecycle: RunLifecycle = Depends(get_run_lifecycle),
):
    # Placeholder until a pace engine is plugged into RunLifecycle
    return PaceRead(pace=lifecycle.required_pace(db, email))

import hashlib
import logging
import secrets

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AccountNotFound, EmailAlreadyRegistered
from app.db import get_db
from app.models.account import Account
from app.models.historical_run import HistoricalRun
from app.schemas.account import AccountCreate, AccountRead
from app.schemas.run import HistoricalRunRead

router = APIRouter(prefix="/accounts", tags=["accounts"])

logger = logging.getLogger("uvicorn.error")


def hash_credential(password: str, salt: str | None = None) -> str:
    """Salted PBKDF2 digest stored as 'salt$hex'."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100_000)
    return f"{salt}${digest.hex()}"


@router.post("/create", response_model=AccountRead)
def create_account(payload: AccountCreate, db: Session = Depends(get_db)):
    if db.query(Account).filter(Account.email == payload.email).first():
        raise EmailAlreadyRegistered(payload.email)

    account = Account(
        email=payload.email,
        name=payload.name,
        credential_hash=hash_credential(payload.password),
    )
    db.add(account)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailAlreadyRegistered(payload.email)
    db.refresh(account)
    logger.info("Account %s created", account.email)
    return AccountRead(name=account.name, email=account.email, past_runs=[])


@router.get("/get/{email}", response_model=AccountRead)
def get_account(email: str, db: Session = Depends(get_db)):
    account = db.query(Account).filter(Account.email == email).first()
    if not account:
        raise AccountNotFound(email)

    past_runs = (
        db.query(HistoricalRun)
        .filter(HistoricalRun.account_id == account.id)
        .order_by(HistoricalRun.completed_at.desc(), HistoricalRun.id.desc())
        .all()
    )
    return AccountRead(
        name=account.name,
        email=account.email,
        past_runs=[HistoricalRunRead.model_validate(r) for r in past_runs],
    )

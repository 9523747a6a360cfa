from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from app.db import Base


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)

    # Business key; lookups go through this, never through the id
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)

    # salt$hash, see app.api.accounts
    credential_hash = Column(String, nullable=False)

    # Explicit optional reference to the account's one active run.
    # NULL means "no active run". Kept as a bare id (no FK) so the
    # accounts <-> active_runs pair does not form a constraint cycle;
    # RunLifecycle keeps it in step with active_runs.account_id.
    active_run_id = Column(Integer, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

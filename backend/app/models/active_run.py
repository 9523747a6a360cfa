from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey
from app.db import Base


class ActiveRun(Base):
    __tablename__ = "active_runs"

    id = Column(Integer, primary_key=True, index=True)

    # unique: the storage layer refuses a second active run per account
    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    origin_lat = Column(Float, nullable=False)
    origin_lng = Column(Float, nullable=False)
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)

    started_at = Column(DateTime(timezone=True), nullable=False)
    needed_arrival_at = Column(DateTime(timezone=True), nullable=False)

    pace_needed = Column(String, nullable=False)

    # Whatever the client sent as its own distance estimate, stored verbatim
    distance_hint = Column(String, nullable=True)

    # NULL until the route provider answers (pending-route)
    distance_m = Column(Integer, nullable=True)

from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey
from app.db import Base


class HistoricalRun(Base):
    __tablename__ = "historical_runs"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Id of the active run this row archives. Unique, so the same run can
    # never be archived twice.
    source_run_id = Column(Integer, nullable=False, unique=True)

    origin_lat = Column(Float, nullable=False)
    origin_lng = Column(Float, nullable=False)
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)

    # 0 when the run ended before its route was resolved
    distance_m = Column(Integer, nullable=False, server_default="0")
    average_pace = Column(String, nullable=False)

    completed_at = Column(DateTime(timezone=True), nullable=False, index=True)

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.run_lifecycle import RunState


class LatLngIn(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class StartRunRequest(BaseModel):
    email: str
    origin: LatLngIn
    destination: LatLngIn
    # Client's own distance estimate, kept as sent
    distance: Optional[str] = None
    # ISO 8601 datetime or a time of day like '07:45' / '7:45 AM'
    needed_arrival_time: Optional[str] = None


class EmailRequest(BaseModel):
    email: str


class EndRunRequest(EmailRequest):
    """Schema for ending a run. Extra save-run metadata is accepted and ignored."""

    time_finished: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class RouteRequest(BaseModel):
    origin: LatLngIn
    destination: LatLngIn


class RouteRead(BaseModel):
    distance_meters: int
    encoded_polyline: str


class RunStatusRead(BaseModel):
    state: RunState
    started_at: Optional[datetime] = None
    needed_arrival_at: Optional[datetime] = None
    distance_meters: Optional[int] = None
    distance_hint: Optional[str] = None
    pace_needed: Optional[str] = None


class PaceRead(BaseModel):
    pace: str


class HistoricalRunRead(BaseModel):
    """One archived run as shown in an account's history."""

    origin_lat: float
    origin_lng: float
    destination_lat: float
    destination_lng: float
    distance_m: int
    average_pace: str
    completed_at: datetime

    model_config = ConfigDict(from_attributes=True)

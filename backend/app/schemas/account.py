from pydantic import BaseModel

from app.schemas.run import HistoricalRunRead


class AccountCreate(BaseModel):
    email: str
    name: str
    password: str


class AccountRead(BaseModel):
    """Schema returned when reading an account, newest runs first."""

    name: str
    email: str
    past_runs: list[HistoricalRunRead] = []

"""Pace strategies for the run lifecycle.

Pace is not computed yet. The lifecycle asks a ``PaceEngine`` for the pace a
run needs and the pace it averaged, so a real engine can be dropped in later
without touching the state transitions.
"""
from datetime import datetime
from typing import Protocol

from app.core.constants import PACE_UNAVAILABLE


class PaceEngine(Protocol):
    def required_pace(
        self,
        started_at: datetime,
        needed_arrival_at: datetime,
        distance_m: int | None,
    ) -> str: ...

    def average_pace(self, run, completed_at: datetime) -> str: ...


class NullPaceEngine:
    """Default engine: every pace is unavailable."""

    def required_pace(self, started_at, needed_arrival_at, distance_m):
        return PACE_UNAVAILABLE

    def average_pace(self, run, completed_at):
        return PACE_UNAVAILABLE

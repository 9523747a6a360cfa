"""Run lifecycle: start a run, attach its route, archive it when it ends.

An account is always in one of three states::

    no_active_run --start--> pending_route --route ok--> routed
          ^                        |                       |
          +--------end/abandon-----+-----------------------+

``end`` also writes a HistoricalRun. Each transition runs as one transaction
with the account row locked, so two requests for the same account serialize
and the second one sees what the first one did.

The route lookup is the only step that talks to the outside world. It runs
*after* the active run is committed and outside any transaction: if the
provider fails, times out, or the caller goes away, the run stays in
``pending_route`` and ``resolve_route`` can finish the job later.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    AccountNotFound,
    NoActiveRun,
    NoActiveRunToEnd,
    NoActiveRunToRoute,
    RouteLookupFailed,
    RunAlreadyActive,
)
from app.core.time_utils import parse_arrival_time, utcnow
from app.models.account import Account
from app.models.active_run import ActiveRun
from app.models.historical_run import HistoricalRun
from app.services.pace import NullPaceEngine, PaceEngine
from app.services.route_provider import (
    GatewayError,
    LatLng,
    RouteResult,
    get_route_gateway,
)

logger = logging.getLogger("uvicorn.error")


class RunState(str, Enum):
    no_active_run = "no_active_run"
    pending_route = "pending_route"
    routed = "routed"


def run_state(run: ActiveRun | None) -> RunState:
    if run is None:
        return RunState.no_active_run
    if run.distance_m is None:
        return RunState.pending_route
    return RunState.routed


@dataclass
class RunStatus:
    state: RunState
    run: ActiveRun | None = None


def is_link_symmetric(account: Account, run: ActiveRun | None) -> bool:
    """True when accounts.active_run_id and active_runs.account_id agree."""
    if run is None:
        return account.active_run_id is None
    return account.active_run_id == run.id and run.account_id == account.id


@contextmanager
def _transaction(db: Session):
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


class RunLifecycle:
    def __init__(
        self,
        gateway,
        pace_engine: PaceEngine | None = None,
        provisional_arrival: timedelta | None = None,
        tz_name: str | None = None,
    ):
        self.gateway = gateway
        self.pace_engine = pace_engine or NullPaceEngine()
        self.provisional_arrival = provisional_arrival or timedelta(
            hours=settings.provisional_arrival_hours
        )
        self.tz_name = tz_name or settings.timezone

    # -- lookups -----------------------------------------------------------

    def _find_account(self, db: Session, email: str, lock: bool = False) -> Account:
        query = db.query(Account).filter(Account.email == email)
        if lock:
            # Serialization point for everything touching this account's run
            query = query.with_for_update()
        account = query.first()
        if account is None:
            raise AccountNotFound(email)
        return account

    def _active_run_of(self, db: Session, account: Account) -> ActiveRun | None:
        # active_runs.account_id is the side the database keeps unique
        run = db.query(ActiveRun).filter(ActiveRun.account_id == account.id).first()
        if not is_link_symmetric(account, run):
            logger.warning(
                "Account %s links active run %s but store holds %s",
                account.email, account.active_run_id, run.id if run is not None else None,
            )
        return run

    # -- transitions -------------------------------------------------------

    def start(
        self,
        db: Session,
        email: str,
        origin: LatLng,
        destination: LatLng,
        distance_hint: str | None = None,
        needed_arrival_time: str | None = None,
    ) -> RouteResult:
        """Create the account's active run, then resolve its route.

        Raises AccountNotFound, RunAlreadyActive, RouteLookupFailed, or
        ValueError for an unreadable arrival time (nothing written then).
        """
        now = utcnow()
        needed_arrival_at = parse_arrival_time(
            needed_arrival_time, now, self.provisional_arrival, self.tz_name
        )

        try:
            with _transaction(db):
                account = self._find_account(db, email, lock=True)
                if self._active_run_of(db, account) is not None:
                    raise RunAlreadyActive(email)

                run = ActiveRun(
                    account_id=account.id,
                    origin_lat=origin.lat,
                    origin_lng=origin.lng,
                    destination_lat=destination.lat,
                    destination_lng=destination.lng,
                    started_at=now,
                    needed_arrival_at=needed_arrival_at,
                    pace_needed=self.pace_engine.required_pace(now, needed_arrival_at, None),
                    distance_hint=distance_hint,
                    distance_m=None,
                )
                db.add(run)
                db.flush()
                account.active_run_id = run.id
                run_id = run.id
        except IntegrityError:
            # A concurrent start won the unique index on active_runs.account_id
            raise RunAlreadyActive(email)

        logger.info("Started run %s for %s (pending route)", run_id, email)
        return self._attach_route(db, email, run_id, origin, destination, "start")

    def resolve_route(self, db: Session, email: str) -> RouteResult:
        """Retry the route lookup for the account's existing active run."""
        with _transaction(db):
            account = self._find_account(db, email)
            run = self._active_run_of(db, account)
            if run is None:
                raise NoActiveRunToRoute(email)
            run_id = run.id
            origin = LatLng(run.origin_lat, run.origin_lng)
            destination = LatLng(run.destination_lat, run.destination_lng)

        return self._attach_route(db, email, run_id, origin, destination, "resolve_route")

    def _attach_route(
        self,
        db: Session,
        email: str,
        run_id: int,
        origin: LatLng,
        destination: LatLng,
        operation: str,
    ) -> RouteResult:
        try:
            route = self.gateway.compute_route(origin, destination)
        except GatewayError as e:
            logger.warning("Run %s for %s left pending: %s", run_id, email, e.cause)
            raise RouteLookupFailed(operation, e.cause)

        with _transaction(db):
            account = self._find_account(db, email, lock=True)
            run = self._active_run_of(db, account)
            if run is None or run.id != run_id:
                logger.info(
                    "Run %s for %s ended before its route resolved; distance dropped",
                    run_id, email,
                )
            else:
                run.distance_m = route.distance_meters
                logger.info("Run %s for %s routed: %sm", run_id, email, route.distance_meters)
        return route

    def end(self, db: Session, email: str) -> HistoricalRun:
        """Archive the active run as a HistoricalRun and clear it.

        Insert, delete and unlink commit together or not at all.
        """
        completed_at = utcnow()
        try:
            with _transaction(db):
                account = self._find_account(db, email, lock=True)
                run = self._active_run_of(db, account)
                if run is None:
                    raise NoActiveRunToEnd(email)

                past = HistoricalRun(
                    account_id=account.id,
                    source_run_id=run.id,
                    origin_lat=run.origin_lat,
                    origin_lng=run.origin_lng,
                    destination_lat=run.destination_lat,
                    destination_lng=run.destination_lng,
                    distance_m=run.distance_m or 0,
                    average_pace=self.pace_engine.average_pace(run, completed_at),
                    completed_at=completed_at,
                )
                run_id = run.id
                db.add(past)
                db.delete(run)
                account.active_run_id = None
                db.flush()
        except IntegrityError:
            # source_run_id already archived by a concurrent end
            raise NoActiveRunToEnd(email)

        logger.info("Ended run %s for %s", run_id, email)
        return past

    def abandon(self, db: Session, email: str) -> None:
        """Drop the active run without archiving it."""
        with _transaction(db):
            account = self._find_account(db, email, lock=True)
            run = self._active_run_of(db, account)
            if run is None:
                raise NoActiveRunToEnd(email)
            run_id = run.id
            db.delete(run)
            account.active_run_id = None
        logger.info("Abandoned run %s for %s", run_id, email)

    # -- queries -----------------------------------------------------------

    def status(self, db: Session, email: str) -> RunStatus:
        account = self._find_account(db, email)
        run = self._active_run_of(db, account)
        return RunStatus(state=run_state(run), run=run)

    def required_pace(self, db: Session, email: str) -> str:
        account = self._find_account(db, email)
        run = self._active_run_of(db, account)
        if run is None:
            raise NoActiveRun(email)
        return self.pace_engine.required_pace(
            run.started_at, run.needed_arrival_at, run.distance_m
        )


def get_run_lifecycle(gateway=Depends(get_route_gateway)) -> RunLifecycle:
    return RunLifecycle(gateway)

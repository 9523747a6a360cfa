from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.constants import PACE_UNAVAILABLE
from app.core.errors import (
    AccountNotFound,
    ConflictingState,
    NoActiveRun,
    NoActiveRunToEnd,
    NoActiveRunToRoute,
    NotFound,
    RouteLookupFailed,
    RunAlreadyActive,
    UpstreamFailure,
)
from app.core.time_utils import utcnow
from app.models.account import Account
from app.models.active_run import ActiveRun
from app.models.historical_run import HistoricalRun
from app.services.route_provider import LatLng
from app.services.run_lifecycle import (
    RunLifecycle,
    RunState,
    is_link_symmetric,
)

ORIGIN = LatLng(0.0, 0.0)
DEST = LatLng(0.0, 1.0)


def active_runs(db):
    return db.query(ActiveRun).all()


def historical_runs(db):
    return db.query(HistoricalRun).all()


def linked_symmetrically(db, account):
    run = db.query(ActiveRun).filter(ActiveRun.account_id == account.id).first()
    return is_link_symmetric(account, run)


def reload_account(db, email="a@x.com"):
    db.expire_all()
    return db.query(Account).filter(Account.email == email).one()


def test_start_then_end_archives_one_run(db, account, gateway):
    lifecycle = RunLifecycle(gateway)

    route = lifecycle.start(db, "a@x.com", ORIGIN, DEST, distance_hint="1.5km")
    assert route.distance_meters == 1500
    assert route.encoded_path == gateway.encoded_path

    acct = reload_account(db)
    [run] = active_runs(db)
    assert acct.active_run_id == run.id
    assert run.account_id == acct.id
    assert run.distance_m == 1500
    assert run.distance_hint == "1.5km"
    assert run.pace_needed == PACE_UNAVAILABLE
    assert lifecycle.status(db, "a@x.com").state == RunState.routed

    lifecycle.end(db, "a@x.com")

    acct = reload_account(db)
    assert active_runs(db) == []
    assert acct.active_run_id is None
    [past] = historical_runs(db)
    assert past.distance_m == 1500
    assert past.account_id == acct.id
    assert past.average_pace == PACE_UNAVAILABLE
    assert (past.origin_lat, past.origin_lng) == (0.0, 0.0)
    assert (past.destination_lat, past.destination_lng) == (0.0, 1.0)
    assert linked_symmetrically(db, acct)
    assert lifecycle.status(db, "a@x.com").state == RunState.no_active_run


def test_second_start_conflicts_and_keeps_first_run(db, account, gateway):
    lifecycle = RunLifecycle(gateway)
    lifecycle.start(db, "a@x.com", ORIGIN, DEST)
    [first] = active_runs(db)
    first_id, first_started = first.id, first.started_at

    with pytest.raises(RunAlreadyActive) as exc:
        lifecycle.start(db, "a@x.com", LatLng(5.0, 5.0), LatLng(6.0, 6.0))
    assert isinstance(exc.value, ConflictingState)

    db.expire_all()
    [still] = active_runs(db)
    assert still.id == first_id
    assert still.started_at == first_started
    assert (still.origin_lat, still.origin_lng) == (0.0, 0.0)
    assert len(gateway.calls) == 1
    assert linked_symmetrically(db, reload_account(db))


def test_end_without_active_run_conflicts_and_writes_nothing(db, account, gateway):
    lifecycle = RunLifecycle(gateway)

    with pytest.raises(NoActiveRunToEnd) as exc:
        lifecycle.end(db, "a@x.com")
    assert isinstance(exc.value, ConflictingState)
    assert historical_runs(db) == []
    assert active_runs(db) == []
    assert reload_account(db).active_run_id is None


def test_end_twice_fails_second_time(db, account, gateway):
    lifecycle = RunLifecycle(gateway)
    lifecycle.start(db, "a@x.com", ORIGIN, DEST)
    lifecycle.end(db, "a@x.com")

    with pytest.raises(ConflictingState):
        lifecycle.end(db, "a@x.com")
    assert len(historical_runs(db)) == 1


def test_gateway_failure_leaves_pending_run_and_retry_routes_it(db, account, gateway):
    lifecycle = RunLifecycle(gateway)
    gateway.error = "connection refused"

    with pytest.raises(RouteLookupFailed) as exc:
        lifecycle.start(db, "a@x.com", ORIGIN, DEST)
    assert isinstance(exc.value, UpstreamFailure)
    assert exc.value.operation == "start"
    assert "connection refused" in exc.value.message

    db.expire_all()
    [pending] = active_runs(db)
    assert pending.distance_m is None
    assert reload_account(db).active_run_id == pending.id
    assert lifecycle.status(db, "a@x.com").state == RunState.pending_route
    pending_id = pending.id

    gateway.error = None
    route = lifecycle.resolve_route(db, "a@x.com")
    assert route.distance_meters == 1500

    db.expire_all()
    [routed] = active_runs(db)
    assert routed.id == pending_id
    assert routed.distance_m == 1500
    assert lifecycle.status(db, "a@x.com").state == RunState.routed


def test_retry_failure_is_tagged_with_resolve_route(db, account, gateway):
    lifecycle = RunLifecycle(gateway)
    gateway.error = "timed out"
    with pytest.raises(RouteLookupFailed):
        lifecycle.start(db, "a@x.com", ORIGIN, DEST)

    with pytest.raises(RouteLookupFailed) as exc:
        lifecycle.resolve_route(db, "a@x.com")
    assert exc.value.operation == "resolve_route"
    assert len(active_runs(db)) == 1


def test_pending_run_can_still_be_ended(db, account, gateway):
    lifecycle = RunLifecycle(gateway)
    gateway.error = "down"
    with pytest.raises(RouteLookupFailed):
        lifecycle.start(db, "a@x.com", ORIGIN, DEST)

    lifecycle.end(db, "a@x.com")
    [past] = historical_runs(db)
    assert past.distance_m == 0
    assert active_runs(db) == []


def test_resolve_route_without_active_run(db, account, gateway):
    with pytest.raises(NoActiveRunToRoute):
        RunLifecycle(gateway).resolve_route(db, "a@x.com")
    assert gateway.calls == []


def test_unknown_account_has_no_side_effects(db, account, gateway):
    lifecycle = RunLifecycle(gateway)

    with pytest.raises(AccountNotFound) as exc:
        lifecycle.start(db, "ghost@x.com", ORIGIN, DEST)
    assert isinstance(exc.value, NotFound)
    with pytest.raises(AccountNotFound):
        lifecycle.end(db, "ghost@x.com")

    assert gateway.calls == []
    assert active_runs(db) == []
    assert historical_runs(db) == []


def test_abandon_discards_without_archiving(db, account, gateway):
    lifecycle = RunLifecycle(gateway)
    lifecycle.start(db, "a@x.com", ORIGIN, DEST)

    lifecycle.abandon(db, "a@x.com")

    assert active_runs(db) == []
    assert historical_runs(db) == []
    assert reload_account(db).active_run_id is None
    with pytest.raises(NoActiveRunToEnd):
        lifecycle.abandon(db, "a@x.com")


def test_bad_arrival_time_writes_nothing(db, account, gateway):
    with pytest.raises(ValueError):
        RunLifecycle(gateway).start(db, "a@x.com", ORIGIN, DEST, needed_arrival_time="soonish")
    assert active_runs(db) == []
    assert gateway.calls == []


def test_provisional_arrival_when_none_given(db, account, gateway):
    lifecycle = RunLifecycle(gateway, provisional_arrival=timedelta(hours=2))
    lifecycle.start(db, "a@x.com", ORIGIN, DEST)
    [run] = active_runs(db)
    assert run.needed_arrival_at - run.started_at == timedelta(hours=2)


def test_unique_index_blocks_second_active_run_row(db, account):
    now = utcnow()
    fields = dict(
        account_id=account.id,
        origin_lat=0.0, origin_lng=0.0,
        destination_lat=0.0, destination_lng=1.0,
        started_at=now, needed_arrival_at=now,
        pace_needed=PACE_UNAVAILABLE,
    )
    db.add(ActiveRun(**fields))
    db.commit()
    db.add(ActiveRun(**fields))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_concurrent_start_losing_the_insert_race_conflicts(db, account, gateway, monkeypatch):
    lifecycle = RunLifecycle(gateway)
    lifecycle.start(db, "a@x.com", ORIGIN, DEST)

    # Second start passes the in-app check, as if it read before the first committed
    monkeypatch.setattr(RunLifecycle, "_active_run_of", lambda self, db, account: None)
    with pytest.raises(RunAlreadyActive):
        lifecycle.start(db, "a@x.com", ORIGIN, DEST)

    monkeypatch.undo()
    assert len(active_runs(db)) == 1
    assert linked_symmetrically(db, reload_account(db))


def test_run_ended_while_route_in_flight_is_not_resurrected(db, account, gateway):
    lifecycle = RunLifecycle(gateway)

    def end_during_lookup(origin, destination):
        lifecycle.end(db, "a@x.com")
        return original(origin, destination)

    original = gateway.compute_route
    gateway.compute_route = end_during_lookup
    lifecycle.start(db, "a@x.com", ORIGIN, DEST)

    assert active_runs(db) == []
    assert len(historical_runs(db)) == 1
    assert reload_account(db).active_run_id is None


def test_required_pace_is_placeholder(db, account, gateway):
    lifecycle = RunLifecycle(gateway)
    with pytest.raises(NoActiveRun):
        lifecycle.required_pace(db, "a@x.com")
    lifecycle.start(db, "a@x.com", ORIGIN, DEST)
    assert lifecycle.required_pace(db, "a@x.com") == PACE_UNAVAILABLE


def test_pace_engine_is_injectable(db, account, gateway):
    class FixedPace:
        def required_pace(self, started_at, needed_arrival_at, distance_m):
            return "6:00/km"

        def average_pace(self, run, completed_at):
            return "5:45/km"

    lifecycle = RunLifecycle(gateway, pace_engine=FixedPace())
    lifecycle.start(db, "a@x.com", ORIGIN, DEST)
    assert active_runs(db)[0].pace_needed == "6:00/km"
    lifecycle.end(db, "a@x.com")
    assert historical_runs(db)[0].average_pace == "5:45/km"


def test_malformed_route_response_fails_as_upstream_and_keeps_run(db, account):
    import httpx
    from app.services.route_provider import RoutesApiGateway

    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"routes": {"first": {}}})
    )
    lifecycle = RunLifecycle(RoutesApiGateway(api_key="k", transport=transport))

    with pytest.raises(RouteLookupFailed) as exc:
        lifecycle.start(db, "a@x.com", ORIGIN, DEST)
    assert "Malformed routes" in exc.value.cause
    assert lifecycle.status(db, "a@x.com").state == RunState.pending_route

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.run import (
    EmailRequest,
    EndRunRequest,
    RouteRead,
    RunStatusRead,
    StartRunRequest,
)
from app.services.route_provider import LatLng
from app.services.run_lifecycle import RunLifecycle, get_run_lifecycle

router = APIRouter(prefix="/run", tags=["run"])


@router.post("/start", response_model=RouteRead)
def start_run(
    payload: StartRunRequest,
    db: Session = Depends(get_db),
    lifecycle: RunLifecycle = Depends(get_run_lifecycle),
):
    """Start a run and resolve its route.

    A 502 here still leaves the run active (pending route); call
    POST /run/route to retry the lookup.
    """
    try:
        route = lifecycle.start(
            db,
            payload.email,
            LatLng(payload.origin.lat, payload.origin.lng),
            LatLng(payload.destination.lat, payload.destination.lng),
            distance_hint=payload.distance,
            needed_arrival_time=payload.needed_arrival_time,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return RouteRead(
        distance_meters=route.distance_meters,
        encoded_polyline=route.encoded_path,
    )


@router.post("/route", response_model=RouteRead)
def resolve_route(
    payload: EmailRequest,
    db: Session = Depends(get_db),
    lifecycle: RunLifecycle = Depends(get_run_lifecycle),
):
    route = lifecycle.resolve_route(db, payload.email)
    return RouteRead(
        distance_meters=route.distance_meters,
        encoded_polyline=route.encoded_path,
    )


@router.post("/end")
def end_run(
    payload: EndRunRequest,
    db: Session = Depends(get_db),
    lifecycle: RunLifecycle = Depends(get_run_lifecycle),
):
    lifecycle.end(db, payload.email)
    return {}


@router.post("/abandon")
def abandon_run(
    payload: EmailRequest,
    db: Session = Depends(get_db),
    lifecycle: RunLifecycle = Depends(get_run_lifecycle),
):
    lifecycle.abandon(db, payload.email)
    return {}


@router.get("/status/{email}", response_model=RunStatusRead)
def run_status(
    email: str,
    db: Session = Depends(get_db),
    lifecycle: RunLifecycle = Depends(get_run_lifecycle),
):
    status = lifecycle.status(db, email)
    run = status.run
    if run is None:
        return RunStatusRead(state=status.state)
    return RunStatusRead(
        state=status.state,
        started_at=run.started_at,
        needed_arrival_at=run.needed_arrival_at,
        distance_meters=run.distance_m,
        distance_hint=run.distance_hint,
        pace_needed=run.pace_needed,
    )

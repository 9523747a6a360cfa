from fastapi import APIRouter, Depends

from app.core.errors import RouteLookupFailed
from app.schemas.run import RouteRead, RouteRequest
from app.services.route_provider import GatewayError, LatLng, get_route_gateway

router = APIRouter(prefix="/route", tags=["route"])


@router.post("", response_model=RouteRead)
def get_generic_route(payload: RouteRequest, gateway=Depends(get_route_gateway)):
    """Look up a walking route without touching any run."""
    try:
        route = gateway.compute_route(
            LatLng(payload.origin.lat, payload.origin.lng),
            LatLng(payload.destination.lat, payload.destination.lng),
        )
    except GatewayError as e:
        raise RouteLookupFailed("route", e.cause)
    return RouteRead(
        distance_meters=route.distance_meters,
        encoded_polyline=route.encoded_path,
    )

"""Gateway to the Google Routes API.

The rest of the app only ever sees a ``RouteResult`` or a ``GatewayError``;
the provider's request/response shape stays inside this module.
"""
import logging
from dataclasses import dataclass

import httpx

from app.core.config import settings
from app.core.constants import ROUTES_FIELD_MASK, TRAVEL_MODE

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float


@dataclass(frozen=True)
class RouteResult:
    distance_meters: int
    encoded_path: str


class GatewayError(Exception):
    """Transport, auth, timeout or parse failure talking to the provider."""

    def __init__(self, cause: str):
        super().__init__(cause)
        self.cause = cause


def _waypoint(point: LatLng) -> dict:
    return {"location": {"latLng": {"latitude": point.lat, "longitude": point.lng}}}


def build_route_request(origin: LatLng, destination: LatLng) -> dict:
    return {
        "origin": _waypoint(origin),
        "destination": _waypoint(destination),
        "travelMode": TRAVEL_MODE,
    }


def parse_route_response(payload) -> RouteResult:
    """Pull distance and polyline out of the first candidate route.

    The Routes API omits fields whose value is the default, so a missing
    ``distanceMeters`` means 0 (origin == destination). int64 fields may
    arrive as JSON strings of digits.
    """
    if not isinstance(payload, dict):
        raise GatewayError("Route response is not a JSON object")
    routes = payload.get("routes")
    if routes is None or routes == []:
        raise GatewayError("No route found between origin and destination")
    if not isinstance(routes, list):
        raise GatewayError("Malformed routes: expected a list")
    first = routes[0]
    if not isinstance(first, dict):
        raise GatewayError("Malformed route entry")

    raw_distance = first.get("distanceMeters", 0)
    if isinstance(raw_distance, int) and not isinstance(raw_distance, bool):
        distance = raw_distance
    elif isinstance(raw_distance, str) and raw_distance.isascii() and raw_distance.isdigit():
        distance = int(raw_distance)
    else:
        raise GatewayError(f"Malformed distanceMeters: {raw_distance!r}")
    if distance < 0:
        raise GatewayError(f"Negative distanceMeters: {distance}")

    polyline = first.get("polyline")
    if not isinstance(polyline, dict):
        raise GatewayError(f"Malformed polyline: {polyline!r}")
    encoded = polyline.get("encodedPolyline")
    if not isinstance(encoded, str) or encoded == "":
        raise GatewayError(f"Malformed encodedPolyline: {encoded!r}")
    return RouteResult(distance_meters=distance, encoded_path=encoded)


class RoutesApiGateway:
    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.routes_api_key
        self.url = url or settings.routes_api_url
        self.timeout = timeout if timeout is not None else settings.route_timeout_seconds
        # tests pass an httpx.MockTransport here
        self.transport = transport

    def compute_route(self, origin: LatLng, destination: LatLng) -> RouteResult:
        if not self.api_key:
            raise GatewayError("Routes API key not configured")

        headers = {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": ROUTES_FIELD_MASK,
        }
        body = build_route_request(origin, destination)
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.post(self.url, json=body, headers=headers)
        except httpx.TimeoutException:
            logger.warning("Routes API timed out after %ss", self.timeout)
            raise GatewayError(f"Route provider timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            logger.warning("Routes API transport error: %s", e)
            raise GatewayError(f"Route provider unreachable: {e}")

        if r.status_code != 200:
            logger.warning("Routes API returned %s: %s", r.status_code, r.text)
            raise GatewayError(f"Route provider returned {r.status_code}: {r.text}")
        try:
            payload = r.json()
        except ValueError:
            raise GatewayError("Route provider returned invalid JSON")
        return parse_route_response(payload)


def get_route_gateway() -> RoutesApiGateway:
    """FastAPI dependency; tests override it with a fake."""
    return RoutesApiGateway()

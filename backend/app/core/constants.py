"""Shared application constants.

Values that both the route gateway and the run lifecycle depend on live here
so the wire format and placeholders are documented in one place.
"""

# Pace value stored when no pace engine can compute one
PACE_UNAVAILABLE = "N/A"

# Travel mode sent to the routing provider. Runs are routed on foot.
TRAVEL_MODE = "WALK"

# Only these response fields are requested from the Routes API
ROUTES_FIELD_MASK = "routes.distanceMeters,routes.polyline.encodedPolyline"

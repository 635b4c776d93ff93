"""
GeoMath - pure coordinate math for the incident engine.

Coordinate wire format is always GeoJSON order: [longitude, latitude].
Helpers accept GeoPoint models, GeoJSON mappings ({"coordinates": [lng, lat]})
or plain [lng, lat] sequences, and never reorder silently.
"""

import math
from collections.abc import Mapping, Sequence
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field

from incident_hub.core.errors import InvalidCoordinates

# Earth radius in meters
EARTH_RADIUS_METERS = 6371000
MAX_DISTANCE_METERS = math.pi * EARTH_RADIUS_METERS

MIN_LATITUDE, MAX_LATITUDE = -90.0, 90.0
MIN_LONGITUDE, MAX_LONGITUDE = -180.0, 180.0


class CoordinateValidation(BaseModel):
    """Result of validate_coordinates, carrying every violated constraint."""
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        """Validated point as [lng, lat], or None when invalid."""
        if not self.is_valid:
            return None
        return self.longitude, self.latitude


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_coordinates(lat: Any, lng: Any) -> CoordinateValidation:
    """
    Validate a latitude/longitude pair.

    Both must be finite numbers, latitude in [-90, 90] and longitude in
    [-180, 180]. Boundary values are accepted.
    """
    errors = []
    lat_is_number = _is_number(lat)
    lng_is_number = _is_number(lng)

    if not (lat_is_number and lng_is_number):
        errors.append("Coordinates must be numbers")

    # Whichever value is numeric is still range-checked
    if lat_is_number and (lat < MIN_LATITUDE or lat > MAX_LATITUDE):
        errors.append(f"Latitude must be between {MIN_LATITUDE:g} and {MAX_LATITUDE:g}")

    if lng_is_number and (lng < MIN_LONGITUDE or lng > MAX_LONGITUDE):
        errors.append(f"Longitude must be between {MIN_LONGITUDE:g} and {MAX_LONGITUDE:g}")

    if (lat_is_number and not math.isfinite(lat)) or (lng_is_number and not math.isfinite(lng)):
        errors.append("Coordinates must be finite numbers")

    if errors:
        return CoordinateValidation(is_valid=False, errors=errors)

    return CoordinateValidation(is_valid=True, latitude=float(lat), longitude=float(lng))


def require_valid_coordinates(lat: Any, lng: Any) -> Tuple[float, float]:
    """Validate and return (lat, lng), raising InvalidCoordinates otherwise."""
    result = validate_coordinates(lat, lng)
    if not result.is_valid:
        raise InvalidCoordinates(result.errors, latitude=lat, longitude=lng)
    return result.latitude, result.longitude


def lat_lng_of(point: Any) -> Tuple[Any, Any]:
    """
    Extract (lat, lng) from a point-like value without validating it.

    Raises TypeError/ValueError when the value has no recognizable shape.
    """
    if point is None:
        raise TypeError("Point is None")
    if hasattr(point, "latitude") and hasattr(point, "longitude"):
        return point.latitude, point.longitude
    if isinstance(point, Mapping):
        if "coordinates" in point:
            return lat_lng_of(point["coordinates"])
        if "lat" in point and "lng" in point:
            return point["lat"], point["lng"]
        raise ValueError(f"Unrecognized point mapping: {sorted(point)}")
    if isinstance(point, Sequence) and not isinstance(point, (str, bytes)):
        if len(point) != 2:
            raise ValueError("Coordinates must be [longitude, latitude]")
        lng, lat = point
        return lat, lng
    raise TypeError(f"Unrecognized point type: {type(point).__name__}")


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points using Haversine formula."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = math.sin(delta_phi / 2) ** 2 + \
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    # Rounding can push a a hair outside [0, 1] for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def distance(point_a: Any, point_b: Any) -> float:
    """
    Great-circle distance in meters between two points.

    Symmetric, zero for identical points, bounded by half the planet's
    circumference. Raises InvalidCoordinates if either point is invalid.
    """
    lat1, lng1 = require_valid_coordinates(*lat_lng_of(point_a))
    lat2, lng2 = require_valid_coordinates(*lat_lng_of(point_b))
    return haversine_meters(lat1, lng1, lat2, lng2)


def format_distance(distance_meters: float) -> str:
    """
    Format distance for display.

    Below 1000 m: whole meters ("123m"). At or above: one-decimal km ("1.2km").
    """
    if distance_meters < 1000:
        return f"{int(math.floor(distance_meters + 0.5))}m"
    return f"{distance_meters / 1000:.1f}km"


def point_in_polygon(point: Any, polygon: Sequence) -> bool:
    """
    Ray-casting point-in-polygon test.

    Polygon vertices are [lng, lat] pairs (or {"lat", "lng"} mappings); the
    ring does not need to be closed. Degenerate polygons (< 3 vertices)
    contain nothing.
    """
    if polygon is None or len(polygon) < 3:
        return False

    lat, lng = lat_lng_of(point)
    vertices = [lat_lng_of(vertex) for vertex in polygon]

    inside = False
    j = len(vertices) - 1
    for i in range(len(vertices)):
        lat_i, lng_i = vertices[i]
        lat_j, lng_j = vertices[j]
        if (lat_i > lat) != (lat_j > lat):
            crossing_lng = (lng_j - lng_i) * (lat - lat_i) / (lat_j - lat_i) + lng_i
            if lng < crossing_lng:
                inside = not inside
        j = i

    return inside

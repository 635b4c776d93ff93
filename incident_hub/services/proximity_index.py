"""
Proximity Index - geospatial queries over incidents.

- find_nearby: candidates within a radius, sorted closest first
- is_within_service_area: ray-casting point-in-polygon, fail-closed

Store-level radius queries may over-approximate; every candidate is
re-validated and re-ranked here. Reads are lock-free; results may be
slightly stale relative to in-flight writes.
"""

from collections.abc import Mapping
from typing import Any, Iterable, List, Optional
import json
import logging

from pydantic import BaseModel

from incident_hub.core.errors import InvalidCoordinates, SearchRadiusExceeded
from incident_hub.core.settings import settings
from incident_hub.models.incident import INACTIVE_STATUSES, Incident, IncidentStatus
from incident_hub.models.location import GeoPoint, ServiceArea
from incident_hub.services.geo_math import (
    format_distance,
    haversine_meters,
    lat_lng_of,
    point_in_polygon,
    require_valid_coordinates,
    validate_coordinates,
)
from incident_hub.services.incident_store import IncidentStore

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = [status for status in IncidentStatus if status not in INACTIVE_STATUSES]


class NearbyIncident(BaseModel):
    """A candidate annotated with its distance from the search center."""
    incident: Any
    distance: float
    distance_formatted: str


def _candidate_location(candidate: Any) -> Any:
    if isinstance(candidate, Mapping):
        return candidate.get("location")
    return getattr(candidate, "location", None)


def find_nearby(
    center: Any,
    candidates: Iterable[Any],
    radius_meters: float,
    max_radius_meters: Optional[float] = None,
) -> List[NearbyIncident]:
    """
    Filter candidates within radius_meters of center, closest first.

    Args:
        center: GeoPoint, GeoJSON mapping or [lng, lat]
        candidates: Incidents (or mappings) carrying a GeoJSON `location`
        radius_meters: Search radius
        max_radius_meters: Upper bound for the radius (defaults to settings)

    Returns:
        NearbyIncident list sorted ascending by distance; never longer than
        the input. Candidates without a valid location are skipped.

    Raises:
        InvalidCoordinates: If center is invalid
        SearchRadiusExceeded: If radius is above the configured maximum
    """
    limit = settings.MAX_SEARCH_RADIUS_METERS if max_radius_meters is None else max_radius_meters
    if radius_meters > limit:
        raise SearchRadiusExceeded(radius_meters, limit)

    try:
        raw_lat, raw_lng = lat_lng_of(center)
    except (TypeError, ValueError) as e:
        raise InvalidCoordinates([str(e)])
    center_lat, center_lng = require_valid_coordinates(raw_lat, raw_lng)

    nearby = []
    for candidate in candidates:
        location = _candidate_location(candidate)
        try:
            lat, lng = lat_lng_of(location)
        except (TypeError, ValueError):
            logger.debug("Skipping candidate without a location")
            continue

        validation = validate_coordinates(lat, lng)
        if not validation.is_valid:
            logger.debug(f"Skipping candidate with invalid location: {validation.errors}")
            continue

        meters = haversine_meters(center_lat, center_lng, validation.latitude, validation.longitude)
        if meters <= radius_meters:
            nearby.append(NearbyIncident(
                incident=candidate,
                distance=meters,
                distance_formatted=format_distance(meters),
            ))

    nearby.sort(key=lambda item: item.distance)
    return nearby


def _polygon_of(area: Any) -> Any:
    if isinstance(area, ServiceArea):
        return area.polygon
    if isinstance(area, Mapping):
        return area.get("polygon")
    return area


def is_within_service_area(point: Any, polygons: Optional[Iterable[Any]]) -> bool:
    """
    Check whether a point lies inside any service-area polygon.

    Invalid points are never inside (fail-closed). An empty or absent
    polygon set means global coverage.
    """
    try:
        lat, lng = lat_lng_of(point)
    except (TypeError, ValueError):
        return False
    if not validate_coordinates(lat, lng).is_valid:
        return False

    areas = list(polygons) if polygons else []
    if not areas:
        return True

    for area in areas:
        polygon = _polygon_of(area)
        try:
            if point_in_polygon((lng, lat), polygon):
                return True
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed service-area polygon")
    return False


def load_service_areas(path: Optional[str] = None) -> List[ServiceArea]:
    """Load service areas from a JSON file; no file configured means global coverage."""
    path = path or settings.SERVICE_AREAS_PATH
    if not path:
        return []
    with open(path, "r") as f:
        raw = json.load(f)
    areas = [ServiceArea.model_validate(item) for item in raw]
    logger.info(f"Loaded {len(areas)} service area(s) from {path}")
    return areas


class ProximityIndex:
    """Store-backed proximity queries."""

    def __init__(self, store: IncidentStore):
        self.store = store

    def nearby_incidents(
        self,
        center: GeoPoint,
        radius_meters: Optional[float] = None,
        active_only: bool = True,
    ) -> List[NearbyIncident]:
        radius = settings.DEFAULT_SEARCH_RADIUS_METERS if radius_meters is None else radius_meters
        if radius > settings.MAX_SEARCH_RADIUS_METERS:
            raise SearchRadiusExceeded(radius, settings.MAX_SEARCH_RADIUS_METERS)

        statuses = ACTIVE_STATUSES if active_only else None
        candidates = self.store.find_within_radius(center, radius, statuses)
        return find_nearby(center, candidates, radius)

    def possible_duplicates(self, location: GeoPoint, exclude_id: Optional[str] = None) -> List[NearbyIncident]:
        """Active incidents close enough to be the same event."""
        matches = self.nearby_incidents(location, settings.DUPLICATE_PROXIMITY_METERS)
        return [
            match for match in matches
            if not (exclude_id and isinstance(match.incident, Incident) and match.incident.id == exclude_id)
        ]

"""
Incident persistence contract.

The engine does not define a persistence engine; it depends on a store that
offers load-by-id, atomic conditional save (optimistic concurrency) and a
within-radius query over the GeoJSON `location` field.

Contract:
- get() returns an independent copy; mutating it never touches the store
- save() succeeds only if the stored version equals expected_version
  (expected_version=None means "create, must not exist") and bumps version
- find_within_radius() may over-approximate; callers re-rank with GeoMath
"""

from abc import ABC, abstractmethod
from threading import Lock
from typing import Dict, Iterable, List, Optional
import logging

from incident_hub.core.errors import ConcurrentModification
from incident_hub.models.incident import Incident, IncidentStatus
from incident_hub.models.location import GeoPoint
from incident_hub.services.geo_math import haversine_meters

logger = logging.getLogger(__name__)


class IncidentStore(ABC):

    @abstractmethod
    def get(self, incident_id: str) -> Optional[Incident]:
        raise NotImplementedError

    @abstractmethod
    def save(self, incident: Incident, expected_version: Optional[int]) -> Incident:
        """
        Atomically persist the aggregate if its stored version matches.

        Returns the incident with its version bumped.

        Raises:
            ConcurrentModification: On version mismatch
        """
        raise NotImplementedError

    @abstractmethod
    def find_within_radius(
        self,
        center: GeoPoint,
        radius_meters: float,
        statuses: Optional[Iterable[IncidentStatus]] = None,
    ) -> List[Incident]:
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> List[Incident]:
        raise NotImplementedError

    def healthcheck(self) -> Dict:
        return {"backend": type(self).__name__, "connected": True}


class InMemoryIncidentStore(IncidentStore):
    """Process-local store for development, tests and USE_MOCK_DB mode."""

    def __init__(self):
        self._lock = Lock()
        self._incidents: Dict[str, Incident] = {}

    def get(self, incident_id: str) -> Optional[Incident]:
        with self._lock:
            stored = self._incidents.get(incident_id)
            return stored.model_copy(deep=True) if stored is not None else None

    def save(self, incident: Incident, expected_version: Optional[int]) -> Incident:
        with self._lock:
            stored = self._incidents.get(incident.id)
            actual_version = stored.version if stored is not None else None
            if actual_version != expected_version:
                logger.warning(
                    f"Version conflict on incident {incident.id}: "
                    f"expected {expected_version}, found {actual_version}"
                )
                raise ConcurrentModification(incident.id, expected_version, actual_version)

            incident.version = (expected_version or 0) + 1
            self._incidents[incident.id] = incident.model_copy(deep=True)
            return incident

    def find_within_radius(
        self,
        center: GeoPoint,
        radius_meters: float,
        statuses: Optional[Iterable[IncidentStatus]] = None,
    ) -> List[Incident]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            snapshot = list(self._incidents.values())

        matches = []
        for incident in snapshot:
            if wanted is not None and incident.status not in wanted:
                continue
            meters = haversine_meters(
                center.latitude, center.longitude,
                incident.location.latitude, incident.location.longitude,
            )
            if meters <= radius_meters:
                matches.append(incident.model_copy(deep=True))
        return matches

    def list_all(self) -> List[Incident]:
        with self._lock:
            return [incident.model_copy(deep=True) for incident in self._incidents.values()]

    def healthcheck(self) -> Dict:
        with self._lock:
            count = len(self._incidents)
        return {"backend": "memory", "connected": True, "incidents": count}

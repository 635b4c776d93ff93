"""
Firestore-backed incident store.

Firestore has no native $near query, so within-radius lookups use a
latitude bounding box on the denormalized `latitude` field; the engine
re-ranks candidates with the haversine distance afterwards.

Conditional saves run inside a Firestore transaction that compares the
stored `version` field before writing.
"""

from typing import Any, Dict, Iterable, List, Optional
import logging
import math

from firebase_admin import firestore

from incident_hub.core.errors import ConcurrentModification, InvalidCoordinates
from incident_hub.core.settings import settings
from incident_hub.models.incident import Incident, IncidentStatus
from incident_hub.models.location import GeoPoint
from incident_hub.services.geo_math import EARTH_RADIUS_METERS, MAX_LATITUDE, MIN_LATITUDE
from incident_hub.services.incident_store import IncidentStore
from incident_hub.utils.firestore_helpers import where_filter

logger = logging.getLogger(__name__)


def to_document(incident: Incident, version: int) -> Dict[str, Any]:
    """
    Serialize an incident to a Firestore document.

    Keeps the GeoJSON `location` ([lng, lat]) and adds flat latitude /
    longitude fields for range queries.
    """
    document = incident.model_dump(mode="json")
    document["version"] = version
    document["latitude"] = incident.location.latitude
    document["longitude"] = incident.location.longitude
    return document


def from_document(document_id: str, data: Dict[str, Any]) -> Incident:
    data = dict(data)
    data["id"] = document_id
    return Incident.model_validate(data)


def latitude_window(latitude: float, radius_meters: float) -> tuple:
    """Latitude band (degrees) that contains every point within radius_meters."""
    delta = math.degrees(radius_meters / EARTH_RADIUS_METERS)
    return max(MIN_LATITUDE, latitude - delta), min(MAX_LATITUDE, latitude + delta)


class FirestoreIncidentStore(IncidentStore):

    def __init__(self, db, collection: Optional[str] = None):
        self.db = db
        self.collection_name = collection or settings.INCIDENTS_COLLECTION

    @property
    def collection(self):
        return self.db.collection(self.collection_name)

    def get(self, incident_id: str) -> Optional[Incident]:
        snapshot = self.collection.document(incident_id).get()
        if not snapshot.exists:
            return None
        return from_document(snapshot.id, snapshot.to_dict())

    def save(self, incident: Incident, expected_version: Optional[int]) -> Incident:
        doc_ref = self.collection.document(incident.id)
        new_version = (expected_version or 0) + 1
        document = to_document(incident, new_version)

        @firestore.transactional
        def _conditional_write(transaction):
            snapshot = doc_ref.get(transaction=transaction)
            actual_version = snapshot.to_dict().get("version") if snapshot.exists else None
            if actual_version != expected_version:
                raise ConcurrentModification(incident.id, expected_version, actual_version)
            transaction.set(doc_ref, document)

        try:
            _conditional_write(self.db.transaction())
        except ConcurrentModification:
            logger.warning(f"Version conflict on incident {incident.id} (expected {expected_version})")
            raise

        incident.version = new_version
        return incident

    def _read_documents(self, snapshots: Iterable[Any], wanted: Optional[set] = None) -> List[Incident]:
        incidents = []
        for doc in snapshots:
            data = doc.to_dict()
            if wanted is not None and data.get("status") not in wanted:
                continue
            try:
                incidents.append(from_document(doc.id, data))
            except (ValueError, InvalidCoordinates) as e:
                # Corrupt documents are skipped, not fatal to the query
                logger.warning(f"Skipping unreadable incident document {doc.id}: {e}")
        return incidents

    def find_within_radius(
        self,
        center: GeoPoint,
        radius_meters: float,
        statuses: Optional[Iterable[IncidentStatus]] = None,
    ) -> List[Incident]:
        south, north = latitude_window(center.latitude, radius_meters)
        query = where_filter(self.collection, "latitude", ">=", south)
        query = where_filter(query, "latitude", "<=", north)

        # Status filtered in memory: an "in" filter next to the latitude range
        # would need a composite index per deployment.
        wanted = {IncidentStatus(s).value for s in statuses} if statuses is not None else None

        return self._read_documents(query.stream(), wanted)

    def list_all(self) -> List[Incident]:
        return self._read_documents(self.collection.stream())

    def healthcheck(self) -> Dict:
        collections = list(self.db.collections())
        return {
            "backend": "firestore",
            "connected": True,
            "collections_count": len(collections),
        }

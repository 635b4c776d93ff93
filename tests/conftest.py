"""
Pytest configuration and shared fixtures for Incident Hub tests.
"""

from datetime import timedelta

import pytest

from incident_hub.models.incident import (
    ActorKind,
    ActorRef,
    Incident,
    IncidentCategory,
    IncidentCreate,
    IncidentStatus,
    MediaDescriptor,
    MediaKind,
    StatusHistoryEntry,
)
from incident_hub.models.location import GeoPoint
from incident_hub.services.incident_service import IncidentService
from incident_hub.services.incident_store import InMemoryIncidentStore
from incident_hub.services.verification_scorer import VerificationScorer
from incident_hub.utils.timestamps import utc_now

# Bengaluru, MG Road
BASE_LAT = 12.9716
BASE_LNG = 77.5946

SHORT_DESCRIPTION = "Car fire near the bus stop on MG Road, heavy smoke"


# ============================================================================
# ACTORS
# ============================================================================

@pytest.fixture
def guest() -> ActorRef:
    return ActorRef(actor_id="guest-1", actor_kind=ActorKind.GUEST)


@pytest.fixture
def registered() -> ActorRef:
    return ActorRef(actor_id="user-42", actor_kind=ActorKind.REGISTERED)


@pytest.fixture
def responder() -> ActorRef:
    return ActorRef(actor_id="responder-7", actor_kind=ActorKind.REGISTERED)


# ============================================================================
# INCIDENTS
# ============================================================================

@pytest.fixture
def make_incident(guest):
    """Factory for Incident aggregates that bypasses the service."""
    counter = {"n": 0}

    def _make(
        description: str = SHORT_DESCRIPTION,
        reporter: ActorRef = None,
        lat: float = BASE_LAT,
        lng: float = BASE_LNG,
        status: IncidentStatus = IncidentStatus.REPORTED,
        age: timedelta = timedelta(0),
        **fields,
    ) -> Incident:
        counter["n"] += 1
        reporter = reporter or guest
        reported_at = utc_now() - age
        return Incident(
            id=fields.pop("id", f"inc-{counter['n']}"),
            title=fields.pop("title", "Car fire near bus stop"),
            description=description,
            category=fields.pop("category", IncidentCategory.FIRE),
            location=GeoPoint.from_lat_lng(lat, lng),
            status=status,
            status_history=[StatusHistoryEntry(
                sequence=0,
                status=IncidentStatus.REPORTED,
                changed_by=reporter,
                reason="Incident reported",
                timestamp=reported_at,
            )],
            reported_by=reporter,
            reported_at=reported_at,
            incident_time=reported_at,
            **fields,
        )

    return _make


@pytest.fixture
def make_descriptor(guest):
    def _make(kind: MediaKind = MediaKind.IMAGE, size: int = 1024) -> MediaDescriptor:
        return MediaDescriptor(
            url="https://media.example.org/uploads/photo.jpg",
            kind=kind,
            mime_type="image/jpeg",
            size=size,
            file_name="photo.jpg",
            uploaded_by=guest,
        )

    return _make


@pytest.fixture
def create_payload():
    def _make(lat: float = BASE_LAT, lng: float = BASE_LNG, **fields) -> IncidentCreate:
        return IncidentCreate(
            title=fields.pop("title", "Car fire near bus stop"),
            description=fields.pop("description", SHORT_DESCRIPTION),
            category=fields.pop("category", IncidentCategory.FIRE),
            coordinates=[lng, lat],
            **fields,
        )

    return _make


# ============================================================================
# SERVICES
# ============================================================================

@pytest.fixture
def scorer() -> VerificationScorer:
    return VerificationScorer(decay_grace_days=7, decay_points_per_day=1, decay_max_penalty=20)


@pytest.fixture
def store() -> InMemoryIncidentStore:
    return InMemoryIncidentStore()


@pytest.fixture
def service(store, scorer) -> IncidentService:
    return IncidentService(store, scorer=scorer, media_limit=20)

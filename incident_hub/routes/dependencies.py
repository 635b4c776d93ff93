"""
Shared FastAPI dependencies: store, service, actor identity, service areas.
"""

from typing import List, Optional
import logging

from fastapi import Header, HTTPException

from incident_hub.config.firebase import get_incident_store
from incident_hub.core.settings import settings
from incident_hub.models.incident import ActorKind, ActorRef
from incident_hub.models.location import ServiceArea
from incident_hub.services.incident_service import IncidentService
from incident_hub.services.incident_store import IncidentStore
from incident_hub.services.proximity_index import load_service_areas

logger = logging.getLogger(__name__)

_incident_service: Optional[IncidentService] = None
_service_areas: Optional[List[ServiceArea]] = None


def resolve_store() -> IncidentStore:
    try:
        return get_incident_store()
    except RuntimeError as e:
        logger.error(f"Incident store unavailable: {e}")
        raise HTTPException(status_code=503, detail=f"Database connection failed: {str(e)}")


def get_incident_service() -> IncidentService:
    """Get or create the incident service singleton."""
    global _incident_service
    if _incident_service is None:
        _incident_service = IncidentService(resolve_store(), media_limit=settings.MEDIA_LIMIT)
    return _incident_service


def get_actor(
    x_actor_id: str = Header(..., min_length=1, description="Identity performing the action"),
    x_actor_kind: ActorKind = Header(ActorKind.GUEST),
) -> ActorRef:
    """Actor identity as forwarded by the identity provider."""
    return ActorRef(actor_id=x_actor_id, actor_kind=x_actor_kind)


def get_service_areas() -> List[ServiceArea]:
    global _service_areas
    if _service_areas is None:
        _service_areas = load_service_areas()
    return _service_areas

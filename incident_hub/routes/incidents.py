"""
Incident endpoints - thin HTTP surface over IncidentService.

Domain errors propagate to the IncidentHubError handler in main.py;
routes never translate them by hand.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, Query, Request, status

from incident_hub.core.errors import InvalidCoordinates
from incident_hub.models.incident import (
    ActorRef,
    Incident,
    IncidentCategory,
    IncidentCreate,
    IncidentSortField,
    IncidentStatus,
    IncidentUpdate,
    MediaDescriptor,
    PopularTimeframe,
    SortOrder,
)
from incident_hub.models.location import GeoPoint
from incident_hub.models.requests import (
    AssignRequest,
    FlagRequest,
    MediaUploadRequest,
    StatusChangeRequest,
    UpvoteRequest,
)
from incident_hub.routes.dependencies import get_actor, get_incident_service
from incident_hub.services.geo_math import format_distance, require_valid_coordinates
from incident_hub.services.incident_service import IncidentListing, IncidentService
from incident_hub.services.proximity_index import NearbyIncident
from incident_hub.utils.security import mask_upvote_ips

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/incidents", tags=["Incidents"])


def public_incident(incident: Incident) -> Dict[str, Any]:
    """Serialize an incident for clients; voter IPs leave only masked."""
    data = incident.model_dump(mode="json")
    mask_upvote_ips(data["upvotes"])
    return data


def _public_nearby(match: NearbyIncident) -> Dict[str, Any]:
    return {
        "incident": public_incident(match.incident),
        "distance": round(match.distance, 1),
        "distance_formatted": match.distance_formatted,
    }


def _public_listing(listing: IncidentListing) -> Dict[str, Any]:
    items = []
    for incident in listing.incidents:
        item = public_incident(incident)
        meters = listing.distances.get(incident.id)
        if meters is not None:
            item["distance"] = round(meters, 1)
            item["distance_formatted"] = format_distance(meters)
        items.append(item)
    return {
        "incidents": items,
        "pagination": {
            "page": listing.page,
            "limit": listing.limit,
            "total": listing.total,
            "pages": listing.pages,
            "has_next": listing.has_next,
            "has_prev": listing.has_prev,
        },
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def report_incident(
    payload: IncidentCreate,
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    """
    Report a new incident.

    Returns the created incident plus any active incidents reported close
    enough to be the same event.
    """
    incident = service.report_incident(payload, actor)
    duplicates = service.proximity.possible_duplicates(incident.location, exclude_id=incident.id)
    return {
        "incident": public_incident(incident),
        "possible_duplicates": [_public_nearby(match) for match in duplicates],
    }


@router.get("")
def list_incidents(
    category: Optional[IncidentCategory] = None,
    status_filter: Optional[IncidentStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, description="Reported at or after (ISO 8601)"),
    end_date: Optional[datetime] = Query(None, description="Reported at or before (ISO 8601)"),
    lng: Optional[float] = Query(None, description="Longitude of the search center"),
    lat: Optional[float] = Query(None, description="Latitude of the search center"),
    radius: Optional[float] = Query(None, gt=0, description="Radius in meters, used with lng/lat"),
    sort_by: IncidentSortField = IncidentSortField.REPORTED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: IncidentService = Depends(get_incident_service),
):
    """
    List incidents with filters, sorting and pagination.

    Passing lng and lat restricts the listing to a radius around that point
    and adds each incident's distance.
    """
    center = None
    if lng is not None or lat is not None:
        if lng is None or lat is None:
            raise InvalidCoordinates(["Both lng and lat are required for a radius search"], latitude=lat, longitude=lng)
        require_valid_coordinates(lat, lng)
        center = GeoPoint.from_lat_lng(lat, lng)

    listing = service.list_incidents(
        category=category,
        status=status_filter,
        since=start_date,
        until=end_date,
        center=center,
        radius_meters=radius,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return _public_listing(listing)


@router.get("/recent")
def recent_incidents(
    hours: int = Query(24, ge=1, le=168),
    limit: int = Query(20, ge=1, le=50),
    category: Optional[IncidentCategory] = None,
    service: IncidentService = Depends(get_incident_service),
):
    return _public_listing(service.recent_incidents(hours=hours, limit=limit, category=category))


@router.get("/popular")
def popular_incidents(
    timeframe: PopularTimeframe = PopularTimeframe.WEEK,
    limit: int = Query(20, ge=1, le=50),
    category: Optional[IncidentCategory] = None,
    service: IncidentService = Depends(get_incident_service),
):
    """Most upvoted incidents first."""
    return _public_listing(service.popular_incidents(timeframe=timeframe, limit=limit, category=category))


@router.get("/my-reports")
def my_reports(
    category: Optional[IncidentCategory] = None,
    status_filter: Optional[IncidentStatus] = Query(None, alias="status"),
    sort_by: IncidentSortField = IncidentSortField.REPORTED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    listing = service.list_incidents(
        category=category,
        status=status_filter,
        reported_by=actor,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return _public_listing(listing)


@router.get("/nearby")
def nearby_incidents(
    lng: float = Query(..., description="Longitude of the search center"),
    lat: float = Query(..., description="Latitude of the search center"),
    radius: Optional[float] = Query(None, gt=0, description="Radius in meters"),
    active_only: bool = True,
    service: IncidentService = Depends(get_incident_service),
) -> List[Dict[str, Any]]:
    require_valid_coordinates(lat, lng)
    center = GeoPoint.from_lat_lng(lat, lng)
    return [_public_nearby(match) for match in service.nearby(center, radius, active_only=active_only)]


@router.get("/stats")
def incident_statistics(service: IncidentService = Depends(get_incident_service)):
    return service.statistics()


@router.get("/{incident_id}")
def get_incident(incident_id: str, service: IncidentService = Depends(get_incident_service)):
    return public_incident(service.get_incident(incident_id))


@router.patch("/{incident_id}")
def update_incident(
    incident_id: str,
    update: IncidentUpdate,
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    logger.info(f"PATCH /incidents/{incident_id} by {actor.actor_kind.value}:{actor.actor_id}")
    return public_incident(service.update_details(incident_id, update))


@router.post("/{incident_id}/upvote")
def upvote_incident(
    incident_id: str,
    request: Request,
    body: Optional[UpvoteRequest] = None,
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    location = None
    if body is not None and body.coordinates is not None:
        longitude, latitude = body.coordinates
        require_valid_coordinates(latitude, longitude)
        location = GeoPoint(coordinates=(longitude, latitude))

    incident = service.upvote(
        incident_id,
        voter_id=actor.actor_id,
        voter_kind=actor.actor_kind,
        ip_address=request.client.host if request.client else "unknown",
        user_agent=request.headers.get("user-agent"),
        location=location,
    )
    return public_incident(incident)


@router.delete("/{incident_id}/upvote")
def remove_upvote(
    incident_id: str,
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    return public_incident(service.remove_upvote(incident_id, actor.actor_id, actor.actor_kind))


@router.post("/{incident_id}/status")
def change_status(
    incident_id: str,
    body: StatusChangeRequest,
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    incident = service.change_status(incident_id, body.status, actor, reason=body.reason, notes=body.notes)
    return public_incident(incident)


@router.post("/{incident_id}/assign")
def assign_incident(
    incident_id: str,
    body: AssignRequest,
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    incident = service.assign(incident_id, body.assignee, actor, priority=body.priority, notes=body.notes)
    return public_incident(incident)


@router.post("/{incident_id}/media", status_code=status.HTTP_201_CREATED)
def attach_media(
    incident_id: str,
    body: MediaUploadRequest,
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    descriptor = MediaDescriptor(**body.model_dump(), uploaded_by=actor)
    return public_incident(service.attach_media(incident_id, descriptor))


@router.delete("/{incident_id}/media/{media_id}")
def remove_media(
    incident_id: str,
    media_id: str,
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    logger.info(f"DELETE media {media_id} on incident {incident_id} by {actor.actor_id}")
    return public_incident(service.remove_media(incident_id, media_id))


@router.post("/{incident_id}/flag")
def flag_incident(
    incident_id: str,
    body: FlagRequest,
    actor: ActorRef = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
):
    return public_incident(service.flag(incident_id, body.reason, actor))

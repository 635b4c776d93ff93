"""
Service-area endpoint: is a point inside the area the platform serves?
"""

from typing import List

from fastapi import APIRouter, Depends

from incident_hub.models.location import ServiceArea
from incident_hub.models.requests import ServiceAreaCheckRequest
from incident_hub.routes.dependencies import get_service_areas
from incident_hub.services.proximity_index import is_within_service_area

router = APIRouter(prefix="/service-area", tags=["Service Area"])


@router.post("/check")
def check_service_area(
    body: ServiceAreaCheckRequest,
    configured_areas: List[ServiceArea] = Depends(get_service_areas),
):
    """
    Check a [longitude, latitude] point against service-area polygons.

    No polygons at all means global coverage. Invalid coordinates are
    reported as outside rather than rejected.
    """
    areas = body.polygons if body.polygons is not None else configured_areas
    return {
        "coordinates": body.coordinates,
        "within_service_area": is_within_service_area(body.coordinates, areas),
        "areas_checked": len(areas),
    }

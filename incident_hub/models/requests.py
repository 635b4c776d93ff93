"""
Request bodies for the incident HTTP routes.

Actor identity never travels in a body; routes read it from headers.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from incident_hub.core.settings import settings
from incident_hub.models.incident import AssignmentPriority, MediaDimensions, MediaKind
from incident_hub.models.location import ServiceArea


class UpvoteRequest(BaseModel):
    coordinates: Optional[List[float]] = Field(
        None, min_length=2, max_length=2, description="Voter position as [longitude, latitude]"
    )


class StatusChangeRequest(BaseModel):
    # Plain string so unknown values surface as INVALID_STATUS, not a schema error
    status: str
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)


class AssignRequest(BaseModel):
    assignee: str = Field(..., min_length=1)
    priority: AssignmentPriority = AssignmentPriority.MEDIUM
    notes: Optional[str] = Field(None, max_length=1000)


class MediaUploadRequest(BaseModel):
    """Descriptor returned by the media host, minus the uploader."""
    url: str = Field(..., min_length=1)
    kind: MediaKind
    mime_type: str = Field(..., max_length=100)
    size: int = Field(..., ge=0, le=settings.MAX_MEDIA_SIZE_BYTES)
    file_name: Optional[str] = Field(None, max_length=255)
    dimensions: Optional[MediaDimensions] = None
    duration: Optional[float] = Field(None, ge=0)


class FlagRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class ServiceAreaCheckRequest(BaseModel):
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[longitude, latitude]")
    polygons: Optional[List[ServiceArea]] = Field(
        None, description="Areas to test against; omitted means the configured service areas"
    )

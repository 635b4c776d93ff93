"""
Location models.

GeoJSON order everywhere: coordinates are [longitude, latitude].
"""

from typing import List, Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from incident_hub.services.geo_math import require_valid_coordinates


class GeoPoint(BaseModel):
    """
    GeoJSON point. Invalid coordinates raise InvalidCoordinates, so an
    incident with a bad location can never be built or persisted.
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["Point"] = "Point"
    coordinates: Tuple[float, float] = Field(..., description="[longitude, latitude]")

    @model_validator(mode="after")
    def _check_range(self) -> "GeoPoint":
        longitude, latitude = self.coordinates
        require_valid_coordinates(latitude, longitude)
        return self

    @classmethod
    def from_lat_lng(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(coordinates=(longitude, latitude))

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class ServiceArea(BaseModel):
    """A named polygon where the platform considers itself operational."""
    name: str = ""
    polygon: List[Tuple[float, float]] = Field(..., min_length=3, description="Vertices as [longitude, latitude]")

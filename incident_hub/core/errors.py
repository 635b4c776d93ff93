"""
Domain errors raised by the incident lifecycle engine.

Every error carries a stable code, a human-readable message and a details
dict (field, limit, current value...) so the calling layer can build a
precise user-facing message. None of these are fatal to the process.
"""

from typing import Any, Dict, List, Optional


class IncidentHubError(Exception):
    """Base class for all per-operation failures."""

    code = "INCIDENT_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidCoordinates(IncidentHubError):
    """Coordinates failed validation; the caller must resubmit."""

    code = "INVALID_COORDINATES"
    http_status = 400

    def __init__(self, errors: List[str], latitude: Any = None, longitude: Any = None):
        super().__init__(
            f"Invalid coordinates: {', '.join(errors)}",
            {"errors": list(errors), "latitude": latitude, "longitude": longitude},
        )
        self.errors = list(errors)


class DuplicateVote(IncidentHubError):
    code = "DUPLICATE_UPVOTE"
    http_status = 409

    def __init__(self, incident_id: str, voter_id: str, voter_kind: str):
        super().__init__(
            "Voter has already upvoted this incident",
            {"incident_id": incident_id, "voter_id": voter_id, "voter_kind": voter_kind},
        )


class VoteNotFound(IncidentHubError):
    code = "UPVOTE_NOT_FOUND"
    http_status = 404

    def __init__(self, incident_id: str, voter_id: str, voter_kind: str):
        super().__init__(
            "Upvote not found",
            {"incident_id": incident_id, "voter_id": voter_id, "voter_kind": voter_kind},
        )


class MediaLimitExceeded(IncidentHubError):
    code = "MEDIA_LIMIT_EXCEEDED"
    http_status = 409

    def __init__(self, limit: int, current: int):
        super().__init__(
            f"Maximum media limit reached ({limit} files)",
            {"field": "media", "limit": limit, "current": current},
        )


class MediaNotFound(IncidentHubError):
    code = "MEDIA_NOT_FOUND"
    http_status = 404

    def __init__(self, incident_id: str, media_id: str):
        super().__init__(
            f"Media {media_id} not found on incident {incident_id}",
            {"incident_id": incident_id, "media_id": media_id},
        )


class InvalidStatusValue(IncidentHubError):
    code = "INVALID_STATUS"
    http_status = 400

    def __init__(self, value: Any, allowed: List[str]):
        super().__init__(
            f"Invalid status value: {value!r}. Allowed values: {allowed}",
            {"field": "status", "value": value, "allowed": list(allowed)},
        )


class ConcurrentModification(IncidentHubError):
    """Optimistic-lock conflict: retry the whole operation, not just the write."""

    code = "CONCURRENT_MODIFICATION"
    http_status = 409

    def __init__(self, incident_id: str, expected_version: Optional[int], actual_version: Optional[int]):
        super().__init__(
            f"Incident {incident_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            {
                "incident_id": incident_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )


class IncidentNotFound(IncidentHubError):
    code = "INCIDENT_NOT_FOUND"
    http_status = 404

    def __init__(self, incident_id: str):
        super().__init__(f"Incident {incident_id} not found", {"incident_id": incident_id})


class SearchRadiusExceeded(IncidentHubError):
    code = "SEARCH_RADIUS_EXCEEDED"
    http_status = 400

    def __init__(self, radius: float, limit: float):
        super().__init__(
            f"Search radius cannot exceed {limit:g} meters",
            {"field": "radius", "radius": radius, "limit": limit},
        )

"""
Pydantic models for the Incident aggregate.

The Incident document plus its embedded sub-collections (status history,
upvotes, media, assignments) is one consistency unit. Sub-collections are
only changed through the ledgers and the status machine in
incident_hub.services.

DESIGN PRINCIPLES:
- Status history is an append-only log of frozen entries
- upvote_count is derived from the ledger and never stored independently
- verification_score is only written by the VerificationScorer
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PrivateAttr,
    computed_field,
    field_validator,
    model_validator,
)

from incident_hub.core.settings import settings
from incident_hub.models.location import GeoPoint
from incident_hub.utils.timestamps import ensure_utc, utc_now


class IncidentStatus(str, Enum):
    """
    Incident lifecycle:
    reported → verified → assigned → in_progress → resolved → closed

    Forward skips are allowed; who may call which transition is decided
    outside the engine.
    """
    REPORTED = "reported"
    VERIFIED = "verified"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


INACTIVE_STATUSES = frozenset({IncidentStatus.RESOLVED, IncidentStatus.CLOSED})


class IncidentCategory(str, Enum):
    ACCIDENT = "Accident"
    FIRE = "Fire"
    MEDICAL = "Medical"
    NATURAL_DISASTER = "Natural Disaster"
    CRIME = "Crime"
    OTHER = "Other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ActorKind(str, Enum):
    """Whether an identity is a registered user or an anonymous guest."""
    REGISTERED = "registered"
    GUEST = "guest"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


class AssignmentPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"
    REASSIGNED = "reassigned"


class IncidentSortField(str, Enum):
    """Orderings offered by incident listings."""
    REPORTED_AT = "reported_at"
    INCIDENT_TIME = "incident_time"
    UPVOTES = "upvotes"
    VERIFICATION_SCORE = "verification_score"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PopularTimeframe(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


def _utc(value: Any) -> Any:
    return ensure_utc(value) if value is not None else None


# Timezone-aware UTC datetime, accepting ISO strings and Firestore timestamps
UtcDatetime = Annotated[datetime, BeforeValidator(_utc)]


class ActorRef(BaseModel):
    """Identity performing an action, as supplied by the identity provider."""
    model_config = ConfigDict(frozen=True)

    actor_id: str = Field(..., min_length=1)
    actor_kind: ActorKind


class StatusHistoryEntry(BaseModel):
    """Immutable status transition record, keyed by its sequence number."""
    model_config = ConfigDict(frozen=True)

    sequence: int = Field(..., ge=0)
    status: IncidentStatus
    changed_by: ActorRef
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    timestamp: UtcDatetime


class Upvote(BaseModel):
    voter_id: str
    voter_kind: ActorKind
    timestamp: UtcDatetime = Field(default_factory=utc_now)
    ip_address: str
    user_agent: Optional[str] = None
    location: Optional[GeoPoint] = None


class MediaDimensions(BaseModel):
    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)


class MediaDescriptor(BaseModel):
    """What the media host hands back after an upload."""
    url: str = Field(..., min_length=1)
    kind: MediaKind
    mime_type: str = Field(..., max_length=100)
    size: int = Field(..., ge=0, le=settings.MAX_MEDIA_SIZE_BYTES)
    file_name: Optional[str] = Field(None, max_length=255)
    dimensions: Optional[MediaDimensions] = None
    duration: Optional[float] = Field(None, ge=0, description="Seconds, for video/audio")
    uploaded_by: ActorRef


class MediaAttachment(MediaDescriptor):
    """A media descriptor attached to an incident, with server-stamped fields."""
    id: str
    uploaded_at: UtcDatetime


class Assignment(BaseModel):
    id: str
    assigned_to: str
    assigned_by: str
    priority: AssignmentPriority = AssignmentPriority.MEDIUM
    notes: Optional[str] = Field(None, max_length=1000)
    status: AssignmentStatus = AssignmentStatus.PENDING
    assigned_at: UtcDatetime


class Incident(BaseModel):
    """
    The Incident aggregate root.

    Mutated only through StatusMachine, UpvoteLedger, AssignmentLedger,
    MediaRegistry and VerificationScorer. Never hard-deleted by the engine.
    """
    id: str
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    category: IncidentCategory
    severity: Severity = Severity.MEDIUM
    location: GeoPoint
    address: Optional[str] = Field(None, max_length=500)
    tags: List[str] = Field(default_factory=list)

    status: IncidentStatus = IncidentStatus.REPORTED
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)

    upvotes: List[Upvote] = Field(default_factory=list)
    media: List[MediaAttachment] = Field(default_factory=list)
    assignments: List[Assignment] = Field(default_factory=list)

    reported_by: ActorRef
    reported_at: UtcDatetime = Field(default_factory=utc_now)
    incident_time: UtcDatetime = Field(default_factory=utc_now)
    verified_at: Optional[UtcDatetime] = None
    assigned_at: Optional[UtcDatetime] = None
    resolved_at: Optional[UtcDatetime] = None
    closed_at: Optional[UtcDatetime] = None
    resolution_time_minutes: Optional[int] = Field(None, ge=0)

    # Moderation
    is_flagged: bool = False
    flag_reason: Optional[str] = Field(None, max_length=500)
    flagged_by: Optional[ActorRef] = None
    flagged_at: Optional[UtcDatetime] = None

    # Optimistic concurrency, bumped by the store on every successful save
    version: int = Field(0, ge=0)

    _verification_score: int = PrivateAttr(default=0)

    @model_validator(mode="wrap")
    @classmethod
    def _restore_verification_score(cls, data: Any, handler):
        # The persisted score is restored as-is; it reflects the last recompute.
        score = None
        if isinstance(data, dict) and "verification_score" in data:
            data = dict(data)
            score = data.pop("verification_score")
        incident = handler(data)
        if score is not None:
            incident._verification_score = max(0, min(100, int(score)))
        return incident

    @computed_field
    @property
    def verification_score(self) -> int:
        return self._verification_score

    @computed_field
    @property
    def upvote_count(self) -> int:
        return len(self.upvotes)

    @computed_field
    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES

    @computed_field
    @property
    def current_assignment(self) -> Optional[str]:
        return self.assignments[-1].assigned_to if self.assignments else None

    @computed_field
    @property
    def age_in_hours(self) -> float:
        return (utc_now() - self.incident_time).total_seconds() / 3600

    @property
    def resolution_time(self) -> Optional[timedelta]:
        if self.status != IncidentStatus.RESOLVED or self.resolved_at is None:
            return None
        return self.resolved_at - self.reported_at

    @property
    def current_status_duration(self) -> int:
        """Minutes since the last status change."""
        last_change = self.status_history[-1].timestamp if self.status_history else self.reported_at
        return int((utc_now() - last_change).total_seconds() // 60)

    @property
    def needs_attention(self) -> bool:
        """Active, high/critical severity and older than two hours."""
        return (
            self.is_active
            and self.severity in (Severity.HIGH, Severity.CRITICAL)
            and self.age_in_hours > 2
        )


class IncidentCreate(BaseModel):
    """Payload for a new incident report."""
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    category: IncidentCategory
    severity: Severity = Severity.MEDIUM
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[longitude, latitude]")
    address: Optional[str] = Field(None, max_length=500)
    tags: List[str] = Field(default_factory=list)
    incident_time: Optional[UtcDatetime] = None

    @field_validator("incident_time")
    @classmethod
    def _not_far_future(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value > utc_now() + timedelta(hours=24):
            raise ValueError("Incident time cannot be more than 24 hours in the future")
        return value

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Two-car collision at ring road",
                "description": "Two cars collided near the flyover exit, one driver injured.",
                "category": "Accident",
                "severity": "high",
                "coordinates": [77.5946, 12.9716],
                "address": "Outer Ring Road, Bengaluru",
            }
        }


class IncidentUpdate(BaseModel):
    """Editable descriptive fields. Status is never edited here."""
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    severity: Optional[Severity] = None
    tags: Optional[List[str]] = None

"""
Incident Service - applies one lifecycle operation to one aggregate.

Flow for every mutation:
1. Acquire the per-incident lock (at most one writer per aggregate in-process)
2. Load the aggregate from the store
3. Validate and mutate in memory (ledgers / status machine)
4. Save conditionally on the loaded version
5. Return the updated aggregate

A version mismatch on save raises ConcurrentModification; callers retry the
whole operation. Committed transitions are never rolled back.
"""

from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, Callable, Dict, Iterator, List, Optional
from uuid import uuid4
import logging

from pydantic import BaseModel

from incident_hub.core.errors import IncidentNotFound
from incident_hub.models.incident import (
    ActorRef,
    AssignmentPriority,
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
from incident_hub.services.assignment_ledger import AssignmentLedger
from incident_hub.services.geo_math import require_valid_coordinates
from incident_hub.services.incident_store import IncidentStore
from incident_hub.services.media_registry import MediaRegistry
from incident_hub.services.proximity_index import NearbyIncident, ProximityIndex
from incident_hub.services.status_workflow import StatusMachine
from incident_hub.services.upvote_ledger import UpvoteLedger
from incident_hub.services.verification_scorer import VerificationScorer, get_verification_scorer
from incident_hub.utils.timestamps import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class IncidentStatistics(BaseModel):
    total_incidents: int
    status_breakdown: Dict[str, int]
    category_breakdown: Dict[str, int]
    active_incidents: int
    resolved_incidents: int
    flagged_incidents: int
    resolution_rate: int
    average_resolution_minutes: Optional[float] = None


class IncidentListing(BaseModel):
    """One page of a listing; distances are keyed by incident id for radius searches."""
    incidents: List[Any]
    distances: Dict[str, float] = {}
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool


_SORT_KEYS: Dict[IncidentSortField, Callable[[Incident], Any]] = {
    IncidentSortField.REPORTED_AT: lambda incident: incident.reported_at,
    IncidentSortField.INCIDENT_TIME: lambda incident: incident.incident_time,
    IncidentSortField.UPVOTES: lambda incident: incident.upvote_count,
    IncidentSortField.VERIFICATION_SCORE: lambda incident: incident.verification_score,
}

# None means no lower bound
POPULAR_TIMEFRAME_HOURS: Dict[PopularTimeframe, Optional[int]] = {
    PopularTimeframe.DAY: 24,
    PopularTimeframe.WEEK: 168,
    PopularTimeframe.MONTH: 720,
    PopularTimeframe.ALL: None,
}


class _LockRegistry:
    """One lock per incident id, dropped once no caller holds or waits on it."""

    def __init__(self):
        self._guard = Lock()
        # incident id -> [lock, number of callers holding or waiting]
        self._locks: Dict[str, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, incident_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(incident_id)
            if entry is None:
                entry = self._locks[incident_id] = [Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[incident_id]


class IncidentService:

    def __init__(
        self,
        store: IncidentStore,
        scorer: Optional[VerificationScorer] = None,
        media_limit: Optional[int] = None,
    ):
        self.store = store
        self.scorer = scorer or get_verification_scorer()
        self.upvotes = UpvoteLedger(self.scorer)
        self.media = MediaRegistry(self.scorer, limit=media_limit)
        self.assignments = AssignmentLedger(StatusMachine)
        self.proximity = ProximityIndex(store)
        self._locks = _LockRegistry()

    def report_incident(self, payload: IncidentCreate, reporter: ActorRef) -> Incident:
        """
        Create a new incident with status 'reported'.

        Raises:
            InvalidCoordinates: If payload coordinates are invalid
        """
        longitude, latitude = payload.coordinates
        require_valid_coordinates(latitude, longitude)
        location = GeoPoint(coordinates=(longitude, latitude))

        now = utc_now()
        incident = Incident(
            id=uuid4().hex,
            title=payload.title,
            description=payload.description,
            category=payload.category,
            severity=payload.severity,
            location=location,
            address=payload.address,
            tags=payload.tags,
            reported_by=reporter,
            reported_at=now,
            incident_time=payload.incident_time or now,
        )
        incident.status_history.append(StatusMachine.create_status_history_entry(
            sequence=0,
            status=IncidentStatus.REPORTED,
            changed_by=reporter,
            reason="Incident reported",
        ))
        self.scorer.recompute(incident)

        self.store.save(incident, expected_version=None)
        logger.info(
            f"Incident {incident.id} reported by {reporter.actor_kind.value}:{reporter.actor_id} "
            f"({incident.category.value}, score={incident.verification_score})"
        )
        return incident

    def get_incident(self, incident_id: str) -> Incident:
        incident = self.store.get(incident_id)
        if incident is None:
            raise IncidentNotFound(incident_id)
        return incident

    def _mutate(self, incident_id: str, operation: str, apply: Callable[[Incident], Any]) -> Incident:
        with self._locks.hold(incident_id):
            incident = self.get_incident(incident_id)
            expected_version = incident.version
            apply(incident)
            self.store.save(incident, expected_version=expected_version)

        logger.info(
            f"{operation} committed on incident {incident_id} "
            f"(version {incident.version}, status={incident.status.value}, score={incident.verification_score})"
        )
        return incident

    def upvote(
        self,
        incident_id: str,
        voter_id: str,
        voter_kind: Any,
        ip_address: str,
        user_agent: Optional[str] = None,
        location: Optional[GeoPoint] = None,
    ) -> Incident:
        return self._mutate(
            incident_id, "upvote",
            lambda incident: self.upvotes.add_upvote(incident, voter_id, voter_kind, ip_address, user_agent, location),
        )

    def remove_upvote(self, incident_id: str, voter_id: str, voter_kind: Any) -> Incident:
        return self._mutate(
            incident_id, "remove_upvote",
            lambda incident: self.upvotes.remove_upvote(incident, voter_id, voter_kind),
        )

    def change_status(
        self,
        incident_id: str,
        new_status: Any,
        actor: ActorRef,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Incident:
        # Unknown statuses are rejected before loading
        status = StatusMachine.parse_status(new_status)

        def apply(incident: Incident) -> None:
            StatusMachine.transition(incident, status, actor, reason, notes)
            # Resolution ends age decay, so the score may change
            self.scorer.recompute(incident)

        return self._mutate(incident_id, "change_status", apply)

    def assign(
        self,
        incident_id: str,
        assignee: str,
        assigner: ActorRef,
        priority: Any = AssignmentPriority.MEDIUM,
        notes: Optional[str] = None,
    ) -> Incident:
        return self._mutate(
            incident_id, "assign",
            lambda incident: self.assignments.assign_to(incident, assignee, assigner, priority, notes),
        )

    def attach_media(self, incident_id: str, descriptor: MediaDescriptor) -> Incident:
        return self._mutate(
            incident_id, "attach_media",
            lambda incident: self.media.add_media(incident, descriptor),
        )

    def remove_media(self, incident_id: str, media_id: str) -> Incident:
        return self._mutate(
            incident_id, "remove_media",
            lambda incident: self.media.remove_media(incident, media_id),
        )

    def update_details(self, incident_id: str, update: IncidentUpdate) -> Incident:
        """Edit descriptive fields; description depth feeds the score."""
        changes = update.model_dump(exclude_unset=True, exclude_none=True)

        def apply(incident: Incident) -> None:
            for field, value in changes.items():
                setattr(incident, field, value)
            self.scorer.recompute(incident)

        return self._mutate(incident_id, "update_details", apply)

    def recalculate_score(self, incident_id: str) -> Incident:
        return self._mutate(incident_id, "recalculate_score", self.scorer.recompute)

    def flag(self, incident_id: str, reason: str, flagged_by: ActorRef) -> Incident:
        def apply(incident: Incident) -> None:
            incident.is_flagged = True
            incident.flag_reason = reason
            incident.flagged_by = flagged_by
            incident.flagged_at = utc_now()

        return self._mutate(incident_id, "flag", apply)

    def list_incidents(
        self,
        category: Any = None,
        status: Any = None,
        reported_by: Optional[ActorRef] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        center: Optional[GeoPoint] = None,
        radius_meters: Optional[float] = None,
        sort_by: Any = IncidentSortField.REPORTED_AT,
        sort_order: Any = SortOrder.DESC,
        page: int = 1,
        limit: int = 20,
    ) -> IncidentListing:
        """
        Filtered, sorted and paginated view over stored incidents.

        Args:
            category / status: Exact-match filters
            reported_by: Only incidents reported by this actor
            since / until: Inclusive bounds on reported_at
            center: When given, only incidents within radius_meters
                (default search radius) are listed, with their distances
            sort_by / sort_order: Ordering, ties broken by reported_at
            page / limit: 1-based page of at most `limit` incidents

        Raises:
            InvalidStatusValue: If status is not a known status
            SearchRadiusExceeded: If radius_meters is above the maximum
            ValueError: On an unknown category, sort field or sort order,
                or a page / limit below 1
        """
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be at least 1")
        sort_key = _SORT_KEYS[IncidentSortField(sort_by)]
        descending = SortOrder(sort_order) == SortOrder.DESC
        wanted_category = IncidentCategory(category) if category is not None else None
        wanted_status = StatusMachine.parse_status(status) if status is not None else None
        since = ensure_utc(since)
        until = ensure_utc(until)

        distances: Dict[str, float] = {}
        if center is not None:
            matches = self.proximity.nearby_incidents(center, radius_meters, active_only=False)
            incidents = [match.incident for match in matches]
            distances = {match.incident.id: match.distance for match in matches}
        else:
            incidents = self.store.list_all()

        selected = [
            incident for incident in incidents
            if (wanted_category is None or incident.category == wanted_category)
            and (wanted_status is None or incident.status == wanted_status)
            and (reported_by is None or incident.reported_by == reported_by)
            and (since is None or incident.reported_at >= since)
            and (until is None or incident.reported_at <= until)
        ]
        selected.sort(key=lambda incident: (sort_key(incident), incident.reported_at), reverse=descending)

        total = len(selected)
        start = (page - 1) * limit
        page_items = selected[start:start + limit]
        return IncidentListing(
            incidents=page_items,
            distances={incident.id: distances[incident.id] for incident in page_items if incident.id in distances},
            page=page,
            limit=limit,
            total=total,
            pages=(total + limit - 1) // limit,
            has_next=start + limit < total,
            has_prev=page > 1,
        )

    def recent_incidents(self, hours: int = 24, limit: int = 20, category: Any = None) -> IncidentListing:
        """Newest incidents reported within the last `hours`."""
        return self.list_incidents(
            category=category,
            since=utc_now() - timedelta(hours=hours),
            limit=limit,
        )

    def popular_incidents(
        self,
        timeframe: Any = PopularTimeframe.WEEK,
        limit: int = 20,
        category: Any = None,
    ) -> IncidentListing:
        """Most upvoted incidents reported within the timeframe."""
        hours = POPULAR_TIMEFRAME_HOURS[PopularTimeframe(timeframe)]
        return self.list_incidents(
            category=category,
            since=utc_now() - timedelta(hours=hours) if hours is not None else None,
            sort_by=IncidentSortField.UPVOTES,
            limit=limit,
        )

    def nearby(self, center: GeoPoint, radius_meters: Optional[float] = None, active_only: bool = True) -> List[NearbyIncident]:
        return self.proximity.nearby_incidents(center, radius_meters, active_only=active_only)

    def statistics(self) -> IncidentStatistics:
        incidents = self.store.list_all()
        total = len(incidents)

        status_counts = Counter(incident.status.value for incident in incidents)
        category_counts = Counter(incident.category.value for incident in incidents)
        resolved = [i for i in incidents if i.status in (IncidentStatus.RESOLVED, IncidentStatus.CLOSED)]
        resolution_minutes = [
            i.resolution_time_minutes for i in incidents if i.resolution_time_minutes is not None
        ]

        return IncidentStatistics(
            total_incidents=total,
            status_breakdown={status.value: status_counts.get(status.value, 0) for status in IncidentStatus},
            category_breakdown=dict(category_counts),
            active_incidents=sum(1 for i in incidents if i.is_active),
            resolved_incidents=len(resolved),
            flagged_incidents=sum(1 for i in incidents if i.is_flagged),
            resolution_rate=round(len(resolved) / total * 100) if total else 0,
            average_resolution_minutes=(
                sum(resolution_minutes) / len(resolution_minutes) if resolution_minutes else None
            ),
        )

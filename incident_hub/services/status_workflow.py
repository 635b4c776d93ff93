"""
Status Workflow Engine - incident lifecycle state machine.

DESIGN PRINCIPLES:
- Status only changes through transition(); never overwritten directly
- Every transition appends an immutable history entry, including repeats
- Lifecycle timestamps are stamped once, on first entry into their status
- Forward skips are allowed; permissions are decided outside the engine
- No rollback: corrections are new, explicit transitions
"""

from typing import Any, Dict, List, Optional, Tuple
import logging

from incident_hub.core.errors import InvalidStatusValue
from incident_hub.models.incident import (
    ActorRef,
    Incident,
    IncidentStatus,
    StatusHistoryEntry,
)
from incident_hub.utils.timestamps import minutes_between, utc_now

logger = logging.getLogger(__name__)


class StatusMachine:
    """
    State machine for incident status transitions.

    reported → verified → assigned → in_progress → resolved → closed
    """

    # Lifecycle timestamp stamped on first entry into each status
    TIMESTAMP_FIELDS: Dict[IncidentStatus, str] = {
        IncidentStatus.VERIFIED: "verified_at",
        IncidentStatus.ASSIGNED: "assigned_at",
        IncidentStatus.RESOLVED: "resolved_at",
        IncidentStatus.CLOSED: "closed_at",
    }

    @classmethod
    def allowed_statuses(cls) -> List[str]:
        return [status.value for status in IncidentStatus]

    @classmethod
    def parse_status(cls, value: Any) -> IncidentStatus:
        """
        Coerce a status value into the closed enum.

        Raises:
            InvalidStatusValue: If value is not a member of the enum
        """
        if isinstance(value, IncidentStatus):
            return value
        try:
            return IncidentStatus(value)
        except ValueError:
            raise InvalidStatusValue(value, cls.allowed_statuses())

    @classmethod
    def create_status_history_entry(
        cls,
        sequence: int,
        status: IncidentStatus,
        changed_by: ActorRef,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StatusHistoryEntry:
        """
        Create a status history entry for the audit trail.

        Args:
            sequence: Position of the entry in the incident's history
            status: Status entered
            changed_by: Actor making the change
            reason: Short reason for the change
            notes: Optional free-text notes

        Returns:
            Frozen StatusHistoryEntry
        """
        return StatusHistoryEntry(
            sequence=sequence,
            status=status,
            changed_by=changed_by,
            reason=reason,
            notes=notes or None,
            timestamp=utc_now(),
        )

    @classmethod
    def transition(
        cls,
        incident: Incident,
        new_status: Any,
        actor: ActorRef,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StatusHistoryEntry:
        """
        Validate and apply a status transition in place.

        Args:
            incident: Aggregate to mutate
            new_status: Desired status (enum member or its string value)
            actor: Actor making the change
            reason: Short reason for the change
            notes: Optional free-text notes

        Returns:
            The appended history entry

        Raises:
            InvalidStatusValue: If new_status is not a valid status
        """
        status = cls.parse_status(new_status)
        previous = incident.status

        entry = cls.create_status_history_entry(
            sequence=len(incident.status_history),
            status=status,
            changed_by=actor,
            reason=reason,
            notes=notes,
        )
        incident.status_history.append(entry)
        incident.status = status

        timestamp_field = cls.TIMESTAMP_FIELDS.get(status)
        if timestamp_field and getattr(incident, timestamp_field) is None:
            setattr(incident, timestamp_field, entry.timestamp)
            if status == IncidentStatus.RESOLVED:
                incident.resolution_time_minutes = minutes_between(incident.reported_at, entry.timestamp)

        logger.info(
            f"Incident {incident.id}: {previous.value} → {status.value} "
            f"by {actor.actor_kind.value}:{actor.actor_id} (seq {entry.sequence})"
        )
        return entry

    @classmethod
    def history_for(cls, incident: Incident) -> Tuple[StatusHistoryEntry, ...]:
        """Immutable view of the incident's status history."""
        return tuple(incident.status_history)

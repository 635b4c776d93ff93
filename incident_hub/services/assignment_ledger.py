"""
Assignment Ledger - responders attached to an incident.

An incident keeps the full history of its assignments; only the latest one
is current. Assigning always records an "assigned" status transition.
"""

from typing import Any, Optional
from uuid import uuid4
import logging

from incident_hub.models.incident import (
    ActorRef,
    Assignment,
    AssignmentPriority,
    AssignmentStatus,
    Incident,
    IncidentStatus,
)
from incident_hub.services.status_workflow import StatusMachine
from incident_hub.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

# Assignments still "live" when superseded by a reassignment
_OPEN_ASSIGNMENT_STATUSES = (AssignmentStatus.PENDING, AssignmentStatus.ACCEPTED)


class AssignmentLedger:

    def __init__(self, status_machine: type = StatusMachine):
        self.status_machine = status_machine

    def assign_to(
        self,
        incident: Incident,
        assignee: str,
        assigner: ActorRef,
        priority: Any = AssignmentPriority.MEDIUM,
        notes: Optional[str] = None,
    ) -> Assignment:
        """
        Append a pending assignment and transition the incident to 'assigned'.

        A previous open assignment is marked 'reassigned'.

        Raises:
            ValueError: If priority is not an AssignmentPriority value
        """
        priority = AssignmentPriority(priority)

        if incident.assignments and incident.assignments[-1].status in _OPEN_ASSIGNMENT_STATUSES:
            incident.assignments[-1].status = AssignmentStatus.REASSIGNED

        assignment = Assignment(
            id=uuid4().hex,
            assigned_to=assignee,
            assigned_by=assigner.actor_id,
            priority=priority,
            notes=notes,
            status=AssignmentStatus.PENDING,
            assigned_at=utc_now(),
        )
        incident.assignments.append(assignment)

        self.status_machine.transition(
            incident,
            IncidentStatus.ASSIGNED,
            assigner,
            reason="Incident assigned",
            notes=notes,
        )

        logger.info(
            f"Incident {incident.id} assigned to {assignee} by {assigner.actor_id} "
            f"(priority {assignment.priority.value}, assignments={len(incident.assignments)})"
        )
        return assignment

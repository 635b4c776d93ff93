"""
Assignment Ledger and Media Registry Tests
"""

import pytest

from incident_hub.core.errors import MediaLimitExceeded, MediaNotFound
from incident_hub.models.incident import AssignmentPriority, AssignmentStatus, IncidentStatus
from incident_hub.services.assignment_ledger import AssignmentLedger
from incident_hub.services.media_registry import MediaRegistry


# ============================================================================
# TEST: ASSIGNMENTS
# ============================================================================

class TestAssignmentLedger:

    def test_assign_transitions_to_assigned(self, make_incident, responder):
        incident = make_incident()

        assignment = AssignmentLedger().assign_to(
            incident, "fire-station-12", responder, priority="high", notes="Two engines"
        )

        assert assignment.status == AssignmentStatus.PENDING
        assert assignment.priority == AssignmentPriority.HIGH
        assert assignment.assigned_by == responder.actor_id
        assert incident.status == IncidentStatus.ASSIGNED
        assert incident.assigned_at is not None
        assert incident.current_assignment == "fire-station-12"
        assert incident.status_history[-1].reason == "Incident assigned"
        assert incident.status_history[-1].notes == "Two engines"

    def test_reassignment_supersedes_previous(self, make_incident, responder):
        incident = make_incident()
        ledger = AssignmentLedger()

        ledger.assign_to(incident, "unit-a", responder)
        first_assigned_at = incident.assigned_at
        ledger.assign_to(incident, "unit-b", responder)

        assert [a.status for a in incident.assignments] == [
            AssignmentStatus.REASSIGNED,
            AssignmentStatus.PENDING,
        ]
        assert incident.current_assignment == "unit-b"
        assert incident.assigned_at == first_assigned_at

    def test_assign_from_in_progress(self, make_incident, responder):
        incident = make_incident(status=IncidentStatus.IN_PROGRESS)
        AssignmentLedger().assign_to(incident, "unit-c", responder)
        assert incident.status == IncidentStatus.ASSIGNED

    def test_invalid_priority_leaves_incident_untouched(self, make_incident, responder):
        incident = make_incident()
        ledger = AssignmentLedger()
        ledger.assign_to(incident, "unit-a", responder)
        history_length = len(incident.status_history)

        with pytest.raises(ValueError):
            ledger.assign_to(incident, "unit-b", responder, priority="urgent")

        assert [a.status for a in incident.assignments] == [AssignmentStatus.PENDING]
        assert incident.current_assignment == "unit-a"
        assert len(incident.status_history) == history_length


# ============================================================================
# TEST: MEDIA
# ============================================================================

class TestMediaRegistry:

    def test_attach_stamps_id_and_time(self, make_incident, make_descriptor, scorer):
        incident = make_incident()
        attachment = MediaRegistry(scorer, limit=20).add_media(incident, make_descriptor())

        assert attachment.id
        assert attachment.uploaded_at is not None
        assert attachment.url == "https://media.example.org/uploads/photo.jpg"
        assert incident.media == [attachment]
        assert incident.verification_score == 5

    def test_twenty_first_media_rejected(self, make_incident, make_descriptor, scorer):
        incident = make_incident()
        registry = MediaRegistry(scorer, limit=20)
        for _ in range(20):
            registry.add_media(incident, make_descriptor())

        with pytest.raises(MediaLimitExceeded) as exc_info:
            registry.add_media(incident, make_descriptor())

        assert exc_info.value.details == {"field": "media", "limit": 20, "current": 20}
        assert len(incident.media) == 20

    def test_remove_media(self, make_incident, make_descriptor, scorer):
        incident = make_incident()
        registry = MediaRegistry(scorer, limit=20)
        keep = registry.add_media(incident, make_descriptor())
        drop = registry.add_media(incident, make_descriptor())

        registry.remove_media(incident, drop.id)

        assert [m.id for m in incident.media] == [keep.id]
        assert incident.verification_score == 5

    def test_remove_unknown_media(self, make_incident, scorer):
        with pytest.raises(MediaNotFound):
            MediaRegistry(scorer).remove_media(make_incident(), "missing")

    def test_oversized_media_rejected(self, make_descriptor):
        with pytest.raises(ValueError):
            make_descriptor(size=60 * 1024 * 1024)

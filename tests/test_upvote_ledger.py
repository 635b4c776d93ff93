"""
Upvote Ledger Tests
===================

At most one upvote per (voter_id, voter_kind); the count always equals the
number of stored upvotes.
"""

import pytest

from incident_hub.core.errors import DuplicateVote, VoteNotFound
from incident_hub.models.incident import ActorKind
from incident_hub.models.location import GeoPoint
from incident_hub.services.upvote_ledger import UpvoteLedger


@pytest.fixture
def ledger(scorer):
    return UpvoteLedger(scorer)


class TestAddUpvote:

    def test_records_voter_details(self, ledger, make_incident):
        incident = make_incident()
        location = GeoPoint(coordinates=(77.595, 12.972))

        upvote = ledger.add_upvote(
            incident, "user-1", ActorKind.REGISTERED, "203.0.113.9",
            user_agent="Mozilla/5.0", location=location,
        )

        assert incident.upvotes == [upvote]
        assert upvote.voter_kind == ActorKind.REGISTERED
        assert upvote.ip_address == "203.0.113.9"
        assert upvote.location == location
        assert upvote.timestamp.tzinfo is not None
        assert incident.upvote_count == 1

    def test_duplicate_vote_rejected(self, ledger, make_incident):
        incident = make_incident()
        ledger.add_upvote(incident, "user-1", "registered", "203.0.113.9")

        with pytest.raises(DuplicateVote) as exc_info:
            ledger.add_upvote(incident, "user-1", "registered", "198.51.100.1")

        assert exc_info.value.details == {
            "incident_id": incident.id,
            "voter_id": "user-1",
            "voter_kind": "registered",
        }
        assert incident.upvote_count == 1

    def test_same_id_different_kind_is_a_different_voter(self, ledger, make_incident):
        incident = make_incident()
        ledger.add_upvote(incident, "abc", "registered", "203.0.113.9")
        ledger.add_upvote(incident, "abc", "guest", "203.0.113.9")
        assert incident.upvote_count == 2

    def test_unknown_voter_kind_rejected(self, ledger, make_incident):
        with pytest.raises(ValueError):
            ledger.add_upvote(make_incident(), "user-1", "admin", "203.0.113.9")

    def test_has_upvoted(self, ledger, make_incident):
        incident = make_incident()
        ledger.add_upvote(incident, "guest-9", "guest", "203.0.113.9")
        assert ledger.has_upvoted(incident, "guest-9", "guest")
        assert not ledger.has_upvoted(incident, "guest-9", "registered")


class TestRemoveUpvote:

    def test_remove_then_revote(self, ledger, make_incident):
        incident = make_incident()
        ledger.add_upvote(incident, "user-1", "registered", "203.0.113.9")

        removed = ledger.remove_upvote(incident, "user-1", "registered")

        assert removed.voter_id == "user-1"
        assert incident.upvote_count == 0
        assert incident.verification_score == 0
        ledger.add_upvote(incident, "user-1", "registered", "203.0.113.9")
        assert incident.upvote_count == 1

    def test_remove_missing_vote(self, ledger, make_incident):
        incident = make_incident()
        with pytest.raises(VoteNotFound):
            ledger.remove_upvote(incident, "nobody", "guest")

    def test_count_matches_ledger(self, ledger, make_incident):
        incident = make_incident()
        for n in range(5):
            ledger.add_upvote(incident, f"voter-{n}", "guest", f"10.0.0.{n}")
        ledger.remove_upvote(incident, "voter-2", "guest")
        assert incident.upvote_count == len(incident.upvotes) == 4
        assert incident.verification_score == 20

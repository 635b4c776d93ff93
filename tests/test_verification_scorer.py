"""
Verification Scorer Tests
=========================

Key properties tested:
1. Score stays within [0, 100]
2. Each component grows with its input up to its cap
3. Unresolved incidents decay after the grace period; resolved ones never do
4. The persisted score survives serialization unchanged
"""

from datetime import timedelta

import pytest

from incident_hub.models.incident import Incident, IncidentStatus, MediaDescriptor
from incident_hub.services.media_registry import MediaRegistry
from incident_hub.services.upvote_ledger import UpvoteLedger
from incident_hub.services.verification_scorer import VerificationScorer, get_verification_scorer


def _add_upvotes(ledger, incident, count, start=0):
    for n in range(start, start + count):
        ledger.add_upvote(incident, f"voter-{n}", "guest", ip_address=f"10.0.0.{n}")


# ============================================================================
# TEST: END-TO-END SCORE PROGRESSION
# ============================================================================

class TestScoreScenario:

    def test_guest_report_progression(self, make_incident, scorer):
        """0 → 15 after three upvotes → 25 after two media → 35 with a long description."""
        incident = make_incident()
        assert len(incident.description) == 50
        assert scorer.recompute(incident) == 0
        assert incident.verification_score == 0

        _add_upvotes(UpvoteLedger(scorer), incident, 3)
        assert incident.verification_score == 15

        registry = MediaRegistry(scorer, limit=20)
        for _ in range(2):
            registry.add_media(incident, _descriptor(incident))
        assert incident.verification_score == 25

        incident.description = "Long first-hand account. " * 24
        assert len(incident.description) == 600
        assert scorer.recompute(incident) == 35


def _descriptor(incident):
    return MediaDescriptor(
        url="https://media.example.org/a.jpg",
        kind="image",
        mime_type="image/jpeg",
        size=2048,
        uploaded_by=incident.reported_by,
    )


# ============================================================================
# TEST: COMPONENTS
# ============================================================================

class TestComponents:

    def test_upvotes_capped_at_fifty(self, make_incident, scorer):
        incident = make_incident()
        _add_upvotes(UpvoteLedger(scorer), incident, 12)
        assert scorer.breakdown(incident).upvotes == 50
        assert incident.verification_score == 50

    def test_media_capped_at_twenty(self, make_incident, scorer):
        incident = make_incident()
        registry = MediaRegistry(scorer, limit=20)
        for _ in range(6):
            registry.add_media(incident, _descriptor(incident))
        assert scorer.breakdown(incident).media == 20

    @pytest.mark.parametrize("length,expected", [
        (100, 0),
        (101, 5),
        (500, 5),
        (501, 10),
        (2000, 10),
    ])
    def test_description_depth(self, make_incident, scorer, length, expected):
        incident = make_incident(description="d" * length)
        assert scorer.breakdown(incident).description == expected

    def test_registered_reporter_bonus(self, make_incident, scorer, registered):
        incident = make_incident(reporter=registered)
        assert scorer.calculate(incident) == 10

    def test_monotone_in_upvotes(self, make_incident, scorer):
        incident = make_incident()
        ledger = UpvoteLedger(scorer)
        previous = scorer.calculate(incident)
        for n in range(15):
            _add_upvotes(ledger, incident, 1, start=n)
            assert incident.verification_score >= previous
            previous = incident.verification_score

    def test_total_never_exceeds_hundred(self, make_incident, scorer, registered):
        incident = make_incident(reporter=registered, description="d" * 600)
        _add_upvotes(UpvoteLedger(scorer), incident, 20)
        registry = MediaRegistry(scorer, limit=20)
        for _ in range(5):
            registry.add_media(incident, _descriptor(incident))
        # 50 + 20 + 10 + 10
        assert incident.verification_score == 90
        assert 0 <= incident.verification_score <= 100


# ============================================================================
# TEST: AGE DECAY
# ============================================================================

class TestAgeDecay:

    def test_no_penalty_within_grace_period(self, make_incident, scorer, registered):
        incident = make_incident(reporter=registered, age=timedelta(days=6))
        assert scorer.age_penalty(incident) == 0
        assert scorer.calculate(incident) == 10

    def test_penalty_per_full_day_past_grace(self, make_incident, scorer, registered):
        incident = make_incident(reporter=registered, age=timedelta(days=10, hours=5))
        assert scorer.age_penalty(incident) == 3
        assert scorer.calculate(incident) == 7
        assert "Age decay (-3)" in scorer.breakdown(incident).reason

    def test_penalty_capped(self, make_incident, scorer):
        incident = make_incident(age=timedelta(days=90))
        assert scorer.age_penalty(incident) == 20

    def test_score_clamped_at_zero(self, make_incident, scorer, registered):
        incident = make_incident(reporter=registered, age=timedelta(days=60))
        assert scorer.calculate(incident) == 0

    def test_penalty_non_decreasing_in_age(self, make_incident, scorer):
        penalties = [
            scorer.age_penalty(make_incident(age=timedelta(days=days)))
            for days in range(0, 40, 3)
        ]
        assert penalties == sorted(penalties)

    @pytest.mark.parametrize("status", [IncidentStatus.RESOLVED, IncidentStatus.CLOSED])
    def test_inactive_incidents_never_decay(self, make_incident, scorer, status):
        incident = make_incident(status=status, age=timedelta(days=60))
        assert scorer.age_penalty(incident) == 0

    def test_custom_decay_settings(self, make_incident):
        strict = VerificationScorer(decay_grace_days=1, decay_points_per_day=5, decay_max_penalty=50)
        incident = make_incident(age=timedelta(days=4, hours=1))
        assert strict.age_penalty(incident) == 15


# ============================================================================
# TEST: PERSISTED SCORE
# ============================================================================

class TestPersistedScore:

    def test_score_survives_round_trip(self, make_incident, scorer):
        incident = make_incident()
        _add_upvotes(UpvoteLedger(scorer), incident, 2)

        restored = Incident.model_validate(incident.model_dump(mode="json"))
        assert restored.verification_score == 10

    def test_restored_score_is_clamped(self, make_incident):
        data = make_incident().model_dump(mode="json")
        data["verification_score"] = 250
        assert Incident.model_validate(data).verification_score == 100

    def test_singleton(self):
        assert get_verification_scorer() is get_verification_scorer()

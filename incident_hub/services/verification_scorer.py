"""
Verification Scorer - bounded trust/urgency score for an incident.

DESIGN PRINCIPLES:
- Score is SYSTEM-DERIVED, never user-editable
- Score is a pure function of the incident snapshot (and the clock)
- Score is explainable: every component is reported with its contribution
- Score: 0-100 (higher = more trustworthy/urgent)
"""

from datetime import datetime
from typing import Optional
import logging

from pydantic import BaseModel

from incident_hub.core.settings import settings
from incident_hub.models.incident import ActorKind, Incident
from incident_hub.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


class ScoreBreakdown(BaseModel):
    """Per-component contributions of a verification score."""
    upvotes: int
    media: int
    description: int
    reporter: int
    age_penalty: int
    total: int
    reason: str


class VerificationScorer:
    """
    Weighted additive score, component-capped, clamped to [0, 100].

    Factors:
    1. Upvotes (5 each, max 50)
    2. Media evidence (5 each, max 20)
    3. Description depth (+5 over 100 chars, +5 more over 500)
    4. Registered reporter (+10)
    5. Age decay for unresolved incidents (configurable)
    """

    UPVOTE_POINTS = 5
    UPVOTE_CAP = 50
    MEDIA_POINTS = 5
    MEDIA_CAP = 20
    DESCRIPTION_THRESHOLDS = (100, 500)
    DESCRIPTION_POINTS = 5
    REGISTERED_REPORTER_BONUS = 10

    MIN_SCORE = 0
    MAX_SCORE = 100

    def __init__(
        self,
        decay_grace_days: Optional[float] = None,
        decay_points_per_day: Optional[float] = None,
        decay_max_penalty: Optional[float] = None,
    ):
        self.decay_grace_days = settings.SCORE_DECAY_GRACE_DAYS if decay_grace_days is None else decay_grace_days
        self.decay_points_per_day = (
            settings.SCORE_DECAY_POINTS_PER_DAY if decay_points_per_day is None else decay_points_per_day
        )
        self.decay_max_penalty = settings.SCORE_DECAY_MAX_PENALTY if decay_max_penalty is None else decay_max_penalty

    def age_penalty(self, incident: Incident, now: Optional[datetime] = None) -> int:
        """
        Penalty for stale unresolved incidents.

        Zero during the grace period, then decay_points_per_day for every
        full day beyond it, capped at decay_max_penalty. Non-decreasing in
        age; resolved/closed incidents are never penalized.
        """
        if not incident.is_active:
            return 0

        now = now or utc_now()
        age_days = (now - incident.incident_time).total_seconds() / 86400
        overdue_days = int(age_days - self.decay_grace_days)
        if overdue_days <= 0:
            return 0

        return int(min(overdue_days * self.decay_points_per_day, self.decay_max_penalty))

    def breakdown(self, incident: Incident, now: Optional[datetime] = None) -> ScoreBreakdown:
        upvote_score = min(incident.upvote_count * self.UPVOTE_POINTS, self.UPVOTE_CAP)
        media_score = min(len(incident.media) * self.MEDIA_POINTS, self.MEDIA_CAP)

        description_score = sum(
            self.DESCRIPTION_POINTS
            for threshold in self.DESCRIPTION_THRESHOLDS
            if len(incident.description) > threshold
        )

        reporter_score = (
            self.REGISTERED_REPORTER_BONUS
            if incident.reported_by.actor_kind == ActorKind.REGISTERED
            else 0
        )

        penalty = self.age_penalty(incident, now)

        raw = upvote_score + media_score + description_score + reporter_score - penalty
        total = max(self.MIN_SCORE, min(self.MAX_SCORE, raw))

        reasons = [
            f"Upvotes: {incident.upvote_count} (+{upvote_score})",
            f"Media: {len(incident.media)} (+{media_score})",
            f"Description depth (+{description_score})",
            f"Reporter: {incident.reported_by.actor_kind.value} (+{reporter_score})",
        ]
        if penalty:
            reasons.append(f"Age decay (-{penalty})")

        return ScoreBreakdown(
            upvotes=upvote_score,
            media=media_score,
            description=description_score,
            reporter=reporter_score,
            age_penalty=penalty,
            total=total,
            reason=" | ".join(reasons),
        )

    def calculate(self, incident: Incident, now: Optional[datetime] = None) -> int:
        """Compute the verification score (0-100) without mutating the incident."""
        return self.breakdown(incident, now).total

    def recompute(self, incident: Incident, now: Optional[datetime] = None) -> int:
        """
        Recompute and store the verification score on the incident.

        This is the only writer of Incident.verification_score.
        """
        result = self.breakdown(incident, now)
        incident._verification_score = result.total
        logger.debug(f"Verification score for incident {incident.id}: {result.total} ({result.reason})")
        return result.total


# Global scorer instance (singleton pattern)
_scorer = None


def get_verification_scorer() -> VerificationScorer:
    """
    Get or create VerificationScorer singleton instance.

    Returns:
        VerificationScorer: The global scorer instance
    """
    global _scorer
    if _scorer is None:
        _scorer = VerificationScorer()
    return _scorer

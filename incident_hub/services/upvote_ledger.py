"""
Upvote Ledger - crowd-sourced verification votes on an incident.

Invariant: at most one upvote per (voter_id, voter_kind). Removing and
re-adding is permitted. Every change recomputes the verification score.

Mutations are expected to run under per-incident serialization
(see IncidentService) so the uniqueness invariant holds under
concurrent callers.
"""

from typing import Any, Optional
import logging

from incident_hub.core.errors import DuplicateVote, VoteNotFound
from incident_hub.models.incident import ActorKind, Incident, Upvote
from incident_hub.models.location import GeoPoint
from incident_hub.services.verification_scorer import VerificationScorer, get_verification_scorer
from incident_hub.utils.security import hash_ip_address
from incident_hub.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


class UpvoteLedger:
    """Service for managing upvotes on an incident aggregate."""

    def __init__(self, scorer: Optional[VerificationScorer] = None):
        self.scorer = scorer or get_verification_scorer()

    @staticmethod
    def _find_index(incident: Incident, voter_id: str, voter_kind: ActorKind) -> Optional[int]:
        for index, upvote in enumerate(incident.upvotes):
            if upvote.voter_id == voter_id and upvote.voter_kind == voter_kind:
                return index
        return None

    def has_upvoted(self, incident: Incident, voter_id: str, voter_kind: Any) -> bool:
        return self._find_index(incident, voter_id, ActorKind(voter_kind)) is not None

    def add_upvote(
        self,
        incident: Incident,
        voter_id: str,
        voter_kind: Any,
        ip_address: str,
        user_agent: Optional[str] = None,
        location: Optional[GeoPoint] = None,
    ) -> Upvote:
        """
        Add an upvote and recompute the verification score.

        Args:
            incident: Aggregate to mutate
            voter_id: Voter identity
            voter_kind: 'registered' or 'guest'
            ip_address: Voter IP (kept for abuse investigation)
            user_agent: Optional client user agent
            location: Optional voter location

        Returns:
            The appended Upvote

        Raises:
            DuplicateVote: If this voter already upvoted the incident
        """
        kind = ActorKind(voter_kind)
        if self._find_index(incident, voter_id, kind) is not None:
            logger.warning(f"Duplicate upvote rejected on incident {incident.id} ({kind.value}:{voter_id})")
            raise DuplicateVote(incident.id, voter_id, kind.value)

        upvote = Upvote(
            voter_id=voter_id,
            voter_kind=kind,
            timestamp=utc_now(),
            ip_address=ip_address,
            user_agent=user_agent,
            location=location,
        )
        incident.upvotes.append(upvote)
        score = self.scorer.recompute(incident)

        logger.info(
            f"Upvote added to incident {incident.id} by {kind.value}:{voter_id} "
            f"(ip {hash_ip_address(ip_address)}); count={incident.upvote_count}, score={score}"
        )
        return upvote

    def remove_upvote(self, incident: Incident, voter_id: str, voter_kind: Any) -> Upvote:
        """
        Remove a voter's upvote and recompute the verification score.

        Raises:
            VoteNotFound: If the voter has no upvote on this incident
        """
        kind = ActorKind(voter_kind)
        index = self._find_index(incident, voter_id, kind)
        if index is None:
            logger.warning(f"Upvote removal rejected on incident {incident.id}: none from {kind.value}:{voter_id}")
            raise VoteNotFound(incident.id, voter_id, kind.value)

        removed = incident.upvotes.pop(index)
        score = self.scorer.recompute(incident)

        logger.info(
            f"Upvote removed from incident {incident.id} by {kind.value}:{voter_id}; "
            f"count={incident.upvote_count}, score={score}"
        )
        return removed

"""
Media Registry - media evidence attached to an incident.

Capacity policy is reject-on-exceed: an attach that would go past the cap
fails with MediaLimitExceeded and leaves the list untouched. Nothing is
ever truncated silently.
"""

from typing import Optional
from uuid import uuid4
import logging

from incident_hub.core.errors import MediaLimitExceeded, MediaNotFound
from incident_hub.core.settings import settings
from incident_hub.models.incident import Incident, MediaAttachment, MediaDescriptor
from incident_hub.services.verification_scorer import VerificationScorer, get_verification_scorer
from incident_hub.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


class MediaRegistry:
    """Attaches media descriptors returned by the media host."""

    def __init__(self, scorer: Optional[VerificationScorer] = None, limit: Optional[int] = None):
        self.scorer = scorer or get_verification_scorer()
        self.limit = settings.MEDIA_LIMIT if limit is None else limit

    def add_media(self, incident: Incident, descriptor: MediaDescriptor) -> MediaAttachment:
        """
        Attach a media descriptor and recompute the verification score.

        Raises:
            MediaLimitExceeded: If the incident already holds `limit` items
        """
        current = len(incident.media)
        if current >= self.limit:
            logger.warning(f"Media attach rejected on incident {incident.id}: {current}/{self.limit} files")
            raise MediaLimitExceeded(self.limit, current)

        attachment = MediaAttachment(
            **descriptor.model_dump(),
            id=uuid4().hex,
            uploaded_at=utc_now(),
        )
        incident.media.append(attachment)
        score = self.scorer.recompute(incident)

        logger.info(
            f"Media {attachment.id} ({attachment.kind.value}) attached to incident {incident.id}; "
            f"media={len(incident.media)}, score={score}"
        )
        return attachment

    def remove_media(self, incident: Incident, media_id: str) -> MediaAttachment:
        for index, attachment in enumerate(incident.media):
            if attachment.id == media_id:
                removed = incident.media.pop(index)
                self.scorer.recompute(incident)
                logger.info(f"Media {media_id} removed from incident {incident.id}")
                return removed

        raise MediaNotFound(incident.id, media_id)

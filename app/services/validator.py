import logging
from typing import Optional

from ..models.challenge import Challenge, ChallengeType, APPROVAL_TYPES

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10

def _as_type(challenge_type: str) -> Optional[ChallengeType]:
    try:
        return ChallengeType(challenge_type)
    except ValueError:
        return None

def requires_approval(challenge_type: str) -> bool:
    return _as_type(challenge_type) in APPROVAL_TYPES

def validate_submission(
    challenge: Challenge,
    body: Optional[str],
    media_count: int = 0,
    media_url: Optional[str] = None
) -> bool:
    """Check whether an inbound message satisfies the challenge's rule.

    Photo and video challenges need at least one attached media item, text
    challenges need more than ten characters once trimmed, and keyword
    challenges need the configured keyword anywhere in the body, ignoring
    case. Multi-day, custom and unrecognised types accept anything, since
    they are driven by step counts or confirmation outside the message.
    """
    body = body or ""
    challenge_type = _as_type(challenge.challenge_type)

    if challenge_type in APPROVAL_TYPES:
        return media_count > 0
    if challenge_type == ChallengeType.TEXT:
        return len(body.strip()) > MIN_TEXT_LENGTH
    if challenge_type == ChallengeType.KEYWORD:
        keyword = (challenge.requirements or {}).get("keyword")
        if not keyword:
            # No keyword means the challenge can never be satisfied by a message
            logger.warning("Keyword challenge %s has no keyword configured", challenge.challenge_id)
            return False
        return keyword.lower() in body.lower()
    return True

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel

from ..models.common import utcnow
from ..models.gift import GiftPublic, normalize_phone
from ..models.challenge import SubmissionRecord
from . import messages
from .approval import ApprovalWorkflow
from .errors import SubmissionPendingError
from .lifecycle import GiftLifecycle
from .notification import Notice
from .store import GiftStore
from .validator import requires_approval, validate_submission

logger = logging.getLogger(__name__)

class InboundMessage(BaseModel):
    sender: str
    body: str = ""
    media_count: int = 0
    media_url: Optional[str] = None
    media_content_type: Optional[str] = None

@dataclass
class InboundReply:
    body: str
    notices: List[Notice] = field(default_factory=list)
    gift: Optional[GiftPublic] = None


class InboundRouter:
    """Applies an inbound message to at most one of the sender's active gifts.

    Candidates are tried newest first and the first challenge that accepts
    the message wins, so a single text never advances several gifts.
    """

    def __init__(self, store: GiftStore, lifecycle: GiftLifecycle, approvals: ApprovalWorkflow):
        self.store = store
        self.lifecycle = lifecycle
        self.approvals = approvals

    def handle(self, message: InboundMessage) -> InboundReply:
        try:
            contact = normalize_phone(message.sender)
        except ValueError:
            contact = message.sender.strip()

        candidates = self.store.find_active_gifts_by_recipient_contact(contact)
        if not candidates:
            logger.info("Inbound message from %s with no active challenge", contact)
            return InboundReply(body=messages.NO_ACTIVE_CHALLENGE)

        command = message.body.strip().upper()
        if command == "HELP":
            return InboundReply(body=messages.HELP)
        if command == "START":
            # Answers the invitation in the initial message, it is never a submission
            newest = candidates[0]
            challenge = self.store.get_challenge_for_gift(newest.gift_id)
            description = challenge.description if challenge else newest.gift_type
            return InboundReply(body=messages.ready(description), gift=GiftPublic.model_validate(newest))
        if command == "STATUS":
            entries = []
            for gift in candidates:
                challenge = self.store.get_challenge_for_gift(gift.gift_id)
                if challenge:
                    entries.append((gift, challenge.get_progress()))
            return InboundReply(body=messages.status_summary(entries))

        for candidate_id in [gift.gift_id for gift in candidates]:
            reply = self._apply(candidate_id, contact, message)
            if reply is not None:
                return reply

        logger.info("Inbound message from %s matched none of %s active challenges", contact, len(candidates))
        return InboundReply(body=messages.TRY_AGAIN)

    def _apply(self, gift_id: int, contact: str, message: InboundMessage) -> Optional[InboundReply]:
        with self.store.locked(gift_id) as gift:
            # Another request may have finished this gift since it was listed
            if not gift.is_active:
                return None
            challenge = self.store.get_challenge_for_gift(gift.gift_id, for_update=True)
            if not challenge or not validate_submission(
                challenge, message.body, message.media_count, message.media_url
            ):
                return None

            if requires_approval(challenge.challenge_type):
                if not message.media_url:
                    return None
                try:
                    request = self.lifecycle.submit_for_approval(
                        gift,
                        media_url=message.media_url,
                        media_content_type=message.media_content_type,
                        submitter_contact=contact,
                        body=message.body
                    )
                except SubmissionPendingError:
                    return InboundReply(body=messages.SUBMISSION_UNDER_REVIEW, gift=GiftPublic.model_validate(gift))
                return InboundReply(
                    body=messages.render_text(messages.NotificationKind.PHOTO_RECEIVED, request.data),
                    notices=self.approvals.request_notices(gift, request),
                    gift=request.gift
                )

            result = self.lifecycle.record_step(gift, SubmissionRecord(
                timestamp=utcnow(),
                type="media" if message.media_count > 0 else "text",
                data={
                    "body": message.body,
                    "media_url": message.media_url,
                    "media_type": message.media_content_type
                }
            ))
            # The SMS reply already tells the recipient, email follows only on completion
            notices = []
            if result.completed and gift.recipient_email:
                notices.append(Notice(
                    kind=messages.NotificationKind.COMPLETION,
                    email=gift.recipient_email,
                    data=result.data
                ))
            return InboundReply(
                body=messages.render_text(result.kind, result.data),
                notices=notices,
                gift=result.gift
            )

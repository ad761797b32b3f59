import logging
from typing import List, Optional, Tuple

from ..models.gift import Gift
from ..models.photo_submission import PhotoSubmission, ReviewAction
from .errors import NotFoundError, PermissionDeniedError
from .lifecycle import ApprovalRequest, GiftLifecycle, ReviewResult
from .messages import NotificationKind
from .notification import Notice
from .store import GiftStore

logger = logging.getLogger(__name__)

class ApprovalWorkflow:
    """Connects photo/video submissions to the sender's review decision.

    Notices go out on every channel the person has contact details for,
    regardless of the gift's delivery method; the gateway attempts each
    channel on its own so one failing never blocks the other.
    """

    def __init__(self, store: GiftStore, lifecycle: GiftLifecycle):
        self.store = store
        self.lifecycle = lifecycle

    def submit(
        self,
        gift_id: int,
        media_url: str,
        media_content_type: Optional[str] = None,
        submitter_contact: Optional[str] = None,
        body: Optional[str] = None
    ) -> Tuple[ApprovalRequest, List[Notice]]:
        with self.store.locked(gift_id) as gift:
            request = self.lifecycle.submit_for_approval(
                gift,
                media_url=media_url,
                media_content_type=media_content_type,
                submitter_contact=submitter_contact,
                body=body
            )
            notices = self.request_notices(gift, request)
            notices.append(Notice(
                kind=NotificationKind.PHOTO_RECEIVED,
                phone=gift.recipient_phone,
                email=gift.recipient_email,
                data=request.data
            ))
        return request, notices

    def request_notices(self, gift: Gift, request: ApprovalRequest) -> List[Notice]:
        sender = self.store.get_sender(gift)
        if not sender or not (sender.phone_number or sender.email):
            logger.warning("Gift %s has no sender contact to request approval from", gift.tracking_id)
            return []
        return [Notice(
            kind=NotificationKind.APPROVAL_REQUEST,
            phone=sender.phone_number,
            email=sender.email,
            data=request.data
        )]

    def review(
        self,
        submission_id: int,
        action: ReviewAction,
        reviewer_id: int,
        reason: Optional[str] = None
    ) -> ReviewResult:
        submission = self.store.get_photo_submission(submission_id)
        if not submission:
            raise NotFoundError("Photo submission not found")

        with self.store.locked(submission.gift_id) as gift:
            if gift.sender_id != reviewer_id:
                raise PermissionDeniedError("Only the gift sender can review submissions")
            submission = self.store.get_photo_submission(submission_id, for_update=True)

            if action == ReviewAction.APPROVE:
                result = self.lifecycle.approve(gift, submission)
                result.notices = self._approved_notices(gift, result)
            else:
                result = self.lifecycle.reject(gift, submission, reason)
                result.notices = [Notice(
                    kind=NotificationKind.REJECTED,
                    phone=gift.recipient_phone,
                    email=gift.recipient_email,
                    data=result.data
                )]
        return result

    def pending_for_sender(self, sender_id: int) -> List[PhotoSubmission]:
        return self.store.list_pending_approvals_for_sender(sender_id)

    def _approved_notices(self, gift: Gift, result: ReviewResult) -> List[Notice]:
        notices = []
        if gift.recipient_phone:
            notices.append(Notice(kind=NotificationKind.UNLOCKED, phone=gift.recipient_phone, data=result.data))
        if gift.recipient_email:
            notices.append(Notice(kind=NotificationKind.COMPLETION, email=gift.recipient_email, data=result.data))
        return notices

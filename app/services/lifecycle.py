"""Gift/challenge state machine.

A gift starts ``pending``, becomes ``notified`` once the recipient was told
about it, and moves through ``in_progress`` (step based challenges) or
``pending_approval`` (photo/video challenges waiting on the sender) until it
is ``completed``. ``expired`` and ``cancelled`` are administrative exits.

Every method that changes an existing gift expects the gift to be held
through ``GiftStore.locked`` so the whole transition commits at once.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..models.common import utcnow
from ..models.user import User
from ..models.gift import Gift, GiftCreate, GiftPublic, GiftStatus
from ..models.challenge import Challenge, ChallengeProgress, SubmissionRecord
from ..models.photo_submission import PhotoSubmission, PhotoSubmissionPublic, PhotoSubmissionStatus
from .errors import InvalidTransitionError, NotFoundError, SubmissionPendingError
from .messages import NotificationKind, tracking_url
from .notification import Notice, recipient_notice
from .store import GiftStore
from .validator import requires_approval

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    GiftStatus.PENDING: {
        GiftStatus.NOTIFIED, GiftStatus.IN_PROGRESS, GiftStatus.PENDING_APPROVAL,
        GiftStatus.COMPLETED, GiftStatus.EXPIRED, GiftStatus.CANCELLED,
    },
    GiftStatus.NOTIFIED: {
        GiftStatus.IN_PROGRESS, GiftStatus.PENDING_APPROVAL,
        GiftStatus.COMPLETED, GiftStatus.EXPIRED, GiftStatus.CANCELLED,
    },
    GiftStatus.IN_PROGRESS: {
        GiftStatus.IN_PROGRESS, GiftStatus.PENDING_APPROVAL,
        GiftStatus.COMPLETED, GiftStatus.EXPIRED, GiftStatus.CANCELLED,
    },
    GiftStatus.PENDING_APPROVAL: {
        GiftStatus.PENDING, GiftStatus.COMPLETED, GiftStatus.EXPIRED, GiftStatus.CANCELLED,
    },
    GiftStatus.COMPLETED: set(),
    GiftStatus.EXPIRED: set(),
    GiftStatus.CANCELLED: set(),
}

def notification_data(gift: Gift, challenge: Challenge, progress: Optional[ChallengeProgress] = None) -> dict:
    progress = progress or challenge.get_progress()
    return {
        "recipient_name": gift.recipient_name,
        "sender_name": gift.sender_name,
        "gift_type": gift.gift_type,
        "gift_value": gift.gift_value or gift.gift_description,
        "personal_note": gift.personal_note,
        "redemption_instructions": gift.redemption_instructions,
        "challenge_description": challenge.description,
        "current_step": progress.current_step,
        "total_steps": progress.total_steps,
        "remaining_steps": progress.remaining_steps,
        "tracking_url": tracking_url(gift.tracking_id),
    }

@dataclass
class StepResult:
    gift: GiftPublic
    progress: ChallengeProgress
    data: dict

    @property
    def completed(self) -> bool:
        return self.progress.completed

    @property
    def kind(self) -> NotificationKind:
        return NotificationKind.COMPLETION if self.completed else NotificationKind.PROGRESS

    def notices(self) -> List[Notice]:
        return [recipient_notice(self.gift, self.kind, self.data)]

@dataclass
class ApprovalRequest:
    gift: GiftPublic
    submission: PhotoSubmissionPublic
    data: dict

@dataclass
class ReviewResult:
    gift: GiftPublic
    submission: PhotoSubmissionPublic
    data: dict
    notices: List[Notice] = field(default_factory=list)


class GiftLifecycle:
    def __init__(self, store: GiftStore):
        self.store = store

    def create_gift(self, payload: GiftCreate, sender: Optional[User] = None) -> Tuple[Gift, Challenge]:
        requirements = dict(payload.challenge_requirements or {})
        total_steps = max(1, int(requirements.get("total_steps") or payload.duration or 1))
        requirements["total_steps"] = total_steps

        gift = Gift(
            sender_id=sender.user_id if sender else None,
            sender_name=sender.display_name if sender else "Someone special",
            recipient_name=payload.recipient_name,
            recipient_phone=payload.recipient_phone,
            recipient_email=payload.recipient_email,
            delivery_method=payload.delivery_method,
            gift_type=payload.gift_type,
            gift_value=payload.gift_value,
            gift_description=payload.gift_description,
            personal_note=payload.personal_note,
            redemption_instructions=payload.redemption_instructions,
            expires_at=payload.expires_at,
            status=GiftStatus.PENDING,
            unlocked=False
        )
        challenge = Challenge(
            challenge_type=payload.challenge_type.value,
            description=payload.challenge_description,
            requirements=requirements,
            reminder_frequency=payload.reminder_frequency,
            progress=ChallengeProgress(total_steps=total_steps).model_dump(mode="json")
        )
        self.store.create_gift(gift, challenge)
        logger.info("Created gift %s with %s challenge (%s steps)", gift.tracking_id, challenge.challenge_type, total_steps)
        return gift, challenge

    def mark_notified(self, gift: Gift) -> bool:
        if gift.status != GiftStatus.PENDING:
            return False
        self._transition(gift, GiftStatus.NOTIFIED)
        return True

    def record_step(self, gift: Gift, submission: SubmissionRecord) -> StepResult:
        challenge = self._challenge_for(gift)
        self._require_active(gift)
        if requires_approval(challenge.challenge_type):
            raise InvalidTransitionError("Photo and video challenges are completed through approval")

        progress = challenge.get_progress()
        if progress.completed:
            raise InvalidTransitionError("Challenge already completed")

        progress.started = True
        progress.current_step = min(progress.current_step + 1, progress.total_steps)
        progress.submissions.append(submission)
        if progress.current_step == progress.total_steps:
            progress.completed = True

        self.store.save_challenge_progress(challenge.challenge_id, progress)
        if progress.completed:
            self._check_transition(gift, GiftStatus.COMPLETED)
            self.store.unlock_gift(gift.gift_id)
            logger.info("Gift %s completed and unlocked", gift.tracking_id)
        else:
            self._transition(gift, GiftStatus.IN_PROGRESS)
            logger.info(
                "Gift %s progressed to step %s/%s",
                gift.tracking_id, progress.current_step, progress.total_steps
            )

        return StepResult(
            gift=GiftPublic.model_validate(gift),
            progress=progress,
            data=notification_data(gift, challenge, progress)
        )

    def note_submission(self, gift: Gift, submission: SubmissionRecord) -> ChallengeProgress:
        """Keep a submission on record without completing a step."""
        challenge = self._challenge_for(gift)
        self._require_active(gift)
        progress = challenge.get_progress()
        progress.started = True
        progress.submissions.append(submission)
        self.store.save_challenge_progress(challenge.challenge_id, progress)
        return progress

    def submit_for_approval(
        self,
        gift: Gift,
        media_url: str,
        media_content_type: Optional[str] = None,
        submitter_contact: Optional[str] = None,
        body: Optional[str] = None
    ) -> ApprovalRequest:
        challenge = self._challenge_for(gift)
        self._require_active(gift)
        if not requires_approval(challenge.challenge_type):
            raise InvalidTransitionError("Only photo and video challenges need approval")
        if self.store.get_pending_submission(gift.gift_id, for_update=True):
            raise SubmissionPendingError("A submission is already waiting for review")

        progress = challenge.get_progress()
        progress.started = True
        progress.submissions.append(SubmissionRecord(
            timestamp=utcnow(),
            type="media",
            data={"body": body, "media_url": media_url, "media_type": media_content_type}
        ))
        self.store.save_challenge_progress(challenge.challenge_id, progress)

        submission = self.store.create_photo_submission(
            challenge_id=challenge.challenge_id,
            gift_id=gift.gift_id,
            media_url=media_url,
            submitter_contact=submitter_contact,
            media_content_type=media_content_type
        )
        self._transition(gift, GiftStatus.PENDING_APPROVAL)
        logger.info("Gift %s waiting for approval of submission %s", gift.tracking_id, submission.submission_id)

        data = notification_data(gift, challenge, progress)
        data["media_url"] = media_url
        return ApprovalRequest(
            gift=GiftPublic.model_validate(gift),
            submission=PhotoSubmissionPublic.model_validate(submission),
            data=data
        )

    def approve(self, gift: Gift, submission: PhotoSubmission) -> ReviewResult:
        self._require_reviewable(gift, submission)
        self._check_transition(gift, GiftStatus.COMPLETED)
        self.store.update_photo_submission_status(submission.submission_id, PhotoSubmissionStatus.APPROVED)
        self.store.unlock_gift(gift.gift_id, evidence_url=submission.media_url)
        logger.info("Submission %s approved, gift %s unlocked", submission.submission_id, gift.tracking_id)
        return self._review_result(gift, submission)

    def reject(self, gift: Gift, submission: PhotoSubmission, reason: Optional[str] = None) -> ReviewResult:
        self._require_reviewable(gift, submission)
        self._check_transition(gift, GiftStatus.PENDING)
        self.store.update_photo_submission_status(
            submission.submission_id, PhotoSubmissionStatus.REJECTED, reason
        )
        self._transition(gift, GiftStatus.PENDING)
        logger.info("Submission %s rejected for gift %s", submission.submission_id, gift.tracking_id)
        result = self._review_result(gift, submission)
        result.data["reason"] = reason
        return result

    def cancel(self, gift: Gift) -> GiftPublic:
        return self._close(gift, GiftStatus.CANCELLED, "Gift cancelled")

    def expire(self, gift: Gift) -> GiftPublic:
        return self._close(gift, GiftStatus.EXPIRED, "Gift expired")

    def _close(self, gift: Gift, status: GiftStatus, reason: str) -> GiftPublic:
        self._check_transition(gift, status)
        pending = self.store.get_pending_submission(gift.gift_id, for_update=True)
        if pending:
            self.store.update_photo_submission_status(
                pending.submission_id, PhotoSubmissionStatus.REJECTED, reason
            )
        self._transition(gift, status)
        logger.info("Gift %s is now %s", gift.tracking_id, status.value)
        return GiftPublic.model_validate(gift)

    def _review_result(self, gift: Gift, submission: PhotoSubmission) -> ReviewResult:
        challenge = self._challenge_for(gift)
        return ReviewResult(
            gift=GiftPublic.model_validate(gift),
            submission=PhotoSubmissionPublic.model_validate(submission),
            data=notification_data(gift, challenge)
        )

    def _challenge_for(self, gift: Gift) -> Challenge:
        challenge = self.store.get_challenge_for_gift(gift.gift_id, for_update=True)
        if not challenge:
            raise NotFoundError("Challenge not found")
        return challenge

    def _require_active(self, gift: Gift):
        if not gift.is_active:
            raise InvalidTransitionError(f"Gift is {gift.status.value}")

    def _require_reviewable(self, gift: Gift, submission: PhotoSubmission):
        if submission.gift_id != gift.gift_id:
            raise InvalidTransitionError("Submission does not belong to this gift")
        if submission.status != PhotoSubmissionStatus.PENDING_APPROVAL:
            raise InvalidTransitionError(f"Submission is already {submission.status.value}")

    def _check_transition(self, gift: Gift, target: GiftStatus):
        if target not in ALLOWED_TRANSITIONS[GiftStatus(gift.status)]:
            raise InvalidTransitionError(
                f"Cannot move gift from {GiftStatus(gift.status).value} to {target.value}"
            )

    def _transition(self, gift: Gift, target: GiftStatus):
        self._check_transition(gift, target)
        self.store.set_gift_status(gift.gift_id, target)

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlmodel import Session, select, delete

from ..models.common import utcnow
from ..models.user import User
from ..models.gift import Gift, GiftStatus, TERMINAL_STATUSES
from ..models.challenge import Challenge, ChallengeProgress
from ..models.photo_submission import PhotoSubmission, PhotoSubmissionStatus
from .errors import NotFoundError

logger = logging.getLogger(__name__)

# Serialises read-modify-write cycles on a gift within this process; the
# row locks taken in GiftStore.locked cover other processes. Gifts share a
# fixed set of striped locks, so locked() must never be nested.
LOCK_STRIPES = 64
_gift_locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

def _lock_for(gift_id: int) -> threading.Lock:
    return _gift_locks[gift_id % LOCK_STRIPES]


class GiftStore:
    """Persistence for gifts, their challenge and photo submissions.

    Methods only flush. The caller owns the transaction, normally through
    ``locked`` which commits once per lifecycle transition.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def locked(self, gift_id: int) -> Iterator[Gift]:
        lock = _lock_for(gift_id)
        with lock:
            gift = self.session.exec(
                select(Gift)
                .where(Gift.gift_id == gift_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()
            if not gift:
                self.session.rollback()
                raise NotFoundError("Gift not found")
            try:
                yield gift
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise

    # Gifts

    def create_gift(self, gift: Gift, challenge: Challenge) -> Gift:
        self.session.add(gift)
        self.session.flush()  # Get the gift_id
        challenge.gift_id = gift.gift_id
        self.session.add(challenge)
        self.session.flush()
        return gift

    def get_gift(self, gift_id: int) -> Optional[Gift]:
        return self.session.get(Gift, gift_id)

    def get_gift_by_tracking_id(self, tracking_id: str) -> Optional[Gift]:
        return self.session.exec(
            select(Gift).where(Gift.tracking_id == tracking_id)
        ).first()

    def set_gift_status(self, gift_id: int, status: GiftStatus) -> Gift:
        gift = self._require_gift(gift_id)
        gift.status = status
        gift.updated_at = utcnow()
        if status == GiftStatus.COMPLETED and gift.completed_at is None:
            gift.completed_at = gift.updated_at
        self.session.add(gift)
        self.session.flush()
        return gift

    def unlock_gift(self, gift_id: int, evidence_url: Optional[str] = None) -> Gift:
        # Unlocking always lands together with the completed status
        gift = self.set_gift_status(gift_id, GiftStatus.COMPLETED)
        gift.unlocked = True
        gift.unlocked_at = utcnow()
        if evidence_url:
            gift.evidence_url = evidence_url
        self.session.add(gift)
        self.session.flush()
        return gift

    def delete_gift(self, gift_id: int):
        gift = self._require_gift(gift_id)
        self.session.exec(delete(PhotoSubmission).where(PhotoSubmission.gift_id == gift_id))
        self.session.exec(delete(Challenge).where(Challenge.gift_id == gift_id))
        self.session.delete(gift)
        self.session.flush()

    def find_active_gifts_by_recipient_contact(self, contact: str) -> List[Gift]:
        return self.session.exec(
            select(Gift)
            .where(
                ((Gift.recipient_phone == contact) | (Gift.recipient_email == contact)) &
                Gift.status.not_in(TERMINAL_STATUSES)
            )
            .order_by(Gift.created_at.desc(), Gift.gift_id.desc())
        ).all()

    def list_gifts_for_recipient(self, contact: str) -> List[Gift]:
        return self.session.exec(
            select(Gift)
            .where((Gift.recipient_phone == contact) | (Gift.recipient_email == contact))
            .order_by(Gift.created_at.desc(), Gift.gift_id.desc())
        ).all()

    def list_gifts_for_sender(self, sender_id: int) -> List[Gift]:
        return self.session.exec(
            select(Gift)
            .where(Gift.sender_id == sender_id)
            .order_by(Gift.created_at.desc(), Gift.gift_id.desc())
        ).all()

    def list_active_gifts(self) -> List[Gift]:
        return self.session.exec(
            select(Gift).where(Gift.status.not_in(TERMINAL_STATUSES))
        ).all()

    def get_sender(self, gift: Gift) -> Optional[User]:
        if gift.sender_id is None:
            return None
        return self.session.get(User, gift.sender_id)

    # Challenges

    def get_challenge(self, challenge_id: int) -> Optional[Challenge]:
        return self.session.get(Challenge, challenge_id)

    def get_challenge_for_gift(self, gift_id: int, for_update: bool = False) -> Optional[Challenge]:
        statement = select(Challenge).where(Challenge.gift_id == gift_id)
        if for_update:
            # A locking read sees the latest committed progress, not the
            # snapshot an earlier plain read in this transaction pinned
            statement = statement.with_for_update()
        return self.session.exec(statement.execution_options(populate_existing=True)).first()

    def save_challenge_progress(self, challenge_id: int, progress: ChallengeProgress) -> Challenge:
        challenge = self.get_challenge(challenge_id)
        if not challenge:
            raise NotFoundError("Challenge not found")
        challenge.set_progress(progress)
        self.session.add(challenge)
        self.session.flush()
        return challenge

    def mark_reminder_sent(self, challenge_id: int) -> Challenge:
        challenge = self.get_challenge(challenge_id)
        if not challenge:
            raise NotFoundError("Challenge not found")
        challenge.last_reminder_sent = utcnow()
        self.session.add(challenge)
        self.session.flush()
        return challenge

    # Photo submissions

    def create_photo_submission(
        self,
        challenge_id: int,
        gift_id: int,
        media_url: str,
        submitter_contact: Optional[str] = None,
        media_content_type: Optional[str] = None
    ) -> PhotoSubmission:
        submission = PhotoSubmission(
            challenge_id=challenge_id,
            gift_id=gift_id,
            media_url=media_url,
            media_content_type=media_content_type,
            submitter_contact=submitter_contact,
            status=PhotoSubmissionStatus.PENDING_APPROVAL
        )
        self.session.add(submission)
        self.session.flush()
        return submission

    def get_photo_submission(self, submission_id: int, for_update: bool = False) -> Optional[PhotoSubmission]:
        return self.session.get(
            PhotoSubmission, submission_id, populate_existing=True, with_for_update=True if for_update else None
        )

    def get_pending_submission(self, gift_id: int, for_update: bool = False) -> Optional[PhotoSubmission]:
        statement = select(PhotoSubmission).where(
            (PhotoSubmission.gift_id == gift_id) &
            (PhotoSubmission.status == PhotoSubmissionStatus.PENDING_APPROVAL)
        )
        if for_update:
            statement = statement.with_for_update()
        return self.session.exec(statement.execution_options(populate_existing=True)).first()

    def update_photo_submission_status(
        self,
        submission_id: int,
        status: PhotoSubmissionStatus,
        reason: Optional[str] = None
    ) -> PhotoSubmission:
        submission = self.get_photo_submission(submission_id)
        if not submission:
            raise NotFoundError("Photo submission not found")
        submission.status = status
        submission.rejection_reason = reason
        submission.reviewed_at = utcnow()
        self.session.add(submission)
        self.session.flush()
        return submission

    def list_pending_approvals_for_sender(self, sender_id: int) -> List[PhotoSubmission]:
        return self.session.exec(
            select(PhotoSubmission)
            .join(Gift, Gift.gift_id == PhotoSubmission.gift_id)
            .where(
                (Gift.sender_id == sender_id) &
                (PhotoSubmission.status == PhotoSubmissionStatus.PENDING_APPROVAL)
            )
            .order_by(PhotoSubmission.submitted_at.desc())
        ).all()

    def _require_gift(self, gift_id: int) -> Gift:
        gift = self.get_gift(gift_id)
        if not gift:
            raise NotFoundError("Gift not found")
        return gift

import pytest

from app.models.gift import GiftStatus
from app.models.photo_submission import PhotoSubmissionStatus, ReviewAction
from app.services.errors import InvalidTransitionError, NotFoundError, PermissionDeniedError
from app.services.messages import NotificationKind, render_text

from .conftest import RECIPIENT_PHONE, SENDER_PHONE

PHOTO_URL = "https://api.twilio.com/media/ME123"


@pytest.fixture
def submitted(make_gift, approvals):
    gift = make_gift(challenge_type="photo", email="alice@example.com", delivery_method="both")
    request, notices = approvals.submit(gift.gift_id, media_url=PHOTO_URL, submitter_contact=RECIPIENT_PHONE)
    return gift, request, notices


def test_submit_notifies_sender_and_recipient(submitted):
    _, request, notices = submitted

    assert [notice.kind for notice in notices] == [
        NotificationKind.APPROVAL_REQUEST, NotificationKind.PHOTO_RECEIVED
    ]
    assert notices[0].phone == SENDER_PHONE
    assert notices[0].email == "bob@example.com"
    assert notices[1].phone == RECIPIENT_PHONE
    assert "Alice just submitted a photo" in render_text(notices[0].kind, notices[0].data)
    assert request.gift.status == GiftStatus.PENDING_APPROVAL


def test_pending_for_sender(submitted, approvals, sender, other_user):
    _, request, _ = submitted
    assert [s.submission_id for s in approvals.pending_for_sender(sender.user_id)] == [
        request.submission.submission_id
    ]
    assert approvals.pending_for_sender(other_user.user_id) == []


def test_approve_unlocks_and_notifies(submitted, approvals, sender, store):
    gift, request, _ = submitted

    result = approvals.review(request.submission.submission_id, ReviewAction.APPROVE, sender.user_id)

    assert result.gift.unlocked is True
    assert result.submission.status == PhotoSubmissionStatus.APPROVED
    assert [(n.kind, n.phone, n.email) for n in result.notices] == [
        (NotificationKind.UNLOCKED, RECIPIENT_PHONE, None),
        (NotificationKind.COMPLETION, None, "alice@example.com"),
    ]
    assert store.get_gift(gift.gift_id).status == GiftStatus.COMPLETED
    assert approvals.pending_for_sender(sender.user_id) == []


def test_reject_reverts_gift_and_tells_recipient_why(submitted, approvals, sender, store):
    gift, request, _ = submitted

    result = approvals.review(request.submission.submission_id, ReviewAction.REJECT, sender.user_id, reason="blurry")

    assert result.submission.status == PhotoSubmissionStatus.REJECTED
    assert result.submission.rejection_reason == "blurry"
    gift = store.get_gift(gift.gift_id)
    assert gift.status == GiftStatus.PENDING
    assert gift.unlocked is False
    [notice] = result.notices
    assert notice.kind == NotificationKind.REJECTED
    assert notice.phone == RECIPIENT_PHONE
    assert notice.email == "alice@example.com"
    assert "Reason: blurry" in render_text(notice.kind, notice.data)


def test_only_the_sender_can_review(submitted, approvals, other_user, store):
    gift, request, _ = submitted

    with pytest.raises(PermissionDeniedError):
        approvals.review(request.submission.submission_id, ReviewAction.APPROVE, other_user.user_id)

    assert store.get_gift(gift.gift_id).status == GiftStatus.PENDING_APPROVAL
    assert store.get_photo_submission(request.submission.submission_id).status == PhotoSubmissionStatus.PENDING_APPROVAL


def test_submission_can_only_be_reviewed_once(submitted, approvals, sender):
    _, request, _ = submitted
    approvals.review(request.submission.submission_id, ReviewAction.APPROVE, sender.user_id)

    with pytest.raises(InvalidTransitionError):
        approvals.review(request.submission.submission_id, ReviewAction.REJECT, sender.user_id, reason="changed my mind")


def test_unknown_submission(approvals, sender):
    with pytest.raises(NotFoundError):
        approvals.review(999, ReviewAction.APPROVE, sender.user_id)


def test_sender_without_contact_gets_no_request(make_gift, approvals, session, sender):
    sender.phone_number = None
    sender.email = None
    session.add(sender)
    session.commit()
    gift = make_gift(challenge_type="photo")

    _, notices = approvals.submit(gift.gift_id, media_url=PHOTO_URL)

    assert [notice.kind for notice in notices] == [NotificationKind.PHOTO_RECEIVED]

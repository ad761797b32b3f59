from app.models.gift import GiftStatus
from app.services import messages
from app.services.inbound import InboundMessage
from app.services.messages import NotificationKind

from .conftest import RECIPIENT_PHONE, SENDER_PHONE

PHOTO_URL = "https://api.twilio.com/media/ME123"


def text_from(body, sender=RECIPIENT_PHONE):
    return InboundMessage(sender=sender, body=body)


def photo_from(sender=RECIPIENT_PHONE, url=PHOTO_URL):
    return InboundMessage(sender=sender, body="", media_count=1, media_url=url, media_content_type="image/jpeg")


def current_step(store, gift):
    return store.get_challenge_for_gift(gift.gift_id).get_progress().current_step


def test_unknown_sender_gets_no_active_challenge_reply(inbound):
    reply = inbound.handle(text_from("I did it today", sender="+15550000000"))
    assert reply.body == messages.NO_ACTIVE_CHALLENGE
    assert reply.notices == []


def test_text_reply_completes_single_step_challenge(inbound, make_gift, store):
    gift = make_gift(challenge_type="text", total_steps=1)

    reply = inbound.handle(text_from("I did it today"))

    assert "YOU DID IT" in reply.body
    assert reply.gift.gift_id == gift.gift_id
    gift = store.get_gift(gift.gift_id)
    assert gift.status == GiftStatus.COMPLETED
    assert gift.unlocked is True


def test_replay_after_completion_changes_nothing(inbound, make_gift, store):
    gift = make_gift(challenge_type="text", total_steps=1)
    inbound.handle(text_from("I did it today"))

    reply = inbound.handle(text_from("I did it today"))

    assert reply.body == messages.NO_ACTIVE_CHALLENGE
    assert current_step(store, gift) == 1


def test_sender_number_is_normalised(inbound, make_gift, store):
    gift = make_gift(challenge_type="text", total_steps=1)
    inbound.handle(text_from("I did it today", sender="(555) 123-4567"))
    assert store.get_gift(gift.gift_id).status == GiftStatus.COMPLETED


def test_keyword_challenge(inbound, make_gift, store):
    gift = make_gift(challenge_type="keyword", total_steps=1, requirements={"keyword": "pizza"})

    miss = inbound.handle(text_from("I love pasta night"))
    assert miss.body == messages.TRY_AGAIN
    assert current_step(store, gift) == 0

    hit = inbound.handle(text_from("I love PIZZA night"))
    assert "YOU DID IT" in hit.body
    assert store.get_gift(gift.gift_id).unlocked is True


def test_invalid_message_changes_nothing(inbound, make_gift, store):
    gift = make_gift(challenge_type="text", total_steps=2)
    reply = inbound.handle(text_from("done"))

    assert reply.body == messages.TRY_AGAIN
    assert store.get_gift(gift.gift_id).status == GiftStatus.PENDING
    assert current_step(store, gift) == 0


def test_multi_step_reply_reports_progress(inbound, make_gift, store):
    gift = make_gift(challenge_type="multi-day", total_steps=3)

    reply = inbound.handle(text_from("ran 5k"))

    assert "2 more steps to go" in reply.body
    assert reply.notices == []
    assert store.get_gift(gift.gift_id).status == GiftStatus.IN_PROGRESS


def test_three_step_text_challenge_over_three_replies(inbound, make_gift, store):
    gift = make_gift(challenge_type="text", total_steps=3)
    replies = []

    for body in ("Went for a long walk", "Cooked dinner for friends", "Finished my painting"):
        replies.append(inbound.handle(text_from(body)))
        progress = store.get_challenge_for_gift(gift.gift_id).get_progress()
        assert 0 <= progress.current_step <= progress.total_steps

    assert "2 more steps to go" in replies[0].body
    assert "1 more step to go" in replies[1].body
    assert "YOU DID IT" in replies[2].body
    assert current_step(store, gift) == 3
    assert store.get_gift(gift.gift_id).unlocked is True


def test_one_message_advances_only_the_newest_matching_gift(inbound, make_gift, store):
    older = make_gift(challenge_type="custom", total_steps=2)
    newer = make_gift(challenge_type="custom", total_steps=2)

    inbound.handle(text_from("done"))

    assert current_step(store, newer) == 1
    assert current_step(store, older) == 0


def test_message_falls_through_to_older_gift_that_accepts_it(inbound, make_gift, store):
    older = make_gift(challenge_type="text", total_steps=1)
    newer = make_gift(challenge_type="keyword", total_steps=1, requirements={"keyword": "pizza"})

    inbound.handle(text_from("I walked the dog today"))

    assert store.get_gift(older.gift_id).status == GiftStatus.COMPLETED
    assert current_step(store, newer) == 0


def test_completion_follows_up_by_email_only(inbound, make_gift):
    make_gift(challenge_type="text", total_steps=1, email="alice@example.com")

    reply = inbound.handle(text_from("I did it today"))

    [notice] = reply.notices
    assert notice.kind == NotificationKind.COMPLETION
    assert notice.email == "alice@example.com"
    assert notice.phone is None


def test_photo_goes_to_sender_for_approval(inbound, make_gift, store):
    gift = make_gift(challenge_type="photo")

    reply = inbound.handle(photo_from())

    assert "Photo received" in reply.body
    assert store.get_gift(gift.gift_id).status == GiftStatus.PENDING_APPROVAL
    assert current_step(store, gift) == 0
    [notice] = reply.notices
    assert notice.kind == NotificationKind.APPROVAL_REQUEST
    assert notice.phone == SENDER_PHONE
    assert notice.email == "bob@example.com"
    assert store.get_pending_submission(gift.gift_id).submitter_contact == RECIPIENT_PHONE


def test_photo_challenge_ignores_plain_text(inbound, make_gift, store):
    gift = make_gift(challenge_type="photo")
    reply = inbound.handle(text_from("I promise I went to the gym"))
    assert reply.body == messages.TRY_AGAIN
    assert store.get_pending_submission(gift.gift_id) is None


def test_second_photo_while_under_review(inbound, make_gift, store):
    gift = make_gift(challenge_type="photo")
    inbound.handle(photo_from())

    reply = inbound.handle(photo_from(url=PHOTO_URL + "-again"))

    assert reply.body == messages.SUBMISSION_UNDER_REVIEW
    assert store.get_pending_submission(gift.gift_id).media_url == PHOTO_URL


def test_help_command(inbound, make_gift):
    make_gift(challenge_type="text")
    assert inbound.handle(text_from(" help ")).body == messages.HELP


def test_status_command_lists_active_gifts(inbound, make_gift, store):
    gift = make_gift(challenge_type="multi-day", total_steps=4)
    inbound.handle(text_from("day one done"))

    reply = inbound.handle(text_from("STATUS"))

    assert "CHALLENGE STATUS" in reply.body
    assert "1/4 steps (25%)" in reply.body
    assert current_step(store, gift) == 1


def test_help_lists_the_start_command(inbound, make_gift):
    make_gift(challenge_type="text")
    assert "START" in inbound.handle(text_from("HELP")).body


def test_start_reply_does_not_count_as_a_submission(inbound, make_gift, store):
    custom = make_gift(challenge_type="custom", total_steps=1)
    multi_day = make_gift(challenge_type="multi-day", total_steps=3)

    reply = inbound.handle(text_from("Start"))

    assert "Tell us how your day went" in reply.body
    assert reply.gift.gift_id == multi_day.gift_id
    assert reply.notices == []
    for gift in (custom, multi_day):
        assert store.get_gift(gift.gift_id).status == GiftStatus.PENDING
        assert current_step(store, gift) == 0
        assert store.get_challenge_for_gift(gift.gift_id).get_progress().submissions == []

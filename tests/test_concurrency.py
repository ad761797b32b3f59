import threading
import time

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine

from app.main import app
from app.database import get_session
from app.models.common import utcnow
from app.models.user import User
from app.models.challenge import SubmissionRecord
from app.models.gift import GiftCreate, GiftStatus
from app.services.approval import ApprovalWorkflow
from app.services.inbound import InboundMessage, InboundRouter
from app.services.lifecycle import GiftLifecycle
from app.services.notification import NotificationGateway, get_gateway
from app.services.store import GiftStore, LOCK_STRIPES, _lock_for

from .conftest import FakeEmailProvider, FakeSmsProvider, RECIPIENT_PHONE, SENDER_PHONE

# Each thread needs its own connection and transaction, which the shared
# in-memory StaticPool engine cannot give, so these tests use a database file.


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'gifts.db'}", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def slow_progress_writes(monkeypatch):
    """Hold the gift a little longer between reading and saving progress."""
    original = GiftStore.save_challenge_progress

    def slow_save(self, challenge_id, progress):
        time.sleep(0.05)
        return original(self, challenge_id, progress)

    monkeypatch.setattr(GiftStore, "save_challenge_progress", slow_save)


def create_multi_day_gift(engine, total_steps=3):
    with Session(engine) as session:
        sender = User(username="bob_wilson", display_name="Bob Wilson", phone_number=SENDER_PHONE)
        session.add(sender)
        session.commit()
        session.refresh(sender)
        gift, challenge = GiftLifecycle(GiftStore(session)).create_gift(GiftCreate(
            recipient_name="Alice",
            recipient_phone=RECIPIENT_PHONE,
            gift_type="giftcard",
            challenge_type="multi-day",
            challenge_description="Run every day",
            challenge_requirements={"total_steps": total_steps}
        ), sender)
        session.commit()
        return gift.gift_id, challenge.challenge_id


def read_state(engine, gift_id):
    with Session(engine) as session:
        store = GiftStore(session)
        gift = store.get_gift(gift_id)
        return gift.status, store.get_challenge_for_gift(gift_id).get_progress()


def run_together(count, target):
    barrier = threading.Barrier(count)
    errors = []

    def worker():
        try:
            barrier.wait(timeout=5)
            target()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert errors == []


def test_simultaneous_replies_each_count_as_a_step(engine, slow_progress_writes):
    gift_id, _ = create_multi_day_gift(engine)
    replies = []

    def reply():
        with Session(engine) as session:
            store = GiftStore(session)
            lifecycle = GiftLifecycle(store)
            router = InboundRouter(store, lifecycle, ApprovalWorkflow(store, lifecycle))
            replies.append(router.handle(InboundMessage(sender=RECIPIENT_PHONE, body="day done")))

    run_together(2, reply)

    status, progress = read_state(engine, gift_id)
    assert progress.current_step == 2
    assert len(progress.submissions) == 2
    assert status == GiftStatus.IN_PROGRESS
    assert len(replies) == 2
    assert all("more step" in reply.body for reply in replies)


def test_simultaneous_progress_updates_complete_the_gift_once(engine, slow_progress_writes):
    gift_id, challenge_id = create_multi_day_gift(engine, total_steps=2)
    sms = FakeSmsProvider()

    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_gateway] = lambda: NotificationGateway(sms, FakeEmailProvider())
    client = TestClient(app)
    responses = []
    try:
        run_together(2, lambda: responses.append(client.put(f"/challenges/{challenge_id}/progress", json={})))
    finally:
        app.dependency_overrides.clear()

    assert sorted(r.status_code for r in responses) == [200, 200]
    status, progress = read_state(engine, gift_id)
    assert progress.current_step == 2
    assert progress.completed is True
    assert status == GiftStatus.COMPLETED
    assert sum("YOU DID IT" in body for _, body in sms.sent) == 1


def test_held_gift_sees_progress_committed_after_an_earlier_read(engine):
    gift_id, _ = create_multi_day_gift(engine)
    record = SubmissionRecord(timestamp=utcnow(), type="text", data={"body": "day done"})

    with Session(engine) as first, Session(engine) as second:
        store = GiftStore(first)
        assert store.get_challenge_for_gift(gift_id).get_progress().current_step == 0

        other = GiftStore(second)
        with other.locked(gift_id) as gift:
            GiftLifecycle(other).record_step(gift, record)

        with store.locked(gift_id) as gift:
            result = GiftLifecycle(store).record_step(gift, record)

    assert result.progress.current_step == 2
    assert read_state(engine, gift_id)[1].current_step == 2


def test_gift_locks_are_drawn_from_a_fixed_set():
    assert _lock_for(7) is _lock_for(7 + LOCK_STRIPES)
    assert _lock_for(7) is not _lock_for(8)
    assert len({id(_lock_for(gift_id)) for gift_id in range(10 * LOCK_STRIPES)}) == LOCK_STRIPES

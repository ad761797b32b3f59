import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine
from sqlmodel.pool import StaticPool

from app.main import app
from app.auth import create_token
from app.database import get_session
from app.models.user import User
from app.models.gift import GiftCreate
from app.services.approval import ApprovalWorkflow
from app.services.inbound import InboundRouter
from app.services.lifecycle import GiftLifecycle
from app.services.notification import DeliveryResult, NotificationGateway, get_gateway
from app.services.store import GiftStore

RECIPIENT_PHONE = "+15551234567"
SENDER_PHONE = "+15559876543"


class FakeSmsProvider:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send_text(self, to, body):
        self.sent.append((to, body))
        if self.fail:
            return DeliveryResult(success=False, error="sms provider down")
        return DeliveryResult(success=True, message_id=f"SM{len(self.sent)}")


class FakeEmailProvider:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send_email(self, to, kind, data):
        self.sent.append((to, kind, data))
        if self.fail:
            return DeliveryResult(success=False, error="email provider down")
        return DeliveryResult(success=True)


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def sms():
    return FakeSmsProvider()


@pytest.fixture
def email():
    return FakeEmailProvider()


@pytest.fixture
def gateway(sms, email):
    return NotificationGateway(sms, email)


@pytest.fixture
def store(session):
    return GiftStore(session)


@pytest.fixture
def lifecycle(store):
    return GiftLifecycle(store)


@pytest.fixture
def approvals(store, lifecycle):
    return ApprovalWorkflow(store, lifecycle)


@pytest.fixture
def inbound(store, lifecycle, approvals):
    return InboundRouter(store, lifecycle, approvals)


@pytest.fixture
def sender(session):
    user = User(
        username="bob_wilson",
        display_name="Bob Wilson",
        email="bob@example.com",
        phone_number=SENDER_PHONE
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def other_user(session):
    user = User(username="jane_smith", display_name="Jane Smith", email="jane@example.com")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def auth_headers_for(user: User) -> dict:
    token = create_token({"sub": str(user.user_id), "type": "access"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(sender):
    return auth_headers_for(sender)


@pytest.fixture
def make_gift(session, lifecycle, sender):
    def _make_gift(challenge_type="text", total_steps=1, phone=RECIPIENT_PHONE, email=None,
                   delivery_method=None, requirements=None, **fields):
        payload = GiftCreate(
            recipient_name="Alice",
            recipient_phone=phone,
            recipient_email=email,
            delivery_method=delivery_method,
            gift_type="giftcard",
            gift_value="$25",
            challenge_type=challenge_type,
            challenge_description="Tell us how your day went",
            challenge_requirements={**(requirements or {}), "total_steps": total_steps},
            **fields
        )
        gift, _ = lifecycle.create_gift(payload, sender)
        session.commit()
        return gift
    return _make_gift


@pytest.fixture
def client(session, gateway):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()

import logging
from datetime import datetime
from typing import Optional

from sqlmodel import Session, select

from ..models.common import as_utc, utcnow
from ..models.gift import Gift, GiftStatus, TERMINAL_STATUSES
from ..models.challenge import Challenge, ReminderFrequency
from ..services.lifecycle import GiftLifecycle, notification_data
from ..services.messages import NotificationKind
from ..services.notification import DispatchResult, NotificationGateway
from ..services.store import GiftStore

logger = logging.getLogger(__name__)

def remind(
    store: GiftStore,
    gateway: NotificationGateway,
    gift: Gift,
    challenge: Challenge,
    custom_message: Optional[str] = None
) -> DispatchResult:
    data = notification_data(gift, challenge)
    if custom_message:
        data["custom_message"] = custom_message
    result = gateway.send(gift, NotificationKind.REMINDER, data)
    if result.success:
        with store.locked(gift.gift_id):
            store.mark_reminder_sent(challenge.challenge_id)
    return result

def send_due_reminders(session: Session, gateway: NotificationGateway, now: Optional[datetime] = None) -> int:
    """Remind recipients whose challenge has been quiet longer than its reminder frequency"""
    store = GiftStore(session)
    now = as_utc(now) or utcnow()
    sent = 0

    for gift in store.list_active_gifts():
        # Waiting on the sender's review, nothing for the recipient to do
        if gift.status == GiftStatus.PENDING_APPROVAL:
            continue
        challenge = store.get_challenge_for_gift(gift.gift_id)
        if not challenge:
            continue
        interval = ReminderFrequency(challenge.reminder_frequency).interval
        if interval is None:
            continue
        last_contact = as_utc(challenge.last_reminder_sent or gift.created_at)
        if now - last_contact < interval:
            continue

        if remind(store, gateway, gift, challenge).success:
            sent += 1

    logger.info("Sent %s challenge reminders", sent)
    return sent

def expire_overdue_gifts(session: Session, now: Optional[datetime] = None) -> int:
    """Move active gifts past their expiration date to expired"""
    store = GiftStore(session)
    lifecycle = GiftLifecycle(store)
    now = as_utc(now) or utcnow()

    overdue_ids = session.exec(
        select(Gift.gift_id)
        .where(
            Gift.status.not_in(TERMINAL_STATUSES) &
            (Gift.expires_at.is_not(None)) &
            (Gift.expires_at <= now)
        )
    ).all()

    expired = 0
    for gift_id in overdue_ids:
        with store.locked(gift_id) as gift:
            if gift.is_active:
                lifecycle.expire(gift)
                expired += 1

    logger.info("Expired %s overdue gifts", expired)
    return expired

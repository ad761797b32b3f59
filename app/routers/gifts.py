from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from ..auth import get_current_user_id, get_current_sender
from ..dependencies import get_store, get_lifecycle
from ..models.common import utcnow
from ..models.user import User
from ..models.gift import Gift, GiftCreate, GiftPublic, GiftStatus, normalize_phone
from ..models.challenge import ChallengePublic
from ..services.lifecycle import GiftLifecycle, notification_data
from ..services.messages import NotificationKind
from ..services.notification import DispatchResult, NotificationGateway, get_gateway
from ..services.store import GiftStore
from ..tasks.gift_reminders import remind

router = APIRouter(tags=["Gifts"])

class GiftDetail(BaseModel):
    gift: GiftPublic
    challenge: ChallengePublic
    percent_complete: float

class GiftCreateResponse(GiftDetail):
    message_sent: bool
    delivery: DispatchResult

class InitialMessageResponse(BaseModel):
    success: bool
    delivery: DispatchResult
    sent_at: datetime

class ReminderRequest(BaseModel):
    challenge_id: int
    custom_message: Optional[str] = None

class ReminderResponse(BaseModel):
    success: bool
    delivery: DispatchResult
    sent_at: datetime

class RecipientInfo(BaseModel):
    phone: str
    name: Optional[str]

class RecipientStats(BaseModel):
    total_active: int
    total_completed: int

class RecipientGiftsResponse(BaseModel):
    recipient: RecipientInfo
    active_gifts: List[GiftPublic]
    completed_gifts: List[GiftPublic]
    stats: RecipientStats


def get_gift_or_404(store: GiftStore, tracking_id: str) -> Gift:
    gift = store.get_gift_by_tracking_id(tracking_id)
    if not gift:
        raise HTTPException(status_code=404, detail="Gift not found")
    return gift

def get_own_gift(store: GiftStore, tracking_id: str, current_user_id: int) -> Gift:
    gift = get_gift_or_404(store, tracking_id)
    if gift.sender_id != current_user_id:
        raise HTTPException(status_code=403, detail="Only the gift sender can manage this gift")
    return gift

def gift_detail(store: GiftStore, gift: Gift) -> dict:
    challenge = store.get_challenge_for_gift(gift.gift_id)
    if not challenge:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return {
        "gift": gift,
        "challenge": ChallengePublic.model_validate(challenge),
        "percent_complete": challenge.get_progress().percent_complete
    }

def send_initial(store: GiftStore, lifecycle: GiftLifecycle, gateway: NotificationGateway, gift: Gift) -> DispatchResult:
    challenge = store.get_challenge_for_gift(gift.gift_id)
    result = gateway.send(gift, NotificationKind.INITIAL, notification_data(gift, challenge))
    if result.success:
        with store.locked(gift.gift_id) as locked_gift:
            lifecycle.mark_notified(locked_gift)
    return result


@router.post("/gifts", response_model=GiftCreateResponse, status_code=201)
def create_gift(
    payload: GiftCreate,
    store: GiftStore = Depends(get_store),
    lifecycle: GiftLifecycle = Depends(get_lifecycle),
    gateway: NotificationGateway = Depends(get_gateway),
    sender: User = Depends(get_current_sender)
):
    gift, _ = lifecycle.create_gift(payload, sender)
    store.session.commit()

    # Creation stands even if every channel fails, the sender can resend later
    delivery = send_initial(store, lifecycle, gateway, gift)
    store.session.refresh(gift)
    return {
        **gift_detail(store, gift),
        "message_sent": delivery.success,
        "delivery": delivery
    }

@router.get("/gifts", response_model=List[GiftPublic])
def list_my_gifts(
    store: GiftStore = Depends(get_store),
    current_user_id: int = Depends(get_current_user_id)
):
    return store.list_gifts_for_sender(current_user_id)

@router.get("/gifts/{tracking_id}", response_model=GiftDetail)
def get_gift(tracking_id: str, store: GiftStore = Depends(get_store)):
    return gift_detail(store, get_gift_or_404(store, tracking_id))

@router.post("/gifts/{tracking_id}/send-initial", response_model=InitialMessageResponse)
def resend_initial_message(
    tracking_id: str,
    store: GiftStore = Depends(get_store),
    lifecycle: GiftLifecycle = Depends(get_lifecycle),
    gateway: NotificationGateway = Depends(get_gateway)
):
    gift = get_gift_or_404(store, tracking_id)
    if not gift.is_active:
        raise HTTPException(status_code=400, detail=f"Gift is {gift.status.value}")
    delivery = send_initial(store, lifecycle, gateway, gift)
    return {"success": delivery.success, "delivery": delivery, "sent_at": utcnow()}

@router.post("/gifts/{tracking_id}/cancel", response_model=GiftPublic)
def cancel_gift(
    tracking_id: str,
    store: GiftStore = Depends(get_store),
    lifecycle: GiftLifecycle = Depends(get_lifecycle),
    current_user_id: int = Depends(get_current_user_id)
):
    gift = get_own_gift(store, tracking_id, current_user_id)
    with store.locked(gift.gift_id) as locked_gift:
        return lifecycle.cancel(locked_gift)

@router.delete("/gifts/{tracking_id}", status_code=204)
def delete_gift(
    tracking_id: str,
    store: GiftStore = Depends(get_store),
    current_user_id: int = Depends(get_current_user_id)
):
    gift = get_own_gift(store, tracking_id, current_user_id)
    store.delete_gift(gift.gift_id)
    store.session.commit()

@router.post("/messages/send-reminder", response_model=ReminderResponse)
def send_reminder(
    request: ReminderRequest,
    store: GiftStore = Depends(get_store),
    gateway: NotificationGateway = Depends(get_gateway)
):
    challenge = store.get_challenge(request.challenge_id)
    if not challenge:
        raise HTTPException(status_code=404, detail="Challenge not found")
    gift = store.get_gift(challenge.gift_id)
    if not gift:
        raise HTTPException(status_code=404, detail="Gift not found")
    if not gift.is_active:
        raise HTTPException(status_code=400, detail=f"Gift is {gift.status.value}")

    delivery = remind(store, gateway, gift, challenge, request.custom_message)
    return {"success": delivery.success, "delivery": delivery, "sent_at": utcnow()}

@router.get("/recipients/{phone}/gifts", response_model=RecipientGiftsResponse)
def get_recipient_gifts(phone: str, store: GiftStore = Depends(get_store)):
    try:
        phone = normalize_phone(phone)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    gifts = store.list_gifts_for_recipient(phone)
    if not gifts:
        raise HTTPException(status_code=404, detail="Recipient not found")

    active_gifts = [gift for gift in gifts if gift.is_active]
    completed_gifts = [gift for gift in gifts if gift.status == GiftStatus.COMPLETED]
    return {
        "recipient": {"phone": phone, "name": gifts[0].recipient_name},
        "active_gifts": active_gifts,
        "completed_gifts": completed_gifts,
        "stats": {
            "total_active": len(active_gifts),
            "total_completed": len(completed_gifts)
        }
    }

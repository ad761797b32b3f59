from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..dependencies import get_store, get_lifecycle, get_approvals
from ..models.common import utcnow
from ..models.gift import GiftStatus
from ..models.challenge import Challenge, ChallengeProgress, SubmissionRecord
from ..services.approval import ApprovalWorkflow
from ..services.lifecycle import GiftLifecycle
from ..services.notification import NotificationGateway, get_gateway
from ..services.store import GiftStore
from ..services.validator import requires_approval

router = APIRouter(
    prefix="/challenges",
    tags=["Challenges"]
)

class ProgressResponse(BaseModel):
    challenge_id: int
    gift_id: int
    tracking_id: str
    challenge_type: str
    description: str
    progress: ChallengeProgress
    gift_status: GiftStatus
    unlocked: bool
    percent_complete: float

class SubmissionIn(BaseModel):
    type: str = "text"
    data: dict = {}

class ProgressUpdate(BaseModel):
    step_completed: bool = True
    submission: Optional[SubmissionIn] = None
    metadata: dict = {}
    media_url: Optional[str] = None
    media_content_type: Optional[str] = None


def get_challenge_or_404(store: GiftStore, challenge_id: int) -> Challenge:
    challenge = store.get_challenge(challenge_id)
    if not challenge:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return challenge

def progress_response(store: GiftStore, challenge_id: int) -> dict:
    challenge = get_challenge_or_404(store, challenge_id)
    gift = store.get_gift(challenge.gift_id)
    progress = challenge.get_progress()
    return {
        "challenge_id": challenge.challenge_id,
        "gift_id": gift.gift_id,
        "tracking_id": gift.tracking_id,
        "challenge_type": challenge.challenge_type,
        "description": challenge.description,
        "progress": progress,
        "gift_status": gift.status,
        "unlocked": gift.unlocked,
        "percent_complete": progress.percent_complete
    }


@router.get("/{challenge_id}/progress", response_model=ProgressResponse)
def get_progress(challenge_id: int, store: GiftStore = Depends(get_store)):
    return progress_response(store, challenge_id)

@router.put("/{challenge_id}/progress", response_model=ProgressResponse)
def update_progress(
    challenge_id: int,
    update: ProgressUpdate,
    background_tasks: BackgroundTasks,
    store: GiftStore = Depends(get_store),
    lifecycle: GiftLifecycle = Depends(get_lifecycle),
    approvals: ApprovalWorkflow = Depends(get_approvals),
    gateway: NotificationGateway = Depends(get_gateway)
):
    challenge = get_challenge_or_404(store, challenge_id)
    gift_id = challenge.gift_id

    if requires_approval(challenge.challenge_type):
        media_url = update.media_url or (update.submission.data.get("media_url") if update.submission else None)
        if not media_url:
            raise HTTPException(status_code=400, detail="A photo or video is required for this challenge")
        _, notices = approvals.submit(
            gift_id,
            media_url=media_url,
            media_content_type=update.media_content_type,
            body=(update.submission.data.get("body") if update.submission else None)
        )
        background_tasks.add_task(gateway.deliver_all, notices)
        return progress_response(store, challenge_id)

    record = SubmissionRecord(
        timestamp=utcnow(),
        type=update.submission.type if update.submission else "confirmation",
        data=update.submission.data if update.submission else {},
        metadata=update.metadata
    )
    with store.locked(gift_id) as gift:
        if update.step_completed:
            result = lifecycle.record_step(gift, record)
            background_tasks.add_task(gateway.deliver_all, result.notices())
        else:
            lifecycle.note_submission(gift, record)

    return progress_response(store, challenge_id)

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from typing import List, Optional

from ..auth import get_current_user_id
from ..dependencies import get_store, get_approvals
from ..models.gift import GiftPublic
from ..models.photo_submission import PhotoSubmissionPublic, PhotoSubmissionReview
from ..services.approval import ApprovalWorkflow
from ..services.notification import NotificationGateway, get_gateway
from ..services.store import GiftStore

router = APIRouter(
    prefix="/approvals",
    tags=["Approvals"]
)

class PendingApprovalResponse(PhotoSubmissionPublic):
    tracking_id: str
    recipient_name: Optional[str]
    gift_type: str
    challenge_description: str

class ReviewResponse(BaseModel):
    submission: PhotoSubmissionPublic
    gift: GiftPublic


@router.get("/pending", response_model=List[PendingApprovalResponse])
def get_pending_approvals(
    store: GiftStore = Depends(get_store),
    approvals: ApprovalWorkflow = Depends(get_approvals),
    current_user_id: int = Depends(get_current_user_id)
):
    pending = []
    for submission in approvals.pending_for_sender(current_user_id):
        gift = store.get_gift(submission.gift_id)
        challenge = store.get_challenge(submission.challenge_id)
        pending.append({
            **submission.model_dump(),
            "tracking_id": gift.tracking_id,
            "recipient_name": gift.recipient_name,
            "gift_type": gift.gift_type,
            "challenge_description": challenge.description
        })
    return pending

@router.post("/{submission_id}/review", response_model=ReviewResponse)
def review_submission(
    submission_id: int,
    review: PhotoSubmissionReview,
    background_tasks: BackgroundTasks,
    approvals: ApprovalWorkflow = Depends(get_approvals),
    gateway: NotificationGateway = Depends(get_gateway),
    current_user_id: int = Depends(get_current_user_id)
):
    result = approvals.review(
        submission_id,
        action=review.action,
        reviewer_id=current_user_id,
        reason=review.reason
    )
    background_tasks.add_task(gateway.deliver_all, result.notices)
    return {"submission": result.submission, "gift": result.gift}

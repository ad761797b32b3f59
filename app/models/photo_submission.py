from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from .common import utcnow

class PhotoSubmissionStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"

class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

class PhotoSubmissionBase(SQLModel):
    challenge_id: int = Field(foreign_key="challenge.challenge_id", index=True, ondelete="CASCADE")
    gift_id: int = Field(foreign_key="gift.gift_id", index=True, ondelete="CASCADE")
    media_url: str = Field(max_length=500)
    media_content_type: Optional[str] = Field(default=None, max_length=100)
    submitter_contact: Optional[str] = Field(default=None, max_length=255)
    status: PhotoSubmissionStatus = Field(default=PhotoSubmissionStatus.PENDING_APPROVAL, index=True)
    rejection_reason: Optional[str] = Field(default=None, max_length=500)
    submitted_at: datetime = Field(default_factory=utcnow)
    reviewed_at: Optional[datetime] = None

class PhotoSubmission(PhotoSubmissionBase, table=True):
    submission_id: Optional[int] = Field(default=None, primary_key=True)

class PhotoSubmissionPublic(PhotoSubmissionBase):
    submission_id: int

class PhotoSubmissionReview(SQLModel):
    action: ReviewAction
    reason: Optional[str] = None

from sqlmodel import SQLModel, Field, Column, JSON
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime, timedelta
from enum import Enum

from .common import utcnow

class ChallengeType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    TEXT = "text"
    KEYWORD = "keyword"
    MULTI_DAY = "multi-day"
    CUSTOM = "custom"

# Challenge types that are unlocked by the sender reviewing the media
APPROVAL_TYPES = (ChallengeType.PHOTO, ChallengeType.VIDEO)

class ReminderFrequency(str, Enum):
    NONE = "none"
    DAILY = "daily"
    EVERY_OTHER_DAY = "every_other_day"
    WEEKLY = "weekly"

    @property
    def interval(self) -> Optional[timedelta]:
        return {
            ReminderFrequency.DAILY: timedelta(days=1),
            ReminderFrequency.EVERY_OTHER_DAY: timedelta(days=2),
            ReminderFrequency.WEEKLY: timedelta(weeks=1),
        }.get(self)

class SubmissionRecord(BaseModel):
    timestamp: datetime
    type: str
    data: dict = {}
    metadata: dict = {}

class ChallengeProgress(BaseModel):
    started: bool = False
    completed: bool = False
    current_step: int = 0
    total_steps: int = 1
    submissions: List[SubmissionRecord] = []

    @property
    def percent_complete(self) -> float:
        return round(self.current_step / self.total_steps * 100, 2)

    @property
    def remaining_steps(self) -> int:
        return self.total_steps - self.current_step

class ChallengeBase(SQLModel):
    challenge_type: str = Field(max_length=50)
    description: str = Field(max_length=1000)
    reminder_frequency: ReminderFrequency = Field(default=ReminderFrequency.DAILY)

class Challenge(ChallengeBase, table=True):
    challenge_id: Optional[int] = Field(default=None, primary_key=True)
    gift_id: int = Field(foreign_key="gift.gift_id", unique=True, index=True, ondelete="CASCADE")
    requirements: dict = Field(default_factory=dict, sa_column=Column(JSON))
    progress: dict = Field(default_factory=dict, sa_column=Column(JSON))
    last_reminder_sent: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    def get_progress(self) -> ChallengeProgress:
        return ChallengeProgress.model_validate(self.progress or {})

    def set_progress(self, progress: ChallengeProgress):
        # JSON columns are not mutation-tracked, always assign a fresh value
        self.progress = progress.model_dump(mode="json")

class ChallengePublic(ChallengeBase):
    challenge_id: int
    gift_id: int
    requirements: dict
    progress: ChallengeProgress

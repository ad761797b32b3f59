from sqlmodel import SQLModel, Field
from pydantic import field_validator, model_validator
from typing import Optional
from datetime import datetime
from enum import Enum
import re
import uuid

from .common import as_utc, utcnow
from .challenge import ChallengeType, ReminderFrequency

def normalize_phone(phone: str) -> str:
    """Return the number in E.164 form, assuming US numbers when no country code is given."""
    cleaned = re.sub(r"\D", "", phone)
    if phone.strip().startswith("+") and 8 <= len(cleaned) <= 15:
        return f"+{cleaned}"
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    if len(cleaned) == 11 and cleaned.startswith("1"):
        return f"+{cleaned}"
    raise ValueError("Invalid phone number format. Please use format: +1234567890")

class GiftStatus(str, Enum):
    PENDING = "pending"
    NOTIFIED = "notified"
    IN_PROGRESS = "in_progress"
    PENDING_APPROVAL = "pending_approval"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

TERMINAL_STATUSES = (GiftStatus.COMPLETED, GiftStatus.EXPIRED, GiftStatus.CANCELLED)

class DeliveryMethod(str, Enum):
    SMS = "sms"
    EMAIL = "email"
    BOTH = "both"

    @property
    def allows_sms(self) -> bool:
        return self in (DeliveryMethod.SMS, DeliveryMethod.BOTH)

    @property
    def allows_email(self) -> bool:
        return self in (DeliveryMethod.EMAIL, DeliveryMethod.BOTH)

class GiftBase(SQLModel):
    sender_id: Optional[int] = Field(default=None, foreign_key="user.user_id", index=True)
    sender_name: str = Field(default="Someone special", max_length=255)
    recipient_name: Optional[str] = Field(default=None, max_length=255)
    recipient_phone: Optional[str] = Field(default=None, index=True, max_length=20)
    recipient_email: Optional[str] = Field(default=None, max_length=255)
    delivery_method: DeliveryMethod = Field(default=DeliveryMethod.SMS)
    gift_type: str = Field(max_length=50)
    gift_value: Optional[str] = Field(default=None, max_length=255)
    gift_description: Optional[str] = Field(default=None, max_length=1000)
    personal_note: Optional[str] = Field(default=None, max_length=1000)
    redemption_instructions: Optional[str] = Field(default=None, max_length=1000)
    expires_at: Optional[datetime] = None

class Gift(GiftBase, table=True):
    gift_id: Optional[int] = Field(default=None, primary_key=True)
    tracking_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), unique=True, index=True, max_length=36
    )
    status: GiftStatus = Field(default=GiftStatus.PENDING, index=True)
    unlocked: bool = Field(default=False)
    unlocked_at: Optional[datetime] = None
    evidence_url: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status not in TERMINAL_STATUSES

class GiftPublic(GiftBase):
    gift_id: int
    tracking_id: str
    status: GiftStatus
    unlocked: bool
    unlocked_at: Optional[datetime] = None
    evidence_url: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

class GiftCreate(SQLModel):
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    recipient_email: Optional[str] = None
    delivery_method: Optional[DeliveryMethod] = None
    gift_type: str
    gift_value: Optional[str] = None
    gift_description: Optional[str] = None
    personal_note: Optional[str] = None
    redemption_instructions: Optional[str] = None
    challenge_type: ChallengeType = ChallengeType.CUSTOM
    challenge_description: str
    challenge_requirements: dict = {}
    duration: Optional[int] = Field(default=None, ge=1)  # number of steps, e.g. days for a multi-day challenge
    reminder_frequency: ReminderFrequency = ReminderFrequency.DAILY
    expires_at: Optional[datetime] = None

    @field_validator("recipient_phone")
    @classmethod
    def check_phone(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        return normalize_phone(value)

    @field_validator("challenge_requirements")
    @classmethod
    def check_requirements(cls, value: dict) -> dict:
        total_steps = value.get("total_steps")
        if total_steps is None:
            return value
        if isinstance(total_steps, str) and total_steps.strip().isdigit():
            total_steps = int(total_steps)
        if isinstance(total_steps, bool) or not isinstance(total_steps, int) or total_steps < 1:
            raise ValueError("total_steps must be a positive whole number")
        return {**value, "total_steps": total_steps}

    @field_validator("expires_at")
    @classmethod
    def check_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @model_validator(mode="after")
    def check_contact(self):
        if not self.recipient_phone and not self.recipient_email:
            raise ValueError("Missing required fields (need at least phone or email)")
        if self.delivery_method is None:
            if self.recipient_email and not self.recipient_phone:
                self.delivery_method = DeliveryMethod.EMAIL
            else:
                self.delivery_method = DeliveryMethod.SMS
        return self

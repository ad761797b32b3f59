from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from .common import utcnow

class UserBase(SQLModel):
    username: str = Field(index=True, unique=True, max_length=50)
    display_name: str = Field(max_length=100)
    email: Optional[str] = Field(default=None, index=True, unique=True, max_length=255)
    phone_number: Optional[str] = Field(default=None, index=True, max_length=20)
    created_at: datetime = Field(default_factory=utcnow)

class User(UserBase, table=True):
    user_id: Optional[int] = Field(default=None, primary_key=True)

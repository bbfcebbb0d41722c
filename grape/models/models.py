from datetime import UTC, datetime
from enum import StrEnum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, EmailStr, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


class NotificationType(StrEnum):
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    MENTION = "mention"


class SearchType(StrEnum):
    USER = "user"
    HASHTAG = "hashtag"


class ReportReason(StrEnum):
    SPAM = "spam"
    INAPPROPRIATE = "inappropriate"
    HARASSMENT = "harassment"
    VIOLENCE = "violence"
    OTHER = "other"


# Database record, also the resolved caller identity
class User(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    username: str
    email: EmailStr
    password_hash: Optional[str] = None
    bio: Optional[str] = None
    profile_pic_url: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

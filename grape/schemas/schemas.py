import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from grape.config_secrets import (
    MAX_BIO_LENGTH,
    MAX_CAPTION_LENGTH,
    MAX_COMMENT_LENGTH,
    MAX_VIDEO_DURATION_SECONDS,
)
from grape.models.models import NotificationType, ReportReason, SearchType

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def _validate_username(v: str) -> str:
    v = v.strip()
    if not 3 <= len(v) <= 30:
        raise ValueError("Username must be 3-30 characters")
    if not USERNAME_PATTERN.match(v):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    return v.lower()


# Auth Schemas
class SignupRequest(BaseModel):
    username: str
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _validate_username(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
            raise ValueError("Password must contain uppercase, lowercase, and number")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserResponse(BaseModel):
    id: UUID
    username: str
    email: EmailStr
    bio: Optional[str] = None
    profile_pic_url: Optional[str] = None
    created_at: datetime


class MeResponse(UserResponse):
    follower_count: int
    following_count: int
    post_count: int


class AuthResponse(BaseModel):
    user: UserResponse
    token: str
    token_type: str = "bearer"


# User Schemas
class UserUpdateRequest(BaseModel):
    """Partial profile update. Only fields present in the request body are written."""

    username: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _validate_username(v)

    @field_validator("bio")
    @classmethod
    def validate_bio(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > MAX_BIO_LENGTH:
            raise ValueError(f"Bio must be {MAX_BIO_LENGTH} characters or less")
        return v


class ProfileResponse(BaseModel):
    id: UUID
    username: str
    bio: Optional[str] = None
    profile_pic_url: Optional[str] = None
    created_at: datetime
    follower_count: int
    following_count: int
    post_count: int
    is_following: bool = False


class UserSummary(BaseModel):
    id: UUID
    username: str
    profile_pic_url: Optional[str] = None


class UserListItem(UserSummary):
    bio: Optional[str] = None
    is_following: bool = False


class UserSearchResult(UserListItem):
    follower_count: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    has_more: bool


class UserListResponse(BaseModel):
    users: list[UserListItem]
    pagination: Pagination


class UserSearchResponse(BaseModel):
    users: list[UserSearchResult]
    pagination: Pagination


# Post Schemas
class ConfirmUploadRequest(BaseModel):
    key: str = Field(min_length=1)
    caption: Optional[str] = None
    duration: float

    @field_validator("caption")
    @classmethod
    def validate_caption(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > MAX_CAPTION_LENGTH:
            raise ValueError(f"Caption must be {MAX_CAPTION_LENGTH} characters or less")
        return v

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: float) -> float:
        if not 0 < v <= MAX_VIDEO_DURATION_SECONDS:
            raise ValueError(f"Video must be {MAX_VIDEO_DURATION_SECONDS:g} seconds or less")
        return v


class UploadUrlResponse(BaseModel):
    upload_url: str
    key: str


class PostResponse(BaseModel):
    id: UUID
    video_url: str
    caption: Optional[str] = None
    duration: float
    view_count: int = 0
    created_at: datetime
    user: UserSummary
    like_count: int = 0
    comment_count: int = 0
    is_liked: bool = False


class PostListResponse(BaseModel):
    posts: list[PostResponse]
    pagination: Pagination


class HashtagPostsResponse(PostListResponse):
    tag: str


class LikeCountResponse(BaseModel):
    like_count: int


class ReportCreate(BaseModel):
    reason: ReportReason
    description: Optional[str] = Field(default=None, max_length=500)


# Comment Schemas
class CommentCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        v = v.strip()
        if not 1 <= len(v) <= MAX_COMMENT_LENGTH:
            raise ValueError(f"Comment must be 1-{MAX_COMMENT_LENGTH} characters")
        return v


class CommentResponse(BaseModel):
    id: UUID
    post_id: UUID
    text: str
    created_at: datetime
    user: UserSummary


class CommentListResponse(BaseModel):
    comments: list[CommentResponse]
    pagination: Pagination


# Notification Schemas
class NotificationPost(BaseModel):
    id: UUID
    video_url: Optional[str] = None


class NotificationComment(BaseModel):
    id: UUID
    text: str


class NotificationResponse(BaseModel):
    id: UUID
    type: NotificationType
    read: bool
    created_at: datetime
    actor: UserSummary
    post: Optional[NotificationPost] = None
    comment: Optional[NotificationComment] = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int
    pagination: Pagination


class UnreadCountResponse(BaseModel):
    unread_count: int


# Search Schemas
class HashtagResult(BaseModel):
    tag: str
    post_count: int


class HashtagSearchResponse(BaseModel):
    hashtags: list[HashtagResult]
    pagination: Pagination


class RecentSearchItem(BaseModel):
    type: SearchType
    term: str
    created_at: datetime


class RecentSearchResponse(BaseModel):
    searches: list[RecentSearchItem]


class MessageResponse(BaseModel):
    message: str

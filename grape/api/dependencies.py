"""Service lookups for route handlers. Services are built once at startup and kept on app.state."""

from typing import Annotated, Optional

from fastapi import Depends, Request

from grape.core.auth import get_current_user, get_optional_user
from grape.models.models import User
from grape.services.engagement_service import EngagementService
from grape.services.feed_service import FeedService
from grape.services.graph_service import SocialGraphService
from grape.services.notification_service import NotificationService
from grape.services.post_service import PostService
from grape.services.search_service import SearchService
from grape.services.user_service import UserService


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_graph_service(request: Request) -> SocialGraphService:
    return request.app.state.graph_service


def get_engagement_service(request: Request) -> EngagementService:
    return request.app.state.engagement_service


def get_post_service(request: Request) -> PostService:
    return request.app.state.post_service


def get_feed_service(request: Request) -> FeedService:
    return request.app.state.feed_service


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]

Users = Annotated[UserService, Depends(get_user_service)]
Graph = Annotated[SocialGraphService, Depends(get_graph_service)]
Engagement = Annotated[EngagementService, Depends(get_engagement_service)]
Posts = Annotated[PostService, Depends(get_post_service)]
Feed = Annotated[FeedService, Depends(get_feed_service)]
Search = Annotated[SearchService, Depends(get_search_service)]
Notifications = Annotated[NotificationService, Depends(get_notification_service)]


def viewer_id(user: Optional[User]):
    return user.id if user is not None else None

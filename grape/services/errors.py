"""Service-level exception taxonomy shared by every component."""

from __future__ import annotations

from fastapi import status


class ServiceError(Exception):
    """Base service exception."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ServiceError):
    """Raised when a referenced user, post, comment or notification is absent."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ForbiddenError(ServiceError):
    """Raised when the actor does not own the resource being mutated."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized"


class ValidationError(ServiceError):
    """Raised for malformed input such as caption length or duration bounds."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class ConflictError(ServiceError):
    """User-correctable state conflicts. Reported as 400, not as failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflict"


class AlreadyFollowingError(ConflictError):
    default_message = "Already following this user"


class NotFollowingError(ConflictError):
    default_message = "Not following this user"


class SelfFollowError(ConflictError):
    default_message = "Cannot follow yourself"


class AlreadyLikedError(ConflictError):
    default_message = "Already liked this post"


class NotLikedError(ConflictError):
    default_message = "Not liked this post"


class DuplicateAccountError(ConflictError):
    """Raised when username or email already exists."""

    default_message = "Username or email already exists"


class AuthenticationError(ServiceError):
    """Raised for failed authentication."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class DependencyError(ServiceError):
    """Raised when the object store or another collaborator fails."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream dependency failed"

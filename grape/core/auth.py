from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated, Any, cast
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from grape.config_secrets import JWT_ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY
from grape.models.models import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# auto_error is off so optional-auth endpoints can see an anonymous request
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class NotAuthenticated(HTTPException):
    """401 carrying a Bearer challenge; rendered as {"error": detail}."""

    def __init__(self, reason: str = "Invalid token") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=reason,
            headers={"WWW-Authenticate": "Bearer"},
        )


def verify_password(password: str, password_hash: str) -> bool:
    return cast(bool, pwd_context.verify(password, password_hash))


def get_password_hash(password: str) -> str:
    """bcrypt hash stored in users.password_hash"""
    return cast(str, pwd_context.hash(password))


def create_access_token(user_id: UUID, lifetime: timedelta | None = None) -> str:
    """Sign a login token whose subject is the user's id. Lifetime defaults to JWT_ACCESS_TOKEN_EXPIRE_MINUTES."""
    issued_at = datetime.now(UTC)
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + (lifetime or timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES)),
    }
    return cast(str, jwt.encode(claims, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM))


def decode_access_token(token: str) -> UUID:
    """Return the user id carried by a token, or raise NotAuthenticated."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise NotAuthenticated("Invalid or expired token") from exc

    subject = payload.get("sub")
    if not isinstance(subject, str):
        raise NotAuthenticated()

    try:
        return UUID(subject)
    except ValueError as exc:
        raise NotAuthenticated("Invalid token subject") from exc


async def _resolve_token(request: Request, token: str) -> User:
    user_id = decode_access_token(token)
    user = await request.app.state.user_service.get_user_by_id(user_id)
    if user is None:
        raise NotAuthenticated("User not found")
    return user


async def get_current_user(request: Request, token: Annotated[str | None, Depends(oauth2_scheme)]) -> User:
    """Require an authenticated user."""
    if not token:
        raise NotAuthenticated("Authentication required")
    return await _resolve_token(request, token)


async def get_optional_user(
    request: Request, token: Annotated[str | None, Depends(oauth2_scheme)],
) -> User | None:
    """Resolve the caller if possible. Missing, invalid or stale tokens read as anonymous."""
    if not token:
        return None
    try:
        return await _resolve_token(request, token)
    except NotAuthenticated:
        return None

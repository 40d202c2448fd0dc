"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the infrastructure
implementations of the hosted store.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from chatsync.core.config import get_settings
from chatsync.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ChatSyncError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from chatsync.interfaces.auth_provider import IAuthProvider, User
from chatsync.interfaces.change_feed import IChangeFeed
from chatsync.interfaces.remote_session_store import IRemoteSessionStore


# ===========================================
# Infrastructure Dependencies
# ===========================================


@lru_cache()
def get_change_feed() -> IChangeFeed:
    """Get the in-process change feed."""
    from chatsync.services.realtime_service import realtime_manager

    return realtime_manager


@lru_cache()
def get_remote_session_store() -> IRemoteSessionStore:
    """Get hosted session store instance."""
    from chatsync.infrastructure.local.remote_session_store import SqliteRemoteSessionStore
    from chatsync.services.realtime_service import realtime_manager

    return SqliteRemoteSessionStore(publisher=realtime_manager)


@lru_cache()
def get_auth_provider() -> IAuthProvider:
    """Get auth provider instance."""
    from chatsync.infrastructure.auth.mock_auth import MockAuthProvider

    return MockAuthProvider(enabled=get_settings().AUTH_ENABLED)


# ===========================================
# Authentication
# ===========================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> User:
    """
    Get current authenticated user.

    With authentication disabled, returns the development user.
    """
    if not auth_provider.is_enabled():
        from chatsync.infrastructure.auth.mock_auth import DEV_USER

        return DEV_USER

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    try:
        return await auth_provider.verify_token(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )


# ===========================================
# Error Mapping
# ===========================================


def to_http_exception(error: ChatSyncError) -> HTTPException:
    """Map a domain error to the HTTP status the remote store client expects."""
    if isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, AuthenticationError):
        code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(error, AuthorizationError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, InfrastructureError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=error.message)


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

RemoteStore = Annotated[IRemoteSessionStore, Depends(get_remote_session_store)]
ChangeFeed = Annotated[IChangeFeed, Depends(get_change_feed)]
CurrentUser = Annotated[User, Depends(get_current_user)]

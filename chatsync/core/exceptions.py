"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class ChatSyncError(Exception):
    """Base exception for chatsync."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(ChatSyncError):
    """Resource not found."""

    pass


class ValidationError(ChatSyncError):
    """Validation error."""

    pass


class LLMError(ChatSyncError):
    """LLM backend error."""

    pass


class AuthenticationError(ChatSyncError):
    """Authentication failed."""

    pass


class UnauthorizedError(AuthenticationError):
    """No valid identity for an operation that requires one."""

    pass


class AuthorizationError(ChatSyncError):
    """Authorization failed."""

    pass


class ForbiddenError(AuthorizationError):
    """Forbidden operation (authorization denied)."""

    pass


class InfrastructureError(ChatSyncError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass


class StoreError(InfrastructureError):
    """Remote store failure (network, query, rejected write)."""

    pass

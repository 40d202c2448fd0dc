"""
Authentication provider interface.

The identity provider is opaque to the sync core: it only yields a stable
user id (and an email) for a bearer token.
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel


class User(BaseModel):
    """Authenticated user identity."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


class IAuthProvider(ABC):
    """Abstract interface for authentication providers."""

    @abstractmethod
    async def verify_token(self, token: str) -> User:
        """
        Verify a bearer token.

        Args:
            token: Raw token from the Authorization header

        Returns:
            Authenticated user

        Raises:
            AuthenticationError: If the token is not valid
        """
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """Check if authentication is enabled."""
        pass

"""
Mock authentication provider for local development and tests.

The bearer token is taken as the user id, so any caller can act as any user.
Never enable this outside a local environment.
"""

from typing import Iterable, Optional

from chatsync.core.exceptions import AuthenticationError
from chatsync.interfaces.auth_provider import IAuthProvider, User

DEV_USER = User(id="dev_user", email="dev@example.com", display_name="Developer")
TEST_USER = User(id="test_user", email="test@example.com", display_name="Test User")


def user_from_token(token: str) -> User:
    """Identity for an unknown token; an email-looking token is its own email."""
    email = token if "@" in token else f"{token}@example.com"
    return User(id=token, email=email, display_name=token)


class MockAuthProvider(IAuthProvider):
    """Token-is-user-id auth provider."""

    def __init__(self, enabled: bool = False, known_users: Optional[Iterable[User]] = None):
        self._enabled = enabled
        users = (DEV_USER, TEST_USER) if known_users is None else known_users
        self._known = {user.id: user for user in users}

    async def verify_token(self, token: str) -> User:
        user_id = (token or "").strip()
        if not user_id:
            raise AuthenticationError("Empty token")
        return self._known.get(user_id) or user_from_token(user_id)

    def is_enabled(self) -> bool:
        return self._enabled

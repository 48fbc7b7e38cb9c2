"""
Bearer-token authentication and role checks.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Optional, Protocol

from shared.types import UserRole
from tripmarket.db import DbClient
from tripmarket.errors import AuthenticationError
from tripmarket.filters import eq

logger = logging.getLogger(__name__)


class AuthClient(Protocol):
    def get_user(self, token: str) -> dict:
        """Returns ``{"id": ..., "email": ...}`` or raises AuthenticationError."""
        ...


@dataclass
class InMemoryAuthClient:
    """Token table for tests and local runs."""

    tokens: dict = field(default_factory=dict)

    def issue_token(self, user_id: str, email: Optional[str] = None) -> str:
        token = secrets.token_urlsafe(24)
        self.tokens[token] = {"id": user_id, "email": email}
        return token

    def get_user(self, token: str) -> dict:
        user = self.tokens.get(token)
        if user is None:
            raise AuthenticationError("Invalid or expired token")
        return dict(user)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str]
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    @property
    def is_agent(self) -> bool:
        return self.role is UserRole.AGENT


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be a Bearer token")
    return token.strip()


def load_user(db: DbClient, auth_client: AuthClient, token: str) -> AuthUser:
    """Resolves the token and loads the caller's profile, creating it on first sight."""
    info = auth_client.get_user(token)
    user_id = info.get("id")
    if not user_id:
        raise AuthenticationError("Token does not identify a user")
    rows = db.select("profiles", filters={"id": eq(user_id)})
    if rows:
        profile = rows[0]
    else:
        profile = db.insert(
            "profiles",
            {"id": user_id, "email": info.get("email"), "user_role": UserRole.USER.value},
        )
        logger.info("Created profile for new user %s", user_id)
    try:
        role = UserRole(profile.get("user_role") or UserRole.USER.value)
    except ValueError:
        logger.warning("Profile %s has unknown role %r", user_id, profile.get("user_role"))
        role = UserRole.USER
    return AuthUser(id=user_id, email=profile.get("email") or info.get("email"), role=role)

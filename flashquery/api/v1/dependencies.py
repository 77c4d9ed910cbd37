"""
Dependencies for API endpoints.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import jwt
from fastapi import Depends, Header, Request

from flashquery.core.config import settings
from flashquery.core.exceptions import AuthenticationError, AuthorizationError
from flashquery.core.security import decode_session_token
from flashquery.db.repositories.users import UserRepository
from flashquery.db.session import get_repository_context, get_session
from flashquery.models.user import User
from flashquery.services.api_keys import has_permission, validate_api_key
from flashquery.utils.request import get_bearer_token

logger = logging.getLogger("flashquery.auth")


class AuthMethod(str, Enum):
    SESSION = "session"
    API_KEY = "api-key"


@dataclass
class ActorContext:
    """
    Normalized identity of a request.

    Session actors carry the user; API-key actors carry the owning team,
    the key and its permission scopes.
    """
    auth_method: AuthMethod
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    team_id: Optional[str] = None
    api_key_id: Optional[str] = None
    key_name: Optional[str] = None
    permissions: List[str] = field(default_factory=list)

    @property
    def is_session(self) -> bool:
        return self.auth_method == AuthMethod.SESSION

    @property
    def is_admin(self) -> bool:
        return self.is_session and self.role == "admin"

    @classmethod
    def for_user(cls, user: User) -> "ActorContext":
        return cls(
            auth_method=AuthMethod.SESSION,
            user_id=user.id,
            user_name=user.name or user.email,
            email=user.email,
            role=user.role,
        )


async def load_session_user(token: str) -> Optional[User]:
    """
    Resolve a session token to an active user.

    Args:
        token: Session JWT from the cookie

    Returns:
        User: The session user, or None if the token or user is not valid
    """
    try:
        payload = decode_session_token(token)
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected session token: {e}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    async with get_repository_context(UserRepository) as user_repo:
        user = await user_repo.get_by_id(user_id)

    if not user or not user.is_active:
        return None
    return user


async def get_actor(
    request: Request,
    api_key: Optional[str] = Header(None, alias=settings.API_KEY_HEADER),
    authorization: Optional[str] = Header(None),
) -> ActorContext:
    """
    Resolve the identity of the current request.

    The session cookie is tried first and the API key second, taken from the
    API key header or an ``Authorization: Bearer`` header.

    Raises:
        AuthenticationError: If neither a session nor an API key validates
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        user = await load_session_user(token)
        if user:
            return ActorContext.for_user(user)

    provided_key = api_key or get_bearer_token(authorization)
    if not provided_key:
        raise AuthenticationError("Unauthorized")

    async with get_session() as session:
        context = await validate_api_key(session, provided_key)

    return ActorContext(
        auth_method=AuthMethod.API_KEY,
        team_id=context.team_id,
        api_key_id=context.api_key_id,
        key_name=context.key_name,
        permissions=context.permissions,
    )


async def require_user(actor: ActorContext = Depends(get_actor)) -> ActorContext:
    """Require a logged-in user; API keys are not accepted."""
    if not actor.is_session:
        raise AuthorizationError("This endpoint requires a user session")
    return actor


async def require_admin(actor: ActorContext = Depends(require_user)) -> ActorContext:
    """Require a logged-in admin."""
    if not actor.is_admin:
        raise AuthorizationError("Forbidden: Admin access required")
    return actor


def require_permission(scope: str):
    """
    Build a dependency that requires ``scope`` from API-key actors.

    Session actors pass unchanged; role checks stay with the route.
    """
    async def _require(actor: ActorContext = Depends(get_actor)) -> ActorContext:
        if not actor.is_session and not has_permission(actor.permissions, scope):
            raise AuthorizationError(f"API key does not have {scope} permission")
        return actor
    return _require

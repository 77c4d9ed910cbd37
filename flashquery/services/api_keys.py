"""
API key validation and usage accounting.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from flashquery.core.exceptions import AuthenticationError
from flashquery.core.security import decrypt_secret, get_key_prefix, secure_compare
from flashquery.db.repositories.api_keys import ApiKeyRepository
from flashquery.db.session import get_repository_context
from flashquery.utils.datetime import is_past, utc_now

logger = logging.getLogger("flashquery.api_keys")

WILDCARD_PERMISSION = "*"

INVALID_API_KEY = "Invalid API key"


@dataclass
class ApiKeyContext:
    """Authorization context produced by a successfully validated key."""
    api_key_id: str
    team_id: str
    key_name: str
    permissions: List[str] = field(default_factory=list)


def has_permission(permissions: Optional[List[str]], required: str) -> bool:
    """
    Check a permission scope.

    Args:
        permissions: Scopes held by the key
        required: Scope the caller needs

    Returns:
        bool: True if ``required`` or the wildcard scope is held
    """
    if not permissions:
        return False
    return required in permissions or WILDCARD_PERMISSION in permissions


async def validate_api_key(session: AsyncSession, provided_key: Optional[str]) -> ApiKeyContext:
    """
    Validate a presented API key secret.

    Candidates are located by the public prefix and each stored secret is
    decrypted and compared in constant time. Unknown, mismatched, inactive
    and expired keys all fail with the same error.

    Args:
        session: Database session
        provided_key: Secret taken from the request, if any

    Returns:
        ApiKeyContext: Owning team, key id and permissions

    Raises:
        AuthenticationError: If no key was provided or the key is not valid
    """
    if not provided_key:
        raise AuthenticationError("API key not provided")

    repo = ApiKeyRepository(session)
    candidates = await repo.find_active_by_prefix(get_key_prefix(provided_key))

    matched = None
    for candidate in candidates:
        stored = decrypt_secret(candidate.encrypted_key)
        if stored is not None and secure_compare(provided_key, stored):
            matched = candidate
            break

    if matched is None or not matched.is_active or is_past(matched.expires_at):
        raise AuthenticationError(INVALID_API_KEY)

    return ApiKeyContext(
        api_key_id=matched.id,
        team_id=matched.team_id,
        key_name=matched.name,
        permissions=list(matched.permissions or []),
    )


async def record_api_key_usage(
    api_key_id: str,
    *,
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
    query_text: Optional[str] = None,
    ip_address: Optional[str] = None
) -> None:
    """
    Increment a key's usage counter and store last-used metadata.

    Runs after the response has been sent, in its own session. Failures are
    logged and never propagated.
    """
    try:
        async with get_repository_context(ApiKeyRepository) as repo:
            await repo.record_usage(
                key_id=api_key_id,
                used_at=utc_now(),
                user_id=user_id,
                user_name=user_name,
                query_text=query_text,
                ip_address=ip_address,
            )
        logger.debug(f"Recorded usage for API key {api_key_id}")
    except Exception as e:
        logger.error(f"Failed to record usage for API key {api_key_id}: {e}", exc_info=True)

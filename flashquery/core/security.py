"""
Security utilities for authentication and authorization.
"""
import base64
import hmac
import secrets
import time
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from passlib.context import CryptContext

from flashquery.core.config import settings

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

JWT_ALGORITHM = "HS256"

# Length of the public, non-secret part of an API key used for lookups
API_KEY_PREFIX_LENGTH = 13


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash.

    Args:
        plain_password: Plain-text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches hash
    """
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash a password.

    Args:
        password: Plain-text password

    Returns:
        str: Hashed password
    """
    return pwd_context.hash(password)


def create_session_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed session JWT.

    Args:
        data: Claims to encode in the token (must include ``sub``)
        expires_delta: Token lifetime, defaults to SESSION_EXPIRE_DAYS

    Returns:
        str: JWT token
    """
    to_encode = data.copy()

    if expires_delta is None:
        expires_delta = timedelta(days=settings.SESSION_EXPIRE_DAYS)
    now = datetime.now(timezone.utc)

    to_encode.update({"iat": now, "exp": now + expires_delta})

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_session_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a session JWT.

    Raises:
        jwt.PyJWTError: If the token is malformed, badly signed or expired
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])


def _to_base36(number: int) -> str:
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"
    digits = ""
    while number:
        number, remainder = divmod(number, 36)
        digits = alphabet[remainder] + digits
    return digits or "0"


def generate_api_key() -> str:
    """
    Generate a new API key secret.

    Format is ``<prefix>_<48 hex chars>_<base36 millisecond timestamp>``.

    Returns:
        str: API key
    """
    random_part = secrets.token_hex(24)
    timestamp = _to_base36(int(time.time() * 1000))
    return f"{settings.API_KEY_PREFIX}_{random_part}_{timestamp}"


def get_key_prefix(api_key: str) -> str:
    """Get the public prefix of an API key used to locate its record."""
    return api_key[:API_KEY_PREFIX_LENGTH]


@lru_cache(maxsize=4)
def _get_fernet(encryption_key: str) -> Fernet:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"flashquery-secrets",
        iterations=100000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(encryption_key.encode()))
    return Fernet(key)


def encrypt_secret(plaintext: str) -> str:
    """Encrypt a secret (API key, connection password) for storage."""
    return _get_fernet(settings.ENCRYPTION_KEY).encrypt(plaintext.encode()).decode()


def decrypt_secret(ciphertext: str) -> Optional[str]:
    """
    Decrypt a stored secret.

    Returns:
        str: Plaintext, or None when the ciphertext cannot be decrypted
    """
    try:
        return _get_fernet(settings.ENCRYPTION_KEY).decrypt(ciphertext.encode()).decode()
    except (InvalidToken, ValueError):
        return None


def secure_compare(provided: str, expected: str) -> bool:
    """Compare two secrets in constant time."""
    return hmac.compare_digest(provided.encode(), expected.encode())

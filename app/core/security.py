# app/core/security.py
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Dict, Any
from passlib.context import CryptContext
from jose import JWTError, jwt

from app.core.config import Settings

logger = logging.getLogger(__name__)

# Session credentials live exactly one hour
SESSION_TOKEN_TTL = timedelta(hours=1)
SESSION_PURPOSE = "session"

# Use Argon2 for password hashing
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifies a plain password against a hashed password."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hashes a password."""
    return pwd_context.hash(password)


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return pwd_context.hash("not-a-real-password")


def burn_password_check(plain_password: str) -> bool:
    """Spend the same hashing work as a real check so unknown users look like wrong passwords."""
    pwd_context.verify(plain_password, _dummy_password_hash())
    return False


def create_session_token(
    user_id: str,
    username: str,
    settings: Settings,
    now: Optional[datetime] = None,
) -> str:
    """Creates a signed session credential that expires one hour after issuance."""
    if not settings.secret_key:
        raise RuntimeError("Refusing to issue a session token without a signing key")

    issued_at = now or datetime.now(timezone.utc)
    to_encode = {
        "sub": user_id,
        "username": username,
        "purpose": SESSION_PURPOSE,
        "iat": issued_at,
        "exp": issued_at + SESSION_TOKEN_TTL,
    }

    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    logger.info(f"Session token issued for user: {username}")
    return encoded_jwt


def verify_session_token(
    token: str,
    settings: Settings,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Verify a session credential.

    Checks, in order: the header names the configured algorithm, the signature
    verifies under the server key, the purpose claim, and ``now < exp``.

    Returns:
        Token payload if valid

    Raises:
        JWTError: If the token is malformed or the signature does not verify
        ValueError: If the algorithm, purpose or expiry checks fail
    """
    header = jwt.get_unverified_header(token)
    if header.get("alg") != settings.algorithm:
        raise ValueError(f"Unexpected token algorithm: {header.get('alg')}")

    # Expiry is checked below against an explicit clock
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.algorithm],
        options={"verify_exp": False},
    )

    if payload.get("purpose") != SESSION_PURPOSE:
        raise ValueError("Invalid token purpose")

    expires_at = payload.get("exp")
    if not isinstance(expires_at, (int, float)):
        raise ValueError("Token has no expiry")

    current = now or datetime.now(timezone.utc)
    if current.timestamp() >= expires_at:
        raise ValueError("Token expired")

    if not payload.get("sub") or not payload.get("username"):
        raise ValueError("Token without subject claim")

    return payload


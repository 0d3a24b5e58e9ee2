# app/api/v1/dependencies.py
import logging
from typing import Optional
from fastapi import Depends, HTTPException, status, Request
from jose import JWTError

from app.core.config import Settings
from app.core.security import verify_session_token
from app.core.upload_gateway import UploadGateway
from app.schemas.user import SessionUser
from app.storage.base import ObjectStorageBackend

logger = logging.getLogger(__name__)

CREDENTIALS_EXCEPTION_DETAIL = "Could not validate credentials"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> ObjectStorageBackend:
    return request.app.state.storage


def get_upload_gateway(
    settings: Settings = Depends(get_settings),
    storage: ObjectStorageBackend = Depends(get_storage),
) -> UploadGateway:
    return UploadGateway(storage, max_file_size_mb=settings.max_file_size_mb)


def get_client_ip(request: Request) -> str:
    """Extract client IP address"""
    # Check for proxy headers (be careful with spoofing)
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        # Take the first IP in the chain (original client)
        return forwarded_for.split(",")[0].strip()

    return request.client.host if request.client else "unknown"


def extract_session_token(request: Request, settings: Settings) -> Optional[str]:
    """Reads the credential from the one configured source: bearer header or cookie."""
    if settings.uses_cookie_transport:
        token = request.cookies.get(settings.session_cookie_name)
    else:
        auth_header = request.headers.get("Authorization", "")
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer":
            token = None

    token = (token or "").strip()
    return token or None


def authenticate_request(request: Request, settings: Settings, log_level: int = logging.WARNING) -> SessionUser:
    """
    Validate the session credential and attach the identity to the request.

    Missing, malformed, expired and forged credentials all produce the same 401;
    only the server log tells them apart. Optional checks pass a lower log_level
    so anonymous polling stays out of the security log.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=CREDENTIALS_EXCEPTION_DETAIL,
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = extract_session_token(request, settings)
    if token is None:
        logger.log(log_level, f"Missing session credential on {request.method} {request.url.path}")
        raise credentials_exception

    try:
        payload = verify_session_token(token, settings)
    except ValueError as e:
        logger.log(log_level, f"Session token rejected: {e}")
        raise credentials_exception
    except JWTError as e:
        logger.log(log_level, f"JWT validation failed: {e}")
        raise credentials_exception

    user = SessionUser(id=payload["sub"], username=payload["username"])
    request.state.user = user
    return user


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> SessionUser:
    """Gate for routes that mutate the catalog."""
    return authenticate_request(request, settings)


async def try_get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[SessionUser]:
    """
    Same checks as get_current_user, but returns None instead of raising.
    """
    try:
        return authenticate_request(request, settings, log_level=logging.DEBUG)
    except HTTPException:
        return None

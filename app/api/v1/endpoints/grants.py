"""
Scoped access grants: short-lived URLs signed with the storage backend's own
credentials. The provider verifies them, so no session is required here and
the bytes never pass through this service.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.v1.dependencies import get_client_ip, get_settings, get_storage
from app.core.config import Settings
from app.schemas.catalog import GrantOut
from app.storage.base import (
    GrantNotSupportedError,
    ObjectStorageBackend,
    StorageError,
    StorageTimeoutError,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/presigned-url/{key:path}", response_model=GrantOut)
async def get_presigned_url(
    key: str,
    request: Request,
    settings: Settings = Depends(get_settings),
    storage: ObjectStorageBackend = Depends(get_storage),
):
    """Mints a read-only URL for one stored object, valid for GRANT_EXPIRE_SECONDS."""
    # IP binding is advisory; not every provider enforces it
    client_ip = get_client_ip(request) if settings.grant_bind_client_ip else None

    try:
        grant = await storage.mint_scoped_grant(
            key,
            settings.grant_expire_seconds,
            client_ip=client_ip,
        )
    except GrantNotSupportedError:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Signed URLs are not available for this storage backend",
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageTimeoutError:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Signing timed out")
    except StorageError as e:
        logger.error(f"Grant minting failed for {key}: {e!r}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create signed URL")

    logger.info(f"Scoped grant issued for {key}, expires {grant.expires_at.isoformat()}")
    return GrantOut(url=grant.url, expires_at=grant.expires_at)

"""
Object storage backends.

Every backend exposes the same two capabilities:

- ``store(data, content_type, original_name)`` writes one uploaded object and
  returns its locator.
- ``mint_scoped_grant(key, expires_in, ...)`` returns a short-lived URL the
  storage provider itself verifies, letting a client read exactly one object
  without routing the bytes through this service.

Implementations provide the blocking ``_store`` / ``_mint_scoped_grant`` and
this base class runs them off the event loop under a bounded timeout.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from app.core.config import MAX_GRANT_EXPIRE_SECONDS

logger = logging.getLogger(__name__)

READ_PERMISSION = "read"


class StorageError(Exception):
    """Base class for storage failures."""


class StorageBackendError(StorageError):
    """The provider call failed (network, permissions, quota)."""


class StorageTimeoutError(StorageError):
    """The provider did not answer within the configured timeout."""


class GrantNotSupportedError(StorageError):
    """The backend serves objects directly and cannot mint scoped grants."""


class UnsupportedPermissionError(StorageError):
    """Only read grants can be minted."""


@dataclass(frozen=True)
class StoredObject:
    key: str
    locator: str
    content_type: str
    size: int


@dataclass(frozen=True)
class ScopedGrant:
    key: str
    url: str
    expires_at: datetime
    permission: str = READ_PERMISSION


def timestamped_key(original_name: Optional[str]) -> str:
    """Epoch-millisecond key with a random suffix; only the extension comes from the client."""
    extension = Path(original_name or "").suffix.lower()
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{extension}"


class ObjectStorageBackend(ABC):
    """Common capability set shared by the local, S3 and Azure backends."""

    name = "abstract"

    def __init__(self, timeout_seconds: float = 30) -> None:
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    def _store(self, data: bytes, content_type: str, original_name: str) -> StoredObject:
        """Blocking write of one object."""

    @abstractmethod
    def _mint_scoped_grant(
        self,
        key: str,
        expires_in: int,
        client_ip: Optional[str],
    ) -> ScopedGrant:
        """Blocking computation of a read grant for ``key``."""

    async def _run(self, operation: str, func, *args):
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"{self.name} {operation} timed out after {self.timeout_seconds}s")
            raise StorageTimeoutError(f"{self.name} {operation} timed out") from e

    async def store(self, data: bytes, content_type: str, original_name: str) -> StoredObject:
        stored = await self._run("store", self._store, data, content_type, original_name)
        logger.info(f"Stored object {stored.key} ({stored.size} bytes) in {self.name}")
        return stored

    async def mint_scoped_grant(
        self,
        key: str,
        expires_in: int,
        permission: str = READ_PERMISSION,
        client_ip: Optional[str] = None,
    ) -> ScopedGrant:
        if permission != READ_PERMISSION:
            raise UnsupportedPermissionError(f"Unsupported grant permission: {permission}")
        if not 0 < expires_in <= MAX_GRANT_EXPIRE_SECONDS:
            raise ValueError(f"Grant expiry must be between 1 and {MAX_GRANT_EXPIRE_SECONDS} seconds")
        if not key:
            raise ValueError("Object key is required")

        return await self._run("grant", self._mint_scoped_grant, key, expires_in, client_ip)

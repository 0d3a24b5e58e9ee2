"""Local filesystem backend. Files are served directly, so no grants are minted."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from app.core.validation import ValidationError, validate_path_safety
from app.storage.base import (
    GrantNotSupportedError,
    ObjectStorageBackend,
    ScopedGrant,
    StorageBackendError,
    StoredObject,
    timestamped_key,
)

logger = logging.getLogger(__name__)


class LocalStorageBackend(ObjectStorageBackend):
    name = "local"

    def __init__(self, directory: str = "uploads", timeout_seconds: float = 30) -> None:
        super().__init__(timeout_seconds)
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def locator_for(self, key: str) -> str:
        return f"{Path(self.directory).name}/{key}"

    def _store(self, data: bytes, content_type: str, original_name: str) -> StoredObject:
        key = timestamped_key(original_name)
        try:
            target = validate_path_safety(os.path.join(self.directory, key), self.directory)
        except ValidationError as e:
            raise StorageBackendError(f"Unsafe storage path for key {key}") from e

        try:
            # "xb" refuses to overwrite an existing object
            with open(target, "xb") as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Local write failed for {target}: {e}")
            raise StorageBackendError(f"Could not write {key}") from e

        return StoredObject(key=key, locator=self.locator_for(key), content_type=content_type, size=len(data))

    def _mint_scoped_grant(self, key: str, expires_in: int, client_ip: Optional[str]) -> ScopedGrant:
        raise GrantNotSupportedError("Local files are served directly; no signed URL is needed")

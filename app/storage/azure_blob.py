"""Azure Blob Storage backend with read-only Shared Access Signature grants."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from azure.core.exceptions import AzureError
from azure.storage.blob import (
    BlobSasPermissions,
    BlobServiceClient,
    ContentSettings,
    generate_blob_sas,
)

from app.core.config import SecurityConfigError
from app.core.validation import ValidationError, validate_filename
from app.storage.base import (
    ObjectStorageBackend,
    ScopedGrant,
    StorageBackendError,
    StoredObject,
)

logger = logging.getLogger(__name__)

# SAS validity starts slightly in the past to absorb clock skew
SAS_CLOCK_SKEW = timedelta(minutes=1)


def uuid_key(original_name: Optional[str]) -> str:
    """Random UUID prefix; the sanitized client name is only a readable suffix."""
    prefix = str(uuid.uuid4())
    try:
        return f"{prefix}-{validate_filename(original_name or '', max_length=120)}"
    except ValidationError:
        return f"{prefix}{Path(original_name or '').suffix.lower()}"


class AzureBlobStorageBackend(ObjectStorageBackend):
    name = "azure"

    def __init__(
        self,
        connection_string: str,
        container: str,
        timeout_seconds: float = 30,
        service_client: Any = None,
    ) -> None:
        super().__init__(timeout_seconds)
        self.container = container
        if service_client is None:
            service_client = BlobServiceClient.from_connection_string(
                connection_string,
                retry_total=0,
                connection_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
            )
        self.service = service_client

        credential = getattr(self.service, "credential", None)
        self.account_name = getattr(self.service, "account_name", None) or getattr(credential, "account_name", None)
        self._account_key = getattr(credential, "account_key", None)
        if not self.account_name or not self._account_key:
            raise SecurityConfigError(
                "AZURE_STORAGE_CONNECTION_STRING must include AccountName and AccountKey to sign grants"
            )

    @property
    def container_client(self):
        return self.service.get_container_client(self.container)

    def _store(self, data: bytes, content_type: str, original_name: str) -> StoredObject:
        key = uuid_key(original_name)
        try:
            blob = self.container_client.upload_blob(
                name=key,
                data=data,
                overwrite=False,
                content_settings=ContentSettings(content_type=content_type),
            )
        except AzureError as e:
            logger.error(f"Azure upload failed for {self.container}/{key}: {e}")
            raise StorageBackendError(f"Azure upload failed for {key}") from e

        return StoredObject(key=key, locator=blob.url, content_type=content_type, size=len(data))

    def _mint_scoped_grant(self, key: str, expires_in: int, client_ip: Optional[str]) -> ScopedGrant:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=expires_in)
        try:
            sas = generate_blob_sas(
                account_name=self.account_name,
                container_name=self.container,
                blob_name=key,
                account_key=self._account_key,
                permission=BlobSasPermissions(read=True),
                expiry=expires_at,
                start=now - SAS_CLOCK_SKEW,
                protocol="https",
                ip=client_ip,
            )
        except (AzureError, ValueError) as e:
            logger.error(f"Azure SAS signing failed for {self.container}/{key}: {e}")
            raise StorageBackendError(f"Could not sign URL for {key}") from e

        blob_url = self.container_client.get_blob_client(key).url
        return ScopedGrant(key=key, url=f"{blob_url}?{sas}", expires_at=expires_at)

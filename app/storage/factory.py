"""
Selects the storage backend once, at startup, from configuration.
"""
import logging

from app.core.config import SecurityConfigError, Settings
from app.storage.base import ObjectStorageBackend

logger = logging.getLogger(__name__)


def build_storage_backend(settings: Settings) -> ObjectStorageBackend:
    """
    Create the configured storage backend.

    Raises:
        SecurityConfigError: If the backend is unknown or its credentials are unusable
    """
    backend = settings.storage_backend

    if backend == "local":
        from app.storage.local import LocalStorageBackend

        storage = LocalStorageBackend(
            directory=settings.upload_directory,
            timeout_seconds=settings.storage_timeout_seconds,
        )
    elif backend == "s3":
        from app.storage.s3 import S3StorageBackend

        storage = S3StorageBackend(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            access_key=settings.aws_access_key_id,
            secret_key=settings.aws_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
            timeout_seconds=settings.storage_timeout_seconds,
        )
    elif backend == "azure":
        from app.storage.azure_blob import AzureBlobStorageBackend

        try:
            storage = AzureBlobStorageBackend(
                connection_string=settings.azure_connection_string,
                container=settings.azure_container,
                timeout_seconds=settings.storage_timeout_seconds,
            )
        except ValueError as e:
            raise SecurityConfigError(f"Invalid AZURE_STORAGE_CONNECTION_STRING: {e}") from e
    else:
        raise SecurityConfigError(f"Unknown storage backend: {backend}")

    logger.info(f"Storage backend ready: {storage.name}")
    return storage

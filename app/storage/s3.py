"""AWS S3 (and S3-compatible) backend with pre-signed GET grants."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.base import (
    ObjectStorageBackend,
    ScopedGrant,
    StorageBackendError,
    StoredObject,
    timestamped_key,
)

logger = logging.getLogger(__name__)


class S3StorageBackend(ObjectStorageBackend):
    """Uploads with ``put_object`` and grants reads with SigV4 query signing.

    The grant is computed locally from the backend's access key pair; it never
    touches the session credential.
    """

    name = "s3"

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        timeout_seconds: float = 30,
        client: Any = None,
    ) -> None:
        super().__init__(timeout_seconds)
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        if client is None:
            extra = {} if endpoint_url is None else {"endpoint_url": endpoint_url}
            client = boto3.client(
                "s3",
                region_name=region,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                config=Config(
                    signature_version="s3v4",
                    connect_timeout=timeout_seconds,
                    read_timeout=timeout_seconds,
                    retries={"total_max_attempts": 1},
                ),
                **extra,
            )
        self.client = client

    def object_url(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{quote(key)}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quote(key)}"

    def _store(self, data: bytes, content_type: str, original_name: str) -> StoredObject:
        key = timestamped_key(original_name)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "unknown")
            logger.error(f"S3 put_object failed for {self.bucket}/{key}: {code} {e}")
            raise StorageBackendError(f"S3 upload failed for {key}") from e
        except BotoCoreError as e:
            logger.error(f"S3 put_object failed for {self.bucket}/{key}: {e}")
            raise StorageBackendError(f"S3 upload failed for {key}") from e

        return StoredObject(key=key, locator=self.object_url(key), content_type=content_type, size=len(data))

    def _mint_scoped_grant(self, key: str, expires_in: int, client_ip: Optional[str]) -> ScopedGrant:
        if client_ip:
            # SigV4 query auth has no source-IP condition
            logger.debug(f"IP binding requested for {key} but not enforced by S3 presigned URLs")

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        try:
            url = self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 pre-signing failed for {self.bucket}/{key}: {e}")
            raise StorageBackendError(f"Could not sign URL for {key}") from e

        return ScopedGrant(key=key, url=url, expires_at=expires_at)

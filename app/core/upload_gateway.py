"""Upload pipeline: validate the file, store the bytes, then record the locator.

The catalog is written only after the storage backend has accepted the bytes.
If the catalog write fails afterwards, the stored object stays behind; its key
is logged so it can be found, but nothing is deleted automatically. The same
holds for the previous object when a song's file is replaced.
"""
from __future__ import annotations

import logging
import mimetypes
from typing import Optional

from fastapi import HTTPException, UploadFile, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.core.validation import (
    ALLOWED_AUDIO_EXTENSIONS,
    ValidationError,
    validate_file_extension,
    validate_file_size,
    validate_filename,
)
from app.crud import catalog as catalog_crud
from app.schemas.catalog import SongDB
from app.schemas.user import SessionUser
from app.storage.base import ObjectStorageBackend, StorageError, StorageTimeoutError, StoredObject

logger = logging.getLogger(__name__)


class UploadGateway:
    def __init__(self, storage: ObjectStorageBackend, max_file_size_mb: int = 100) -> None:
        self.storage = storage
        self.max_file_size_mb = max_file_size_mb

    async def _read_upload(self, file: Optional[UploadFile]) -> tuple[bytes, str, str]:
        if file is None or not file.filename:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

        try:
            filename = validate_file_extension(validate_filename(file.filename), ALLOWED_AUDIO_EXTENSIONS)
        except ValidationError as e:
            logger.warning(f"File validation failed for {file.filename!r}: {e}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        # Whole file in memory; uploads are bounded by MAX_FILE_SIZE_MB
        data = await file.read()
        try:
            validate_file_size(len(data), self.max_file_size_mb)
        except ValidationError as e:
            code = status.HTTP_400_BAD_REQUEST if not data else status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            raise HTTPException(status_code=code, detail=str(e))

        content_type = file.content_type
        if not content_type or content_type == "application/octet-stream":
            content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return data, content_type, filename

    async def _store(self, file: Optional[UploadFile]) -> StoredObject:
        data, content_type, filename = await self._read_upload(file)
        try:
            return await self.storage.store(data, content_type, filename)
        except StorageTimeoutError:
            raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="File storage timed out")
        except StorageError as e:
            logger.error(f"Storage backend {self.storage.name} rejected {filename!r}: {e!r}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="File storage failed")

    async def add_song(
        self,
        db: AsyncIOMotorDatabase,
        user: SessionUser,
        *,
        title: str,
        artist_id: str,
        file: Optional[UploadFile],
        album_id: Optional[str] = None,
        rating: Optional[int] = None,
    ) -> dict:
        """Stores the file and creates the song that points at it."""
        if await catalog_crud.get_artist(db, artist_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artist not found")
        if album_id and await catalog_crud.get_album(db, album_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Album not found")

        stored = await self._store(file)

        song = SongDB(
            title=title,
            artist_id=artist_id,
            album_id=album_id,
            rating=rating,
            file_path=stored.locator,
            object_key=stored.key,
            content_type=stored.content_type,
            uploaded_by=user.id,
        )
        try:
            created = await catalog_crud.create_song(db, song)
        except PyMongoError as e:
            logger.error(f"Catalog write failed after storing object {stored.key}; object is orphaned: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save song")

        logger.info(f"Song {created['id']} added by {user.username} with object {stored.key}")
        return created

    async def replace_song_file(
        self,
        db: AsyncIOMotorDatabase,
        user: SessionUser,
        song_id: str,
        file: Optional[UploadFile],
    ) -> dict:
        """Stores a new file for an existing song. The previous object is not deleted."""
        existing = await catalog_crud.get_song(db, song_id)
        if existing is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Song not found")

        stored = await self._store(file)

        try:
            updated = await catalog_crud.update_song_file(
                db,
                song_id,
                file_path=stored.locator,
                object_key=stored.key,
                content_type=stored.content_type,
            )
        except PyMongoError as e:
            logger.error(f"Catalog update failed after storing object {stored.key}; object is orphaned: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update song")

        if updated is None:
            logger.error(f"Song {song_id} vanished during file replacement; object {stored.key} is orphaned")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Song not found")

        logger.info(
            f"Song {song_id} file replaced by {user.username}: {existing.get('object_key')} -> {stored.key} "
            f"(previous object kept)"
        )
        return updated

import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.api.v1.dependencies import get_current_user, get_upload_gateway
from app.core.upload_gateway import UploadGateway
from app.core.validation import sanitize_user_input
from app.db.mongodb_utils import get_database
from app.schemas.catalog import SongOut
from app.schemas.user import SessionUser

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/add-song", response_model=SongOut, status_code=status.HTTP_201_CREATED)
async def add_song(
    title: str = Form(..., min_length=1, max_length=200),
    artist_id: str = Form(...),
    album_id: Optional[str] = Form(None),
    rating: Optional[int] = Form(None, ge=0, le=5),
    file: Optional[UploadFile] = File(None),
    current_user: SessionUser = Depends(get_current_user),
    gateway: UploadGateway = Depends(get_upload_gateway),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """Uploads an audio file and creates the song that points at it."""
    logger.info(f"Upload request received: file={file.filename if file else None}, user={current_user.id}")
    return await gateway.add_song(
        db,
        current_user,
        title=sanitize_user_input(title) or title.strip(),
        artist_id=artist_id,
        album_id=album_id or None,
        rating=rating,
        file=file,
    )


@router.post("/update-song-file/{song_id}", response_model=SongOut)
async def update_song_file(
    song_id: str,
    file: Optional[UploadFile] = File(None),
    current_user: SessionUser = Depends(get_current_user),
    gateway: UploadGateway = Depends(get_upload_gateway),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """Replaces the stored file of an existing song."""
    return await gateway.replace_song_file(db, current_user, song_id, file)

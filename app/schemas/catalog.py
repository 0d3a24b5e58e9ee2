from pydantic import BaseModel, Field
import uuid
from datetime import datetime, timezone
from typing import Optional


def new_id() -> str:
    return uuid.uuid4().hex


class ArtistCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class Artist(ArtistCreate):
    id: str = Field(default_factory=new_id)

    class Config:
        from_attributes = True
        extra = "ignore"


class AlbumCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    artist_id: str


class Album(AlbumCreate):
    id: str = Field(default_factory=new_id)

    class Config:
        from_attributes = True
        extra = "ignore"


class SongDB(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    artist_id: str
    album_id: Optional[str] = None
    rating: Optional[int] = None
    # Object locator, opaque to everything but the storage backend
    file_path: str
    object_key: str
    content_type: Optional[str] = None
    uploaded_by: Optional[str] = None
    upload_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        from_attributes = True
        extra = "ignore"


class SongOut(BaseModel):
    id: str
    title: str
    artist_id: str
    album_id: Optional[str] = None
    rating: Optional[int] = None
    file_path: str
    object_key: str

    class Config:
        from_attributes = True
        extra = "ignore"


class GrantOut(BaseModel):
    url: str
    expires_at: datetime

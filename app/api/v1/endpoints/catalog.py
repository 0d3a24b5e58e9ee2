import logging
from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.api.v1.dependencies import get_current_user
from app.crud import catalog as catalog_crud
from app.db.mongodb_utils import get_database
from app.schemas.catalog import Album, AlbumCreate, Artist, ArtistCreate
from app.schemas.user import SessionUser

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/artists")
async def read_artists(db: AsyncIOMotorDatabase = Depends(get_database)):
    return {"artists": await catalog_crud.list_artists(db)}


@router.post("/artists", response_model=Artist, status_code=status.HTTP_201_CREATED)
async def add_artist(
    artist_in: ArtistCreate,
    current_user: SessionUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    artist = await catalog_crud.create_artist(db, Artist(name=artist_in.name.strip()))
    logger.info(f"Artist {artist['id']} created by {current_user.username}")
    return artist


@router.get("/albums")
async def read_albums(db: AsyncIOMotorDatabase = Depends(get_database)):
    return {"albums": await catalog_crud.list_albums(db)}


@router.post("/albums", response_model=Album, status_code=status.HTTP_201_CREATED)
async def add_album(
    album_in: AlbumCreate,
    current_user: SessionUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    if await catalog_crud.get_artist(db, album_in.artist_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artist not found")

    album = await catalog_crud.create_album(db, Album(title=album_in.title.strip(), artist_id=album_in.artist_id))
    logger.info(f"Album {album['id']} created by {current_user.username}")
    return album


@router.get("/songs")
async def read_songs(db: AsyncIOMotorDatabase = Depends(get_database)):
    return {"songs": await catalog_crud.list_songs(db)}


@router.get("/random-songs")
async def read_random_songs(db: AsyncIOMotorDatabase = Depends(get_database)):
    return {"songs": await catalog_crud.random_songs(db, limit=6)}

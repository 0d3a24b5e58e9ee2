from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from app.schemas.catalog import Album, Artist, SongDB

_NO_MONGO_ID = {"_id": 0}


async def _by_id(db: AsyncIOMotorDatabase, collection: str) -> dict:
    return {doc["id"]: doc async for doc in db[collection].find({}, _NO_MONGO_ID)}


async def list_artists(db: AsyncIOMotorDatabase):
    """Gets all artists."""
    return [artist async for artist in db["artists"].find({}, _NO_MONGO_ID)]


async def get_artist(db: AsyncIOMotorDatabase, artist_id: str):
    return await db["artists"].find_one({"id": artist_id}, _NO_MONGO_ID)


async def create_artist(db: AsyncIOMotorDatabase, artist: Artist) -> dict:
    doc = artist.model_dump()
    await db["artists"].insert_one(dict(doc))
    return doc


async def list_albums(db: AsyncIOMotorDatabase):
    """Gets all albums with the name of their artist. Albums of unknown artists are skipped."""
    artists = await _by_id(db, "artists")
    albums = []
    async for album in db["albums"].find({}, _NO_MONGO_ID):
        artist = artists.get(album.get("artist_id"))
        if artist is None:
            continue
        album["artist_name"] = artist["name"]
        albums.append(album)
    return albums


async def get_album(db: AsyncIOMotorDatabase, album_id: str):
    return await db["albums"].find_one({"id": album_id}, _NO_MONGO_ID)


async def create_album(db: AsyncIOMotorDatabase, album: Album) -> dict:
    doc = album.model_dump()
    await db["albums"].insert_one(dict(doc))
    return doc


async def list_songs(db: AsyncIOMotorDatabase):
    """Gets all songs with the title of their album."""
    albums = await _by_id(db, "albums")
    songs = []
    async for song in db["songs"].find({}, _NO_MONGO_ID):
        album = albums.get(song.get("album_id"))
        song["album_title"] = album["title"] if album else None
        songs.append(song)
    return songs


async def random_songs(db: AsyncIOMotorDatabase, limit: int = 6):
    """Samples songs joined with their artist and album, shaped for the player front page."""
    artists = await _by_id(db, "artists")
    albums = await _by_id(db, "albums")
    picked = []
    async for song in db["songs"].aggregate([{"$sample": {"size": limit}}]):
        album = albums.get(song.get("album_id")) or {}
        artist = artists.get(song.get("artist_id") or album.get("artist_id")) or {}
        picked.append({
            "id": song["id"],
            "songTitle": song["title"],
            "artistName": artist.get("name"),
            "albumTitle": album.get("title"),
            "filePath": song["file_path"],
        })
    return picked


async def get_song(db: AsyncIOMotorDatabase, song_id: str):
    return await db["songs"].find_one({"id": song_id}, _NO_MONGO_ID)


async def create_song(db: AsyncIOMotorDatabase, song: SongDB) -> dict:
    doc = song.model_dump()
    await db["songs"].insert_one(dict(doc))
    return doc


async def update_song_file(
    db: AsyncIOMotorDatabase,
    song_id: str,
    *,
    file_path: str,
    object_key: str,
    content_type: Optional[str] = None,
):
    """Points a song at a newly stored object. Returns the updated song, or None if it is gone."""
    result = await db["songs"].update_one(
        {"id": song_id},
        {"$set": {"file_path": file_path, "object_key": object_key, "content_type": content_type}},
    )
    if result.matched_count == 0:
        return None
    return await get_song(db, song_id)

"""Uploads, catalog reads and scoped access grants over HTTP."""

import asyncio
import logging
from dataclasses import replace

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import create_app
from app.storage.base import StorageBackendError, StorageTimeoutError
from app.storage.local import LocalStorageBackend
from conftest import register_and_login


def audio(data: bytes = b"ID3-sinnerman", filename: str = "sinnerman.mp3") -> dict:
    return {"file": (filename, data, "audio/mpeg")}


async def test_register_login_upload_and_fetch_through_grant(client: AsyncClient, provider, artist) -> None:
    headers = await register_and_login(client, "bob", "another fine password")

    resp = await client.post(
        "/add-song",
        data={"title": "Sinnerman", "artist_id": artist["id"], "rating": "5"},
        files=audio(),
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    song = resp.json()
    assert song["file_path"] == f"{provider.base_url}/{song['object_key']}"

    songs = (await client.get("/songs")).json()["songs"]
    assert [s["file_path"] for s in songs] == [song["file_path"]]
    assert songs[0]["album_title"] is None

    grant = await client.get(f"/presigned-url/{song['object_key']}")
    assert grant.status_code == 200
    url = grant.json()["url"]

    assert provider.fetch(url) == (200, b"ID3-sinnerman")
    provider.advance(299)
    assert provider.fetch(url) == (200, b"ID3-sinnerman")
    provider.advance(2)
    status, _ = provider.fetch(url)
    assert status == 403


async def test_grant_cannot_be_forged_or_widened(client: AsyncClient, provider, artist, auth_headers) -> None:
    resp = await client.post("/add-song", data={"title": "Song", "artist_id": artist["id"]}, files=audio(), headers=auth_headers)
    key = resp.json()["object_key"]
    url = (await client.get(f"/presigned-url/{key}")).json()["url"]

    assert provider.fetch(url.replace("sp=r", "sp=w"))[0] == 403
    later = str(int(provider.now.timestamp()) + 86400)
    assert provider.fetch(url.split("se=")[0] + f"se={later}&" + url.split("&", 1)[1])[0] == 403


async def test_grant_does_not_require_session(client: AsyncClient) -> None:
    resp = await client.get("/presigned-url/1700000000000-cafe0001.mp3")
    assert resp.status_code == 200
    assert set(resp.json()) == {"url", "expires_at"}


async def test_upload_requires_session(client: AsyncClient, provider, artist) -> None:
    resp = await client.post("/add-song", data={"title": "Song", "artist_id": artist["id"]}, files=audio())

    assert resp.status_code == 401
    assert provider.objects == {}


async def test_upload_without_file_is_client_error(client: AsyncClient, artist, auth_headers) -> None:
    resp = await client.post("/add-song", data={"title": "Song", "artist_id": artist["id"]}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json() == {"detail": "No file provided"}


async def test_concurrent_uploads_with_identical_names(client: AsyncClient, provider, artist, auth_headers) -> None:
    responses = await asyncio.gather(*[
        client.post(
            "/add-song",
            data={"title": f"Take {i}", "artist_id": artist["id"]},
            files=audio(f"take {i}".encode(), "demo.mp3"),
            headers=auth_headers,
        )
        for i in range(8)
    ])

    assert all(r.status_code == 201 for r in responses)
    locators = {r.json()["file_path"] for r in responses}
    assert len(locators) == 8
    assert len(provider.objects) == 8


async def test_storage_failure_returns_generic_error(client: AsyncClient, provider, database, artist, auth_headers) -> None:
    provider.fail_store = True

    resp = await client.post("/add-song", data={"title": "Song", "artist_id": artist["id"]}, files=audio(), headers=auth_headers)

    assert resp.status_code == 500
    assert resp.json() == {"detail": "File storage failed"}
    assert await database["songs"].count_documents({}) == 0


async def test_update_song_file(client: AsyncClient, provider, artist, auth_headers) -> None:
    song = (await client.post(
        "/add-song", data={"title": "Song", "artist_id": artist["id"]}, files=audio(b"v1"), headers=auth_headers
    )).json()

    resp = await client.post(f"/update-song-file/{song['id']}", files=audio(b"v2", "v2.mp3"), headers=auth_headers)
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["id"] == song["id"]
    assert updated["file_path"] != song["file_path"]
    assert provider.objects[updated["object_key"]] == b"v2"

    assert (await client.post("/update-song-file/missing", files=audio(), headers=auth_headers)).status_code == 404
    assert (await client.post(f"/update-song-file/{song['id']}", files=audio())).status_code == 401


async def test_albums_join_artist_name(client: AsyncClient, artist, auth_headers) -> None:
    resp = await client.post("/albums", json={"title": "Pastel Blues", "artist_id": artist["id"]}, headers=auth_headers)
    assert resp.status_code == 201
    album = resp.json()

    albums = (await client.get("/albums")).json()["albums"]
    assert albums == [{"id": album["id"], "title": "Pastel Blues", "artist_id": artist["id"], "artist_name": "Nina Simone"}]

    missing = await client.post("/albums", json={"title": "Ghost", "artist_id": "nope"}, headers=auth_headers)
    assert missing.status_code == 404


async def test_song_with_album_lists_album_title(client: AsyncClient, artist, auth_headers) -> None:
    album = (await client.post("/albums", json={"title": "Pastel Blues", "artist_id": artist["id"]}, headers=auth_headers)).json()

    resp = await client.post(
        "/add-song",
        data={"title": "Sinnerman", "artist_id": artist["id"], "album_id": album["id"]},
        files=audio(),
        headers=auth_headers,
    )
    assert resp.status_code == 201

    songs = (await client.get("/songs")).json()["songs"]
    assert songs[0]["album_title"] == "Pastel Blues"


async def test_local_backend_serves_files_and_refuses_grants(settings, database, tmp_path) -> None:
    storage = LocalStorageBackend(directory=str(tmp_path / "uploads"))
    app = create_app(settings=replace(settings, upload_directory=storage.directory), storage=storage, database=database)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as client:
        headers = await register_and_login(client)
        artist = (await client.post("/artists", json={"name": "Nina Simone"}, headers=headers)).json()
        song = (await client.post(
            "/add-song", data={"title": "Song", "artist_id": artist["id"]}, files=audio(), headers=headers
        )).json()

        assert song["file_path"] == f"uploads/{song['object_key']}"
        served = await client.get(f"/{song['file_path']}")
        assert served.status_code == 200
        assert served.content == b"ID3-sinnerman"

        assert (await client.get(f"/presigned-url/{song['object_key']}")).status_code == 501


async def test_root_and_security_headers(client: AsyncClient) -> None:
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.text == "Welcome to the Music Player API"
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"
    assert "server" not in resp.headers


@pytest.mark.parametrize(
    "error, status_code, detail",
    [
        (StorageTimeoutError("signing stalled"), 504, "Signing timed out"),
        (StorageBackendError("account key rejected"), 500, "Could not create signed URL"),
    ],
)
async def test_grant_provider_failures_are_generic(client: AsyncClient, provider, monkeypatch, error, status_code, detail) -> None:
    def failing_mint(key, expires_in, client_ip):
        raise error

    monkeypatch.setattr(provider, "_mint_scoped_grant", failing_mint)

    resp = await client.get("/presigned-url/1700000000000-cafe0001.mp3")

    assert resp.status_code == status_code
    assert resp.json() == {"detail": detail}
    assert "account key" not in resp.text


async def test_random_songs_returns_six_player_rows(client: AsyncClient, artist, auth_headers) -> None:
    album = (await client.post("/albums", json={"title": "Pastel Blues", "artist_id": artist["id"]}, headers=auth_headers)).json()
    for i in range(8):
        resp = await client.post(
            "/add-song",
            data={"title": f"Take {i}", "artist_id": artist["id"], "album_id": album["id"]},
            files=audio(),
            headers=auth_headers,
        )
        assert resp.status_code == 201

    resp = await client.get("/random-songs")

    assert resp.status_code == 200
    rows = resp.json()["songs"]
    assert len(rows) == 6
    assert len({row["id"] for row in rows}) == 6
    for row in rows:
        assert set(row) == {"id", "songTitle", "artistName", "albumTitle", "filePath"}
        assert row["artistName"] == "Nina Simone"
        assert row["albumTitle"] == "Pastel Blues"


async def test_random_songs_with_fewer_than_six(client: AsyncClient, database, artist, auth_headers) -> None:
    album = (await client.post("/albums", json={"title": "Pastel Blues", "artist_id": artist["id"]}, headers=auth_headers)).json()
    song = (await client.post(
        "/add-song", data={"title": "Sinnerman", "artist_id": artist["id"]}, files=audio(), headers=auth_headers
    )).json()
    # Older rows may only reach their artist through the album
    await database["songs"].insert_one(
        {"id": "legacy-1", "title": "Legacy", "album_id": album["id"], "file_path": "uploads/legacy.mp3"}
    )

    rows = {row["id"]: row for row in (await client.get("/random-songs")).json()["songs"]}

    assert rows == {
        song["id"]: {
            "id": song["id"],
            "songTitle": "Sinnerman",
            "artistName": "Nina Simone",
            "albumTitle": None,
            "filePath": song["file_path"],
        },
        "legacy-1": {
            "id": "legacy-1",
            "songTitle": "Legacy",
            "artistName": "Nina Simone",
            "albumTitle": "Pastel Blues",
            "filePath": "uploads/legacy.mp3",
        },
    }


async def test_anonymous_auth_check_stays_out_of_warning_log(client: AsyncClient, caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="app.api.v1.dependencies"):
        for _ in range(3):
            assert (await client.get("/auth-check")).json()["authenticated"] is False
        await client.post("/artists", json={"name": "Nobody"}, headers={"Authorization": "Bearer not.a.token"})

    records = [r for r in caplog.records if r.name == "app.api.v1.dependencies"]
    assert [r.levelno for r in records if "/auth-check" in r.getMessage()] == [logging.DEBUG] * 3
    assert any(r.levelno == logging.WARNING for r in records)

"""Unit tests for local object storage and backend selection."""

import pytest
from services.object_storage import (
    LocalStorage,
    ObjectStorageError,
    R2Storage,
    create_storage,
    guess_content_type,
)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_upload_writes_file_and_returns_media_url(temp_dir):
    storage = LocalStorage(str(temp_dir), public_base_url="http://localhost:8000/")

    url = await storage.upload("images/p1/image-1.png", b"png-bytes")

    assert url == "http://localhost:8000/media/images/p1/image-1.png"
    assert (temp_dir / "images" / "p1" / "image-1.png").read_bytes() == b"png-bytes"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_delete(temp_dir):
    storage = LocalStorage(str(temp_dir))
    await storage.upload("audio/a.wav", b"wav")

    assert await storage.delete("audio/a.wav") is True
    assert await storage.delete("audio/a.wav") is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_rejects_keys_outside_root(temp_dir):
    storage = LocalStorage(str(temp_dir / "media"))

    with pytest.raises(ObjectStorageError):
        await storage.upload("../escape.png", b"x")


@pytest.mark.unit
def test_guess_content_type():
    assert guess_content_type("a/b.png") == "image/png"
    assert guess_content_type("a/b.wav") in ("audio/wav", "audio/x-wav")
    assert guess_content_type("a/b.unknownext") == "application/octet-stream"


@pytest.mark.unit
def test_create_storage_selects_backend(sample_config):
    assert isinstance(create_storage(sample_config), LocalStorage)

    r2 = create_storage(
        {
            **sample_config,
            "storage_backend": "r2",
            "r2_account_id": "acct",
            "r2_access_key_id": "id",
            "r2_secret_access_key": "secret",
            "r2_public_url": "https://media.example.com/",
        }
    )
    assert isinstance(r2, R2Storage)
    assert r2.public_url("images/x.png") == "https://media.example.com/images/x.png"


@pytest.mark.unit
def test_key_for_url_only_resolves_own_urls(temp_dir):
    storage = LocalStorage(str(temp_dir), public_base_url="http://localhost:8000")

    assert storage.key_for_url("http://localhost:8000/media/images/p1/image-1.png") == "images/p1/image-1.png"
    assert storage.key_for_url("https://cdn.example.com/images/p1/image-1.png") is None
    assert storage.key_for_url("http://localhost:8000/media/") is None
    assert storage.key_for_url(None) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_urls_counts_deleted_objects(temp_dir):
    storage = LocalStorage(str(temp_dir))
    image_url = await storage.upload("images/p1/image-1.png", b"png")
    audio_url = await storage.upload("audio/p1/audio-1.wav", b"wav")

    deleted = await storage.delete_urls(
        [image_url, audio_url, None, "https://cdn.example.com/other.png", storage.public_url("missing.png")]
    )

    assert deleted == 2
    assert not (temp_dir / "images" / "p1" / "image-1.png").exists()
    assert not (temp_dir / "audio" / "p1" / "audio-1.wav").exists()

import pytest

from app.platform.exceptions import StorageError
from app.platform.services.storage import LocalStorage


@pytest.mark.asyncio
async def test_store_writes_file_and_returns_location(tmp_path):
    storage = LocalStorage(base_dir=str(tmp_path), base_url="/static/analysis/")

    location = await storage.store(b"png-bytes", "screenshots/abc-mobile.png", "image/png")

    assert location == "/static/analysis/screenshots/abc-mobile.png"
    assert (tmp_path / "screenshots" / "abc-mobile.png").read_bytes() == b"png-bytes"


@pytest.mark.asyncio
async def test_store_overwrites_existing_key(tmp_path):
    storage = LocalStorage(base_dir=str(tmp_path), base_url="/files")

    await storage.store("<html>first</html>", "reports/r.html", "text/html")
    await storage.store("<html>second</html>", "reports/r.html", "text/html")

    assert (tmp_path / "reports" / "r.html").read_text() == "<html>second</html>"


@pytest.mark.asyncio
async def test_key_cannot_escape_base_dir(tmp_path):
    storage = LocalStorage(base_dir=str(tmp_path / "store"), base_url="/files")

    with pytest.raises(StorageError) as exc_info:
        await storage.store(b"x", "../outside.txt", "text/plain")

    assert exc_info.value.code == "STORAGE_ERROR"


@pytest.mark.asyncio
async def test_write_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / "reports"
    blocker.write_text("not a directory")
    storage = LocalStorage(base_dir=str(tmp_path), base_url="/files")

    with pytest.raises(StorageError):
        await storage.store(b"x", "reports/r.html", "text/html")

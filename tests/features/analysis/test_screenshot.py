from unittest.mock import AsyncMock, call

import pytest

from app.features.analysis.schemas.analysis import DEFAULT_VIEWPORTS, Viewport
from app.features.analysis.services.screenshot import ScreenshotCapturer
from app.platform.exceptions import ScreenshotCaptureError, StorageError

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


@pytest.mark.asyncio
async def test_default_viewports_captured_in_order(make_page, storage):
    page = make_page()
    capturer = ScreenshotCapturer(storage, settle_ms=0)

    results = await capturer.capture(page, "abc")

    assert [r.viewport for r in results] == ["mobile", "tablet", "desktop", "4k"]
    assert page.set_viewport.await_args_list == [call(v.width, v.height) for v in DEFAULT_VIEWPORTS]
    assert all(r.error is None for r in results)
    assert results[0].location == "memory://screenshots/abc-mobile.png"
    assert results[0].filename == "abc-mobile.png"
    assert results[0].size_bytes == len(PNG_BYTES)
    assert storage.objects["screenshots/abc-4k.png"] == (PNG_BYTES, "image/png")


@pytest.mark.asyncio
async def test_custom_viewports(make_page, storage):
    capturer = ScreenshotCapturer(storage, settle_ms=0)

    results = await capturer.capture(make_page(), "abc", [Viewport(name="wide", width=2560, height=1440)])

    assert len(results) == 1
    assert (results[0].viewport, results[0].width, results[0].height) == ("wide", 2560, 1440)


@pytest.mark.asyncio
async def test_failed_viewport_does_not_stop_the_rest(make_page, storage):
    page = make_page()
    page.screenshot = AsyncMock(
        side_effect=[PNG_BYTES, ScreenshotCaptureError("Screenshot capture failed: tab crashed"), PNG_BYTES, PNG_BYTES]
    )

    results = await ScreenshotCapturer(storage, settle_ms=0).capture(page, "abc")

    tablet = results[1]
    assert tablet.error == "Screenshot capture failed: tab crashed"
    assert tablet.location is None
    assert tablet.size_bytes == 0
    assert (tablet.width, tablet.height) == (768, 1024)
    assert [r.error is None for r in results] == [True, False, True, True]


@pytest.mark.asyncio
async def test_storage_failure_becomes_error_entry(make_page):
    failing_storage = AsyncMock()
    failing_storage.store = AsyncMock(side_effect=StorageError("Failed to store screenshots/abc-mobile.png"))

    results = await ScreenshotCapturer(failing_storage, settle_ms=0).capture(
        make_page(), "abc", [Viewport(name="mobile", width=375, height=667)]
    )

    assert results[0].location is None
    assert results[0].error == "Failed to store screenshots/abc-mobile.png"


@pytest.mark.asyncio
async def test_failed_resize_does_not_stop_the_rest(make_page, storage):
    page = make_page()
    page.set_viewport = AsyncMock(side_effect=[None, None, RuntimeError("Emulation failed"), None])

    results = await ScreenshotCapturer(storage, settle_ms=0).capture(page, "abc")

    assert len(results) == 4
    assert [r.error for r in results] == [None, None, "Emulation failed", None]
    assert page.screenshot.await_count == 3
    assert "screenshots/abc-desktop.png" not in storage.objects

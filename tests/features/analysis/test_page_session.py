import base64
import itertools
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from selenium.common.exceptions import (
    InvalidSelectorException,
    NoSuchElementException,
    TimeoutException,
    WebDriverException,
)

from app.features.analysis.services.page_session import (
    NAVIGATION_STATUS_SCRIPT,
    RESOURCE_COUNT_SCRIPT,
    PageSession,
)
from app.platform.exceptions import (
    BrowserLaunchError,
    NavigationError,
    NavigationTimeoutError,
    NetworkError,
)

URL = "https://example.com/"


def make_driver(status=200, resource_counts=None):
    driver = MagicMock()
    counts = resource_counts if resource_counts is not None else itertools.repeat(7)

    def execute_script(script, *args):
        if script == NAVIGATION_STATUS_SCRIPT:
            return status
        if script == RESOURCE_COUNT_SCRIPT:
            return next(counts)
        return None

    driver.execute_script.side_effect = execute_script
    return driver


def session_with(driver, **kwargs):
    kwargs.setdefault("idle_timeout_ms", 200)
    kwargs.setdefault("idle_window_ms", 0)
    session = PageSession(**kwargs)
    session._create_driver = MagicMock(return_value=driver)
    return session


@pytest.mark.asyncio
async def test_open_returns_navigation_time():
    driver = make_driver()

    async with session_with(driver) as page:
        navigation_time = await page.open(URL, 20000)

    assert navigation_time >= 0
    driver.set_page_load_timeout.assert_called_once_with(20.0)
    driver.get.assert_called_once_with(URL)
    assert page.url == URL


@pytest.mark.asyncio
async def test_http_error_status_raises_navigation_error():
    driver = make_driver(status=500)

    with pytest.raises(NavigationError) as exc_info:
        async with session_with(driver) as page:
            await page.open(URL)

    assert exc_info.value.code == "HTTP_ERROR"
    assert exc_info.value.details["status"] == 500
    assert exc_info.value.status_code == 502
    driver.quit.assert_called_once()


@pytest.mark.asyncio
async def test_missing_timing_status_falls_back_to_document_fetch():
    driver = make_driver(status=None)
    session = session_with(driver)

    with patch.object(PageSession, "response", new=AsyncMock(return_value=MagicMock(status_code=404))):
        with pytest.raises(NavigationError) as exc_info:
            async with session as page:
                await page.open(URL)

    assert exc_info.value.details["status"] == 404


@pytest.mark.asyncio
async def test_unknown_status_raises_navigation_error():
    driver = make_driver(status=None)

    with patch.object(PageSession, "response", new=AsyncMock(side_effect=httpx.ConnectError("refused"))):
        with pytest.raises(NavigationError) as exc_info:
            async with session_with(driver) as page:
                await page.open(URL)

    assert exc_info.value.message == "No response received"
    assert exc_info.value.details["status"] is None


@pytest.mark.asyncio
async def test_timeout_raises_navigation_timeout():
    driver = make_driver()
    driver.get.side_effect = TimeoutException("timeout: Timed out receiving message from renderer")

    with pytest.raises(NavigationTimeoutError) as exc_info:
        async with session_with(driver) as page:
            await page.open(URL, 5000)

    assert exc_info.value.code == "TIMEOUT_ERROR"
    assert exc_info.value.status_code == 504
    assert exc_info.value.details == {"url": URL, "timeout": 5000}
    driver.quit.assert_called_once()


@pytest.mark.asyncio
async def test_net_error_raises_network_error():
    driver = make_driver()
    driver.get.side_effect = WebDriverException("unknown error: net::ERR_NAME_NOT_RESOLVED")

    with pytest.raises(NetworkError) as exc_info:
        async with session_with(driver) as page:
            await page.open(URL)

    assert exc_info.value.details["error"] == "net::ERR_NAME_NOT_RESOLVED"


@pytest.mark.asyncio
async def test_other_webdriver_error_raises_page_load_failed():
    driver = make_driver()
    driver.get.side_effect = WebDriverException("unknown error: session deleted")

    with pytest.raises(NavigationError) as exc_info:
        async with session_with(driver) as page:
            await page.open(URL)

    assert exc_info.value.code == "PAGE_LOAD_FAILED"


@pytest.mark.asyncio
async def test_network_idle_timeout_is_not_fatal(caplog):
    driver = make_driver(resource_counts=itertools.count())

    async with session_with(driver, idle_timeout_ms=100, idle_window_ms=1000) as page:
        await page.open(URL)

    assert "Network did not go idle" in caplog.text


@pytest.mark.asyncio
async def test_launch_failure_raises_browser_launch_error():
    session = PageSession()
    session._create_driver = MagicMock(side_effect=WebDriverException("chrome not reachable"))

    with pytest.raises(BrowserLaunchError) as exc_info:
        await session.start()

    assert exc_info.value.code == "BROWSER_INIT_ERROR"


@pytest.mark.asyncio
async def test_quit_error_is_swallowed_on_close():
    driver = make_driver()
    driver.quit.side_effect = WebDriverException("already closed")

    async with session_with(driver) as page:
        await page.open(URL)

    driver.quit.assert_called_once()


@pytest.mark.asyncio
async def test_wait_for_missing_selector_returns_false():
    driver = make_driver()
    driver.find_element.side_effect = NoSuchElementException("no such element")

    async with session_with(driver) as page:
        assert await page.wait_for("#app", timeout_ms=100) is False


@pytest.mark.asyncio
async def test_wait_for_invalid_selector_returns_false():
    driver = make_driver()
    driver.find_element.side_effect = InvalidSelectorException("invalid selector")

    async with session_with(driver) as page:
        assert await page.wait_for("##", timeout_ms=100) is False


@pytest.mark.asyncio
async def test_wait_for_present_selector():
    async with session_with(make_driver()) as page:
        assert await page.wait_for("#app", timeout_ms=100) is True


@pytest.mark.asyncio
async def test_set_viewport_emulates_device_metrics():
    driver = make_driver()

    async with session_with(driver) as page:
        await page.set_viewport(375, 667)
        assert (page.viewport.width, page.viewport.height) == (375, 667)

    driver.execute_cdp_cmd.assert_called_with(
        "Emulation.setDeviceMetricsOverride",
        {"width": 375, "height": 667, "deviceScaleFactor": 1, "mobile": True},
    )


@pytest.mark.asyncio
async def test_screenshot_captures_full_page():
    driver = make_driver()
    png = b"\x89PNG-full-page"

    def cdp(command, params):
        if command == "Page.getLayoutMetrics":
            return {"cssContentSize": {"width": 1920, "height": 5000}}
        if command == "Page.captureScreenshot":
            return {"data": base64.b64encode(png).decode()}
        return {}

    driver.execute_cdp_cmd.side_effect = cdp

    async with session_with(driver) as page:
        assert await page.screenshot() == png

    params = driver.execute_cdp_cmd.call_args_list[-1].args[1]
    assert params["captureBeyondViewport"] is True
    assert params["clip"]["height"] == 5000


@pytest.mark.asyncio
async def test_console_errors_accumulate_across_reads():
    driver = make_driver()
    driver.get_log.side_effect = [
        [{"level": "SEVERE", "message": "Uncaught ReferenceError"}, {"level": "INFO", "message": "hello"}],
        [],
    ]

    async with session_with(driver) as page:
        assert await page.console_errors() == ["Uncaught ReferenceError"]
        assert await page.console_errors() == ["Uncaught ReferenceError"]


@pytest.mark.asyncio
async def test_response_is_fetched_once():
    client = MagicMock()
    client.get = AsyncMock(return_value=httpx.Response(200, headers={"X-Frame-Options": "DENY"}))
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = client

    async with session_with(make_driver()) as page:
        await page.open(URL)
        with patch("app.features.analysis.services.page_session.httpx.AsyncClient", factory):
            first = await page.response_headers()
            second = await page.response_headers()

    assert first == second == {"x-frame-options": "DENY"}
    client.get.assert_awaited_once_with(URL)


@pytest.mark.asyncio
async def test_response_failure_is_memoised():
    client = MagicMock()
    client.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = client

    async with session_with(make_driver()) as page:
        await page.open(URL)
        with patch("app.features.analysis.services.page_session.httpx.AsyncClient", factory):
            for _ in range(2):
                with pytest.raises(httpx.ConnectError):
                    await page.response_headers()

    client.get.assert_awaited_once()


@pytest.mark.asyncio
async def test_health_check_healthy():
    driver = make_driver()
    driver.title = "ok"

    with patch.object(PageSession, "_create_driver", return_value=driver):
        result = await PageSession.health_check()

    assert result["status"] == "healthy"
    assert "response_time" in result
    driver.quit.assert_called_once()


@pytest.mark.asyncio
async def test_health_check_unhealthy_when_launch_fails():
    with patch.object(PageSession, "_create_driver", side_effect=WebDriverException("no chrome")):
        result = await PageSession.health_check()

    assert result["status"] == "unhealthy"
    assert "no chrome" in result["error"]


@pytest.mark.skip(reason="Requires Chrome and network access")
@pytest.mark.asyncio
async def test_open_live_page():
    async with PageSession() as page:
        await page.open("https://example.com")
        assert "Example" in await page.title()

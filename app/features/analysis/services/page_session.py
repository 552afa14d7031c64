"""
Page Session

One headless Chrome page per analysis run. Selenium is blocking, so every
driver call goes through a single-worker executor: checks get an async query
interface and can never touch the page concurrently.

    async with PageSession() as page:
        navigation_time = await page.open(url)
        ...
"""
import asyncio
import base64
import functools
import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import httpx
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from app.features.analysis.schemas.analysis import Viewport
from app.platform.config import settings
from app.platform.exceptions import (
    BrowserLaunchError,
    NavigationError,
    NavigationTimeoutError,
    NetworkError,
    ScreenshotCaptureError,
)
from app.platform.logger import browser_action, get_logger, performance_metric

logger = get_logger(__name__)

NET_ERROR = re.compile(r"net::ERR_[A-Z_]+")

NAVIGATION_STATUS_SCRIPT = """
const nav = performance.getEntriesByType('navigation')[0];
return nav && nav.responseStatus ? nav.responseStatus : null;
"""

RESOURCE_COUNT_SCRIPT = "return performance.getEntriesByType('resource').length;"

HEALTH_CHECK_URL = "data:text/html,<title>ok</title><h1>ok</h1>"


class PageSession:
    """Owns one browser, one page and the secondary document fetch."""

    def __init__(
        self,
        headless: Optional[bool] = None,
        idle_timeout_ms: Optional[int] = None,
        idle_window_ms: Optional[int] = None,
    ):
        self.headless = settings.BROWSER_HEADLESS if headless is None else headless
        self.idle_timeout_ms = settings.NETWORK_IDLE_TIMEOUT_MS if idle_timeout_ms is None else idle_timeout_ms
        self.idle_window_ms = settings.NETWORK_IDLE_WINDOW_MS if idle_window_ms is None else idle_window_ms
        self.viewport = Viewport(
            name="evaluation",
            width=settings.EVALUATION_VIEWPORT_WIDTH,
            height=settings.EVALUATION_VIEWPORT_HEIGHT,
        )
        self.url: Optional[str] = None

        self._driver: Optional[webdriver.Chrome] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._response: Optional[httpx.Response] = None
        self._response_error: Optional[httpx.HTTPError] = None
        self._console_errors: List[str] = []

    # ── Lifecycle ──────────────────────────────

    def _create_driver(self) -> webdriver.Chrome:
        chrome_options = Options()
        if self.headless:
            chrome_options.add_argument("--headless=new")
        chrome_options.add_argument("--no-sandbox")
        chrome_options.add_argument("--disable-dev-shm-usage")
        chrome_options.add_argument("--disable-gpu")
        chrome_options.add_argument(f"--window-size={self.viewport.width},{self.viewport.height}")
        chrome_options.add_argument(f"--user-agent={settings.BROWSER_USER_AGENT}")
        if settings.IGNORE_HTTPS_ERRORS:
            chrome_options.add_argument("--ignore-certificate-errors")
        # navigation completes at DOMContentLoaded; network idle is awaited separately
        chrome_options.page_load_strategy = "eager"
        chrome_options.set_capability("goog:loggingPrefs", {"browser": "ALL"})

        if settings.CHROMEDRIVER_PATH:
            driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
            return webdriver.Chrome(service=driver_service, options=chrome_options)
        return webdriver.Chrome(options=chrome_options)

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    @property
    def driver(self) -> webdriver.Chrome:
        if self._driver is None:
            raise BrowserLaunchError("Browser session has not been started")
        return self._driver

    async def start(self) -> "PageSession":
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="page-session")
        try:
            self._driver = await self._run(self._create_driver)
        except (WebDriverException, OSError) as e:
            logger.error(f"Failed to launch browser: {e}")
            self._executor.shutdown(wait=False)
            self._executor = None
            raise BrowserLaunchError(f"Failed to launch browser: {e}", details={"error": str(e)})

        await self.set_viewport(self.viewport.width, self.viewport.height)
        logger.info("Browser session started")
        return self

    async def close(self) -> None:
        if self._driver is not None:
            try:
                await self._run(self._driver.quit)
                logger.info("Browser session closed")
            except Exception as e:
                logger.warning(f"Error while closing browser: {e}")
            finally:
                self._driver = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    async def __aenter__(self) -> "PageSession":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False

    # ── Navigation ─────────────────────────────

    async def open(self, url: str, timeout_ms: Optional[int] = None) -> float:
        """
        Navigate to ``url`` and return the navigation time in ms.

        Raises NavigationTimeoutError, NetworkError or NavigationError; a
        missing or non-2xx status is a NavigationError carrying ``status``.
        """
        timeout_ms = timeout_ms or settings.NAVIGATION_TIMEOUT_MS
        driver = self.driver
        self._response = None
        self._response_error = None
        self._console_errors = []

        await self._run(driver.set_page_load_timeout, timeout_ms / 1000)
        browser_action(logger, "navigate", url, timeout=timeout_ms)

        started = time.monotonic()
        try:
            await self._run(driver.get, url)
        except TimeoutException:
            logger.error(f"Navigation timeout after {timeout_ms}ms: {url}")
            raise NavigationTimeoutError(
                f"Navigation timeout after {timeout_ms}ms",
                details={"url": url, "timeout": timeout_ms},
            )
        except WebDriverException as e:
            message = e.msg or str(e)
            net_error = NET_ERROR.search(message)
            logger.error(f"Navigation failed for {url}: {message}")
            if net_error:
                raise NetworkError(
                    f"Network error: {net_error.group(0)}",
                    details={"url": url, "error": net_error.group(0)},
                )
            raise NavigationError(f"Failed to load page: {message}", details={"url": url})

        navigation_time = (time.monotonic() - started) * 1000
        self.url = url

        status = await self._status()
        if status is None or not 200 <= status < 300:
            logger.error(f"Page answered with HTTP {status}: {url}")
            raise NavigationError(
                f"HTTP {status}: Failed to load page" if status else "No response received",
                code="HTTP_ERROR",
                details={"url": url, "status": status},
            )

        performance_metric(logger, "navigation", round(navigation_time))
        await self._wait_for_network_idle()
        return navigation_time

    async def _status(self) -> Optional[int]:
        status = await self.evaluate(NAVIGATION_STATUS_SCRIPT)
        if status:
            return int(status)
        try:
            return (await self.response()).status_code
        except httpx.HTTPError as e:
            logger.warning(f"Could not determine HTTP status for {self.url}: {e}")
            return None

    async def _wait_for_network_idle(self) -> bool:
        """Wait until no new resource entries appear for the idle window."""
        deadline = time.monotonic() + self.idle_timeout_ms / 1000
        window = self.idle_window_ms / 1000
        poll = min(0.1, window)
        try:
            last = await self.evaluate(RESOURCE_COUNT_SCRIPT)
            stable_since = time.monotonic()
            while time.monotonic() < deadline:
                await asyncio.sleep(poll)
                count = await self.evaluate(RESOURCE_COUNT_SCRIPT)
                if count != last:
                    last, stable_since = count, time.monotonic()
                elif time.monotonic() - stable_since >= window:
                    return True
        except WebDriverException as e:
            logger.warning(f"Network idle wait aborted for {self.url}: {e.msg or e}")
            return False

        logger.warning(f"Network did not go idle within {self.idle_timeout_ms}ms: {self.url}")
        return False

    async def wait_for(self, selector: str, timeout_ms: Optional[int] = None) -> bool:
        """Wait for ``selector``; never raises. Returns whether it appeared."""
        timeout_ms = timeout_ms or settings.SELECTOR_WAIT_TIMEOUT_MS
        wait = WebDriverWait(self.driver, timeout_ms / 1000)
        try:
            await self._run(wait.until, EC.presence_of_element_located((By.CSS_SELECTOR, selector)))
        except TimeoutException:
            logger.warning(f"Selector {selector!r} not found within {timeout_ms}ms")
            return False
        except WebDriverException as e:
            logger.warning(f"Waiting for selector {selector!r} failed: {e.msg or e}")
            return False
        browser_action(logger, "wait_for", self.url or "", selector=selector)
        return True

    # ── Queries ────────────────────────────────

    async def evaluate(self, script: str, *args: Any) -> Any:
        return await self._run(self.driver.execute_script, script, *args)

    async def title(self) -> str:
        driver = self.driver
        return await self._run(lambda: driver.title)

    async def current_url(self) -> str:
        driver = self.driver
        return await self._run(lambda: driver.current_url)

    async def set_viewport(self, width: int, height: int) -> None:
        await self._run(
            self.driver.execute_cdp_cmd,
            "Emulation.setDeviceMetricsOverride",
            {"width": width, "height": height, "deviceScaleFactor": 1, "mobile": width < 768},
        )
        self.viewport = Viewport(name=f"{width}x{height}", width=width, height=height)
        browser_action(logger, "set_viewport", self.url or "", width=width, height=height)

    async def screenshot(self) -> bytes:
        """Full-page PNG of the current viewport width."""
        driver = self.driver
        try:
            metrics = await self._run(driver.execute_cdp_cmd, "Page.getLayoutMetrics", {})
            size = metrics.get("cssContentSize") or metrics["contentSize"]
            result = await self._run(
                driver.execute_cdp_cmd,
                "Page.captureScreenshot",
                {
                    "format": "png",
                    "captureBeyondViewport": True,
                    "clip": {"x": 0, "y": 0, "width": size["width"], "height": size["height"], "scale": 1},
                },
            )
        except WebDriverException as e:
            raise ScreenshotCaptureError(
                f"Screenshot capture failed: {e.msg or e}",
                details={"viewport": self.viewport.name},
            )
        return base64.b64decode(result["data"])

    async def response(self) -> httpx.Response:
        """
        Secondary fetch of the loaded document, used for status and header
        inspection without disturbing the page. Memoised per navigation,
        failures included.
        """
        if self._response is not None:
            return self._response
        if self._response_error is not None:
            raise self._response_error

        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                verify=not settings.IGNORE_HTTPS_ERRORS,
                timeout=settings.NAVIGATION_TIMEOUT_MS / 1000,
                headers={"User-Agent": settings.BROWSER_USER_AGENT},
            ) as client:
                self._response = await client.get(self.url)
        except httpx.HTTPError as e:
            self._response_error = e
            raise
        return self._response

    async def response_headers(self) -> Dict[str, str]:
        response = await self.response()
        return {key.lower(): value for key, value in response.headers.items()}

    async def cookies(self) -> List[Dict[str, Any]]:
        return await self._run(self.driver.get_cookies)

    async def console_errors(self) -> List[str]:
        # the browser log is drained on every read
        entries = await self._run(self.driver.get_log, "browser")
        self._console_errors.extend(e["message"] for e in entries if e.get("level") == "SEVERE")
        return list(self._console_errors)

    # ── Health ─────────────────────────────────

    @classmethod
    async def health_check(cls) -> Dict[str, Any]:
        started = time.monotonic()
        try:
            async with cls() as page:
                await page._run(page.driver.get, HEALTH_CHECK_URL)
                title = await page.title()
        except (BrowserLaunchError, WebDriverException) as e:
            logger.error(f"Browser health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy" if title == "ok" else "unhealthy",
            "response_time": round((time.monotonic() - started) * 1000),
        }

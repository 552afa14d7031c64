"""Criterion descriptor and the page interface every check reads through."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

import httpx

from app.features.analysis.schemas.analysis import Category, CheckOutcome, CheckStatus, Impact, Viewport


class PageHandle(Protocol):
    """Asynchronous, read-mostly view of the loaded page."""

    viewport: Viewport

    async def evaluate(self, script: str, *args: Any) -> Any: ...

    async def title(self) -> str: ...

    async def current_url(self) -> str: ...

    async def set_viewport(self, width: int, height: int) -> None: ...

    async def response_headers(self) -> Dict[str, str]: ...

    async def cookies(self) -> List[Dict[str, Any]]: ...

    async def console_errors(self) -> List[str]: ...


CheckFn = Callable[..., Awaitable[CheckOutcome]]


@dataclass(frozen=True)
class Criterion:
    """A single named, categorised check definition."""

    id: str
    name: str
    description: str
    category: Category
    impact: Impact
    check: CheckFn
    uses_navigation_timing: bool = False

    async def run(self, page: PageHandle, navigation_start: Optional[float] = None) -> CheckOutcome:
        if self.uses_navigation_timing:
            return await self.check(page, navigation_start)
        return await self.check(page)


def outcome(status: CheckStatus, details: str, recommendations: Optional[List[str]] = None) -> CheckOutcome:
    return CheckOutcome(status=status, details=details, recommendations=recommendations or [])


def when(condition: bool, *items: str) -> List[str]:
    """Recommendations that apply only if ``condition`` holds."""
    return list(items) if condition else []


async def fetch_headers(page: PageHandle) -> Tuple[Optional[Dict[str, str]], Optional[str]]:
    """
    Response headers of the page document, or ``(None, reason)`` when the
    secondary fetch fails. Header checks degrade to a warning in that case.
    """
    try:
        return await page.response_headers(), None
    except httpx.HTTPError as e:
        return None, str(e) or e.__class__.__name__


def headers_unavailable(reason: str) -> CheckOutcome:
    return outcome(
        CheckStatus.warning,
        f"Could not inspect response headers: {reason}",
        ["Verify the server responds to direct requests for this URL"],
    )

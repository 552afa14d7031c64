import asyncio
from typing import List, Optional, Sequence

from app.features.analysis.schemas.analysis import DEFAULT_VIEWPORTS, ScreenshotResult, Viewport
from app.platform.config import settings
from app.platform.logger import get_logger
from app.platform.services.storage import StorageBackend

logger = get_logger(__name__)


class ScreenshotCapturer:
    """Full-page screenshots at each viewport, one stored PNG per viewport."""

    def __init__(self, storage: StorageBackend, settle_ms: Optional[int] = None):
        self.storage = storage
        self.settle_ms = settings.SCREENSHOT_SETTLE_MS if settle_ms is None else settle_ms

    async def capture(
        self,
        page,
        analysis_id: str,
        viewports: Optional[Sequence[Viewport]] = None,
    ) -> List[ScreenshotResult]:
        """
        Never raises: a viewport that fails to resize, capture or store becomes
        an entry with ``error`` set and the remaining viewports still run.
        """
        results = []
        for viewport in viewports or DEFAULT_VIEWPORTS:
            results.append(await self._capture_one(page, analysis_id, viewport))

        captured = sum(1 for r in results if r.error is None)
        logger.info(f"Captured {captured}/{len(results)} screenshots for {analysis_id}")
        return results

    async def _capture_one(self, page, analysis_id: str, viewport: Viewport) -> ScreenshotResult:
        filename = f"{analysis_id}-{viewport.name}.png"
        try:
            await page.set_viewport(viewport.width, viewport.height)
            await asyncio.sleep(self.settle_ms / 1000)
            image = await page.screenshot()
            location = await self.storage.store(image, f"screenshots/{filename}", "image/png")
        except Exception as e:
            logger.error(f"Screenshot failed for viewport {viewport.name}: {e}")
            return ScreenshotResult(
                viewport=viewport.name,
                width=viewport.width,
                height=viewport.height,
                error=str(e),
            )

        logger.info(f"Screenshot captured: {viewport.name} ({viewport.width}x{viewport.height}, {len(image)} bytes)")
        return ScreenshotResult(
            viewport=viewport.name,
            width=viewport.width,
            height=viewport.height,
            location=location,
            size_bytes=len(image),
            filename=filename,
        )

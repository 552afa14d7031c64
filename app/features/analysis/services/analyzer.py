"""
Analysis Service

Drives one run end to end:

    open page -> screenshots -> reset viewport -> checks -> score
              -> raw metrics -> (optional) report

and fans a batch of URLs out over independent runs.
"""
import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from selenium.common.exceptions import WebDriverException

from app.features.analysis.schemas.analysis import (
    AnalysisRun,
    AnalyzeOptions,
    BatchError,
    BatchItem,
    BatchResult,
    BatchSummary,
    PerformanceMetrics,
    Viewport,
)
from app.features.analysis.services.evaluation import EvaluationOrchestrator
from app.features.analysis.services.page_session import PageSession
from app.features.analysis.services.report import ReportService
from app.features.analysis.services.scoring import percentage, summarize
from app.features.analysis.services.screenshot import ScreenshotCapturer
from app.platform.config import settings
from app.platform.exceptions import AnalysisError, AppError
from app.platform.logger import get_logger, performance_metric
from app.platform.services.storage import LocalStorage, StorageBackend

logger = get_logger(__name__)

PERFORMANCE_METRICS_SCRIPT = """
const nav = performance.getEntriesByType('navigation')[0];
const paint = performance.getEntriesByType('paint');
const fcp = paint.find(p => p.name === 'first-contentful-paint');
let lcp = [];
try { lcp = performance.getEntriesByType('largest-contentful-paint'); } catch (e) {}
return {
  load_time: nav && nav.loadEventEnd ? Math.round(nav.loadEventEnd - nav.fetchStart) : 0,
  dom_content_loaded: nav ? Math.round(nav.domContentLoadedEventEnd - nav.fetchStart) : 0,
  first_contentful_paint: fcp ? Math.round(fcp.startTime) : 0,
  largest_contentful_paint: lcp.length ? Math.round(lcp[lcp.length - 1].startTime) : 0,
  dom_elements: document.querySelectorAll('*').length,
  network_requests: performance.getEntriesByType('resource').length,
  document_size: document.documentElement.outerHTML.length
};
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AnalysisService:
    def __init__(
        self,
        storage: Optional[StorageBackend] = None,
        session_factory: Callable[[], PageSession] = PageSession,
        orchestrator: Optional[EvaluationOrchestrator] = None,
    ):
        self.storage = storage or LocalStorage()
        self.session_factory = session_factory
        self.orchestrator = orchestrator or EvaluationOrchestrator()
        self.screenshots = ScreenshotCapturer(self.storage)
        self.reports = ReportService(self.storage)

    async def run_analysis(
        self,
        url: str,
        viewports: Optional[Sequence[Viewport]] = None,
        options: Optional[AnalyzeOptions] = None,
        generate_report: Optional[bool] = None,
    ) -> AnalysisRun:
        """
        Analyse ``url``. Navigation and launch failures propagate as their
        AppError subclasses; anything unclassified becomes AnalysisError.
        """
        options = options or AnalyzeOptions()
        if generate_report is None:
            generate_report = options.generate_report

        analysis_id = str(uuid.uuid4())
        started = time.monotonic()
        logger.info(f"Starting analysis {analysis_id} for {url}")

        try:
            run = await self._analyze(url, analysis_id, viewports, options)
        except AppError:
            raise
        except Exception as e:
            logger.exception(f"Analysis failed for {url}: {e}")
            raise AnalysisError("Analysis failed", details={"url": url, "error": str(e)})

        run.processing_time = round((time.monotonic() - started) * 1000)
        performance_metric(logger, "total_analysis", run.processing_time)

        if generate_report:
            try:
                run.report_url = await self.reports.generate(run)
            except Exception as e:
                logger.warning(f"Report generation failed for {analysis_id}: {e}")

        logger.info(f"Analysis {analysis_id} completed for {url}: score {run.summary.score}")
        return run

    async def _analyze(
        self,
        url: str,
        analysis_id: str,
        viewports: Optional[Sequence[Viewport]],
        options: AnalyzeOptions,
    ) -> AnalysisRun:
        warnings: List[str] = []

        async with self.session_factory() as page:
            navigation_time = await page.open(url, options.timeout)

            if options.wait_for_selector:
                found = await page.wait_for(options.wait_for_selector)
                if not found:
                    warnings.append(f"Selector not found: {options.wait_for_selector}")

            screenshots = await self.screenshots.capture(page, analysis_id, viewports)
            await page.set_viewport(settings.EVALUATION_VIEWPORT_WIDTH, settings.EVALUATION_VIEWPORT_HEIGHT)

            results = await self.orchestrator.evaluate(page, navigation_time)
            performance = await self._collect_metrics(page)

        return AnalysisRun(
            analysis_id=analysis_id,
            url=url,
            timestamp=_now(),
            screenshots=screenshots,
            results=results,
            summary=summarize(results),
            performance=performance,
            warnings=warnings,
        )

    async def _collect_metrics(self, page) -> PerformanceMetrics:
        try:
            metrics = PerformanceMetrics(**await page.evaluate(PERFORMANCE_METRICS_SCRIPT))
        except WebDriverException as e:
            logger.error(f"Failed to collect performance metrics: {e.msg or e}")
            return PerformanceMetrics(error=e.msg or str(e))

        performance_metric(logger, "dom_elements", metrics.dom_elements, "count")
        performance_metric(logger, "network_requests", metrics.network_requests, "count")
        return metrics

    # ── Batch ──────────────────────────────────

    async def run_batch(
        self,
        urls: Sequence[str],
        viewports: Optional[Sequence[Viewport]] = None,
        options: Optional[AnalyzeOptions] = None,
        concurrency: Optional[int] = None,
    ) -> BatchResult:
        """
        Analyse every URL with at most ``concurrency`` runs in flight. One
        failing URL never cancels the others. Reports are not generated.
        """
        batch_id = str(uuid.uuid4())
        semaphore = asyncio.Semaphore(concurrency or settings.BATCH_CONCURRENCY)
        logger.info(f"Batch {batch_id}: analysing {len(urls)} URLs")

        async def analyse(url: str):
            async with semaphore:
                try:
                    run = await self.run_analysis(url, viewports, options, generate_report=False)
                except AppError as e:
                    logger.warning(f"Batch {batch_id}: {url} failed with {e.code}")
                    return BatchError(url=url, error=e.message, code=e.code)
                return BatchItem(
                    url=url,
                    score=run.summary.score,
                    analysis_id=run.analysis_id,
                    processing_time=run.processing_time,
                )

        outcomes = await asyncio.gather(*(analyse(url) for url in urls))

        results = [o for o in outcomes if isinstance(o, BatchItem)]
        errors = [o for o in outcomes if isinstance(o, BatchError)]
        logger.info(f"Batch {batch_id} completed: {len(results)} succeeded, {len(errors)} failed")

        return BatchResult(
            batch_id=batch_id,
            timestamp=_now(),
            summary=BatchSummary(
                total=len(urls),
                successful=len(results),
                failed=len(errors),
                success_rate=percentage(len(results), len(urls)),
            ),
            results=results,
            errors=errors,
        )

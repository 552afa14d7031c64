import asyncio
import time
from typing import List, Mapping, Optional, Tuple

from app.features.analysis.criteria import CRITERIA, Criterion, all_criteria
from app.features.analysis.schemas.analysis import Category, CheckStatus, EvaluationResult
from app.features.analysis.services.scoring import summarize
from app.platform.config import settings
from app.platform.exceptions import CheckExecutionError
from app.platform.logger import get_logger

logger = get_logger(__name__)

UNABLE_TO_EVALUATE = "Unable to evaluate - check page accessibility"


class EvaluationOrchestrator:
    """
    Runs every registered criterion against one loaded page, one at a time.
    A failing check becomes an ``error`` result; it never stops the loop.
    """

    def __init__(
        self,
        registry: Mapping[Category, Tuple[Criterion, ...]] = CRITERIA,
        slow_threshold_ms: Optional[int] = None,
        check_timeout_ms: Optional[int] = None,
    ):
        self.registry = registry
        self.slow_threshold_ms = (
            settings.SLOW_CHECK_THRESHOLD_MS if slow_threshold_ms is None else slow_threshold_ms
        )
        self.check_timeout_ms = settings.CHECK_TIMEOUT_MS if check_timeout_ms is None else check_timeout_ms

    async def evaluate(self, page, navigation_time_ms: float) -> List[EvaluationResult]:
        criteria = all_criteria(self.registry)
        logger.info(f"Running {len(criteria)} checks")

        results = []
        for criterion in criteria:
            results.append(await self._run_one(criterion, page, navigation_time_ms))

        summary = summarize(results)
        logger.info(
            f"Evaluation completed: {summary.passed}/{summary.total} passed, score {summary.score}"
        )
        return results

    async def _run_one(self, criterion: Criterion, page, navigation_time_ms: float) -> EvaluationResult:
        navigation_start = None
        if criterion.uses_navigation_timing:
            navigation_start = time.monotonic() - navigation_time_ms / 1000

        started = time.monotonic()
        try:
            outcome = await self._bounded(criterion.run(page, navigation_start), criterion)
        except Exception as e:
            logger.error(f"Check {criterion.id} failed: {e}")
            return EvaluationResult(
                id=criterion.id,
                name=criterion.name,
                description=criterion.description,
                category=criterion.category,
                impact=criterion.impact,
                status=CheckStatus.error,
                details=f"Evaluation failed: {e}",
                recommendations=[UNABLE_TO_EVALUATE],
                check_time=0,
            )

        check_time = round((time.monotonic() - started) * 1000)
        if check_time > self.slow_threshold_ms:
            logger.warning(f"Slow check {criterion.id} ({criterion.name}) took {check_time}ms")

        return EvaluationResult(
            id=criterion.id,
            name=criterion.name,
            description=criterion.description,
            category=criterion.category,
            impact=criterion.impact,
            status=outcome.status,
            details=outcome.details,
            recommendations=outcome.recommendations,
            check_time=check_time,
        )

    async def _bounded(self, coro, criterion: Criterion):
        if not self.check_timeout_ms:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=self.check_timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise CheckExecutionError(
                f"Check timed out after {self.check_timeout_ms}ms",
                details={"criterion": criterion.id},
            )

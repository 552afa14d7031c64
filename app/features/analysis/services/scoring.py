"""
Scoring

Pure functions over a list of results. Only ``pass`` counts as passed;
fail, warning, info and error all count against the score.
"""
import math
from typing import Dict, Sequence

from app.features.analysis.schemas.analysis import AnalysisSummary, Category, CheckStatus, EvaluationResult


def percentage(part: int, whole: int) -> int:
    """part/whole as an integer percentage, halves rounded up; 0 when whole is 0."""
    if whole == 0:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def summarize(results: Sequence[EvaluationResult]) -> AnalysisSummary:
    total = len(results)
    passed = sum(1 for r in results if r.status == CheckStatus.passed)

    categories = {c.value: 0 for c in Category}
    for result in results:
        categories[result.category.value] = categories.get(result.category.value, 0) + 1

    return AnalysisSummary(
        total=total,
        passed=passed,
        failed=total - passed,
        score=percentage(passed, total),
        categories=categories,
    )


def category_scores(results: Sequence[EvaluationResult]) -> Dict[str, int]:
    """Pass percentage per category, every category present."""
    totals = {c.value: 0 for c in Category}
    passed = {c.value: 0 for c in Category}
    for result in results:
        key = result.category.value
        totals[key] = totals.get(key, 0) + 1
        if result.status == CheckStatus.passed:
            passed[key] = passed.get(key, 0) + 1
    return {key: percentage(passed.get(key, 0), total) for key, total in totals.items()}

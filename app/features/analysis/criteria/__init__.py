"""
Criterion Registry

Immutable, ordered catalogue of every check, grouped by category:

1. accessibility.py - a11y-001..015
2. performance.py   - perf-001..018 (perf-001 is timing-aware)
3. seo.py           - seo-001..012
4. security.py      - sec-001..010
5. usability.py     - use-001..012

Order here is the evaluation order.
"""
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from app.features.analysis.criteria.accessibility import ACCESSIBILITY_CRITERIA
from app.features.analysis.criteria.base import Criterion, PageHandle
from app.features.analysis.criteria.performance import PERFORMANCE_CRITERIA
from app.features.analysis.criteria.security import SECURITY_CRITERIA
from app.features.analysis.criteria.seo import SEO_CRITERIA
from app.features.analysis.criteria.usability import USABILITY_CRITERIA
from app.features.analysis.schemas.analysis import Category

CRITERIA: Mapping[Category, Tuple[Criterion, ...]] = MappingProxyType({
    Category.accessibility: ACCESSIBILITY_CRITERIA,
    Category.performance: PERFORMANCE_CRITERIA,
    Category.seo: SEO_CRITERIA,
    Category.security: SECURITY_CRITERIA,
    Category.usability: USABILITY_CRITERIA,
})

_BY_ID = {criterion.id: criterion for group in CRITERIA.values() for criterion in group}


def all_criteria(registry: Mapping[Category, Tuple[Criterion, ...]] = CRITERIA) -> Tuple[Criterion, ...]:
    """Every criterion, flattened in category then declaration order."""
    return tuple(criterion for group in registry.values() for criterion in group)


def get_criterion(criterion_id: str) -> Optional[Criterion]:
    return _BY_ID.get(criterion_id)


__all__ = [
    "CRITERIA",
    "Criterion",
    "PageHandle",
    "all_criteria",
    "get_criterion",
]

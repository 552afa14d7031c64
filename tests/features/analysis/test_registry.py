import inspect

import pytest

from app.features.analysis.criteria import CRITERIA, all_criteria, get_criterion
from app.features.analysis.schemas.analysis import Category


def test_registry_has_67_unique_criteria():
    criteria = all_criteria()
    ids = [c.id for c in criteria]

    assert len(criteria) == 67
    assert len(set(ids)) == 67


def test_category_counts():
    counts = {category: len(group) for category, group in CRITERIA.items()}

    assert counts == {
        Category.accessibility: 15,
        Category.performance: 18,
        Category.seo: 12,
        Category.security: 10,
        Category.usability: 12,
    }


def test_registry_order_is_category_then_declaration():
    ids = [c.id for c in all_criteria()]

    assert ids[0] == "a11y-001"
    assert ids[15] == "perf-001"
    assert ids[-1] == "use-012"
    assert list(CRITERIA) == list(Category)


def test_every_criterion_lives_in_its_category():
    for category, group in CRITERIA.items():
        assert all(c.category == category for c in group)


def test_exactly_one_timing_aware_criterion():
    timing_aware = [c for c in all_criteria() if c.uses_navigation_timing]

    assert [c.id for c in timing_aware] == ["perf-001"]


def test_checks_are_coroutine_functions():
    assert all(inspect.iscoroutinefunction(c.check) for c in all_criteria())


def test_registry_is_immutable():
    with pytest.raises(TypeError):
        CRITERIA[Category.seo] = ()


def test_get_criterion():
    criterion = get_criterion("seo-001")

    assert criterion.name == "Title Tag"
    assert criterion.category == Category.seo
    assert get_criterion("nope-999") is None


@pytest.mark.parametrize(
    "id,description,impact",
    [
        ("seo-001", "Page has unique and descriptive title", "critical"),
        ("seo-003", "Page has canonical URL specified", "major"),
        ("seo-004", "Open Graph meta tags for social sharing", "minor"),
        ("sec-002", "Essential security headers are present", "major"),
        ("sec-003", "No mixed content (HTTP resources on HTTPS page)", "major"),
        ("use-003", "Touch targets are at least 44x44 pixels", "major"),
    ],
)
def test_criterion_metadata(id, description, impact):
    criterion = get_criterion(id)

    assert criterion.description == description
    assert criterion.impact == impact

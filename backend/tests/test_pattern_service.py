"""
Sales pattern estimator tests.

History is seeded in the two years before "today"; the estimator must
turn it into day weights and expected progress, and fall back to a
linear estimate where a pattern cannot apply.
"""

from datetime import date

import pytest

from bonusboard.services.caching import TTLCache
from bonusboard.services.pattern_service import SalesPatternService, linear_progress


def _service(today=date(2024, 1, 31)):
    return SalesPatternService(cache=TTLCache(3600), today=lambda: today)


def test_weights_sum_to_one(db_session, make_sale):
    make_sale("saron1", "Ana", date(2023, 1, 5), 300.0)
    make_sale("saron1", "Ana", date(2023, 1, 20), 700.0)
    make_sale("saron1", "Ana", date(2022, 1, 20), 100.0)

    pattern = _service().get_month_pattern(1, "saron1")

    assert sum(d.weight for d in pattern.days) == pytest.approx(1.0)
    day20 = pattern.weight_of(20)
    assert day20.sample_count == 2
    assert day20.avg_sales == pytest.approx(400.0)
    assert pattern.weight_of(5).weight == pytest.approx(300.0 / 700.0)


def test_uniform_fallback_without_history(db_session):
    pattern = _service(today=date(2024, 2, 10)).get_month_pattern(2, "saron1")

    # 2024 is a leap year
    assert pattern.weight_of(1).weight == pytest.approx(1 / 29)
    assert pattern.weight_of(29).weight == pytest.approx(1 / 29)
    assert pattern.weight_of(30).weight == 0.0
    assert sum(d.weight for d in pattern.days) == pytest.approx(1.0)


def test_store_filter_ignores_other_stores(db_session, make_sale):
    make_sale("saron2", "Bia", date(2023, 1, 10), 1000.0)

    pattern = _service().get_month_pattern(1, "saron1")

    assert pattern.total_avg_sales == 0.0
    assert pattern.weight_of(10).weight == pytest.approx(1 / 31)


def test_pattern_weighted_expected_progress(db_session, make_sale):
    make_sale("saron1", "Ana", date(2023, 1, 10), 1000.0)
    make_sale("saron1", "Ana", date(2023, 1, 20), 1000.0)

    progress = _service().calculate_expected_progress(
        date(2024, 1, 1), date(2024, 1, 31), date(2024, 1, 15), "saron1"
    )

    assert progress.pattern_based is True
    assert progress.expected_percentage == pytest.approx(50.0)
    assert progress.linear_percentage == pytest.approx(round(15 / 31 * 100, 2))


def test_progress_before_start_and_after_end(db_session, make_sale):
    make_sale("saron1", "Ana", date(2023, 1, 10), 1000.0)
    service = _service()

    before = service.calculate_expected_progress(date(2024, 1, 8), date(2024, 1, 14), date(2024, 1, 3), "saron1")
    after = service.calculate_expected_progress(date(2024, 1, 8), date(2024, 1, 14), date(2024, 1, 20), "saron1")

    assert before.expected_percentage == 0.0
    assert after.expected_percentage == pytest.approx(100.0)


def test_cross_month_range_is_linear(db_session):
    progress = _service().calculate_expected_progress(
        date(2024, 1, 28), date(2024, 2, 3), date(2024, 1, 31), "saron1"
    )

    assert progress.pattern_based is False
    assert progress.expected_percentage == pytest.approx(4 / 7 * 100)
    assert progress.explanation == "Period spans months - using linear estimate"


@pytest.mark.parametrize("error", [KeyError("day"), TypeError("bad row"), RuntimeError("boom")])
def test_any_pattern_failure_falls_back_to_linear(db_session, monkeypatch, error):
    def broken(*args, **kwargs):
        raise error

    monkeypatch.setattr("bonusboard.services.sales_store.daily_totals", broken)

    progress = _service().calculate_expected_progress(
        date(2024, 1, 1), date(2024, 1, 7), date(2024, 1, 3), "saron1"
    )

    assert progress.pattern_based is False
    assert progress.expected_percentage == pytest.approx(3 / 7 * 100)
    assert progress.explanation == "Pattern unavailable - using linear estimate"


def test_linear_progress_is_capped():
    progress = linear_progress(date(2024, 1, 1), date(2024, 1, 7), date(2024, 1, 30), "linear")
    assert progress.expected_percentage == 100.0


def test_pattern_is_cached_until_cleared(db_session, make_sale):
    service = _service()
    first = service.get_month_pattern(1, "saron1")

    make_sale("saron1", "Ana", date(2023, 1, 10), 1000.0)
    assert service.get_month_pattern(1, "saron1") is first

    service.clear_cache()
    refreshed = service.get_month_pattern(1, "saron1")
    assert refreshed is not first
    assert refreshed.weight_of(10).weight == pytest.approx(1.0)


def test_weekly_pattern(db_session, make_sale):
    service = _service()
    uniform = service.get_weekly_pattern("saron1")
    assert [entry["weight"] for entry in uniform] == pytest.approx([1 / 7] * 7)

    # 2024-01-07 is a Sunday, 2024-01-10 a Wednesday
    make_sale("saron1", "Ana", date(2024, 1, 7), 300.0)
    make_sale("saron1", "Ana", date(2024, 1, 10), 100.0)

    weights = {entry["day_of_week"]: entry["weight"] for entry in service.get_weekly_pattern("saron1")}
    assert weights[0] == pytest.approx(0.75)
    assert weights[3] == pytest.approx(0.25)
    assert weights[1] == 0.0

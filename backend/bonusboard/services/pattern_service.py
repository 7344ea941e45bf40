# Overview: Historical day-of-month sales weights and pattern-based expected goal progress.

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from bonusboard.config import is_all_stores
from bonusboard.services import sales_store
from bonusboard.services.caching import TTLCache
from bonusboard.time_utils import days_in_month, inclusive_days, local_today

logger = logging.getLogger(__name__)

CONFIDENCE_HIGH = "high"
CONFIDENCE_MEDIUM = "medium"
CONFIDENCE_LOW = "low"

# Percentage points within which the pattern is reported as "similar to linear"
SIMILAR_THRESHOLD = 2


@dataclass
class DayWeight:
    day: int
    weight: float
    avg_sales: float
    sample_count: int


@dataclass
class MonthPattern:
    month: int
    days: list[DayWeight] = field(default_factory=list)
    total_avg_sales: float = 0.0

    def weight_of(self, day: int) -> DayWeight | None:
        if 1 <= day <= len(self.days):
            return self.days[day - 1]
        return None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ExpectedProgress:
    expected_percentage: float
    linear_percentage: float
    pattern_based: bool
    confidence: str
    explanation: str

    def to_dict(self) -> dict:
        return asdict(self)


def linear_progress(start: date, end: date, current: date, explanation: str) -> ExpectedProgress:
    total_days = max(1, inclusive_days(start, end))
    elapsed_days = max(0, inclusive_days(start, current))
    percentage = min(100.0, elapsed_days / total_days * 100)
    return ExpectedProgress(
        expected_percentage=percentage,
        linear_percentage=percentage,
        pattern_based=False,
        confidence=CONFIDENCE_LOW,
        explanation=explanation,
    )


class SalesPatternService:
    """
    Converts elapsed days of a goal into an expected share of the target,
    weighted by how sales were historically spread across the month.

    Patterns are cached per (month, store); the cache is never required for
    correctness and clear_cache() can be called at any time.
    """

    def __init__(self, *, cache: TTLCache | None = None, today: Callable[[], date] = local_today):
        self.cache = cache or TTLCache(3600)
        self._today = today

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_month_pattern(self, month: int, store_id: str | None = None) -> MonthPattern:
        store_key = None if is_all_stores(store_id) else store_id
        cache_key = (month, store_key or "all")
        return self.cache.get_or_set(cache_key, lambda: self._calculate_month_pattern(month, store_key))

    def _calculate_month_pattern(self, month: int, store_id: str | None) -> MonthPattern:
        current_year = self._today().year
        totals = {day: 0.0 for day in range(1, 32)}
        samples = {day: 0 for day in range(1, 32)}

        for year in (current_year - 1, current_year - 2):
            start = date(year, month, 1)
            end = date(year, month, days_in_month(year, month))
            for sale_day, value in sales_store.daily_totals(store_id, start, end).items():
                totals[sale_day.day] += value
                samples[sale_day.day] += 1

        days = []
        for day in range(1, 32):
            avg = totals[day] / samples[day] if samples[day] else 0.0
            days.append(DayWeight(day=day, weight=0.0, avg_sales=avg, sample_count=samples[day]))

        total_avg = sum(d.avg_sales for d in days)
        if total_avg > 0:
            for d in days:
                d.weight = d.avg_sales / total_avg
        else:
            month_days = days_in_month(current_year, month)
            for d in days:
                if d.day <= month_days:
                    d.weight = 1 / month_days

        return MonthPattern(month=month, days=days, total_avg_sales=total_avg)

    def calculate_expected_progress(
        self,
        start: date,
        end: date,
        current: date,
        store_id: str | None = None,
    ) -> ExpectedProgress:
        if (start.year, start.month) != (end.year, end.month):
            return linear_progress(start, end, current, "Period spans months - using linear estimate")

        try:
            return self._pattern_progress(start, end, current, store_id)
        except Exception:
            logger.exception("Expected progress fell back to linear for %s..%s", start, end)
            return linear_progress(start, end, current, "Pattern unavailable - using linear estimate")

    def _pattern_progress(self, start: date, end: date, current: date, store_id: str | None) -> ExpectedProgress:
        pattern = self.get_month_pattern(start.month, store_id)
        start_day = start.day
        end_day = end.day
        if current < start:
            current_day = start_day - 1
        else:
            current_day = min(current.day, end_day) if current <= end else end_day

        total_weight = 0.0
        elapsed_weight = 0.0
        sample_total = 0
        for day in range(start_day, end_day + 1):
            dw = pattern.weight_of(day)
            if dw is None:
                continue
            total_weight += dw.weight
            sample_total += dw.sample_count
            if day <= current_day:
                elapsed_weight += dw.weight

        expected = elapsed_weight / total_weight * 100 if total_weight > 0 else 0.0

        total_days = end_day - start_day + 1
        elapsed_days = max(0, current_day - start_day + 1)
        linear = elapsed_days / total_days * 100

        avg_samples = sample_total / total_days
        if avg_samples >= 2:
            confidence = CONFIDENCE_HIGH
        elif avg_samples >= 1:
            confidence = CONFIDENCE_MEDIUM
        else:
            confidence = CONFIDENCE_LOW

        diff = expected - linear
        if abs(diff) < SIMILAR_THRESHOLD:
            explanation = "Pattern similar to linear"
        elif diff > 0:
            explanation = f"Stronger period (+{diff:.0f}% vs linear)"
        else:
            explanation = f"Weaker period ({diff:.0f}% vs linear)"

        return ExpectedProgress(
            expected_percentage=round(expected, 2),
            linear_percentage=round(linear, 2),
            pattern_based=True,
            confidence=confidence,
            explanation=explanation,
        )

    def get_weekly_pattern(self, store_id: str | None = None) -> list[dict]:
        """
        Share of sales per weekday (0=Sunday .. 6=Saturday) over last year and this year.

        Falls back to a uniform 1/7 when there is no data or the query fails.
        """
        current_year = self._today().year
        start = date(current_year - 1, 1, 1)
        end = date(current_year, 12, 31)
        try:
            daily = sales_store.daily_totals(None if is_all_stores(store_id) else store_id, start, end)
        except SQLAlchemyError as exc:
            logger.error("Weekly pattern query failed: %s", exc)
            daily = {}

        by_weekday = {dow: 0.0 for dow in range(7)}
        for sale_day, value in daily.items():
            # Python's Monday=0 -> Sunday-first numbering
            by_weekday[(sale_day.weekday() + 1) % 7] += value
        total = sum(by_weekday.values())
        return [
            {"day_of_week": dow, "weight": by_weekday[dow] / total if total > 0 else 1 / 7}
            for dow in range(7)
        ]

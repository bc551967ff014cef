"""Roll daily aggregates up into weekly, monthly and yearly summaries."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Hashable, Iterable, Optional, Sequence, TypeVar

from .dates import (
    day_name,
    format_date,
    month_bounds,
    month_label,
    month_name,
    sunday_index,
    week_bounds,
    year_bounds,
)
from .models import HOURS_PER_DAY, DailyAggregate
from .normalization import base_name, extract_project_name, language_display_name
from .storage import PersistenceStore
from .styles import StyleClassifier
from .summaries import (
    FileStat,
    LanguageGrowth,
    LanguageStat,
    MonthBreakdown,
    MonthlySummary,
    ProjectStat,
    WeekBreakdown,
    WeeklySummary,
    YearlySummary,
)

logger = logging.getLogger(__name__)

TOP_N = 5
LANGUAGE_GROWTH_LIMIT = 10
TREND_THRESHOLD = 0.2
CHARACTERS_PER_LINE = 40
ACTIVE_PROJECT_SHARE = 15.0
USED_LANGUAGE_SHARE = 5.0
PERIODS = ("week", "month", "year")

K = TypeVar("K", bound=Hashable)


@dataclass(slots=True)
class Rollup:
    """Sums of a set of daily aggregates."""

    total_time_ms: int = 0
    active_time_ms: int = 0
    language_time: dict[str, int] = field(default_factory=dict)
    project_time: dict[str, int] = field(default_factory=dict)
    file_time_ms: dict[str, int] = field(default_factory=dict)
    file_workspaces: dict[str, str] = field(default_factory=dict)
    hourly_distribution: list[int] = field(default_factory=lambda: [0] * HOURS_PER_DAY)
    day_of_week_distribution: list[int] = field(default_factory=lambda: [0] * 7)
    night_owl_time_ms: int = 0
    edited_file_count: int = 0
    total_characters_edited: int = 0
    active_days: int = 0


def rollup(days: Iterable[DailyAggregate]) -> Rollup:
    result = Rollup()
    for day in days:
        result.total_time_ms += day.total_time_ms
        result.active_time_ms += day.active_time_ms
        _merge_counts(result.language_time, day.language_time)
        _merge_counts(result.project_time, day.project_time)
        _merge_counts(result.file_time_ms, day.file_time_ms)
        result.file_workspaces.update(day.file_workspaces)
        for hour, value in enumerate(day.hourly_distribution[:HOURS_PER_DAY]):
            result.hourly_distribution[hour] += value
        result.day_of_week_distribution[sunday_index(day.day)] += day.total_time_ms
        result.night_owl_time_ms += day.night_owl_time_ms
        result.edited_file_count += day.edited_file_count
        result.total_characters_edited += day.total_characters_edited
        if day.total_time_ms > 0:
            result.active_days += 1
    return result


def _merge_counts(target: dict[str, int], source: dict[str, int]) -> None:
    for key, value in source.items():
        target[key] = target.get(key, 0) + value


def _ranked(values: dict[str, int]) -> list[tuple[str, int]]:
    # sorted() is stable, so ties keep insertion order.
    return sorted(values.items(), key=lambda item: item[1], reverse=True)


def _share(part: float, total: float) -> float:
    return (part / total) * 100 if total > 0 else 0.0


def top_projects(project_time: dict[str, int], total_ms: int, limit: int = TOP_N) -> list[ProjectStat]:
    return [
        ProjectStat(name=base_name(path), path=path, total_time_ms=ms, percentage=_share(ms, total_ms))
        for path, ms in _ranked(project_time)[:limit]
    ]


def top_languages(
    language_time: dict[str, int], total_ms: int, limit: int = TOP_N
) -> list[LanguageStat]:
    return [
        LanguageStat(
            language_id=language_id,
            display_name=language_display_name(language_id),
            total_time_ms=ms,
            percentage=_share(ms, total_ms),
        )
        for language_id, ms in _ranked(language_time)[:limit]
    ]


def top_files(
    file_time_ms: dict[str, int], file_workspaces: dict[str, str], limit: int = TOP_N
) -> list[FileStat]:
    total = sum(file_time_ms.values())
    return [
        FileStat(
            file_name=base_name(path),
            file_path=path,
            project_name=file_workspaces.get(path) or extract_project_name(path),
            time_ms=ms,
            percentage=_share(ms, total),
        )
        for path, ms in _ranked(file_time_ms)[:limit]
    ]


def find_peak_day(days: Sequence[DailyAggregate]) -> Optional[DailyAggregate]:
    """Day with the most time; the first one wins ties."""
    peak: Optional[DailyAggregate] = None
    for day in days:
        if peak is None or day.total_time_ms > peak.total_time_ms:
            peak = day
    return peak


def find_peak_hour(hourly_distribution: Sequence[int]) -> int:
    peak_hour = 0
    peak_value = 0
    for hour, value in enumerate(hourly_distribution):
        if value > peak_value:
            peak_hour, peak_value = hour, value
    return peak_hour


def find_longest_session(days: Iterable[DailyAggregate]) -> tuple[int, str]:
    longest_ms = 0
    longest_date = ""
    for day in days:
        if day.longest_session_ms > longest_ms:
            longest_ms = day.longest_session_ms
            longest_date = day.date
    return longest_ms, longest_date


def _active_dates(days: Iterable[DailyAggregate]) -> list[date]:
    return sorted({day.day for day in days if day.total_time_ms > 0})


def current_streak(days: Iterable[DailyAggregate]) -> int:
    """Consecutive active days ending at the most recent active day."""
    active = _active_dates(days)
    if not active:
        return 0
    streak = 1
    for newer, older in zip(reversed(active), reversed(active[:-1])):
        if (newer - older).days != 1:
            break
        streak += 1
    return streak


def longest_streak(days: Iterable[DailyAggregate]) -> int:
    """Longest run of consecutive active days anywhere in ``days``."""
    active = _active_dates(days)
    if not active:
        return 0
    longest = run = 1
    for previous, current in zip(active, active[1:]):
        run = run + 1 if (current - previous).days == 1 else 1
        longest = max(longest, run)
    return longest


def percent_change(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def previous_total(current: float, delta_percent: float) -> float:
    """Invert :func:`percent_change` to recover the previous period's total.

    For callers holding only a total and its percentage delta; summaries carry
    the measured ``previous_total_ms`` directly.
    """
    divisor = 1 + delta_percent / 100
    if divisor <= 0:
        return 0.0
    return current / divisor


def group_by_calendar_unit(
    days: Iterable[DailyAggregate], key: Callable[[date], K]
) -> dict[K, list[DailyAggregate]]:
    groups: dict[K, list[DailyAggregate]] = defaultdict(list)
    for day in days:
        groups[key(day.day)].append(day)
    return dict(groups)


def _top_key(values: dict[str, int]) -> Optional[str]:
    ranked = _ranked(values)
    return ranked[0][0] if ranked else None


def weekly_breakdown(days: Iterable[DailyAggregate]) -> list[WeekBreakdown]:
    groups = group_by_calendar_unit(days, lambda d: tuple(d.isocalendar())[:2])
    breakdowns = []
    for (iso_year, week_number), members in sorted(groups.items()):
        totals = rollup(members)
        top_language = _top_key(totals.language_time)
        dates = sorted(member.date for member in members)
        breakdowns.append(
            WeekBreakdown(
                iso_year=iso_year,
                week_number=week_number,
                week_start_date=dates[0],
                week_end_date=dates[-1],
                total_time_ms=totals.total_time_ms,
                top_language=language_display_name(top_language) if top_language else "",
            )
        )
    return breakdowns


def monthly_breakdown(days: Iterable[DailyAggregate]) -> list[MonthBreakdown]:
    groups = group_by_calendar_unit(days, lambda d: d.month)
    breakdowns = []
    for month, members in sorted(groups.items()):
        totals = rollup(members)
        top_language = _top_key(totals.language_time)
        top_project = _top_key(totals.project_time)
        breakdowns.append(
            MonthBreakdown(
                month=month,
                month_name=month_name(month),
                total_time_ms=totals.total_time_ms,
                active_days=totals.active_days,
                top_language=language_display_name(top_language) if top_language else "",
                top_project=base_name(top_project) if top_project else "",
            )
        )
    return breakdowns


def language_growth(days: Iterable[DailyAggregate]) -> list[LanguageGrowth]:
    monthly: dict[str, list[int]] = {}
    for day in days:
        index = day.day.month - 1
        for language_id, ms in day.language_time.items():
            monthly.setdefault(language_id, [0] * 12)[index] += ms

    growth = []
    for language_id, usage in monthly.items():
        first_half = sum(usage[:6])
        second_half = sum(usage[6:])
        if second_half > first_half * (1 + TREND_THRESHOLD):
            trend = "increasing"
        elif second_half < first_half * (1 - TREND_THRESHOLD):
            trend = "decreasing"
        else:
            trend = "stable"
        growth.append(
            LanguageGrowth(
                language_id=language_id,
                display_name=language_display_name(language_id),
                monthly_usage=usage,
                trend=trend,
                total_time_ms=sum(usage),
            )
        )
    growth.sort(key=lambda item: item.total_time_ms, reverse=True)
    return growth[:LANGUAGE_GROWTH_LIMIT]


def _best(items: Sequence, key: Callable) -> Optional[object]:
    best = None
    for item in items:
        if best is None or key(item) > key(best):
            best = item
    return best


class AggregationEngine:
    """Builds period summaries from the store; holds no state of its own."""

    def __init__(
        self,
        store: PersistenceStore,
        classifier: Optional[StyleClassifier] = None,
        *,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._store = store
        self._classifier = classifier or StyleClassifier()
        self._today = today or store.today

    def generate_summary(self, period: str, offset: int = 0) -> Optional[WeeklySummary]:
        if period == "week":
            return self.generate_weekly_summary(offset)
        if period == "month":
            return self.generate_monthly_summary(offset)
        if period == "year":
            return self.generate_yearly_summary(offset)
        raise ValueError(f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}")

    def summarize_range(
        self,
        start: date,
        end: date,
        *,
        period_type: str = "range",
        previous_range: Optional[tuple[date, date]] = None,
    ) -> Optional[WeeklySummary]:
        """Summary for ``[start, end]``; ``None`` when no time was recorded."""
        days = self._store.get_range(start, end)
        totals = rollup(days)
        if totals.total_time_ms == 0:
            logger.debug("No data between %s and %s.", start, end)
            return None

        comparison = 0.0
        previous = 0
        if previous_range is not None:
            previous = rollup(self._store.get_range(*previous_range)).total_time_ms
            comparison = percent_change(totals.total_time_ms, previous)

        total = totals.total_time_ms
        peak = find_peak_day(days)
        longest_ms, longest_date = find_longest_session(days)
        return WeeklySummary(
            period_type=period_type,
            start_date=format_date(start),
            end_date=format_date(end),
            total_coding_time_ms=total,
            active_time_ms=totals.active_time_ms,
            daily_breakdown=days,
            top_projects=top_projects(totals.project_time, total),
            top_languages=top_languages(totals.language_time, total),
            top_files=top_files(totals.file_time_ms, totals.file_workspaces),
            project_count=len(totals.project_time),
            active_project_count=sum(
                1 for ms in totals.project_time.values() if _share(ms, total) >= ACTIVE_PROJECT_SHARE
            ),
            language_count=sum(
                1 for ms in totals.language_time.values() if _share(ms, total) >= USED_LANGUAGE_SHARE
            ),
            peak_day=day_name(peak.day) if peak else "",
            peak_date=peak.date if peak else "",
            peak_hour=find_peak_hour(totals.hourly_distribution),
            longest_session_ms=longest_ms,
            longest_session_date=longest_date,
            day_of_week_distribution=totals.day_of_week_distribution,
            hourly_distribution=totals.hourly_distribution,
            streak_days=current_streak(days),
            active_days_count=totals.active_days,
            night_owl_time_ms=totals.night_owl_time_ms,
            night_owl_percentage=_share(totals.night_owl_time_ms, total),
            total_files_edited=totals.edited_file_count,
            total_characters_edited=totals.total_characters_edited,
            comparison_to_previous=comparison,
            previous_total_ms=previous,
        )

    def generate_weekly_summary(self, offset: int = 0) -> Optional[WeeklySummary]:
        today = self._today()
        start, end = week_bounds(today, offset)
        return self.summarize_range(
            start, end, period_type="week", previous_range=week_bounds(today, offset - 1)
        )

    def generate_monthly_summary(self, offset: int = 0) -> Optional[MonthlySummary]:
        today = self._today()
        start, end = month_bounds(today, offset)
        base = self.summarize_range(
            start, end, period_type="month", previous_range=month_bounds(today, offset - 1)
        )
        if base is None:
            return None

        weeks = weekly_breakdown(base.daily_breakdown)
        summary = MonthlySummary(
            **_base_fields(base),
            month_name=month_label(start),
            weekly_breakdown=weeks,
            best_week=_best(weeks, lambda week: week.total_time_ms),
            best_day=find_peak_day(base.daily_breakdown),
        )
        summary.coding_styles = self._classifier.classify(summary)
        return summary

    def generate_yearly_summary(self, offset: int = 0) -> Optional[YearlySummary]:
        today = self._today()
        start, end = year_bounds(today, offset)
        base = self.summarize_range(
            start, end, period_type="year", previous_range=year_bounds(today, offset - 1)
        )
        if base is None:
            return None

        days = base.daily_breakdown
        months = monthly_breakdown(days)
        weeks = weekly_breakdown(days)
        summary = YearlySummary(
            **_base_fields(base),
            year=start.year,
            monthly_breakdown=months,
            best_month=_best(months, lambda month: month.total_time_ms),
            weekly_breakdown=weeks,
            best_week=_best(weeks, lambda week: week.total_time_ms),
            best_day=find_peak_day(days),
            total_days_active=base.active_days_count,
            longest_streak=longest_streak(days),
            total_lines_estimate=base.total_characters_edited // CHARACTERS_PER_LINE,
            language_growth=language_growth(days),
        )
        summary.coding_styles = self._classifier.classify(summary)
        return summary


def _base_fields(summary: WeeklySummary) -> dict[str, object]:
    return {name: getattr(summary, name) for name in WeeklySummary.__dataclass_fields__}

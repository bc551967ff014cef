"""Period summary types produced by the aggregation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .models import DailyAggregate

if TYPE_CHECKING:
    from .styles import StyleObservation


@dataclass(slots=True)
class ProjectStat:
    name: str
    path: str
    total_time_ms: int
    percentage: float


@dataclass(slots=True)
class LanguageStat:
    language_id: str
    display_name: str
    total_time_ms: int
    percentage: float


@dataclass(slots=True)
class FileStat:
    file_name: str
    file_path: str
    project_name: str
    time_ms: int
    percentage: float


@dataclass(slots=True)
class WeekBreakdown:
    iso_year: int
    week_number: int
    week_start_date: str
    week_end_date: str
    total_time_ms: int
    top_language: str


@dataclass(slots=True)
class MonthBreakdown:
    month: int
    month_name: str
    total_time_ms: int
    active_days: int
    top_language: str
    top_project: str


@dataclass(slots=True)
class LanguageGrowth:
    language_id: str
    display_name: str
    monthly_usage: list[int]
    trend: str
    total_time_ms: int


@dataclass(slots=True)
class WeeklySummary:
    """Rollup shared by every period; weekly summaries use it as is."""

    period_type: str
    start_date: str
    end_date: str
    total_coding_time_ms: int
    active_time_ms: int
    daily_breakdown: list[DailyAggregate]
    top_projects: list[ProjectStat]
    top_languages: list[LanguageStat]
    top_files: list[FileStat]
    project_count: int
    active_project_count: int
    language_count: int
    peak_day: str
    peak_date: str
    peak_hour: int
    longest_session_ms: int
    longest_session_date: str
    day_of_week_distribution: list[int]
    hourly_distribution: list[int]
    streak_days: int
    active_days_count: int
    night_owl_time_ms: int
    night_owl_percentage: float
    total_files_edited: int
    total_characters_edited: int
    comparison_to_previous: float
    previous_total_ms: int


@dataclass(slots=True)
class MonthlySummary(WeeklySummary):
    month_name: str
    weekly_breakdown: list[WeekBreakdown]
    best_week: Optional[WeekBreakdown]
    best_day: Optional[DailyAggregate]
    coding_styles: list["StyleObservation"] = field(default_factory=list)


@dataclass(slots=True)
class YearlySummary(WeeklySummary):
    year: int
    monthly_breakdown: list[MonthBreakdown]
    best_month: Optional[MonthBreakdown]
    weekly_breakdown: list[WeekBreakdown]
    best_week: Optional[WeekBreakdown]
    best_day: Optional[DailyAggregate]
    total_days_active: int
    longest_streak: int
    total_lines_estimate: int
    language_growth: list[LanguageGrowth]
    coding_styles: list["StyleObservation"] = field(default_factory=list)


PeriodSummary = WeeklySummary

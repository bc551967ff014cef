"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from typing import Callable, Optional

from .dates import day_name, format_duration
from .models import DailyAggregate
from .normalization import base_name, language_display_name
from .summaries import MonthlySummary, WeeklySummary, YearlySummary


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, write: Callable[[str], None] = print) -> None:
        self._write = write

    def print_today(self, aggregate: DailyAggregate) -> None:
        if aggregate.total_time_ms <= 0:
            self._write("No coding time recorded today.")
            return

        self._write(f"Today ({aggregate.date})")
        self._write("-" * 40)
        self._write(f"Coding time: {format_duration(aggregate.total_time_ms)}")
        self._write(f"Active time: {format_duration(aggregate.active_time_ms)}")
        self._write(f"Files:       {aggregate.edited_file_count}")
        self._write(f"Characters:  {aggregate.total_characters_edited}")
        self._rank(
            "Languages:",
            {language_display_name(key): value for key, value in aggregate.language_time.items()},
        )
        self._rank(
            "Projects:",
            {base_name(key) or key: value for key, value in aggregate.project_time.items()},
        )

    def print_summary(self, summary: Optional[WeeklySummary], period: str) -> None:
        if summary is None:
            self._write(f"No coding activity recorded for the selected {period}.")
            return

        title = f"{period.capitalize()} summary {summary.start_date} .. {summary.end_date}"
        if isinstance(summary, MonthlySummary):
            title = f"Month summary for {summary.month_name}"
        elif isinstance(summary, YearlySummary):
            title = f"Year summary for {summary.year}"
        self._write(title)
        self._write("-" * 40)
        self._write(f"Coding time:  {format_duration(summary.total_coding_time_ms)}")
        self._write(f"Active days:  {summary.active_days_count}")
        self._write(f"Streak:       {summary.streak_days} days")
        self._write(f"Peak day:     {summary.peak_day} ({summary.peak_date})")
        self._write(f"Peak hour:    {summary.peak_hour:02d}:00")
        self._write(f"Longest:      {format_duration(summary.longest_session_ms)}")
        self._write(f"Night owl:    {summary.night_owl_percentage:.0f}%")
        self._write(
            f"vs previous:  {summary.comparison_to_previous:+.0f}% "
            f"(was {format_duration(summary.previous_total_ms)})"
        )

        if summary.top_projects:
            self._write("")
            self._write("Top projects:")
            for project in summary.top_projects:
                self._write(
                    f"  {project.name[:30]:<30} {format_duration(project.total_time_ms):>10} "
                    f"{project.percentage:5.1f}%"
                )
        if summary.top_languages:
            self._write("")
            self._write("Top languages:")
            for language in summary.top_languages:
                self._write(
                    f"  {language.display_name[:30]:<30} "
                    f"{format_duration(language.total_time_ms):>10} {language.percentage:5.1f}%"
                )
        if summary.top_files:
            self._write("")
            self._write("Top files:")
            for item in summary.top_files:
                self._write(
                    f"  {item.file_name[:30]:<30} {item.project_name[:16]:<16} "
                    f"{format_duration(item.time_ms):>10}"
                )

        if isinstance(summary, YearlySummary):
            self._print_year_extras(summary)

        styles = getattr(summary, "coding_styles", None)
        if styles:
            self._write("")
            self._write("Coding style:")
            for style in styles:
                self._write(f"  {style.emoji} {style.title}: {style.observation}")

    def _print_year_extras(self, summary: YearlySummary) -> None:
        self._write("")
        self._write(f"Days active:    {summary.total_days_active}")
        self._write(f"Longest streak: {summary.longest_streak} days")
        self._write(f"Lines (est.):   {summary.total_lines_estimate}")
        if summary.best_month is not None:
            self._write(
                f"Best month:     {summary.best_month.month_name} "
                f"({format_duration(summary.best_month.total_time_ms)})"
            )
        if summary.best_day is not None:
            weekday = day_name(summary.best_day.day)
            self._write(
                f"Best day:       {weekday} {summary.best_day.date} "
                f"({format_duration(summary.best_day.total_time_ms)})"
            )

    def _rank(self, heading: str, totals: dict[str, int], limit: int = 5) -> None:
        if not totals:
            return
        self._write("")
        self._write(heading)
        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        for name, value in ranked[:limit]:
            self._write(f"  {name[:30]:<30} {format_duration(value)}")

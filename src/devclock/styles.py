"""Rule table that turns a period summary into coding-style observations.

Every rule is an independent threshold predicate over summary metrics. A
summary can match any number of rules; rule order only decides presentation
order. Observations describe patterns, they do not rank them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .dates import format_duration
from .summaries import WeeklySummary, YearlySummary

CATEGORIES = ("time", "rhythm", "focus", "exploration")
STANDARD = "standard"
MASTER = "master"
YEARLY = "yearly"
SHORT_PERIOD_LIMIT = 5

_HOUR_MS = 60 * 60 * 1000
_MINUTE_MS = 60 * 1000


@dataclass(slots=True, frozen=True)
class StyleObservation:
    id: str
    category: str
    variant: str
    emoji: str
    title: str
    description: str
    observation: str


@dataclass(slots=True, frozen=True)
class StyleRule:
    id: str
    category: str
    variant: str
    emoji: str
    title: str
    description: str
    predicate: Callable[[WeeklySummary], bool]
    observation: Callable[[WeeklySummary], str]

    def evaluate(self, summary: WeeklySummary) -> Optional[StyleObservation]:
        if not self.predicate(summary):
            return None
        return StyleObservation(
            id=self.id,
            category=self.category,
            variant=self.variant,
            emoji=self.emoji,
            title=self.title,
            description=self.description,
            observation=self.observation(summary),
        )


# Metrics


def active_days(summary: WeeklySummary) -> int:
    return sum(1 for day in summary.daily_breakdown if day.total_time_ms > 0)


def active_day_ratio(summary: WeeklySummary) -> float:
    """Share of the recorded days in range that carry coding time."""
    recorded = len(summary.daily_breakdown)
    return active_days(summary) / recorded if recorded else 0.0


def total_hours(summary: WeeklySummary) -> float:
    return summary.total_coding_time_ms / _HOUR_MS


def longest_session_hours(summary: WeeklySummary) -> float:
    return summary.longest_session_ms / _HOUR_MS


def average_session_minutes(summary: WeeklySummary) -> float:
    sessions = [day.longest_session_ms for day in summary.daily_breakdown if day.longest_session_ms > 0]
    if not sessions:
        return 0.0
    return sum(sessions) / len(sessions) / _MINUTE_MS


def morning_share(summary: WeeklySummary) -> float:
    total = sum(summary.hourly_distribution)
    if total <= 0:
        return 0.0
    return sum(summary.hourly_distribution[6:10]) / total


def weekday_share(summary: WeeklySummary) -> float:
    distribution = summary.day_of_week_distribution
    total = sum(distribution)
    if total <= 0:
        return 0.0
    return sum(distribution[1:6]) / total


def weekend_share(summary: WeeklySummary) -> float:
    distribution = summary.day_of_week_distribution
    total = sum(distribution)
    if total <= 0:
        return 0.0
    return (distribution[0] + distribution[6]) / total


def top_project_share(summary: WeeklySummary) -> float:
    return summary.top_projects[0].percentage if summary.top_projects else 0.0


def top_language_share(summary: WeeklySummary) -> float:
    return summary.top_languages[0].percentage if summary.top_languages else 0.0


def new_language_count(summary: WeeklySummary) -> int:
    growth = getattr(summary, "language_growth", None) or []
    return sum(
        1
        for language in growth
        if sum(language.monthly_usage[:6]) == 0 and sum(language.monthly_usage[6:]) > 0
    )


def active_quarters(summary: WeeklySummary) -> set[int]:
    months = getattr(summary, "monthly_breakdown", None) or []
    return {(month.month - 1) // 3 for month in months if month.total_time_ms > 0}


def _percent(value: float) -> int:
    return round(value * 100)


def _top_project_label(summary: WeeklySummary) -> str:
    project = summary.top_projects[0]
    return f"{round(project.percentage)}% on {project.name}"


def _top_language_label(summary: WeeklySummary) -> str:
    language = summary.top_languages[0]
    return f"{round(language.percentage)}% {language.display_name}"


def _rule(
    id: str,
    category: str,
    variant: str,
    emoji: str,
    title: str,
    description: str,
    predicate: Callable[[WeeklySummary], bool],
    observation: Callable[[WeeklySummary], str],
) -> StyleRule:
    return StyleRule(id, category, variant, emoji, title, description, predicate, observation)


STANDARD_RULES = (
    _rule(
        "steady_coder", "time", STANDARD, "🐢", "Steady Turtle",
        "You maintained consistent coding habits",
        lambda s: active_day_ratio(s) >= 0.7,
        lambda s: f"{active_days(s)} days of coding",
    ),
    _rule(
        "marathon_runner", "time", STANDARD, "🏃", "Marathon Champion",
        "You had long, focused coding sessions",
        lambda s: longest_session_hours(s) >= 3,
        lambda s: f"Longest: {format_duration(s.longest_session_ms)}",
    ),
    _rule(
        "sprinter", "time", STANDARD, "⚡", "Lightning Sprinter",
        "Quick, focused coding bursts",
        lambda s: 0 < average_session_minutes(s) <= 30 and active_days(s) >= 3,
        lambda s: f"Avg {round(average_session_minutes(s))}min sessions",
    ),
    _rule(
        "night_owl", "rhythm", STANDARD, "🦉", "Night Owl",
        "You often code in the quiet hours of the night",
        lambda s: s.night_owl_percentage >= 30,
        lambda s: f"{round(s.night_owl_percentage)}% after 10PM",
    ),
    _rule(
        "early_bird", "rhythm", STANDARD, "🐓", "Early Bird",
        "You make great use of morning hours",
        lambda s: morning_share(s) >= 0.2,
        lambda s: f"{_percent(morning_share(s))}% in the morning",
    ),
    _rule(
        "weekday_coder", "rhythm", STANDARD, "💼", "Weekday Warrior",
        "You code primarily on weekdays",
        lambda s: weekday_share(s) >= 0.85,
        lambda s: f"{_percent(weekday_share(s))}% on weekdays",
    ),
    _rule(
        "weekend_warrior", "rhythm", STANDARD, "🎮", "Weekend Warrior",
        "You make time for coding on weekends too",
        lambda s: weekend_share(s) >= 0.25,
        lambda s: f"{_percent(weekend_share(s))}% on weekends",
    ),
    _rule(
        "deep_focus", "focus", STANDARD, "🎯", "Deep Focus Master",
        "You focused deeply on a single project",
        lambda s: top_project_share(s) >= 70,
        _top_project_label,
    ),
    _rule(
        "multi_tasker", "focus", STANDARD, "🎪", "Multi-Tasking Pro",
        "You juggled multiple projects effectively",
        lambda s: s.active_project_count >= 3,
        lambda s: f"{s.active_project_count} projects",
    ),
    _rule(
        "file_explorer", "focus", STANDARD, "🗺️", "File Explorer",
        "You worked across many files",
        lambda s: s.total_files_edited >= 50,
        lambda s: f"{s.total_files_edited} files edited",
    ),
    _rule(
        "language_explorer", "exploration", STANDARD, "🌍", "Language Traveler",
        "You coded in multiple languages",
        lambda s: s.language_count >= 4,
        lambda s: f"{s.language_count} languages used",
    ),
    _rule(
        "specialist", "exploration", STANDARD, "🔬", "Language Specialist",
        "You focused on mastering a single language",
        lambda s: top_language_share(s) >= 80,
        _top_language_label,
    ),
    _rule(
        "consistent", "exploration", STANDARD, "🔥", "Streak Master",
        "You maintained a consistent coding streak",
        lambda s: s.streak_days >= 5,
        lambda s: f"{s.streak_days} day streak",
    ),
)

YEARLY_RULES = (
    _rule(
        "annual_champion", "time", YEARLY, "🏆", "Annual Champion",
        "Over 500 hours of coding this year",
        lambda s: total_hours(s) >= 500,
        lambda s: f"{round(total_hours(s))} hours recorded",
    ),
    _rule(
        "seasonal_master", "rhythm", YEARLY, "🌸", "All-Season Coder",
        "You coded consistently throughout the year",
        lambda s: len(active_quarters(s)) == 4,
        lambda s: "Active in all seasons",
    ),
    _rule(
        "project_architect", "focus", YEARLY, "🏗️", "Project Architect",
        "You contributed to many projects",
        lambda s: s.project_count >= 10,
        lambda s: f"{s.project_count} projects",
    ),
    _rule(
        "code_explorer", "focus", YEARLY, "🦈", "Code Ocean Master",
        "You navigated a vast sea of code",
        lambda s: s.total_files_edited >= 1000,
        lambda s: f"{s.total_files_edited} files edited",
    ),
    _rule(
        "growth_star", "exploration", YEARLY, "💫", "Rising Star",
        "You explored new language territories",
        lambda s: new_language_count(s) >= 3,
        lambda s: f"{new_language_count(s)} new languages learned",
    ),
)

MASTER_RULES = (
    _rule(
        "steady_coder", "time", MASTER, "🐉", "Rising Dragon",
        "You coded steadily throughout the year, rising like a dragon",
        lambda s: active_days(s) >= 200,
        lambda s: f"{active_days(s)} days of coding",
    ),
    _rule(
        "marathon_runner", "time", MASTER, "🦸", "Super Runner",
        "You showed superhuman focus and endurance",
        lambda s: longest_session_hours(s) >= 6,
        lambda s: f"Longest: {format_duration(s.longest_session_ms)}",
    ),
    _rule(
        "night_owl", "rhythm", MASTER, "🧛", "Night Lord",
        "You completely dominated the night hours",
        lambda s: s.night_owl_percentage >= 40,
        lambda s: f"{round(s.night_owl_percentage)}% after 10PM",
    ),
    _rule(
        "early_bird", "rhythm", MASTER, "🌅", "Dawn Master",
        "You conquered each day from sunrise",
        lambda s: morning_share(s) >= 0.3,
        lambda s: f"{_percent(morning_share(s))}% in the morning",
    ),
    _rule(
        "deep_focus", "focus", MASTER, "💎", "Diamond Focus",
        "You concentrated your brilliance like a diamond",
        lambda s: top_project_share(s) >= 80,
        _top_project_label,
    ),
    _rule(
        "multi_tasker", "focus", MASTER, "🔱", "Asura",
        "You managed many projects with countless arms",
        lambda s: s.active_project_count >= 5,
        lambda s: f"{s.active_project_count} projects in parallel",
    ),
    _rule(
        "consistent", "exploration", MASTER, "🌋", "Eternal Flame",
        "You burned bright like an eternal volcano",
        lambda s: max(s.streak_days, getattr(s, "longest_streak", 0)) >= 30,
        lambda s: f"{max(s.streak_days, getattr(s, 'longest_streak', 0))} day streak",
    ),
    _rule(
        "language_explorer", "exploration", MASTER, "🚀", "Galaxy Pioneer",
        "You explored languages like traveling through galaxies",
        lambda s: s.language_count >= 6,
        lambda s: f"{s.language_count} languages used",
    ),
    _rule(
        "specialist", "exploration", MASTER, "🧙", "Language Wizard",
        "You mastered a language like wielding magic",
        lambda s: top_language_share(s) >= 90,
        _top_language_label,
    ),
)

# Year-exclusive rules come before escalated ones within a category.
DEFAULT_RULES = YEARLY_RULES + MASTER_RULES + STANDARD_RULES


class StyleClassifier:
    """Evaluates a rule table against a summary."""

    def __init__(
        self,
        rules: Iterable[StyleRule] = DEFAULT_RULES,
        *,
        short_period_limit: int = SHORT_PERIOD_LIMIT,
    ) -> None:
        self.rules = tuple(rules)
        self.short_period_limit = short_period_limit

    def classify(self, summary: WeeklySummary) -> list[StyleObservation]:
        if isinstance(summary, YearlySummary):
            variants = {YEARLY, MASTER}
            limit: Optional[int] = None
        else:
            variants = {STANDARD}
            limit = self.short_period_limit

        observations = []
        for category in CATEGORIES:
            for rule in self.rules:
                if rule.category != category or rule.variant not in variants:
                    continue
                observation = rule.evaluate(summary)
                if observation is not None:
                    observations.append(observation)
        return observations[:limit] if limit is not None else observations

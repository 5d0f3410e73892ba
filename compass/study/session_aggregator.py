"""
Session Aggregator - study-time analytics over timer sessions.

Pure functions: they take an iterable of TimerSession and return new
values. Empty input never raises; it yields zero-filled series, a streak
of 0 and 0%.

A session belongs to the local calendar day of its start time:
- aware timestamps are converted to ``tz`` (an IANA name or tzinfo), or to
  the system local zone when ``tz`` is None
- naive timestamps are already local and used as-is
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo

from loguru import logger

from compass.core.models import StudyGoals, Subject, TimerSession

HEATMAP_FIRST_HOUR = 6
HEATMAP_LAST_HOUR = 23
CALENDAR_DAYS = 90


@dataclass(frozen=True)
class DailyMinutes:
    date: date
    minutes: float
    sessions: int


@dataclass(frozen=True)
class PeriodMinutes:
    """Minutes for a week (starting Monday) or a calendar month."""

    start: date
    minutes: float
    sessions: int


@dataclass(frozen=True)
class SubjectMinutes:
    subject_id: str
    name: str
    minutes: float
    percentage: int


@dataclass(frozen=True)
class CalendarDay:
    date: date
    minutes: float
    studied: bool
    intensity: int  # 0-4, relative to the busiest day


@dataclass(frozen=True)
class HeatmapSlot:
    weekday: int  # Monday = 0
    hour: int
    minutes: float
    sessions: int


@dataclass(frozen=True)
class GoalProgress:
    minutes: float
    goal: float
    percentage: float  # Capped at 100


@dataclass(frozen=True)
class SessionSummary:
    total_minutes: float
    total_sessions: int
    average_session_minutes: float
    current_streak: int
    longest_streak: int


# =============================================================================
# Helpers
# =============================================================================


def _resolve_tz(tz: str | tzinfo | None) -> tzinfo | None:
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def _to_local(value: datetime, tz: str | tzinfo | None = None) -> datetime:
    if value.tzinfo is None:
        return value
    zone = _resolve_tz(tz)
    return value.astimezone(zone) if zone is not None else value.astimezone()


def local_datetime(session: TimerSession, tz: str | tzinfo | None = None) -> datetime:
    """Start time of a session in local time."""
    return _to_local(session.start_time, tz)


def local_date(session: TimerSession, tz: str | tzinfo | None = None) -> date:
    """Local calendar date a session counts toward."""
    return local_datetime(session, tz).date()


def _valid_sessions(sessions: Iterable[TimerSession]) -> list[TimerSession]:
    valid = []
    for session in sessions:
        duration = session.duration
        if (
            isinstance(duration, bool)
            or not isinstance(duration, (int, float))
            or not math.isfinite(duration)
            or duration < 0
        ):
            logger.warning(
                "Skipping session {} with invalid duration {!r}", session.id, duration
            )
            continue
        valid.append(session)
    return valid


def _daily_totals(
    sessions: Iterable[TimerSession],
    tz: str | tzinfo | None = None,
) -> tuple[dict[date, float], dict[date, int]]:
    minutes: dict[date, float] = defaultdict(float)
    counts: dict[date, int] = defaultdict(int)
    for session in _valid_sessions(sessions):
        day = local_date(session, tz)
        minutes[day] += session.duration
        counts[day] += 1
    return minutes, counts


def local_day(value: date | datetime, tz: str | tzinfo | None = None) -> date:
    """Local calendar date of ``value``; aware datetimes are converted to ``tz`` first."""
    return _to_local(value, tz).date() if isinstance(value, datetime) else value


# =============================================================================
# Time series
# =============================================================================


def minutes_by_day(
    sessions: Iterable[TimerSession],
    range_days: int,
    as_of: date | datetime,
    tz: str | tzinfo | None = None,
) -> list[DailyMinutes]:
    """
    Minutes per day for the ``range_days`` days ending at ``as_of``.

    Days without sessions are zero-filled; the result is ascending by date.
    """
    if range_days <= 0:
        return []
    end = local_day(as_of, tz)
    minutes, counts = _daily_totals(sessions, tz)
    result = []
    for offset in range(range_days - 1, -1, -1):
        day = end - timedelta(days=offset)
        result.append(DailyMinutes(day, minutes.get(day, 0.0), counts.get(day, 0)))
    return result


def minutes_by_week(
    sessions: Iterable[TimerSession],
    weeks: int,
    as_of: date | datetime,
    tz: str | tzinfo | None = None,
) -> list[PeriodMinutes]:
    """Minutes per Monday-based week for the last ``weeks`` weeks, ascending."""
    if weeks <= 0:
        return []
    end = local_day(as_of, tz)
    current_week = end - timedelta(days=end.weekday())
    minutes, counts = _daily_totals(sessions, tz)

    result = []
    for offset in range(weeks - 1, -1, -1):
        start = current_week - timedelta(weeks=offset)
        days = [start + timedelta(days=i) for i in range(7)]
        result.append(
            PeriodMinutes(
                start=start,
                minutes=sum(minutes.get(d, 0.0) for d in days),
                sessions=sum(counts.get(d, 0) for d in days),
            )
        )
    return result


def minutes_by_month(
    sessions: Iterable[TimerSession],
    months: int,
    as_of: date | datetime,
    tz: str | tzinfo | None = None,
) -> list[PeriodMinutes]:
    """Minutes per calendar month for the last ``months`` months, ascending."""
    if months <= 0:
        return []
    end = local_day(as_of, tz)
    minutes: dict[date, float] = defaultdict(float)
    counts: dict[date, int] = defaultdict(int)
    for session in _valid_sessions(sessions):
        month = local_date(session, tz).replace(day=1)
        minutes[month] += session.duration
        counts[month] += 1

    result = []
    for offset in range(months - 1, -1, -1):
        index = end.year * 12 + (end.month - 1) - offset
        start = date(index // 12, index % 12 + 1, 1)
        result.append(PeriodMinutes(start, minutes.get(start, 0.0), counts.get(start, 0)))
    return result


def minutes_by_subject(
    sessions: Iterable[TimerSession],
    subjects: Sequence[Subject],
    include_empty: bool = False,
) -> list[SubjectMinutes]:
    """
    Total minutes per subject with its share of the total.

    Sessions for subjects not in ``subjects`` are ignored. Sorted by
    minutes, highest first.
    """
    names = {subject.id: subject.name for subject in subjects}
    totals: dict[str, float] = defaultdict(float)
    for session in _valid_sessions(sessions):
        if session.subject_id in names:
            totals[session.subject_id] += session.duration

    if include_empty:
        for subject_id in names:
            totals.setdefault(subject_id, 0.0)

    grand_total = sum(totals.values())
    result = [
        SubjectMinutes(
            subject_id=subject_id,
            name=names[subject_id],
            minutes=minutes,
            percentage=round(minutes / grand_total * 100) if grand_total > 0 else 0,
        )
        for subject_id, minutes in totals.items()
    ]
    result.sort(key=lambda item: (-item.minutes, item.name))
    return result


# =============================================================================
# Streaks
# =============================================================================


def current_streak(
    sessions: Iterable[TimerSession],
    as_of: date | datetime,
    grace_today: bool = False,
    tz: str | tzinfo | None = None,
) -> int:
    """
    Consecutive study days ending at ``as_of``.

    Strict by default: if nothing was studied on ``as_of`` the streak is 0.
    With ``grace_today`` an empty ``as_of`` is skipped and counting starts
    at the previous day.
    """
    minutes, _ = _daily_totals(sessions, tz)
    day = local_day(as_of, tz)
    if grace_today and minutes.get(day, 0.0) <= 0:
        day -= timedelta(days=1)

    streak = 0
    while minutes.get(day, 0.0) > 0:
        streak += 1
        day -= timedelta(days=1)
    return streak


def longest_streak(
    sessions: Iterable[TimerSession],
    tz: str | tzinfo | None = None,
) -> int:
    """Longest run of consecutive days with study time."""
    minutes, _ = _daily_totals(sessions, tz)
    study_days = sorted(day for day, total in minutes.items() if total > 0)

    longest = 0
    run = 0
    previous: date | None = None
    for day in study_days:
        if previous is not None and (day - previous).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


# =============================================================================
# Calendar & heatmap
# =============================================================================


def _intensity(minutes: float, busiest: float) -> int:
    if minutes <= 0:
        return 0
    ratio = minutes / busiest
    if ratio > 0.75:
        return 4
    elif ratio > 0.5:
        return 3
    elif ratio > 0.25:
        return 2
    return 1


def study_calendar(
    sessions: Iterable[TimerSession],
    days: int,
    as_of: date | datetime,
    tz: str | tzinfo | None = None,
) -> list[CalendarDay]:
    """
    Contribution-style calendar for the ``days`` days ending at ``as_of``.

    Intensity is relative to the busiest day in the whole history.
    """
    if days <= 0:
        return []
    end = local_day(as_of, tz)
    minutes, _ = _daily_totals(sessions, tz)
    busiest = max(max(minutes.values(), default=0.0), 1.0)

    calendar = []
    for offset in range(days - 1, -1, -1):
        day = end - timedelta(days=offset)
        total = minutes.get(day, 0.0)
        calendar.append(CalendarDay(day, total, total > 0, _intensity(total, busiest)))
    return calendar


def study_heatmap(
    sessions: Iterable[TimerSession],
    tz: str | tzinfo | None = None,
) -> list[list[HeatmapSlot]]:
    """
    Minutes by weekday and starting hour.

    Returns 7 rows (Monday first) of 18 hourly slots (06:00 to 23:00).
    Sessions starting outside those hours are not counted.
    """
    hours = range(HEATMAP_FIRST_HOUR, HEATMAP_LAST_HOUR + 1)
    minutes: dict[tuple[int, int], float] = defaultdict(float)
    counts: dict[tuple[int, int], int] = defaultdict(int)

    for session in _valid_sessions(sessions):
        start = local_datetime(session, tz)
        if start.hour not in hours:
            continue
        key = (start.weekday(), start.hour)
        minutes[key] += session.duration
        counts[key] += 1

    return [
        [
            HeatmapSlot(weekday, hour, minutes.get((weekday, hour), 0.0), counts.get((weekday, hour), 0))
            for hour in hours
        ]
        for weekday in range(7)
    ]


# =============================================================================
# Goals & summary
# =============================================================================


def goal_for_day(goals: StudyGoals, day: date | datetime) -> float:
    """Daily goal in minutes, honoring weekend hours and vacation mode."""
    day = local_day(day)
    goal = float(goals.daily_minutes)
    if (
        goals.use_weekend_hours
        and goals.weekend_daily_minutes is not None
        and day.weekday() >= 5
    ):
        goal = float(goals.weekend_daily_minutes)
    if goals.vacation_mode:
        goal *= goals.vacation_multiplier
    return goal


def _progress(minutes: float, goal: float) -> GoalProgress:
    percentage = min(100.0, minutes / goal * 100) if goal > 0 else 0.0
    return GoalProgress(minutes=minutes, goal=goal, percentage=round(percentage, 1))


def goal_progress(
    sessions: Iterable[TimerSession],
    goals: StudyGoals,
    as_of: date | datetime,
    tz: str | tzinfo | None = None,
) -> dict[str, GoalProgress]:
    """Progress toward the daily, weekly and monthly goals as of ``as_of``."""
    today = local_day(as_of, tz)
    minutes, _ = _daily_totals(sessions, tz)
    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)

    scale = goals.vacation_multiplier if goals.vacation_mode else 1.0
    week_minutes = sum(m for d, m in minutes.items() if week_start <= d <= today)
    month_minutes = sum(m for d, m in minutes.items() if month_start <= d <= today)

    return {
        "daily": _progress(minutes.get(today, 0.0), goal_for_day(goals, today)),
        "weekly": _progress(week_minutes, goals.weekly_minutes * scale),
        "monthly": _progress(month_minutes, goals.monthly_minutes * scale),
    }


def summarize(
    sessions: Iterable[TimerSession],
    as_of: date | datetime,
    tz: str | tzinfo | None = None,
) -> SessionSummary:
    """Headline study-time numbers."""
    valid = _valid_sessions(sessions)
    total_minutes = sum(s.duration for s in valid)
    return SessionSummary(
        total_minutes=total_minutes,
        total_sessions=len(valid),
        average_session_minutes=round(total_minutes / len(valid), 1) if valid else 0.0,
        current_streak=current_streak(valid, as_of, tz=tz),
        longest_streak=longest_streak(valid, tz=tz),
    )

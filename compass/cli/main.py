"""
Typer CLI for study-compass.

Commands:
    compass due                  - Review queue (never reviewed, overdue, due, upcoming)
    compass review TOPIC GRADE   - Grade a review (again/hard/good/easy or 1-4)
    compass mark TOPIC MARK      - Record a quiz mark on the 2-6 scale
    compass stats                - Study time, streaks and goal progress
    compass readiness [SUBJECT]  - Exam readiness and grade prediction
    compass calendar             - Study calendar for the last N days

Usage:
    compass --help
    compass due --date 2025-01-15
    compass review anatomy-01 good
    compass readiness anatomy
"""

from __future__ import annotations

import random
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from compass.analytics import AnalyticsFacade
from compass.core.errors import CompassError
from compass.core.mastery import TopicStatus, count_statuses
from compass.core.models import Grade
from compass.db.store import AppDataStore
from compass.study import session_aggregator as sessions_agg
from compass.study.memory_model import MemoryModel
from compass.study.readiness import ExamPrediction, ReadinessPredictor
from compass.study.review_scheduler import QueueEntry, ReviewScheduler
from config import get_settings

app = typer.Typer(
    help="study-compass: spaced repetition and exam readiness for your subjects",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Setup
# ========================================


def configure_logging(level: str, log_file: str | None = None) -> None:
    """Route loguru output to stderr (and optionally a rotating file)."""
    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>{message}</level>")
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """
    Spaced repetition and exam readiness.

    Data lives in the database configured by DATABASE_URL.
    """
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_file)


class CLIContext:
    """Lazily built services shared by the commands."""

    def __init__(self):
        self.settings = get_settings()
        self._store: AppDataStore | None = None
        self.memory_model = MemoryModel.from_settings(self.settings)

    @property
    def store(self) -> AppDataStore:
        if self._store is None:
            self._store = AppDataStore.from_settings(self.settings)
        return self._store

    @property
    def scheduler(self) -> ReviewScheduler:
        return ReviewScheduler(self.memory_model)

    @property
    def predictor(self) -> ReadinessPredictor:
        return ReadinessPredictor(self.memory_model)

    @property
    def analytics(self) -> AnalyticsFacade:
        return AnalyticsFacade(
            memory_model=self.memory_model,
            predictor=self.predictor,
            tz=self.settings.timezone,
            trials=self.settings.simulation_trials,
        )

    def rng(self) -> random.Random:
        return random.Random(self.settings.simulation_seed)


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except CompassError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


def _parse_date(value: str | None) -> date:
    if value is None:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got {value!r}", param_hint="--date") from None


DATE_OPTION = typer.Option(None, "--date", "-d", help="Reference date (YYYY-MM-DD, default: today)")


def _format_progress_bar(percent: float, width: int = 20) -> str:
    filled = int(max(0.0, min(100.0, percent)) / 100 * width)
    return "#" * filled + "-" * (width - filled)


# ========================================
# Review Commands
# ========================================


@app.command("due")
def show_due(
    as_of: str | None = DATE_OPTION,
    show_all: bool = typer.Option(False, "--all", "-a", help="Include upcoming and fresh topics"),
) -> None:
    """Show the review queue, most urgent first."""
    today = _parse_date(as_of)
    ctx = CLIContext()
    with _handle_errors():
        data = ctx.store.load_all()
        subjects = ctx.analytics.active_subjects(data.subjects, today)
        topics = [t for s in subjects for t in s.topics]
        exam_dates = {s.id: s.exam_date for s in subjects if s.exam_date}
        queue = ctx.scheduler.classify(topics, today, exam_dates)

    subject_names = {s.id: s.name for s in subjects}
    buckets: list[tuple[str, str, list[QueueEntry]]] = [
        ("New", "magenta", queue.never_reviewed),
        ("Overdue", "red", queue.overdue),
        ("Due", "yellow", queue.due),
    ]
    if show_all:
        buckets += [("Upcoming", "cyan", queue.upcoming), ("Fresh", "green", queue.fresh)]

    if not any(entries for _, _, entries in buckets):
        rprint("[green]Nothing due. All caught up![/green]")
        return

    table = Table(title=f"Review Queue - {today.isoformat()}")
    table.add_column("Bucket")
    table.add_column("Topic", style="bold")
    table.add_column("Subject")
    table.add_column("Recall", justify="right")
    table.add_column("Next review")
    table.add_column("Exam")

    for label, color, entries in buckets:
        for entry in entries:
            table.add_row(
                f"[{color}]{label}[/{color}]",
                f"{entry.topic.name} [dim]({entry.topic.id})[/dim]",
                subject_names.get(entry.topic.subject_id, entry.topic.subject_id),
                "-" if entry.topic.memory is None else f"{entry.retrievability:.0%}",
                entry.next_review.isoformat() if entry.next_review else "-",
                entry.exam_date.isoformat() if entry.exam_date else "-",
            )
    console.print(table)

    counts = queue.counts()
    rprint(
        f"[magenta]{counts['never_reviewed']}[/magenta] new, "
        f"[red]{counts['overdue']}[/red] overdue, "
        f"[yellow]{counts['due']}[/yellow] due, "
        f"[cyan]{counts['upcoming']}[/cyan] upcoming"
    )


@app.command("review")
def review_topic(
    topic_id: str = typer.Argument(..., help="Topic ID"),
    grade: str = typer.Argument(..., help="again, hard, good, easy (or 1-4)"),
    as_of: str | None = DATE_OPTION,
) -> None:
    """Grade a review of a topic and schedule the next one."""
    today = _parse_date(as_of)
    ctx = CLIContext()
    with _handle_errors():
        parsed = Grade.parse(grade)
        data = ctx.store.load_all()
        found = data.find_topic(topic_id)
        if found is None:
            rprint(f"[red]Error:[/red] Unknown topic: {topic_id}")
            raise typer.Exit(code=1)

        _, topic = found
        updated = ctx.scheduler.grade_topic(topic, parsed, today)
        data.replace_topic(updated)
        ctx.store.save_all(data)

    event = updated.reviews[-1]
    next_review = ctx.memory_model.next_review_date(updated.memory)
    rprint(f"[green]Reviewed[/green] [bold]{updated.name}[/bold] as {parsed.name.title()}")
    rprint(
        f"  Stability {updated.memory.stability:.1f}d, difficulty {updated.memory.difficulty:.1f}, "
        f"interval {event.previous_interval}d -> {event.new_interval}d"
    )
    rprint(f"  Next review: [cyan]{next_review.isoformat()}[/cyan]")


@app.command("mark")
def record_mark(
    topic_id: str = typer.Argument(..., help="Topic ID"),
    mark: float = typer.Argument(..., help="Quiz mark on the 2-6 scale"),
    as_of: str | None = DATE_OPTION,
) -> None:
    """Record a quiz mark and update the topic status."""
    today = _parse_date(as_of)
    ctx = CLIContext()
    with _handle_errors():
        data = ctx.store.load_all()
        found = data.find_topic(topic_id)
        if found is None:
            rprint(f"[red]Error:[/red] Unknown topic: {topic_id}")
            raise typer.Exit(code=1)

        _, topic = found
        updated = ctx.scheduler.record_quiz_mark(topic, mark, today)
        data.replace_topic(updated)
        ctx.store.save_all(data)

    color = updated.status.color
    rprint(
        f"[green]Recorded[/green] {mark:g} for [bold]{updated.name}[/bold] "
        f"(average {updated.average_grade:.2f}, status [{color}]{updated.status.display_name}[/{color}])"
    )


# ========================================
# Analytics Commands
# ========================================


@app.command("stats")
def show_stats(as_of: str | None = DATE_OPTION) -> None:
    """Show study time, streaks and goal progress."""
    today = _parse_date(as_of)
    ctx = CLIContext()
    with _handle_errors():
        data = ctx.store.load_all()
    tz = ctx.settings.timezone
    sessions = data.timer_sessions

    summary = sessions_agg.summarize(sessions, today, tz)
    goals = sessions_agg.goal_progress(sessions, data.study_goals, today, tz)

    content = Text()
    content.append("Total study time: ", style="cyan")
    content.append(f"{summary.total_minutes / 60:.1f} h", style="bold")
    content.append(f" in {summary.total_sessions} sessions")
    content.append(f" (avg {summary.average_session_minutes:.0f} min)\n")
    content.append("Current streak:   ", style="cyan")
    content.append(f"{summary.current_streak} days", style="bold")
    content.append(f"  (longest {summary.longest_streak})\n\n")
    for name, progress in goals.items():
        content.append(f"{name.title():<8}", style="cyan")
        content.append(f" [{_format_progress_bar(progress.percentage)}] ")
        content.append(f"{progress.minutes:.0f}/{progress.goal:.0f} min ({progress.percentage:.0f}%)\n")
    console.print(Panel(content, title="Study Statistics", border_style="blue"))

    by_subject = sessions_agg.minutes_by_subject(sessions, data.subjects)
    if by_subject:
        table = Table(title="Time by Subject")
        table.add_column("Subject", style="bold")
        table.add_column("Hours", justify="right")
        table.add_column("Share", justify="right")
        for item in by_subject:
            table.add_row(item.name, f"{item.minutes / 60:.1f}", f"{item.percentage}%")
        console.print(table)

    topics = [t for s in ctx.analytics.active_subjects(data.subjects, today) for t in s.topics]
    counts = count_statuses(topics)
    rprint(
        "Topics: "
        + ", ".join(
            f"[{status.color}]{counts[status]} {status.display_name.lower()}[/{status.color}]"
            for status in reversed(TopicStatus)
        )
    )


def _print_prediction(prediction: ExamPrediction) -> None:
    status = prediction.status
    content = Text()
    if prediction.exam_date:
        content.append("Exam: ", style="cyan")
        content.append(f"{prediction.exam_date.isoformat()} ({prediction.days_until_exam} days)\n")
    else:
        content.append("No exam date set\n", style="dim")
    content.append("Readiness: ", style="cyan")
    content.append(f"[{_format_progress_bar(prediction.readiness)}] {prediction.readiness:.0f}% ")
    content.append(status.display_name, style=f"bold {status.color}")
    content.append("\nPredicted grade: ", style="cyan")
    content.append(f"{prediction.predicted_grade:.2f}", style="bold")
    sim = prediction.simulation
    content.append(f"  (range {sim.worst_case:.2f} - {sim.best_case:.2f}, expected {sim.expected:.2f})\n")
    content.append(
        f"Coverage {prediction.coverage:.0f}%, progress {prediction.weighted_progress:.0f}%, "
        f"recall {prediction.average_retrievability:.0%}, "
        f"studied this week {prediction.consistency:.0%}\n"
    )
    if sim.critical_topics:
        content.append("Critical: ", style="red")
        content.append(", ".join(sim.critical_topics) + "\n")
    for tip in prediction.tips:
        content.append(f"- {tip}\n", style="dim")
    console.print(Panel(content, title=prediction.subject_name, border_style=status.color))


@app.command("readiness")
def show_readiness(
    subject_id: str | None = typer.Argument(None, help="Subject ID (default: all subjects)"),
    as_of: str | None = DATE_OPTION,
) -> None:
    """Show exam readiness and predicted grades."""
    today = _parse_date(as_of)
    ctx = CLIContext()
    with _handle_errors():
        data = ctx.store.load_all()

    analytics = ctx.analytics
    subjects = analytics.active_subjects(data.subjects, today)
    if subject_id is not None:
        subjects = [s for s in subjects if s.id == subject_id]
        if not subjects:
            rprint(f"[red]Error:[/red] Unknown subject: {subject_id}")
            raise typer.Exit(code=1)
    if not subjects:
        rprint("[yellow]No subjects yet.[/yellow]")
        return

    rng = ctx.rng()
    for subject in subjects:
        _print_prediction(
            analytics.predictor.predict(subject, today, trials=analytics.trials, rng=rng)
        )


@app.command("calendar")
def show_calendar(
    days: int = typer.Option(28, "--days", "-n", min=1, help="Number of days to show"),
    as_of: str | None = DATE_OPTION,
) -> None:
    """Show the study calendar for the last N days."""
    today = _parse_date(as_of)
    ctx = CLIContext()
    with _handle_errors():
        data = ctx.store.load_all()

    calendar = sessions_agg.study_calendar(data.timer_sessions, days, today, ctx.settings.timezone)
    shades = ["dim", "green4", "green3", "green1", "bold bright_green"]

    table = Table(title=f"Study Calendar - last {days} days")
    table.add_column("Date")
    table.add_column("Minutes", justify="right")
    table.add_column("Activity")
    for day in calendar:
        style = shades[day.intensity]
        table.add_row(
            day.date.strftime("%a %Y-%m-%d"),
            f"{day.minutes:.0f}",
            f"[{style}]{'#' * day.intensity or '.'}[/{style}]",
        )
    console.print(table)

    streak = sessions_agg.current_streak(data.timer_sessions, today, tz=ctx.settings.timezone)
    rprint(f"Current streak: [bold]{streak}[/bold] days")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

"""CLI for inspecting and driving the adaptive learning engine."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

import click
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.core.adaptive_engine import AdaptiveLearningEngine
from src.core.database import DatabaseManager
from src.core.settings import get_settings, load_adaptive_config
from src.domain.learning.models.learning_models import (
    LearnerSnapshot,
    SessionMetrics,
    UserProgressSnapshot,
)
from src.domain.shared.models import InsightSeverity, StudyMode
from src.domain.shared.services import DomainServiceError
from src.infrastructure.repositories.state_repository import EngineStateRepository

logger = logging.getLogger(__name__)

console = Console()

SEVERITY_STYLES = {
    InsightSeverity.CRITICAL: "red",
    InsightSeverity.WARNING: "yellow",
    InsightSeverity.INFO: "cyan",
}


def setup_logging(level: str = "INFO", log_file: str = "") -> None:
    """Route log output through rich, plus an optional log file."""
    handlers: list[logging.Handler] = [
        RichHandler(rich_tracebacks=True, console=Console(stderr=True))
    ]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def load_snapshot(path: Path) -> LearnerSnapshot:
    """Read a learner snapshot JSON file.

    Raises:
        click.ClickException: If the file isn't valid JSON or doesn't match
            the snapshot schema
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return LearnerSnapshot.model_validate(data)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}") from e
    except PydanticValidationError as e:
        raise click.ClickException(f"Invalid snapshot {path}:\n{e}") from e


def _engine(ctx: click.Context) -> AdaptiveLearningEngine:
    return ctx.obj


@click.group()
@click.option("--db", "database_path", default=None, help="SQLite database path")
@click.option("--user", "user_id", default=None, help="Learner id")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context, database_path: str | None, user_id: str | None, verbose: bool
) -> None:
    """Adaptive learning engine for vocabulary flashcards."""
    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level, settings.log_file)

    try:
        config = load_adaptive_config(settings)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Could not load config overrides: {e}") from e

    db_manager = DatabaseManager(database_path or settings.database_path)
    repository = EngineStateRepository(
        db_manager,
        user_id=user_id or settings.user_id,
        history_limit=settings.persisted_history_limit,
    )
    ctx.obj = AdaptiveLearningEngine(
        config,
        repository=repository,
        default_session_cards=settings.default_session_cards,
        daily_goal=settings.daily_goal,
    )

    def close() -> None:
        repository.close()
        db_manager.close()

    ctx.call_on_close(close)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show difficulty, learning style and analysis status."""
    engine = _engine(ctx)
    state = engine.state
    profile = state.difficulty_profile
    style = state.learning_style_profile

    table = Table(title="Adaptive Learning Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row(
        "Difficulty level", f"{profile.global_level} ({profile.recent_trend.value})"
    )
    if profile.category_levels:
        levels = sorted(profile.category_levels.items())
        table.add_row("Category levels", ", ".join(f"{k}: {v}" for k, v in levels))
    table.add_row(
        "Primary style", style.primary_style.value if style.primary_style else "-"
    )
    table.add_row(
        "Secondary style", style.secondary_style.value if style.secondary_style else "-"
    )
    table.add_row("Style confidence", f"{style.confidence_level:.0f}")
    table.add_row("Sessions recorded", str(len(state.performance_history)))
    overall = state.trends.overall
    table.add_row("Accuracy trend", overall.accuracy_trend.value)
    table.add_row("Speed trend", overall.speed_trend.value)
    table.add_row("Consistency", f"{overall.consistency_score:.1f}")
    if overall.predicted_mastery_date:
        mastery = overall.predicted_mastery_date.date().isoformat()
        table.add_row("Predicted mastery", mastery)
    last_analysis = (
        state.last_analysis_at.strftime("%Y-%m-%d %H:%M")
        if state.last_analysis_at
        else "never"
    )
    table.add_row("Last analysis", last_analysis)
    table.add_row("Weak spots", str(len(state.weak_spots)))
    table.add_row("Active insights", str(len(engine.get_active_insights())))
    console.print(table)


@cli.command("record-session")
@click.option("--duration-ms", type=click.IntRange(min=0), required=True)
@click.option("--cards", "cards_reviewed", type=click.IntRange(min=0), required=True)
@click.option("--accuracy", type=click.FloatRange(0, 100), required=True, help="Percent")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in StudyMode]),
    default=StudyMode.FLIP.value,
    show_default=True,
)
@click.option("--quality", type=click.FloatRange(0, 5), default=3.0, show_default=True)
@click.option("--response-time-ms", type=click.FloatRange(min=0), default=0.0)
@click.option("--planned", "planned_cards", type=click.IntRange(min=0), default=None)
@click.option("--new-mastered", type=click.IntRange(min=0), default=0)
@click.option(
    "--category",
    "categories",
    multiple=True,
    help="Per-category stats as NAME:COUNT:ACCURACY (repeatable)",
)
@click.option(
    "--perfect-streak",
    type=click.IntRange(min=0),
    default=None,
    help="Run the difficulty check with this streak after recording",
)
@click.pass_context
def record_session(
    ctx: click.Context,
    duration_ms: int,
    cards_reviewed: int,
    accuracy: float,
    mode: str,
    quality: float,
    response_time_ms: float,
    planned_cards: int | None,
    new_mastered: int,
    categories: tuple[str, ...],
    perfect_streak: int | None,
) -> None:
    """Record a completed study session."""
    engine = _engine(ctx)

    breakdown = {}
    for item in categories:
        try:
            name, count, category_accuracy = item.rsplit(":", 2)
            breakdown[name] = {"count": int(count), "accuracy": float(category_accuracy)}
        except ValueError as e:
            raise click.BadParameter(
                f"Expected NAME:COUNT:ACCURACY, got {item!r}", param_hint="--category"
            ) from e

    try:
        metrics = SessionMetrics(
            duration_ms=duration_ms,
            cards_reviewed=cards_reviewed,
            accuracy=accuracy,
            average_quality=quality,
            average_response_time_ms=response_time_ms,
            mode=StudyMode(mode),
            category_breakdown=breakdown,
            planned_cards=planned_cards,
            new_cards_mastered=new_mastered,
        )
    except PydanticValidationError as e:
        raise click.ClickException(f"Invalid session metrics:\n{e}") from e

    previous_level = engine.difficulty_level
    record = engine.record_session(metrics, perfect_streak=perfect_streak)
    console.print(
        f"[green]✅ Recorded {record.mode.value} session "
        f"({record.time_of_day.value}, {record.cards_reviewed} cards)[/green]"
    )
    if engine.difficulty_level != previous_level:
        console.print(
            f"[blue]Difficulty {previous_level} → {engine.difficulty_level}[/blue]"
        )


@cli.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--force", is_flag=True, help="Ignore the re-analysis interval")
@click.pass_context
def analyze(ctx: click.Context, snapshot: Path, force: bool) -> None:
    """Run the analysis pass over a learner SNAPSHOT file."""
    engine = _engine(ctx)
    if not force and not engine.should_reanalyze():
        console.print("[yellow]Analysis is fresh; use --force to re-run[/yellow]")
        return

    data = load_snapshot(snapshot)
    if not engine.analyze_performance(
        data.cards, data.progress, data.mistakes, data.confusion_pairs
    ):
        raise click.ClickException("Analysis failed; see log for details")

    weak_spots = engine.weak_spots
    if not weak_spots:
        console.print("[green]No weak spots detected[/green]")
        return

    table = Table(title="Weak Spots")
    table.add_column("Type", style="cyan")
    table.add_column("Target")
    table.add_column("Severity")
    table.add_column("Score", justify="right")
    table.add_column("Cards", justify="right")
    table.add_column("Suggested action")
    for spot in weak_spots:
        color = SEVERITY_STYLES[spot.severity]
        table.add_row(
            spot.type.value,
            spot.target,
            f"[{color}]{spot.severity.value}[/{color}]",
            f"{spot.score:.0f}",
            str(len(spot.affected_card_ids)),
            spot.suggested_action,
        )
    console.print(table)


@cli.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--streak", type=click.IntRange(min=0), default=0, help="Current streak")
@click.option(
    "--last-study-date",
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    default=None,
)
@click.option("--goal", type=int, default=None, help="Daily card goal")
@click.pass_context
def recommend(
    ctx: click.Context,
    snapshot: Path,
    streak: int,
    last_study_date: datetime | None,
    goal: int | None,
) -> None:
    """Generate today's study plan from a learner SNAPSHOT file."""
    engine = _engine(ctx)
    data = load_snapshot(snapshot)
    user_progress = UserProgressSnapshot(
        current_streak=streak, last_study_date=last_study_date
    )
    try:
        plan = engine.refresh_recommendations(
            data.cards, data.progress, user_progress, daily_goal=goal
        )
    except DomainServiceError as e:
        raise click.ClickException(str(e)) from e
    if plan is None:
        raise click.ClickException("No recommendations available")

    table = Table(title=f"Study Plan for {plan.date}")
    table.add_column("#", justify="right")
    table.add_column("Recommendation", style="cyan")
    table.add_column("Cards", justify="right")
    table.add_column("Minutes", justify="right")
    table.add_column("Why")
    for item in plan.recommendations:
        table.add_row(
            str(item.priority),
            f"{item.title}\n[dim]{item.description}[/dim]",
            str(item.suggested_card_count),
            str(item.estimated_time_minutes),
            item.reasoning,
        )
    console.print(table)
    if plan.focus_areas:
        console.print(f"Focus areas: {', '.join(plan.focus_areas)}")
    console.print(
        f"Suggested duration: {plan.suggested_duration} min; best times: "
        f"{', '.join(slot.value for slot in plan.optimal_time_slots)}"
    )


@cli.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--cards", "target_cards", type=int, default=None, help="Session size")
@click.pass_context
def compose(ctx: click.Context, snapshot: Path, target_cards: int | None) -> None:
    """Show the card mix for the next session."""
    engine = _engine(ctx)
    data = load_snapshot(snapshot)
    try:
        composition = engine.get_session_composition(
            data.cards, data.progress, target_cards, data.mistakes
        )
    except DomainServiceError as e:
        raise click.ClickException(str(e)) from e

    table = Table(title=f"Next Session ({composition.total_cards} cards)")
    table.add_column("Slot", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("New", str(composition.new_cards))
    table.add_row("Review", str(composition.review_cards))
    table.add_row("Weakness", str(composition.weakness_cards))
    for category, count in sorted(composition.category_breakdown.items()):
        table.add_row(f"Category: {category}", str(count))
    for mode, count in composition.mode_breakdown.items():
        table.add_row(f"Mode: {mode.value}", str(count))
    mix = composition.difficulty_distribution
    table.add_row("Easy / Medium / Hard", f"{mix.easy} / {mix.medium} / {mix.hard}")
    console.print(table)
    console.print(f"Estimated duration: {composition.estimated_duration} min")


@cli.command("set-difficulty")
@click.argument("level", type=float)
@click.pass_context
def set_difficulty(ctx: click.Context, level: float) -> None:
    """Manually set the difficulty LEVEL (clamped to 1-10)."""
    engine = _engine(ctx)
    try:
        new_level = engine.set_difficulty_level(level)
    except DomainServiceError as e:
        raise click.ClickException(str(e)) from e
    console.print(f"[green]Difficulty set to {new_level}[/green]")


@cli.command()
@click.option("--dismiss", "dismiss_id", default=None, help="Dismiss an insight by id")
@click.option("--act", "act_id", default=None, help="Mark an insight as acted on")
@click.option("--all", "show_all", is_flag=True, help="Include dismissed and expired")
@click.pass_context
def insights(
    ctx: click.Context, dismiss_id: str | None, act_id: str | None, show_all: bool
) -> None:
    """List active insights, or dismiss / act on one."""
    engine = _engine(ctx)

    if dismiss_id:
        if not engine.dismiss_insight(dismiss_id):
            raise click.ClickException(f"Insight not found: {dismiss_id}")
        console.print(f"[green]Dismissed {dismiss_id}[/green]")
        return
    if act_id:
        if not engine.mark_insight_action_taken(act_id):
            raise click.ClickException(f"Insight not found: {act_id}")
        console.print(f"[green]Marked {act_id} as acted on[/green]")
        return

    items = engine.state.insights if show_all else engine.get_active_insights()
    if not items:
        console.print("[yellow]No insights[/yellow]")
        return

    table = Table(title="Insights")
    table.add_column("ID", style="dim")
    table.add_column("Severity")
    table.add_column("Title", style="cyan")
    table.add_column("Description")
    table.add_column("Expires")
    for insight in items:
        color = SEVERITY_STYLES[insight.severity]
        table.add_row(
            insight.id,
            f"[{color}]{insight.severity.value}[/{color}]",
            insight.title,
            insight.description,
            insight.expires_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def main() -> None:
    """Entry point for the adaptive learning CLI."""
    cli()


if __name__ == "__main__":
    main()

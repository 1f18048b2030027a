#!/usr/bin/env python3
"""Idea Improvement Engine CLI.

Usage:
    # Score a first overview and start tracking the idea
    python main.py init acme-clinic --overview ./overview.json --target-market "UK dental clinics"

    # Refine one pillar interactively (lists directions, then asks which to apply)
    python main.py refine acme-clinic pricingPotential

    # Let the engine pick and apply directions until confidence reaches 85
    python main.py auto-improve acme-clinic --target 85 --max-iterations 6

    # Revert the last improvement and re-score the restored overview
    python main.py undo acme-clinic --rescore
"""

import functools
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from agents import LLMGenerationService
from config import settings
from contracts import (
    AUTO_DIRECTION,
    IdeaContext,
    ImprovementError,
    ImprovementIteration,
    FeedbackSnapshot,
    Overview,
    PILLAR_LABELS,
    PILLAR_ORDER,
    SECTION_TITLES,
    ScoreDelta,
    ValidationError,
)
from engine import section_text, SECTION_ORDER
from orchestrator import ImprovementOrchestrator
from providers import list_providers as get_available_providers
from store import JsonFilePersistence, VersionedOverviewStore


console = Console()

PILLAR_CHOICE = click.Choice([p.value for p in PILLAR_ORDER])


def handle_errors(func):
    """Print engine errors in red and exit 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ImprovementError as e:
            console.print(f"[red]{type(e).__name__}:[/red] {escape(str(e))}")
            sys.exit(1)
    return wrapper


def _store(ctx: click.Context) -> VersionedOverviewStore:
    return VersionedOverviewStore(JsonFilePersistence(ctx.obj["store_dir"]))


def _orchestrator(ctx: click.Context) -> ImprovementOrchestrator:
    service = LLMGenerationService(model=ctx.obj["model"], provider=ctx.obj["provider"])
    return ImprovementOrchestrator(store=_store(ctx), generation_service=service)


def _format_delta(value: ScoreDelta) -> str:
    if value.change is None:
        return f"{value.to}"
    color = "green" if value.change > 0 else "red" if value.change < 0 else "dim"
    return f"{value.from_} → {value.to} [{color}]({value.change:+d})[/{color}]"


def _print_feedback(feedback: FeedbackSnapshot, stale: bool = False) -> None:
    table = Table(title="Feedback" + (" [yellow](stale)[/yellow]" if stale else ""))
    table.add_column("Pillar")
    table.add_column("Score", justify="right")
    table.add_column("Rationale", overflow="fold")
    for pillar in PILLAR_ORDER:
        score = feedback.scores[pillar]
        table.add_row(PILLAR_LABELS[pillar], str(score.score), escape(score.rationale))
    console.print(table)
    console.print(
        f"[bold]Overall confidence:[/bold] {feedback.overall_confidence} "
        f"([bold]{feedback.recommendation.value}[/bold])"
    )


def _print_iteration(iteration: ImprovementIteration) -> None:
    label = PILLAR_LABELS[iteration.pillar_impacted]
    source = escape(iteration.direction.title) if iteration.direction else "auto"
    console.print(
        f"\n[bold]v{iteration.version}[/bold] {label} [dim]({iteration.source.value}: {source})[/dim]"
    )
    console.print(f"  {label}: {_format_delta(iteration.target_delta)}")
    console.print(f"  Overall: {_format_delta(iteration.overall_delta)}")
    if iteration.diff_is_fallback:
        console.print("  [dim]No section changed[/dim]")
        return
    for section_diff in iteration.section_diffs:
        console.print(f"  [cyan]{escape(section_diff.section)}[/cyan]")
        console.print(f"    [red]- {escape(section_diff.before) or '(empty)'}[/red]")
        console.print(f"    [green]+ {escape(section_diff.after) or '(empty)'}[/green]")


@click.group()
@click.option(
    "--store-dir", "-s",
    default=None,
    help=f"Directory of stored ideas (default: {settings.store_dir})"
)
@click.option(
    "--provider", "-p",
    type=click.Choice(["openai", "anthropic", "gemini", "deepseek"]),
    default=None,
    help="LLM provider (default: from model name)"
)
@click.option(
    "--model",
    default=None,
    help=f"Model name (default: {settings.default_model})"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Verbose output"
)
@click.pass_context
def cli(ctx, store_dir: Optional[str], provider: Optional[str], model: Optional[str], verbose: bool):
    """Idea Improvement Engine: iteratively strengthen a business idea overview.

    Scores an overview on five weighted pillars, proposes and applies targeted
    rewrites, and keeps a versioned, undoable history of every improvement.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    ctx.ensure_object(dict)
    ctx.obj.update(
        store_dir=store_dir or settings.store_dir,
        provider=provider,
        model=model,
    )


@cli.command()
@click.argument("idea_id")
@click.option("--overview", "overview_path", required=True, type=click.Path(exists=True, dir_okay=False),
              help="JSON file holding the first overview")
@click.option("--mode", default=None, help="explore-idea, solve-problem or surprise-me")
@click.option("--user-input", default=None, help="The original idea or problem text")
@click.option("--target-market", default=None)
@click.option("--target-country", default=None)
@click.option("--budget", default=None)
@click.option("--timescales", default=None)
@click.pass_context
@handle_errors
def init(ctx, idea_id, overview_path, mode, user_input, target_market, target_country, budget, timescales):
    """Score a first overview and start tracking IDEA_ID."""
    try:
        data = json.loads(Path(overview_path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Overview file is not valid JSON: {e}", idea_id=idea_id) from e

    context = IdeaContext(
        mode=mode,
        user_input=user_input,
        target_market=target_market,
        target_country=target_country,
        budget=budget,
        timescales=timescales,
    )
    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task("Scoring overview...", total=None)
        record = _orchestrator(ctx).initialize_idea(idea_id, data, context)

    console.print(f"[green]Created[/green] {escape(idea_id)} at version {record.version}")
    _print_feedback(record.feedback)


@cli.command()
@click.argument("idea_id")
@click.argument("pillar", type=PILLAR_CHOICE)
@click.pass_context
@handle_errors
def directions(ctx, idea_id, pillar):
    """Propose improvement directions for one PILLAR without applying any."""
    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task("Proposing directions...", total=None)
        proposed = _orchestrator(ctx).list_directions(idea_id, pillar)
    _print_directions(proposed)


def _print_directions(proposed) -> None:
    table = Table(title="Improvement directions")
    table.add_column("Id")
    table.add_column("Title")
    table.add_column("Description", overflow="fold")
    table.add_column("Confidence")
    for direction in proposed:
        table.add_row(
            escape(direction.id),
            escape(direction.title),
            escape(direction.description),
            direction.confidence.value if direction.confidence else "-",
        )
    console.print(table)


@cli.command()
@click.argument("idea_id")
@click.argument("pillar", type=PILLAR_CHOICE)
@click.option("--direction", "-d", "direction_id", default=None,
              help='"auto" applies an engine-chosen direction without listing (default: list and ask)')
@click.pass_context
@handle_errors
def refine(ctx, idea_id, pillar, direction_id):
    """Refine one PILLAR of IDEA_ID and commit the result."""
    orchestrator = _orchestrator(ctx)

    if direction_id is None:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
            progress.add_task("Proposing directions...", total=None)
            listing = orchestrator.refine_pillar(idea_id, pillar)
        _print_directions(listing.directions)
        direction_id = click.prompt(
            "Direction to apply",
            type=click.Choice([d.id for d in listing.directions] + [AUTO_DIRECTION]),
            default=AUTO_DIRECTION,
        )

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task("Rewriting and re-scoring...", total=None)
        result = orchestrator.refine_pillar(idea_id, pillar, direction_id)

    _print_iteration(result.iteration)
    if result.overall_delta.change is not None and result.overall_delta.change < 0:
        console.print("[yellow]Overall confidence dropped; use 'undo' to revert.[/yellow]")


@cli.command("auto-improve")
@click.argument("idea_id")
@click.option("--target", "-t", type=click.IntRange(0, 100), default=None,
              help=f"Target overall confidence (default: {settings.default_target_score})")
@click.option("--max-iterations", "-n", type=click.IntRange(0), default=None,
              help=f"Maximum iterations (default: {settings.max_auto_iterations})")
@click.option("--max-cost", "-$", type=float, default=None,
              help=f"Maximum cost in USD (default: ${settings.max_cost_per_run_usd})")
@click.pass_context
@handle_errors
def auto_improve(ctx, idea_id, target, max_iterations, max_cost):
    """Improve the weakest pillars of IDEA_ID until the target or a limit is reached."""
    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task("Auto-improving...", total=None)
        result = _orchestrator(ctx).auto_improve(
            idea_id,
            target_score=target,
            max_iterations=max_iterations,
            max_cost_usd=max_cost,
        )

    for iteration in result.iterations:
        _print_iteration(iteration)

    console.print("\n" + "=" * 60)
    status = "[green]Target reached[/green]" if result.reached_target else "[yellow]Target not reached[/yellow]"
    console.print(f"{status} ({result.stop_reason.value})")
    console.print(f"[dim]Iterations:[/dim] {result.iteration_count}/{result.max_iterations}")
    console.print(f"[dim]Version:[/dim] {result.final_version}")
    console.print(f"[dim]Cost:[/dim] ${result.cost_usd:.4f}")
    by_agent = result.cost_manifest.get("by_agent", {})
    if by_agent:
        parts = [f"{escape(agent)} ${cost:.4f}" for agent, cost in sorted(by_agent.items())]
        console.print("[dim]By agent:[/dim] " + ", ".join(parts))
    if result.notice:
        console.print(f"[yellow]{escape(str(result.notice))}[/yellow]")
    _print_feedback(result.final_feedback)
    if result.error:
        console.print(f"[red]{type(result.error).__name__}:[/red] {escape(str(result.error))}")
        sys.exit(1)


@cli.command()
@click.argument("idea_id")
@click.option("--rescore", is_flag=True, help="Re-score the restored overview")
@click.pass_context
@handle_errors
def undo(ctx, idea_id, rescore):
    """Revert the last improvement of IDEA_ID."""
    if rescore:
        record = _orchestrator(ctx).undo_last_improvement(idea_id, rescore=True)
    else:
        record = _store(ctx).undo(idea_id)
    console.print(f"[green]Restored[/green] previous overview; {escape(idea_id)} is now at version {record.version}")
    _print_feedback(record.feedback, stale=record.feedback_stale)


@cli.command()
@click.argument("idea_id")
@click.pass_context
@handle_errors
def history(ctx, idea_id):
    """Show committed improvements of IDEA_ID, newest first."""
    iterations = _store(ctx).get_history(idea_id)
    if not iterations:
        console.print("[dim]No improvements yet.[/dim]")
        return
    for iteration in iterations:
        _print_iteration(iteration)


@cli.command()
@click.argument("idea_id")
@click.option("--json", "as_json", is_flag=True, help="Print the stored record as JSON")
@click.pass_context
@handle_errors
def show(ctx, idea_id, as_json):
    """Show the current overview and feedback of IDEA_ID."""
    record = _store(ctx).read(idea_id)
    if as_json:
        click.echo(record.model_dump_json(indent=2, by_alias=True))
        return

    console.print(Panel.fit(
        f"[bold blue]{escape(idea_id)}[/bold blue]\n[dim]version {record.version}[/dim]",
        border_style="blue"
    ))
    _print_overview(record.overview)
    _print_feedback(record.feedback, stale=record.feedback_stale)


def _print_overview(overview: Overview) -> None:
    for section in SECTION_ORDER:
        console.print(f"\n[bold cyan]{SECTION_TITLES[section]}[/bold cyan]")
        console.print(escape(section_text(overview, section)) or "[dim](empty)[/dim]")
    console.print()


@cli.command("list-providers")
def list_providers():
    """List LLM providers and whether their API key is set."""
    console.print("[bold]Available LLM Providers:[/bold]\n")
    for name, available in get_available_providers().items():
        status = "[green]✓ Ready[/green]" if available else "[red]✗ No API key[/red]"
        console.print(f"  {name:12} {status}")
    console.print("\n[dim]Set API keys via environment variables:[/dim]")
    console.print("  OPENAI_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY, DEEPSEEK_API_KEY")


if __name__ == "__main__":
    cli()

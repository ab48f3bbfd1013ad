"""
cutplan.cli - Typer CLI entry point.

Works on document blobs stored as JSON files, standing in for the
persistence layer that owns them in production.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from cutplan import __version__
from cutplan.assist.pipeline import run_edit_pipeline
from cutplan.assist.session import apply_chat_edit, undo_chat_edit
from cutplan.config import (
    BUILTIN_PROFILES,
    CONFIG_FILENAME,
    EngineConfig,
    create_default_config,
    load_config,
    write_config,
)
from cutplan.exceptions import ConfigError, DocumentError
from cutplan.io import read_blob, read_payload_list, write_blob
from cutplan.logging import configure_logging
from cutplan.timeline.document import build_timeline_state, load_timeline_state, serialize_timeline_state
from cutplan.timeline.invariants import (
    InvariantIssue,
    preview_timeline_operations_with_validation,
    validate_timeline_state_invariants,
)
from cutplan.timeline.operations import parse_operations
from cutplan.transcript.issues import build_transcript_issues
from cutplan.transcript.models import TranscriptSegment, TranscriptWord
from cutplan.transcript.patch import apply_transcript_patch_operations, summarize_transcript_quality
from cutplan.undo import LineageMismatch
from cutplan.utils import format_ms

app = typer.Typer(
    name="cutplan",
    help="Timeline document engine with an AI-assisted edit pipeline.\n\n"
    "Applies atomic operation batches to a timeline blob, plans edits from "
    "natural-language prompts, ripples transcript edits and undoes with lineage checks.",
    add_completion=False,
)
console = Console()


def find_config_dir() -> Path | None:
    """Find the nearest directory holding cutplan.yaml."""
    current = Path.cwd()
    while current != current.parent:
        if (current / CONFIG_FILENAME).exists():
            return current
        current = current.parent
    return None


def resolve_config(config_dir: str | None) -> EngineConfig:
    directory = Path(config_dir) if config_dir else find_config_dir()
    if directory is None:
        return EngineConfig()
    try:
        return load_config(directory)
    except (FileNotFoundError, ConfigError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def load_blob_or_exit(path: str) -> dict:
    try:
        return read_blob(Path(path))
    except DocumentError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def print_invariant_issues(issues: list[InvariantIssue], title: str) -> None:
    table = Table(title=title)
    table.add_column("Code", style="red")
    table.add_column("Track", style="cyan")
    table.add_column("Clip", style="cyan")
    table.add_column("Message")
    for issue in issues:
        table.add_row(issue.code, issue.track_id or "-", issue.clip_id or "-", issue.message)
    console.print(table)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"cutplan {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """cutplan - timeline document engine."""
    configure_logging(verbose)


@app.command("init")
def init_config(
    profile: str = typer.Option(
        "standard", "--profile", "-p", help="Threshold profile: standard, strict, or lenient"
    ),
    path: str = typer.Option(".", "--path", "-d", help="Directory to write cutplan.yaml in"),
) -> None:
    """Write a cutplan.yaml with the thresholds of a profile."""
    if profile not in BUILTIN_PROFILES:
        console.print(f"[red]Error: Unknown profile '{profile}'[/red]")
        raise typer.Exit(1)

    config_path = Path(path) / CONFIG_FILENAME
    if config_path.exists():
        console.print(f"[red]Error: '{config_path}' already exists[/red]")
        raise typer.Exit(1)

    write_config(create_default_config(profile), config_path)
    console.print(f"[green]✓[/green] Wrote {config_path} with profile '{profile}'")


@app.command("apply")
def apply_ops(
    blob_path: str = typer.Argument(..., help="Document blob JSON file"),
    ops_path: str = typer.Argument(..., help="JSON array of timeline operations"),
    preview: bool = typer.Option(False, "--preview", help="Validate only, don't write"),
    config_dir: str | None = typer.Option(None, "--config", "-c", help="Directory holding cutplan.yaml"),
) -> None:
    """Apply an operation batch to a document, all or nothing."""
    config = resolve_config(config_dir)
    blob = load_blob_or_exit(blob_path)
    try:
        state = load_timeline_state(blob)
        operations = parse_operations(read_payload_list(Path(ops_path), "operations"))
    except (DocumentError, FileNotFoundError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    result = preview_timeline_operations_with_validation(
        state, operations, revision_history_limit=config.revision_history_limit
    )
    if not result.valid or result.next_state is None:
        print_invariant_issues(result.issues, "Batch rejected")
        raise typer.Exit(1)

    if preview:
        console.print(
            f"[green]✓[/green] Batch of {len(operations)} operation(s) is valid "
            f"(would commit revision {result.revision})"
        )
        return

    write_blob(Path(blob_path), serialize_timeline_state(blob, result.next_state))
    console.print(f"[green]✓[/green] Committed revision {result.revision}")
    console.print(f"[dim]  hash {result.timeline_hash}[/dim]")


@app.command("validate")
def validate_blob(
    blob_path: str = typer.Argument(..., help="Document blob JSON file"),
) -> None:
    """Check the structural invariants of a document."""
    blob = load_blob_or_exit(blob_path)
    try:
        state = load_timeline_state(blob)
    except DocumentError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    issues = validate_timeline_state_invariants(state)
    if issues:
        print_invariant_issues(issues, "Invariant violations")
        raise typer.Exit(1)

    clip_count = sum(len(track.clips) for track in state.tracks)
    console.print(
        f"[green]✓[/green] Timeline is valid: revision {state.version}, "
        f"{len(state.tracks)} track(s), {clip_count} clip(s)"
    )


@app.command("plan")
def plan_edit(
    blob_path: str = typer.Argument(..., help="Document blob JSON file"),
    prompt: str = typer.Argument(..., help="Edit request in plain language"),
    apply: bool = typer.Option(False, "--apply", help="Write the edit when the plan applies"),
    project_id: str | None = typer.Option(None, "--project-id", help="Project id recorded for undo"),
    assets_path: str | None = typer.Option(
        None, "--assets", help="JSON array of project assets, used to seed an empty document"
    ),
    config_dir: str | None = typer.Option(None, "--config", "-c", help="Directory holding cutplan.yaml"),
) -> None:
    """Plan an edit from a prompt; optionally apply it with an undo token."""
    config = resolve_config(config_dir)
    blob = load_blob_or_exit(blob_path)
    try:
        assets = read_payload_list(Path(assets_path), "assets") if assets_path else []
    except (DocumentError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    undo_token = None
    try:
        if apply:
            outcome = apply_chat_edit(blob, prompt, assets=assets, project_id=project_id, config=config)
            result = outcome.result
            undo_token = outcome.undo_token
        else:
            result = run_edit_pipeline(prompt, build_timeline_state(blob, assets), config=config)
    except DocumentError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Planned Intents")
    table.add_column("Intent", style="cyan")
    table.add_column("Target")
    table.add_column("Confidence", style="green")
    for intent in result.planned_operations:
        table.add_row(intent.op, intent.target or "-", f"{intent.confidence:.2f}")
    console.print(table)

    console.print(f"Execution: [bold]{result.execution_mode.value}[/bold]  Trust: {result.safety_mode.value}")
    console.print(f"[dim]  valid plan rate {result.plan_validation.valid_plan_rate:.2f}[/dim]")

    if not result.applied:
        console.print(f"[yellow]Not applied: {result.fallback_reason}[/yellow]")
        for suggestion in result.constrained_suggestions:
            console.print(f"  • {suggestion.title}: [dim]{suggestion.prompt}[/dim]")
        return

    console.print(f"  {len(result.applied_timeline_operations)} timeline operation(s) compiled")
    if apply and undo_token:
        write_blob(Path(blob_path), outcome.blob)
        console.print(f"[green]✓[/green] Applied as revision {result.next_revision}")
        console.print(f"[dim]  undo token {undo_token}[/dim]")


@app.command("undo")
def undo_edit(
    blob_path: str = typer.Argument(..., help="Document blob JSON file"),
    token: str = typer.Argument(..., help="Undo token printed by 'cutplan plan --apply'"),
    project_id: str | None = typer.Option(None, "--project-id", help="Project the token must belong to"),
    force: bool = typer.Option(False, "--force", help="Skip the lineage check"),
) -> None:
    """Restore the document as it was before a planned edit."""
    blob = load_blob_or_exit(blob_path)
    try:
        outcome = undo_chat_edit(blob, token, project_id=project_id, force=force)
    except DocumentError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if isinstance(outcome, LineageMismatch):
        console.print(f"[red]Undo refused ({outcome.code}): {outcome.message}[/red]")
        raise typer.Exit(1)

    write_blob(Path(blob_path), outcome.blob)
    console.print(f"[green]✓[/green] Restored revision {outcome.state.version}")


@app.command("transcript")
def patch_transcript(
    blob_path: str = typer.Argument(..., help="Document blob JSON file"),
    segments_path: str = typer.Argument(..., help="JSON array of transcript segments"),
    patch_path: str = typer.Argument(..., help="JSON array of transcript patch operations"),
    language: str = typer.Option("en", "--language", "-l", help="Caption language"),
    min_confidence: float | None = typer.Option(
        None, "--min-confidence", help="Ripple confidence threshold (default from config)"
    ),
    apply: bool = typer.Option(False, "--apply", help="Write segments and timeline changes"),
    config_dir: str | None = typer.Option(None, "--config", "-c", help="Directory holding cutplan.yaml"),
) -> None:
    """Patch a transcript and ripple safe deletions into the timeline."""
    config = resolve_config(config_dir)
    threshold = min_confidence if min_confidence is not None else config.ripple_min_confidence
    blob = load_blob_or_exit(blob_path)
    try:
        state = load_timeline_state(blob)
        segments = [
            TranscriptSegment.model_validate(s) for s in read_payload_list(Path(segments_path), "segments")
        ]
        patch = read_payload_list(Path(patch_path), "operations")
        result = apply_transcript_patch_operations(
            state, segments, patch, language=language, min_confidence_for_ripple=threshold
        )
    except (DocumentError, FileNotFoundError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    for issue in result.issues:
        style = "red" if issue.severity.value == "ERROR" else "yellow"
        console.print(f"[{style}]{issue.severity.value} {issue.code}[/{style}]: {issue.message}")

    quality = summarize_transcript_quality(result.next_words, result.next_segments)
    console.print(
        f"{quality.segment_count} segment(s), {quality.word_count} word(s), "
        f"{len(result.timeline_operations)} timeline operation(s)"
    )
    if result.suggestions_only:
        console.print("[yellow]Ripple withheld: deletions were not applied to the timeline[/yellow]")

    if not apply or not result.timeline_operations:
        return

    if any(issue.severity.value == "ERROR" for issue in result.issues):
        raise typer.Exit(1)

    preview = preview_timeline_operations_with_validation(
        state, result.timeline_operations, revision_history_limit=config.revision_history_limit
    )
    if not preview.valid or preview.next_state is None:
        print_invariant_issues(preview.issues, "Timeline update rejected")
        raise typer.Exit(1)

    write_blob(Path(blob_path), serialize_timeline_state(blob, preview.next_state))
    Path(segments_path).write_text(
        json.dumps([s.to_wire() for s in result.next_segments], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    console.print(f"[green]✓[/green] Committed revision {preview.revision}")


@app.command("issues")
def transcript_issues(
    segments_path: str = typer.Argument(..., help="JSON array of transcript segments"),
    words_path: str = typer.Argument(..., help="JSON array of transcript words"),
    min_confidence: float = typer.Option(0.7, "--min-confidence", help="LOW_CONFIDENCE threshold"),
) -> None:
    """List low-confidence, overlapping and drifting transcript segments."""
    try:
        segments = [
            TranscriptSegment.model_validate(s) for s in read_payload_list(Path(segments_path), "segments")
        ]
        words = [TranscriptWord.model_validate(w) for w in read_payload_list(Path(words_path), "words")]
    except (DocumentError, FileNotFoundError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    issues = build_transcript_issues(segments, words, min_confidence)
    if not issues:
        console.print("[green]✓[/green] No transcript issues")
        return

    table = Table(title="Transcript Issues")
    table.add_column("Start", style="cyan")
    table.add_column("Type", style="yellow")
    table.add_column("Severity")
    table.add_column("Message")
    for issue in issues:
        table.add_row(format_ms(issue.start_ms), issue.type.value, issue.severity.value, issue.message)
    console.print(table)

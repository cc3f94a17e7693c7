"""Primary Typer application wiring the recordmerge CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import typer
from rich.table import Table

from recordmerge.entities.core import JobState
from recordmerge.errors import RecordMergeError
from recordmerge.orchestration import FileJobStateStore
from recordmerge.pipeline.deduplication.groups import DuplicateGroup
from recordmerge.pipeline.deduplication.io import write_group_report
from recordmerge.utils.logging import configure_logging

from .common import (
    CLIError,
    build_runtime,
    configure_state,
    console,
    get_state,
    load_job_config,
    parse_override,
    render_groups,
    render_job_state,
    render_panel,
)


ErrorHandler = Callable[[BaseException], Any]


class RecordMergeTyper(typer.Typer):
    """Typer application that maps selected exceptions to handlers at the top level."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._handlers: Dict[type[BaseException], ErrorHandler] = {}

    def exception_handler(self, exception_type: type[BaseException]) -> Callable[[ErrorHandler], ErrorHandler]:
        def register(handler: ErrorHandler) -> ErrorHandler:
            self._handlers[exception_type] = handler
            return handler

        return register

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return super().__call__(*args, **kwargs)
        except Exception as exc:  # pragma: no cover - exercised through the console script
            handler = next((h for kind, h in self._handlers.items() if isinstance(exc, kind)), None)
            if handler is None:
                raise
            outcome = handler(exc)
            if isinstance(outcome, typer.Exit):
                raise SystemExit(outcome.exit_code) from exc
            if isinstance(outcome, BaseException):
                raise outcome from exc
            return outcome


app = RecordMergeTyper(
    add_completion=False,
    help="Find and merge duplicate records, and manage resumable consolidation jobs.",
    no_args_is_help=True,
)


@app.exception_handler(CLIError)
def handle_cli_error(exception: CLIError) -> typer.Exit:
    """Render ``CLIError`` messages without stack traces."""

    console.print(f"[bold red]Error:[/bold red] {exception}")
    return typer.Exit(code=2)


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Active configuration environment (development, testing, production).",
        show_default=False,
    ),
    override: List[str] = typer.Option(  # noqa: B008 - Typer callback signature
        [],
        "--set",
        "-s",
        metavar="KEY=VALUE",
        help="Configuration override in dotted.key=value notation (repeatable).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug output to stderr and the configured log file.",
    ),
) -> None:
    """Configure shared CLI state prior to executing subcommands."""

    overrides = [parse_override(item) for item in override]
    state = configure_state(ctx, environment=environment, overrides=overrides, verbose=verbose)
    if verbose:
        configure_logging(state.settings, level="DEBUG")


_FIELD_HELP = "Field spec NAME[:Exact|Fuzzy|Phonetic][:required][:weight=W] (repeatable)."


def _run_job(
    ctx: typer.Context,
    object_type: str,
    *,
    dry_run: bool,
    fields: List[str],
    job_file: Optional[Path],
    data_dir: Optional[Path],
    options: Dict[str, Any],
    job_id: Optional[str],
    on_groups=None,
) -> JobState:
    state = get_state(ctx)
    config = load_job_config(
        object_type,
        job_file=job_file,
        fields=fields,
        overrides={**options, "is_dry_run": dry_run},
    )
    runtime = build_runtime(state.settings, data_dir=data_dir, on_groups=on_groups)
    try:
        job = runtime.orchestrator.start(config, job_id=job_id)
        runtime.scheduler.drain()
        return runtime.orchestrator.status(job.job_id)
    except RecordMergeError as exc:
        raise CLIError(str(exc)) from exc


@app.command("find")
def find_command(
    ctx: typer.Context,
    object_type: str = typer.Argument(..., help="Object type; records live in <data-dir>/<object_type>.jsonl."),
    field: List[str] = typer.Option([], "--field", "-f", help=_FIELD_HELP),  # noqa: B008
    job_file: Optional[Path] = typer.Option(None, "--job-file", help="YAML job configuration."),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Directory holding record files."),
    strategy: Optional[str] = typer.Option(None, "--strategy", help="OldestCreated, NewestCreated or MostComplete."),
    threshold: Optional[float] = typer.Option(None, "--threshold", help="Fuzzy threshold (0-100)."),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Records per chunk."),
    report: Optional[Path] = typer.Option(None, "--report", help="Write group summaries to this JSONL file."),
    job_id: Optional[str] = typer.Option(None, "--job-id", help="Explicit job identifier."),
) -> None:
    """Report duplicate groups without changing any record."""

    found: List[DuplicateGroup] = []

    def _collect(_: JobState, groups: Dict[str, DuplicateGroup]) -> None:
        # keys are only unique within a chunk
        found.extend(groups.values())

    job = _run_job(
        ctx,
        object_type,
        dry_run=True,
        fields=field,
        job_file=job_file,
        data_dir=data_dir,
        options={"master_strategy": strategy, "fuzzy_threshold": threshold, "chunk_size": chunk_size},
        job_id=job_id,
        on_groups=_collect,
    )
    if found:
        render_groups(found, strategy=job.config.master_strategy)
    else:
        console.print("[yellow]No duplicate groups found.[/yellow]")
    if report is not None:
        destination = write_group_report(found, report, strategy=job.config.master_strategy)
        console.print(f"Report written to {destination}")
    render_job_state(job)


@app.command("merge")
def merge_command(
    ctx: typer.Context,
    object_type: str = typer.Argument(..., help="Object type; records live in <data-dir>/<object_type>.jsonl."),
    field: List[str] = typer.Option([], "--field", "-f", help=_FIELD_HELP),  # noqa: B008
    job_file: Optional[Path] = typer.Option(None, "--job-file", help="YAML job configuration."),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Directory holding record files."),
    strategy: Optional[str] = typer.Option(None, "--strategy", help="OldestCreated, NewestCreated or MostComplete."),
    threshold: Optional[float] = typer.Option(None, "--threshold", help="Fuzzy threshold (0-100)."),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Records per chunk."),
    field_selection: Optional[str] = typer.Option(
        None,
        "--field-selection",
        help="MasterWins, NonBlank or MostRecent.",
    ),
    job_id: Optional[str] = typer.Option(None, "--job-id", help="Explicit job identifier."),
) -> None:
    """Merge duplicate groups into their masters."""

    job = _run_job(
        ctx,
        object_type,
        dry_run=False,
        fields=field,
        job_file=job_file,
        data_dir=data_dir,
        options={
            "master_strategy": strategy,
            "fuzzy_threshold": threshold,
            "chunk_size": chunk_size,
            "field_selection": field_selection,
        },
        job_id=job_id,
    )
    render_job_state(job)


@app.command("resume")
def resume_command(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Job identifier to resume."),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Directory holding record files."),
) -> None:
    """Continue a job that yielded or was interrupted."""

    state = get_state(ctx)
    runtime = build_runtime(state.settings, data_dir=data_dir)
    try:
        runtime.orchestrator.resume(job_id)
        runtime.scheduler.drain()
        job = runtime.orchestrator.status(job_id)
    except RecordMergeError as exc:
        raise CLIError(str(exc)) from exc
    render_job_state(job)


@app.command("status")
def status_command(
    ctx: typer.Context,
    job_id: Optional[str] = typer.Argument(None, help="Job identifier; lists all jobs when omitted."),
    as_json: bool = typer.Option(False, "--json", help="Render the job statistics as JSON."),
) -> None:
    """Show the persisted state of one job, or list known jobs."""

    state = get_state(ctx)
    store = FileJobStateStore(state.settings.paths.state_dir)
    if job_id is None:
        table = Table(title="Jobs")
        table.add_column("Job")
        table.add_column("Status")
        table.add_column("Object type")
        table.add_column("Progress", justify="right")
        for known in store.list_jobs():
            job = store.load(known)
            if job is None:
                continue
            table.add_row(job.job_id, job.status.value, job.config.object_type, f"{job.progress:.1f}%")
        console.print(table)
        return
    job = store.load(job_id)
    if job is None:
        raise CLIError(f"Job '{job_id}' not found in {store.base_directory}")
    if as_json:
        render_panel(f"Job {job_id}", job.statistics())
        return
    render_job_state(job)


@app.command("cancel")
def cancel_command(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Job identifier to cancel."),
) -> None:
    """Request cancellation; the job stops at its next chunk boundary."""

    state = get_state(ctx)
    store = FileJobStateStore(state.settings.paths.state_dir)
    job = store.load(job_id)
    if job is None:
        raise CLIError(f"Job '{job_id}' not found in {store.base_directory}")
    if job.status.is_terminal:
        console.print(f"[yellow]Job {job_id} already {job.status.value}.[/yellow]")
        return
    job.cancel_requested = True
    store.save(job)
    console.print(f"[green]Cancellation requested for job {job_id}.[/green]")

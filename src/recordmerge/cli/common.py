"""Shared state, option parsing and rendering for the recordmerge CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table

from recordmerge.config.overrides import assign_path, decode_value, deep_merge
from recordmerge.config.settings import Settings
from recordmerge.entities.core import FieldSpec, JobConfig, JobState, MatchType
from recordmerge.orchestration import BatchOrchestrator, FileJobStateStore, InlineScheduler
from recordmerge.pipeline.deduplication.groups import DuplicateGroup
from recordmerge.storage import JsonlAuditLog, JsonlRecordStore
from recordmerge.utils.logging import get_logger

console = Console()
_LOGGER = get_logger(module=__name__)


class CLIError(RuntimeError):
    """A user-facing failure rendered without a traceback."""


@dataclass(slots=True)
class CLIState:
    """Resolved settings shared by every subcommand through ``ctx.obj``."""

    settings: Settings
    verbose: bool = False
    overrides: Dict[str, Any] = field(default_factory=dict)

    @property
    def environment(self) -> str:
        return self.settings.environment


def parse_override(argument: str) -> Dict[str, Any]:
    """Turn ``policies.batch.chunk_size=25`` into ``{"policies": {"batch": {"chunk_size": 25}}}``."""

    dotted, separator, raw_value = argument.partition("=")
    if not separator:
        raise typer.BadParameter("Overrides must be expressed as dotted.key=value")
    path = [segment.strip() for segment in dotted.split(".") if segment.strip()]
    if not path:
        raise typer.BadParameter("Override keys must not be empty")
    parsed: Dict[str, Any] = {}
    assign_path(parsed, path, decode_value(raw_value))
    return parsed


def merge_overrides(overrides: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for override in overrides:
        merged = deep_merge(merged, override)
    return merged


def resolve_settings(environment: str | None, overrides: Mapping[str, Any]) -> Settings:
    payload = dict(overrides)
    if environment:
        payload["environment"] = environment
    try:
        return Settings(**payload)
    except (ValidationError, ValueError) as exc:
        raise CLIError(f"Invalid configuration: {exc}") from exc


def configure_state(
    ctx: typer.Context,
    *,
    environment: str | None,
    overrides: Iterable[Mapping[str, Any]],
    verbose: bool,
) -> CLIState:
    merged = merge_overrides(overrides)
    state = CLIState(settings=resolve_settings(environment, merged), verbose=verbose, overrides=merged)
    ctx.obj = state
    _LOGGER.debug("CLI state configured", environment=state.environment, overrides=sorted(merged))
    return state


def get_state(ctx: typer.Context) -> CLIState:
    if not isinstance(ctx.obj, CLIState):
        raise CLIError("CLI context is not initialised")
    return ctx.obj


def render_panel(title: str, content: Mapping[str, Any]) -> None:
    console.print(Panel(JSON.from_data(content, default=str), title=title, border_style="cyan"))


def resolve_path(path: str | Path, *, must_exist: bool = True) -> Path:
    target = Path(path).expanduser().resolve()
    if must_exist and not target.exists():
        raise CLIError(f"Path does not exist: {target}")
    return target


def parse_field_spec(argument: str) -> FieldSpec:
    """Parse ``Name[:matchType][:required][:weight=0.6]`` into a :class:`FieldSpec`."""

    segments = [segment.strip() for segment in argument.split(":")]
    name = segments[0]
    if not name:
        raise typer.BadParameter(f"Field spec '{argument}' has no field name")
    payload: Dict[str, Any] = {"name": name}
    for segment in segments[1:]:
        lowered = segment.lower()
        if not lowered:
            continue
        if lowered == "required":
            payload["required"] = True
        elif lowered.startswith("weight="):
            try:
                payload["weight"] = float(lowered.split("=", 1)[1])
            except ValueError as exc:
                raise typer.BadParameter(f"Invalid weight in field spec '{argument}'") from exc
        else:
            try:
                payload["match_type"] = MatchType(segment)
            except ValueError as exc:
                raise typer.BadParameter(f"Unknown match type '{segment}' in field spec '{argument}'") from exc
    return FieldSpec(**payload)


def load_job_config(
    object_type: str,
    *,
    job_file: Optional[Path],
    fields: List[str],
    overrides: Mapping[str, Any],
) -> JobConfig:
    """Build a job config from an optional YAML file plus command-line options."""

    payload: Dict[str, Any] = {}
    if job_file is not None:
        loaded = yaml.safe_load(resolve_path(job_file).read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, Mapping):
            raise CLIError(f"Job file '{job_file}' must contain a mapping at the top level")
        payload.update(loaded)
    payload["object_type"] = object_type
    if fields:
        payload["field_specs"] = [parse_field_spec(item) for item in fields]
    payload.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return JobConfig.model_validate(payload)
    except ValidationError as exc:
        raise CLIError(f"Invalid job configuration: {exc}") from exc


@dataclass
class Runtime:
    """Collaborators wired from settings for one CLI invocation."""

    orchestrator: BatchOrchestrator
    scheduler: InlineScheduler
    store: JsonlRecordStore


def build_runtime(
    settings: Settings,
    *,
    data_dir: Optional[Path] = None,
    on_groups=None,
) -> Runtime:
    directory = Path(data_dir) if data_dir is not None else settings.paths.data_dir
    if not directory.exists():
        raise CLIError(f"Data directory does not exist: {directory}")
    store = JsonlRecordStore(directory)
    scheduler = InlineScheduler()
    orchestrator = BatchOrchestrator(
        store,
        FileJobStateStore(settings.paths.state_dir),
        policies=settings.policies,
        audit_sink=JsonlAuditLog(settings.paths.audit_log),
        scheduler=scheduler,
        on_groups=on_groups,
    )
    return Runtime(orchestrator=orchestrator, scheduler=scheduler, store=store)


def render_job_state(state: JobState) -> None:
    table = Table(title=f"Job {state.job_id}", show_header=False, box=None)
    table.add_row("Status", state.status.value)
    table.add_row("Object type", state.config.object_type)
    table.add_row("Dry run", "yes" if state.config.is_dry_run else "no")
    table.add_row("Progress", f"{state.progress:.1f}%")
    table.add_row("Records processed", str(state.records_processed))
    table.add_row("Duplicates found", str(state.duplicates_found))
    table.add_row("Records merged", str(state.records_merged))
    table.add_row("Passes", str(state.passes))
    table.add_row("Cursor", state.cursor or "-")
    if state.truncated:
        table.add_row("Truncated", "yes")
    table.add_row("Errors", str(len(state.errors)))
    console.print(table)
    for error in state.errors[:10]:
        console.print(f"[red]- {error}[/red]")


def render_groups(groups: Iterable[DuplicateGroup], *, strategy: Any = None) -> None:
    table = Table(title="Duplicate groups")
    table.add_column("Group key")
    table.add_column("Type")
    table.add_column("Score", justify="right")
    table.add_column("Master")
    table.add_column("Records")
    for group in groups:
        summary = group.summary(strategy)
        table.add_row(
            group.group_key,
            "exact" if group.is_exact_match else "fuzzy",
            f"{group.match_score:.1f}",
            summary["master_id"] or "-",
            ", ".join(group.record_ids),
        )
    console.print(table)


__all__ = [
    "CLIError",
    "CLIState",
    "console",
    "parse_override",
    "merge_overrides",
    "resolve_settings",
    "configure_state",
    "get_state",
    "render_panel",
    "resolve_path",
    "parse_field_spec",
    "load_job_config",
    "Runtime",
    "build_runtime",
    "render_job_state",
    "render_groups",
]

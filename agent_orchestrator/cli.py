"""Command line host for running orchestrator sessions against a directory."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional

import click

from agent_orchestrator.core.utils.config import Settings, load_settings
from agent_orchestrator.core.utils.logger import configure_logging, get_logger
from agent_orchestrator.core.utils.retry_handler import RetryConfig, RetryHandler
from agent_orchestrator.engine import SessionHooks, SessionOrchestrator
from agent_orchestrator.engine.types import ProgressEvent
from agent_orchestrator.providers.llm import create_client
from agent_orchestrator.session.models import Session, SessionStatus
from agent_orchestrator.tools import create_default_registry
from agent_orchestrator.tools.types import FileChangeKind
from agent_orchestrator.tools.workspace import load_workspace, write_changes

LOGGER = get_logger(__name__)

_CHANGE_MARKERS = {
    FileChangeKind.CREATE: "A",
    FileChangeKind.MODIFY: "M",
    FileChangeKind.DELETE: "D",
}


def _get_llm_client(ctx: click.Context):
    client = ctx.obj.get("llm_client")
    if client:
        return client
    settings: Settings = ctx.obj["settings"]
    if not settings.api_key:
        raise click.ClickException(
            "No API key configured. Set AGENT_ORCHESTRATOR_API_KEY or update the config file."
        )
    try:
        client = create_client(
            provider=settings.provider,
            api_key=settings.api_key,
            model=settings.model,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            default_headers=settings.request_headers or None,
        )
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj["llm_client"] = client
    return client


def _build_retry_handler(settings: Settings) -> RetryHandler:
    return RetryHandler(
        RetryConfig(
            max_retries=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay,
            max_delay=settings.retry_max_delay,
        )
    )


def _echo_progress(event: ProgressEvent) -> None:
    click.echo(f"[{event.describe()}]", err=True)


def _render_session(session: Session) -> None:
    click.echo(f"Session {session.id}: {session.status.value}")
    if session.termination_reason:
        click.echo(f"Reason: {session.termination_reason}")
    click.echo(f"Iterations: {session.iteration_count}")
    summary = session.metadata.get("summary")
    if summary:
        click.echo(f"Summary: {summary}")
    if session.file_changes:
        click.echo("File changes:")
        for change in session.file_changes:
            click.echo(f"  {_CHANGE_MARKERS[change.kind]} {change.path}")


def _write_transcript(path: Path, session: Session) -> None:
    payload: Dict[str, Any] = {
        "session": session.summary(),
        "transcript": session.transcript_as_dicts(),
        "file_changes": [change.model_dump(mode="json") for change in session.file_changes],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path, dir_okay=False), help="Path to config file.")
@click.option("--log-level", default=None, help="Override the configured log level.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], log_level: Optional[str]) -> None:
    """Run a language-model agent against a workspace until its goal is met."""
    settings = load_settings(config_path)
    if log_level:
        settings.log_level = log_level.upper()
    configure_logging(settings.log_level, structured=settings.structured_logging)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("goal", nargs=-1)
@click.option(
    "--workspace",
    "workspace_dir",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    help="Directory to snapshot (defaults to the configured workspace root).",
)
@click.option("--apply/--no-apply", default=False, help="Write the resulting file changes back to disk.")
@click.option(
    "--transcript",
    "transcript_path",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Write the session transcript as JSON.",
)
@click.option("--max-iterations", type=click.IntRange(min=1), help="Override the iteration cap.")
@click.option("--timeout", "timeout_seconds", type=click.FloatRange(min=0, min_open=True), help="Wall-clock limit in seconds.")
@click.pass_context
def run(
    ctx: click.Context,
    goal: tuple[str, ...],
    workspace_dir: Optional[Path],
    apply: bool,
    transcript_path: Optional[Path],
    max_iterations: Optional[int],
    timeout_seconds: Optional[float],
) -> None:
    """Run one session for GOAL."""
    text = " ".join(goal).strip()
    if not text:
        raise click.UsageError("Provide a goal.")

    settings: Settings = ctx.obj["settings"]
    if max_iterations is not None:
        settings.max_iterations = max_iterations
    if timeout_seconds is not None:
        settings.timeout_seconds = timeout_seconds

    root = (workspace_dir or settings.workspace_root).resolve()
    snapshot = load_workspace(root)
    click.echo(f"Loaded {len(snapshot)} file(s) from {root}", err=True)

    orchestrator = SessionOrchestrator(
        _get_llm_client(ctx),
        registry=create_default_registry(),
        policy=settings.to_policy(),
        hooks=SessionHooks(on_progress=_echo_progress),
        retry_handler=_build_retry_handler(settings),
    )
    session = orchestrator.start(text, snapshot)
    try:
        asyncio.run(orchestrator.run(session))
    except KeyboardInterrupt:
        click.echo("Interrupted.", err=True)

    _render_session(session)
    if transcript_path is not None:
        _write_transcript(transcript_path, session)
        click.echo(f"Transcript written to {transcript_path}")

    if session.file_changes:
        if apply:
            written = write_changes(root, session.file_changes)
            click.echo(f"Applied {written} change(s) to {root}")
        else:
            click.echo("Changes were not written; re-run with --apply to write them.")

    if session.status is not SessionStatus.COMPLETED:
        ctx.exit(1)


@cli.command(name="tools")
def tools_cmd() -> None:
    """List the tools offered to the model."""
    registry = create_default_registry()
    click.echo(registry.describe())


def main() -> None:
    cli(prog_name="agent-orchestrator")


if __name__ == "__main__":  # pragma: no cover
    main()

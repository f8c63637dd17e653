import asyncio
from datetime import UTC, datetime
from typing import Optional

import typer
from dotenv import load_dotenv

from interviewer_bot.api.dependencies import clamp_oracle_timeout
from interviewer_bot.cli_helpers import InterviewRunner
from interviewer_bot.core.constants import DEFAULT_DB_PATH, DEFAULT_MODEL_ID, DEFAULT_ORACLE_TIMEOUT_SECONDS
from interviewer_bot.core.exceptions import InterviewError
from interviewer_bot.core.io_interface import RichConsoleIO
from interviewer_bot.core.logging import (
    init_logging,
    log_event,
    set_run_id,
    set_trace_id,
)
from interviewer_bot.core.models import Tier
from interviewer_bot.core.services import (
    InMemorySubscriptionProvider,
    QuestionService,
    SessionDriver,
)
from interviewer_bot.core.storage import DatabaseManager, StorageError
from interviewer_bot.providers.base import Provider

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(help="Interviewer Bot - practice job interviews with an AI interviewer in the console.")


def _init_logging_from_cli(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_format: str = "text",
    log_mask: bool = False,
) -> None:
    init_logging(level=log_level, fmt=log_format, file_path=log_file, mask=log_mask)
    # Fresh run id for each CLI invocation; also set as initial trace id
    _rid = datetime.now(UTC).strftime("%Y%m%d%H%M%S%f")[-12:]
    set_run_id(_rid)
    set_trace_id(_rid)
    log_event(
        "cli.start",
        component="cli",
        operation="start",
        log_level=log_level or "INFO",
        log_file=log_file or "stdout",
        log_format=log_format,
        log_mask=log_mask,
    )


@app.command()
def interview(
    job_title: str = typer.Option(..., help="Job title being interviewed for"),
    job_description: str = typer.Option(..., help="Job description text"),
    difficulty: str = typer.Option("medium", help="easy | medium | hard"),
    language: str = typer.Option("en", help="en | fr | es | ar"),
    premium: bool = typer.Option(False, help="Run with premium plan limits"),
    owner_id: str = typer.Option("local", help="Account the session belongs to"),
    model: str = typer.Option(DEFAULT_MODEL_ID, help="Provider:model identifier"),
    timeout: float = typer.Option(DEFAULT_ORACLE_TIMEOUT_SECONDS, help="Seconds to wait for each question"),
    db_path: str = typer.Option(DEFAULT_DB_PATH, help="Database file path"),
    log_level: str | None = typer.Option(None, help="Log level (DEBUG, INFO, ...)"),
    log_file: str | None = typer.Option(None, help="Log file path (default stdout)"),
    log_format: str = typer.Option("text", help="Log format: json|text"),
    log_mask: bool = typer.Option(False, help="Mask candidate answers in logs"),
):
    """
    Runs a mock interview in the console. Type 'exit' to stop early.
    """
    _init_logging_from_cli(log_level, log_file, log_format, log_mask)

    timeout = clamp_oracle_timeout(timeout)
    subscriptions = InMemorySubscriptionProvider(default_tier=Tier.PREMIUM if premium else Tier.FREE)
    driver = SessionDriver(
        DatabaseManager(db_path),
        QuestionService(Provider.from_id(model, timeout=timeout), timeout=timeout),
        subscriptions,
    )
    runner = InterviewRunner(driver, RichConsoleIO())

    try:
        session = asyncio.run(runner.run(owner_id, job_title, job_description, difficulty, language))
    except (InterviewError, StorageError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Session {session.id} {session.status.value}.")


@app.command("list-sessions")
def list_sessions(
    owner_id: str | None = typer.Option(None, help="Only sessions of this account"),
    db_path: str = typer.Option(DEFAULT_DB_PATH, help="Database file path"),
    log_level: str | None = typer.Option(None, help="Log level (DEBUG, INFO, ...)"),
    log_format: str = typer.Option("text", help="Log format: json|text"),
):
    """
    List stored interview sessions.
    """
    _init_logging_from_cli(log_level, None, log_format)
    try:
        sessions = DatabaseManager(db_path).list_sessions(owner_id)
    except StorageError as e:
        typer.echo(f"Error listing sessions: {e}", err=True)
        raise typer.Exit(1)

    if not sessions:
        typer.echo("No sessions found.")
        return

    typer.echo("Stored sessions:")
    typer.echo("-" * 80)
    for session_id, job_title, updated_at, status in sessions:
        updated_str = updated_at.strftime("%Y-%m-%d %H:%M:%S")
        typer.echo(f"{session_id} | {job_title[:30]:<30} | {updated_str} | {status}")


@app.command("show-session")
def show_session(
    session_id: str = typer.Argument(..., help="Session ID to display"),
    db_path: str = typer.Option(DEFAULT_DB_PATH, help="Database file path"),
    log_level: str | None = typer.Option(None, help="Log level (DEBUG, INFO, ...)"),
    log_format: str = typer.Option("text", help="Log format: json|text"),
):
    """
    Display session details and its transcript.
    """
    _init_logging_from_cli(log_level, None, log_format)
    try:
        db_manager = DatabaseManager(db_path)
        session = db_manager.load_session(session_id)
        if not session:
            typer.echo(f"Session {session_id} not found.", err=True)
            raise typer.Exit(1)
        turns = db_manager.list_turns(session_id)
    except StorageError as e:
        typer.echo(f"Error showing session: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Session: {session.id}")
    typer.echo(f"Job: {session.job_title} ({session.difficulty.value}, {session.language.value})")
    typer.echo(f"Plan: {session.tier_at_start.value}")
    typer.echo(f"Status: {session.status.value}")
    typer.echo(f"Elapsed: {session.elapsed_seconds}s of {session.total_budget_seconds}s")
    if session.duration_seconds is not None:
        typer.echo(f"Duration: {session.duration_seconds}s")
    typer.echo("-" * 80)
    for turn in turns:
        speaker = "Interviewer" if turn.role.value == "ai" else "Candidate"
        typer.echo(f"{turn.sequence:>3}. {speaker}: {turn.text}")


@app.command("delete-session")
def delete_session(
    session_id: str = typer.Argument(..., help="Session ID to delete"),
    db_path: str = typer.Option(DEFAULT_DB_PATH, help="Database file path"),
):
    """
    Delete a stored session and its transcript.
    """
    _init_logging_from_cli()
    try:
        deleted = DatabaseManager(db_path).delete_session(session_id)
    except StorageError as e:
        typer.echo(f"Error deleting session: {e}", err=True)
        raise typer.Exit(1)

    if not deleted:
        typer.echo(f"Session {session_id} not found.", err=True)
        raise typer.Exit(1)
    typer.echo(f"Session {session_id} deleted successfully.")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind the server to"),
    port: int = typer.Option(8080, help="Port to bind the server to"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
    log_level: str | None = typer.Option(None, help="Log level (DEBUG, INFO, ...)"),
    log_format: str = typer.Option("json", help="Log format: json|text"),
):
    """
    Start the HTTP API with uvicorn.
    """
    import uvicorn

    _init_logging_from_cli(log_level, None, log_format)
    typer.echo(f"Starting Interviewer Bot API server on {host}:{port}")
    typer.echo(f"API Documentation: http://{host}:{port}/docs")
    uvicorn.run("interviewer_bot.api.main:app", host=host, port=port, reload=reload, log_config=None)


if __name__ == "__main__":
    app()

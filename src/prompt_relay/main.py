"""CLI entrypoint for prompt-relay."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click

from prompt_relay import __version__
from prompt_relay.config import Settings
from prompt_relay.errors import RelayError
from prompt_relay.jobs.controllers import (
    FetchCommand,
    ListJobsCommand,
    RelayCliController,
    SignCommand,
    SubmitCommand,
    WorkerCommand,
)
from prompt_relay.jobs.models import JobStatus

click.rich_click.USE_MARKDOWN = True
RELAY_CONTROLLER = RelayCliController()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="prompt-relay")
def prompt_relay() -> None:
    """Signed prompt relay: submit jobs, poll results, run worker passes."""

    try:
        settings = Settings.from_env()
    except ValueError as error:
        raise click.ClickException(f"Invalid configuration: {error}") from error
    configure_logging(settings)


@prompt_relay.command("submit")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--prompt", default=None, help="Prompt text to enqueue.")
@click.option("--sign", "signature", default=None, help="Hex HMAC-SHA256 of the prompt.")
@click.option(
    "--proxy-key",
    envvar="PROMPT_RELAY_CLIENT_PROXY_KEY",
    default=None,
    help="Shared proxy key presented by the client.",
)
@click.option(
    "--client-key",
    default="cli",
    show_default=True,
    help="Rate-limit key for the caller, for example its address.",
)
def submit(
    db_path: Path | None,
    prompt: str | None,
    signature: str | None,
    proxy_key: str | None,
    client_key: str,
) -> None:
    """Submit a signed prompt and print the new job id."""

    _emit_lines(
        _guarded(
            lambda: RELAY_CONTROLLER.submit(
                SubmitCommand(
                    db_path=db_path,
                    prompt=prompt,
                    signature=signature,
                    proxy_key=proxy_key,
                    client_key=client_key,
                ),
            ),
        ),
    )


@prompt_relay.command("fetch")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--id", "job_id", required=True, help="Job id returned by submit.")
def fetch(db_path: Path | None, job_id: str) -> None:
    """Print the current state of one job."""

    _emit_lines(
        _guarded(lambda: RELAY_CONTROLLER.fetch(FetchCommand(db_path=db_path, job_id=job_id))),
    )


@prompt_relay.command("worker")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--once/--loop",
    default=True,
    show_default=True,
    help="Run a single pass or keep running passes on the configured interval.",
)
@click.option(
    "--max-passes",
    type=click.IntRange(min=1),
    default=None,
    help="Optional cap for passes in loop mode.",
)
def worker(db_path: Path | None, once: bool, max_passes: int | None) -> None:
    """Run worker passes over pending jobs."""

    _emit_lines(
        _guarded(
            lambda: RELAY_CONTROLLER.run_worker(
                WorkerCommand(db_path=db_path, once=once, max_passes=max_passes),
            ),
        ),
    )


@prompt_relay.command("jobs")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice([status.value for status in JobStatus]),
    default=None,
    help="Optional status filter.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="Max number of jobs to print.",
)
def jobs(db_path: Path | None, status: str | None, limit: int) -> None:
    """List recent jobs."""

    _emit_lines(
        _guarded(
            lambda: RELAY_CONTROLLER.list_jobs(
                ListJobsCommand(db_path=db_path, status=status, limit=limit),
            ),
        ),
    )


@prompt_relay.command("sign")
@click.option("--prompt", required=True, help="Prompt text to sign.")
@click.option("--secret", default=None, help="Shared secret (defaults to PROMPT_RELAY_SECRET).")
def sign(prompt: str, secret: str | None) -> None:
    """Print the signature a client must send with a prompt."""

    _emit_lines(_guarded(lambda: RELAY_CONTROLLER.sign(SignCommand(prompt=prompt, secret=secret))))


@prompt_relay.command("health")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def health(db_path: Path | None) -> None:
    """Check that the job store is reachable."""

    _emit_lines(_guarded(lambda: RELAY_CONTROLLER.health(db_path)))


def configure_logging(settings: Settings) -> None:
    """Configure root logging once per process."""

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.logging.file_path is not None:
        settings.logging.file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.logging.file_path, encoding="utf-8"))
    logging.basicConfig(level=settings.logging.level, format=LOG_FORMAT, handlers=handlers)
    logging.getLogger("alembic").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _guarded(action: Callable[[], list[str]]) -> list[str]:
    try:
        return action()
    except RelayError as error:
        raise click.ClickException(f"{error} (status {error.http_status})") from error
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    prompt_relay()

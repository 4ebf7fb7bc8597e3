"""Typer CLI: ``shotter serve``, ``capture``, ``validate`` and ``sweep`` commands."""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console

from shotter.config import load_config
from shotter.schemas.config import ServiceConfig
from shotter.schemas.job import JobRequest

# Load .env file from project root (if it exists)
load_dotenv()

app = typer.Typer(
    name="shotter",
    help="Shotter: capture web pages at several viewport sizes and bundle the screenshots.",
    no_args_is_help=True,
)
console = Console()

_SIZE_RE = re.compile(r"^(\d+)[x*](\d+)$")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # Per-request access lines drown out the capture log
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _load_or_exit(config: Path | None) -> ServiceConfig:
    try:
        return load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


def parse_size(value: str) -> tuple[int, int]:
    """Parse ``1280x800`` (or ``1280*800``) into ``(width, height)``."""
    m = _SIZE_RE.match(value.strip())
    if not m:
        raise typer.BadParameter(f"expected WIDTHxHEIGHT, got {value!r}")
    width, height = int(m.group(1)), int(m.group(2))
    if width <= 0 or height <= 0:
        raise typer.BadParameter(f"size must be positive, got {value!r}")
    return width, height


@app.command()
def validate(
    config: Path = typer.Option(..., "--config", "-c", help="Path to shotter.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Validate a configuration file without starting the service."""
    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    console.print("[green]Config is valid![/]\n")
    console.print(f"  Listen:          {cfg.host}:{cfg.port}{cfg.base_path}")
    console.print(f"  Output root:     {cfg.output_root}")
    console.print(f"  Archive root:    {cfg.archive_root}")
    console.print(f"  Workers:         {cfg.max_workers} (host cooldown {cfg.host_cooldown}s)")
    console.print(f"  Session timeout: {cfg.session_timeout}s")
    console.print(f"  Retention:       {cfg.retention_days} day(s), swept every {cfg.sweep_interval}s")
    console.print(f"  Landmarks:       {', '.join(cfg.capture.landmarks) or '(none)'}")


@app.command()
def serve(
    config: Path = typer.Option(None, "--config", "-c", help="Path to shotter.yml"),
    host: str = typer.Option(None, "--host", help="Override the configured listen address."),
    port: int = typer.Option(None, "--port", "-p", help="Override the configured port."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run the HTTP screenshot service."""
    import uvicorn

    from shotter.api.app import create_app

    _setup_logging(verbose)
    cfg = _load_or_exit(config)
    if host:
        cfg.host = host
    if port:
        cfg.port = port

    console.print(f"[bold]Serving on[/] http://{cfg.host}:{cfg.port}{cfg.base_path}")
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port, log_level="debug" if verbose else "info")


@app.command()
def capture(
    urls: list[str] = typer.Argument(..., help="Pages to capture."),
    size: list[str] = typer.Option(["1280x800"], "--size", "-s", help="Viewport WIDTHxHEIGHT (repeatable)."),
    header_height: int = typer.Option(0, "--header-height", help="Sticky header height in px, overlapped between tiles."),
    full_page: bool = typer.Option(False, "--full-page", help="One full-page image instead of tiles."),
    browser: str = typer.Option("chromium", "--browser", "-b", help="chromium, firefox or webkit."),
    session_id: str = typer.Option(None, "--session-id", help="Session id (random by default)."),
    username: str = typer.Option(None, "--username", help="HTTP basic-auth user."),
    password: str = typer.Option(None, "--password", help="HTTP basic-auth password."),
    config: Path = typer.Option(None, "--config", "-c", help="Path to shotter.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Capture pages locally and write the zip archive, without the HTTP service.

    Examples:

        shotter capture https://example.com --size 1280x800 --size 390x844

        shotter capture https://example.com/about https://example.com/ --header-height 80
    """
    from pydantic import ValidationError

    _setup_logging(verbose)
    cfg = _load_or_exit(config)
    sizes = [parse_size(s) for s in size]

    try:
        job = JobRequest(
            urls=urls,
            widths=[w for w, _ in sizes],
            heights=[h for _, h in sizes],
            header_height=header_height,
            full_page=full_page,
            browser_type=browser,
            username=username,
            password=password,
            session_id=session_id or uuid.uuid4().hex[:12],
        )
    except ValidationError as exc:
        console.print(f"[red]Invalid request:[/] {exc}")
        raise typer.Exit(code=1)

    console.print(f"[bold]Capturing {len(urls)} URL(s) at {len(sizes)} size(s)[/] (session {job.session_id})\n")
    asyncio.run(_run_capture(cfg, job))


async def _run_capture(cfg: ServiceConfig, job: JobRequest) -> None:
    """Run one session in-process with a live progress bar."""
    from shotter.engine.orchestrator import ScreenshotOrchestrator
    from shotter.errors import ShotterError
    from shotter.shared.progress import SessionProgress

    orchestrator = ScreenshotOrchestrator(cfg)
    with SessionProgress(orchestrator.broadcaster, job.session_id) as progress:
        watcher = asyncio.create_task(progress.follow())
        try:
            result = await orchestrator.run_session(job)
        except ShotterError as exc:
            await progress.stop_following(watcher)
            console.print(f"[red]Capture failed:[/] {exc}")
            raise typer.Exit(code=1)
        await progress.stop_following(watcher)

    last = progress.last_event
    if last is not None and last.failed_tasks:
        console.print(f"[yellow]{last.failed_tasks} of {last.total_tasks} task(s) failed[/]")
    console.print(f"[green]Archive written to:[/] {result.archive_path}")
    console.print(f"[green]Screenshots in:[/] {Path(cfg.output_root) / Path(result.output_dir).name}")


@app.command()
def sweep(
    config: Path = typer.Option(None, "--config", "-c", help="Path to shotter.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Delete screenshot directories and archives older than the retention age, once."""
    from shotter.engine.retention import RetentionSweeper

    _setup_logging(verbose)
    cfg = _load_or_exit(config)
    sweeper = RetentionSweeper(
        [cfg.output_path, cfg.archive_path],
        max_age=cfg.retention_seconds,
        interval=cfg.sweep_interval,
    )
    removed = sweeper.sweep_once()
    console.print(f"[green]Removed {len(removed)} expired entr{'y' if len(removed) == 1 else 'ies'}[/]")
    for path in removed:
        console.print(f"  - {path}")

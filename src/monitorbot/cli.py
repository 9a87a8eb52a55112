"""Command-line entrypoint.

Responsibilities (and nothing more):
- Load settings and apply command-line overrides
- Configure structlog
- Build the store, HTTP client, fetcher and output sink
- Run the batch and turn failures into an exit status
"""

from __future__ import annotations

import asyncio
import logging
import sys
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import structlog
import typer

from monitorbot import __version__, monitor
from monitorbot.cache_key import canonical_url
from monitorbot.config import Settings
from monitorbot.errors import MonitorbotError
from monitorbot.fetcher import Fetcher, build_http_client
from monitorbot.output import ConsoleSink, build_console, print_error
from monitorbot.state import AppState
from monitorbot.store import ResponseStore

if TYPE_CHECKING:
    from monitorbot.monitor import RunSummary

log = structlog.get_logger()

MAX_VERBOSITY = 3

app = typer.Typer(
    name="monitorbot",
    help="Check web pages for changes since the last run.",
    add_completion=False,
)


class Color(StrEnum):
    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _log_level(verbose: int, configured: str) -> str:
    """Map the number of -v flags to a log level; 0 keeps the configured one."""
    if verbose > MAX_VERBOSITY:
        raise typer.BadParameter(
            f"-v is only allowed up to {MAX_VERBOSITY} times.",
            param_hint="'-v' / '--verbose'",
        )
    if verbose == 0:
        return configured
    return "INFO" if verbose == 1 else "DEBUG"


def _setup_logging(settings: Settings, *, http_debug: bool = False) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout is reserved for change reports
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    if http_debug:
        # httpx and httpcore log connection details through the stdlib.
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(asctime)s %(name)s %(message)s",
        )


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


async def _run(urls: list[str], settings: Settings) -> RunSummary:
    store = ResponseStore(
        settings.state_dir,
        discard_corrupt_entries=settings.state.discard_corrupt_entries,
    )
    store.init_dir()

    sink = ConsoleSink(build_console(settings.output.color))

    async with build_http_client(settings.fetcher) as http_client:
        state = AppState(
            settings=settings,
            store=store,
            fetcher=Fetcher(http_client, settings.fetcher.max_redirects),
            sink=sink,
            http_client=http_client,
        )
        log.info("run_starting", version=__version__, urls=len(urls), state_dir=str(store.root))
        return await monitor.run(urls, state)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"monitorbot {__version__}")
        raise typer.Exit()


@app.command()
def check(
    urls: Annotated[
        list[str] | None,
        typer.Argument(help="URLs to check for changes (default: urls from the config file)"),
    ] = None,
    no_diff: Annotated[
        bool,
        typer.Option("--no-diff", help="Just render the page, ignoring changes"),
    ] = False,
    state_dir: Annotated[
        Path | None,
        typer.Option(
            "--state-dir",
            "-s",
            help="Where to store state (default: ~/.monitorbot)",
            file_okay=False,
        ),
    ] = None,
    color: Annotated[
        Color | None,
        typer.Option("--color", metavar="WHEN", help="Whether or not to output in color"),
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Verbosity (may be repeated up to 3 times)",
        ),
    ] = 0,
    isolate_failures: Annotated[
        bool,
        typer.Option("--isolate-failures", help="Keep checking other URLs after a failure"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = False,
) -> None:
    """Fetch each URL and print what changed since the previous run."""
    settings = Settings()
    if no_diff:
        settings.output = settings.output.model_copy(update={"no_diff": True})
    if color is not None:
        settings.output = settings.output.model_copy(update={"color": color.value})
    if state_dir is not None:
        settings.state = settings.state.model_copy(update={"dir": str(state_dir)})
    if isolate_failures:
        settings.run = settings.run.model_copy(update={"isolate_failures": True})
    settings.logging = settings.logging.model_copy(
        update={"level": _log_level(verbose, settings.logging.level)}
    )

    _setup_logging(settings, http_debug=verbose >= MAX_VERBOSITY)

    try:
        request_urls = [canonical_url(url) for url in (urls or settings.urls)]
    except MonitorbotError as exc:
        raise typer.BadParameter(exc.message, param_hint="'URLS...'") from exc

    err_console = build_console(settings.output.color, stderr=True)
    try:
        summary = asyncio.run(_run(request_urls, settings))
    except MonitorbotError as exc:
        log.debug("run_aborted", **exc.to_dict()["error"])
        print_error(err_console, f"Error: {exc.message}")
        raise typer.Exit(code=1) from exc

    if not summary.ok:
        for url, exc in summary.failures.items():
            print_error(err_console, f"Error: {url}: {exc.message}")
        total = len(summary.failures) + len(summary.outcomes)
        print_error(err_console, f"Error: {len(summary.failures)} of {total} URLs failed")
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

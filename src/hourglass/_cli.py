"""Command-line interface for hourglass (Typer-based).

Commands:

- ``hourglass now`` — print the time of the provider configured from
  ``TIME_SOURCE`` / ``TIME_START`` (and ``.env``).
- ``hourglass simulate`` — run a periodic job on a virtual clock and
  fast-forward through its whole schedule with a single ``advance``.

Global options ``--version``, ``--log-level`` and ``--log-format`` come
before the command name.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Annotated, get_args

import typer
from pydantic import AwareDatetime, TypeAdapter, ValidationError

from hourglass._errors import ConfigurationError
from hourglass._logging import configure_logging
from hourglass._provider import TimeProvider
from hourglass._settings import (
    LoggingSettings,
    Settings,
    load_settings,
    source_from_settings,
)
from hourglass._source import VirtualSource

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 3

# ---------------------------------------------------------------------------
# Allowed values (extracted from LoggingSettings Literal types)
# ---------------------------------------------------------------------------

_VALID_LOG_LEVELS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["level"].annotation,
)
_VALID_LOG_FORMATS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["format"].annotation,
)

_DEFAULT_START = "2024-01-01T00:00:00Z"

_aware_datetime = TypeAdapter(AwareDatetime)


@dataclass
class _Options:
    log_level: str | None = None
    log_format: str | None = None

    def logging_settings(self, base: LoggingSettings) -> LoggingSettings:
        update: dict[str, str] = {}
        if self.log_level is not None:
            update["level"] = self.log_level.upper()
        if self.log_format is not None:
            update["format"] = self.log_format.lower()
        return base.model_copy(update=update)


async def run_schedule(
    provider: TimeProvider,
    *,
    interval: timedelta,
    span: timedelta,
) -> list[datetime]:
    """Run a job every *interval* for *span* on a virtual provider.

    The job records ``now()`` and then waits *interval*, until *span*
    has elapsed.  The clock is advanced by *span* in one step, so the
    whole schedule executes inside a single ``advance``.

    Returns:
        The time of every execution.
    """
    control = provider.test_control()
    if control is None:
        msg = "run_schedule requires a virtual time provider"
        raise ValueError(msg)

    executions: list[datetime] = []

    async def job() -> None:
        end = provider.now() + span
        while provider.now() < end:
            executions.append(provider.now())
            logger.info("Job execution #%d", len(executions))
            await provider.wait(interval)

    task = asyncio.create_task(job())
    await asyncio.sleep(0)
    await control.advance(span)
    if not task.done():
        # the final wait is due after the window closes
        task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    return executions


def build_cli() -> typer.Typer:
    """Construct the ``hourglass`` Typer application."""
    from hourglass import __version__

    cli = typer.Typer(
        help=f"hourglass v{__version__} — real and virtual time for async code",
        no_args_is_help=True,
    )

    @cli.callback()
    def main(
        ctx: typer.Context,
        version_flag: Annotated[
            bool | None,
            typer.Option(
                "--version",
                is_eager=True,
                help="Show version and exit.",
            ),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help="Override log level."),
        ] = None,
        log_format: Annotated[
            str | None,
            typer.Option("--log-format", help="Override log format."),
        ] = None,
    ) -> None:
        if version_flag:
            typer.echo(f"hourglass v{__version__}")
            raise typer.Exit()

        if log_level is not None and log_level.upper() not in _VALID_LOG_LEVELS:
            raise typer.BadParameter(
                f"Invalid log level '{log_level}'. "
                f"Choose from: {', '.join(_VALID_LOG_LEVELS)}",
                param_hint="'--log-level'",
            )

        if log_format is not None and log_format.lower() not in _VALID_LOG_FORMATS:
            raise typer.BadParameter(
                f"Invalid log format '{log_format}'. "
                f"Choose from: {', '.join(_VALID_LOG_FORMATS)}",
                param_hint="'--log-format'",
            )

        ctx.obj = _Options(log_level=log_level, log_format=log_format)

    # -- now ----------------------------------------------------------------

    @cli.command()
    def now(
        ctx: typer.Context,
        env_file: Annotated[
            str,
            typer.Option("--env-file", help="Path to .env file."),
        ] = ".env",
    ) -> None:
        """Print the current time of the configured clock."""
        options: _Options = ctx.obj
        try:
            settings: Settings = load_settings(env_file=env_file)
        except ConfigurationError as exc:
            logger.error("Configuration error: %s", exc)
            raise SystemExit(EXIT_CONFIG_ERROR) from exc

        provider = TimeProvider(source_from_settings(settings))
        configure_logging(
            options.logging_settings(settings.logging), provider=provider
        )
        mode = "virtual" if provider.is_test_mode() else "system"
        typer.echo(f"{provider.now().isoformat()} ({mode})")

    # -- simulate -----------------------------------------------------------

    @cli.command()
    def simulate(
        ctx: typer.Context,
        start: Annotated[
            str,
            typer.Option("--start", help="Virtual start time (RFC 3339)."),
        ] = _DEFAULT_START,
        interval_hours: Annotated[
            float,
            typer.Option("--interval-hours", min=0.001, help="Hours between runs."),
        ] = 24.0,
        span_hours: Annotated[
            float,
            typer.Option("--span-hours", min=0.0, help="Hours to simulate."),
        ] = 72.0,
    ) -> None:
        """Fast-forward a periodic job on a virtual clock."""
        options: _Options = ctx.obj
        try:
            start_time = _aware_datetime.validate_python(start)
        except ValidationError as exc:
            logger.error("Configuration error: invalid --start %r", start)
            raise SystemExit(EXIT_CONFIG_ERROR) from exc

        provider = TimeProvider(VirtualSource(start_time))
        configure_logging(options.logging_settings(LoggingSettings()), provider=provider)

        try:
            executions = asyncio.run(
                run_schedule(
                    provider,
                    interval=timedelta(hours=interval_hours),
                    span=timedelta(hours=span_hours),
                )
            )
        except Exception as exc:
            logger.error("Runtime error: %s", exc)
            raise SystemExit(EXIT_RUNTIME_ERROR) from exc

        control = provider.test_control()
        assert control is not None
        for index, moment in enumerate(executions, start=1):
            typer.echo(f"execution {index}: {moment.astimezone(UTC).isoformat()}")
        typer.echo(f"final time: {provider.now().isoformat()}")
        typer.echo(f"wait calls: {control.wait_call_count()}")
        typer.echo(f"total waited: {control.total_waited()}")

    return cli


def main() -> None:
    """Console-script entry point."""
    build_cli()()

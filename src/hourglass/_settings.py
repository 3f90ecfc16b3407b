"""Clock configuration via pydantic-settings.

Configuration is loaded from environment variables and/or a ``.env``
file.  Nested models use ``__`` as the delimiter in env var names,
e.g. ``LOGGING__LEVEL=DEBUG``.

Two variables select the clock source:

* ``TIME_SOURCE`` — ``system`` (default) or ``test``.
* ``TIME_START`` — RFC 3339 start time for the ``test`` source, e.g.
  ``2024-07-04T00:00:00Z``.  When absent, a test clock starts at the
  current system time.

An unparseable ``TIME_START`` is a configuration error.  It is never
replaced by a default time.
"""

from __future__ import annotations

from typing import Literal

from pydantic import AwareDatetime, BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from hourglass._errors import ConfigurationError
from hourglass._source import ClockSource, RealSource, VirtualNowSource, VirtualSource


class LoggingSettings(BaseModel):
    """Logging configuration.

    Environment variables (with ``__`` nesting)::

        LOGGING__LEVEL=DEBUG
        LOGGING__FORMAT=json

    The ``format`` field selects the output format:

    - ``"text"`` (default) — one human-readable line per record.
    - ``"json"`` — one JSON object per line (NDJSON).
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Root log level.",
    )
    format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format: 'text' lines or 'json' lines.",
    )


class Settings(BaseSettings):
    """Root settings for hourglass.

    Example ``.env``::

        TIME_SOURCE=test
        TIME_START=2024-01-01T00:00:00Z
        LOGGING__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
    """No ``env_prefix`` is set because the variable names are fixed
    (``TIME_SOURCE``, ``TIME_START``).  ``extra="ignore"`` keeps
    unrelated environment variables from failing validation.
    """

    time_source: Literal["system", "test"] = Field(
        default="system",
        description="Clock source: 'system' for real time, 'test' for virtual time.",
    )
    time_start: AwareDatetime | None = Field(
        default=None,
        description=(
            "Virtual clock start time (RFC 3339). "
            "Only used when time_source is 'test'; "
            "when unset the virtual clock starts at the current time."
        ),
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration.",
    )


def load_settings(env_file: str | None = ".env") -> Settings:
    """Load :class:`Settings` from the environment and *env_file*.

    Raises:
        ConfigurationError: If validation fails.
    """
    try:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    except ValidationError as exc:
        msg = f"Invalid clock configuration: {exc}"
        raise ConfigurationError(msg) from exc


def source_from_settings(settings: Settings) -> ClockSource:
    """Translate *settings* into a clock source."""
    if settings.time_source == "system":
        return RealSource()
    if settings.time_start is None:
        return VirtualNowSource()
    return VirtualSource(settings.time_start)

"""Log formatting stamped with provider time.

A simulation that advances a virtual clock by days in milliseconds
produces log lines whose real timestamps are useless: they all carry
the same instant.  The formatters here take an optional
:class:`~hourglass._provider.TimeProvider` and stamp each record with
*its* ``now()`` instead, so log output reads on the simulated
timeline.  Without a provider they fall back to the record's creation
time.

Two formats are provided:

- :class:`JsonFormatter` — one JSON object per line (NDJSON) with a
  ``clock`` field of ``"virtual"`` or ``"system"``.
- :class:`ClockTextFormatter` — ``"<iso time> [LEVEL] logger: message"``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from hourglass._settings import LoggingSettings

if TYPE_CHECKING:
    from hourglass._provider import TimeProvider

_TEXT_FORMAT = "%(clocktime)s [%(levelname)s] %(name)s: %(message)s"


def _record_time(record: logging.LogRecord, provider: TimeProvider | None) -> datetime:
    if provider is not None:
        return provider.now()
    return datetime.fromtimestamp(record.created, tz=UTC)


class JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects.

    Fields:

    - ``timestamp`` — ISO 8601 in UTC, taken from the provider when set
    - ``clock`` — ``"virtual"`` or ``"system"``
    - ``level`` — Python log level name
    - ``logger`` — dotted logger name
    - ``message`` — the formatted log message
    - ``exception`` — formatted traceback (only present when an
      exception is logged)

    Args:
        provider: Time provider whose clock stamps each record.
    """

    def __init__(self, *, provider: TimeProvider | None = None) -> None:
        super().__init__()
        self._provider = provider

    def format(self, record: logging.LogRecord) -> str:
        virtual = self._provider is not None and self._provider.is_test_mode()
        entry: dict[str, Any] = {
            "timestamp": _record_time(record, self._provider).isoformat(),
            "clock": "virtual" if virtual else "system",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ClockTextFormatter(logging.Formatter):
    """Human-readable formatter using provider time for ``%(clocktime)s``."""

    def __init__(self, *, provider: TimeProvider | None = None) -> None:
        super().__init__(_TEXT_FORMAT)
        self._provider = provider

    def format(self, record: logging.LogRecord) -> str:
        record.clocktime = _record_time(record, self._provider).isoformat()
        return super().format(record)


def configure_logging(
    settings: LoggingSettings,
    *,
    provider: TimeProvider | None = None,
) -> None:
    """Configure the root logger from settings.

    Clears any existing handlers on the root logger, then installs a
    single ``stderr`` handler with the formatter selected by
    ``settings.format``.

    Args:
        settings: Logging configuration (level, format).
        provider: Optional provider whose clock stamps log records.
    """
    root = logging.getLogger()

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if settings.format == "json":
        formatter: logging.Formatter = JsonFormatter(provider=provider)
    else:
        formatter = ClockTextFormatter(provider=provider)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    root.setLevel(settings.level)

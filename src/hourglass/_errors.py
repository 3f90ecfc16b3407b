"""Exception hierarchy for hourglass.

Every error raised by the library derives from :class:`HourglassError`
so callers can catch library failures with a single handler.  Argument
errors additionally inherit from :class:`ValueError`.

Error taxonomy:

- **Invalid argument** — a negative duration passed to
  ``TimeControl.advance`` (:class:`InvalidDurationError`) or a naive
  datetime where a timezone-aware one is required
  (:class:`InvalidTimestampError`).
- **Configuration error** — the environment or ``.env`` file does not
  describe a valid clock source (:class:`ConfigurationError`).

Two conditions are *not* errors:

- Negative durations passed to ``wait`` / ``wait_until`` are clamped to
  zero.
- ``TimeProvider.test_control()`` on a real clock returns ``None``.
"""

from __future__ import annotations

from datetime import datetime, timedelta


class HourglassError(Exception):
    """Base class for all hourglass exceptions."""


class InvalidDurationError(HourglassError, ValueError):
    """Raised when a control operation receives a negative duration.

    Attributes:
        duration: The rejected duration.
    """

    def __init__(self, duration: timedelta) -> None:
        self.duration = duration
        super().__init__(f"Cannot advance time by a negative duration: {duration}")


class InvalidTimestampError(HourglassError, ValueError):
    """Raised when a naive datetime is given where UTC time is expected."""

    def __init__(self, value: datetime) -> None:
        self.value = value
        super().__init__(
            f"Timestamp must be timezone-aware, got naive datetime {value.isoformat()}"
        )


class ConfigurationError(HourglassError):
    """Raised when settings cannot be turned into a clock source.

    The underlying :class:`pydantic.ValidationError` is chained as
    ``__cause__``.
    """

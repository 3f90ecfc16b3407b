"""hourglass.

Real and virtual time behind one handle for asyncio applications.
Production code reads the system clock directly; tests fast-forward a
virtual clock and every waiting task wakes up in deadline order.
"""

from importlib.metadata import PackageNotFoundError, version

from hourglass._clock import ClockPort, Duration, SystemClock
from hourglass._control import TimeControl
from hourglass._errors import (
    ConfigurationError,
    HourglassError,
    InvalidDurationError,
    InvalidTimestampError,
)
from hourglass._logging import ClockTextFormatter, JsonFormatter, configure_logging
from hourglass._provider import TimeProvider
from hourglass._settings import (
    LoggingSettings,
    Settings,
    load_settings,
    source_from_settings,
)
from hourglass._source import ClockSource, RealSource, VirtualNowSource, VirtualSource
from hourglass._state import VirtualClockState

try:
    # Prefer the generated version file (setuptools_scm at build time)
    from hourglass._version import __version__
except ImportError:
    try:
        # Fallback to installed package metadata
        __version__ = version("hourglass")
    except PackageNotFoundError:
        # Last resort fallback for editable installs without metadata
        __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Clock sources
    "ClockSource",
    "RealSource",
    "VirtualNowSource",
    "VirtualSource",
    # Clock
    "ClockPort",
    "Duration",
    "SystemClock",
    "VirtualClockState",
    # Provider / control
    "TimeControl",
    "TimeProvider",
    # Errors
    "ConfigurationError",
    "HourglassError",
    "InvalidDurationError",
    "InvalidTimestampError",
    # Logging
    "ClockTextFormatter",
    "JsonFormatter",
    "configure_logging",
    # Settings
    "LoggingSettings",
    "Settings",
    "load_settings",
    "source_from_settings",
]

"""Clock source — where a provider's time comes from.

A :data:`ClockSource` is one of three frozen value types:

- :class:`RealSource` — the system clock.
- :class:`VirtualSource` — a virtual clock seeded at ``start``.
- :class:`VirtualNowSource` — a virtual clock seeded at the real clock's
  reading when the provider is built.

Sources carry no behaviour.  Code that dispatches on them uses an
exhaustive ``match`` so adding a variant fails loudly at every site.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from hourglass._errors import InvalidTimestampError


def ensure_utc(value: datetime) -> datetime:
    """Return *value* converted to UTC.

    Raises:
        InvalidTimestampError: If *value* is naive.
    """
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidTimestampError(value)
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class RealSource:
    """Use the system clock (production)."""


@dataclass(frozen=True, slots=True)
class VirtualSource:
    """Use a virtual clock starting at ``start``.

    Attributes:
        start: Seed time.  Must be timezone-aware; stored as UTC.
    """

    start: datetime

    def __post_init__(self) -> None:
        # frozen dataclass: bypass __setattr__ to store the normalised value
        object.__setattr__(self, "start", ensure_utc(self.start))


@dataclass(frozen=True, slots=True)
class VirtualNowSource:
    """Use a virtual clock starting at the current system time."""


ClockSource = RealSource | VirtualSource | VirtualNowSource
"""Union of the three clock source variants."""

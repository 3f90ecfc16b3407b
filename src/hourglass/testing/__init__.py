"""Public test-support utilities for hourglass.

Re-exports helpers so that consumer test suites can import everything
from a single ``hourglass.testing`` namespace instead of reaching into
private modules.

Provided symbols:

- :data:`DEFAULT_START` — ``2024-01-01T00:00:00Z``, the default seed.
- :func:`virtual_provider` — virtual ``TimeProvider`` plus its control.
- :func:`make_settings` — factory for ``Settings`` without ``.env`` files.

The pytest plugin (``hourglass.testing._plugin``) adds the
``virtual_time`` and ``time_control`` fixtures.
"""

from hourglass.testing._providers import DEFAULT_START, virtual_provider
from hourglass.testing._settings import make_settings

__all__ = [
    "DEFAULT_START",
    "make_settings",
    "virtual_provider",
]

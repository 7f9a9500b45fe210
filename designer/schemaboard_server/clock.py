"""Wall-clock helper shared by the services."""

from __future__ import annotations

import time
from collections.abc import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time in Unix milliseconds."""
    return int(time.time() * 1000)

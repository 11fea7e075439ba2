"""Wall-clock source in epoch milliseconds."""

from __future__ import annotations

import math
import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time() * 1000)


def remaining_seconds(end_time: int, now: int) -> int:
    """Seconds left until ``end_time``, rounded up and never negative."""
    return max(0, int(math.ceil((end_time - now) / 1000)))

"""Wall-clock helpers.  Everything in the funnel measures time in epoch ms."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def epoch_ms() -> int:
    return int(time.time() * 1000)


def iso_now() -> str:
    """UTC timestamp in the ``2024-01-01T12:00:00.000Z`` form browsers emit."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

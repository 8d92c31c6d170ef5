# interview_sim/timer.py
"""
Per-question countdown.

Streamlit has no background ticks, so the countdown is deadline based: each
rerun (driven by st_autorefresh) calls poll(), which fires the expiry callback
at most once per restart.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Countdown:
    def __init__(
        self,
        limit: float,
        on_expire: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = float(limit)
        self._on_expire = on_expire
        self._clock = clock
        self._started_at: Optional[float] = None
        self._fired = False

    @property
    def limit(self) -> float:
        return self._limit

    @property
    def running(self) -> bool:
        return self._started_at is not None and not self._fired

    def restart(self, limit: Optional[float] = None) -> None:
        if limit is not None:
            self._limit = float(limit)
        self._started_at = self._clock()
        self._fired = False

    def cancel(self) -> None:
        self._started_at = None
        self._fired = False

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return max(0.0, self._clock() - self._started_at)

    def remaining(self) -> int:
        """Whole seconds left, rounded up so the display never shows 0 early."""
        if self._started_at is None:
            return int(self._limit)
        return max(0, math.ceil(self._limit - self.elapsed()))

    @property
    def expired(self) -> bool:
        return self._started_at is not None and self.remaining() == 0

    def poll(self) -> bool:
        """Fire the expiry callback if the deadline passed. Returns True when it fired."""
        if not self.expired or self._fired:
            return False
        self._fired = True
        logger.debug("Countdown of %ss expired", self._limit)
        if self._on_expire is not None:
            self._on_expire()
        return True

# interview_sim/mcq.py
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple

from interview_sim.config import settings
from interview_sim.models import MCQ, MCQResult
from interview_sim.timer import Countdown

logger = logging.getLogger(__name__)


class McqScreening:
    """
    Drives the screening quiz one question at a time.

    The quiz length is len(mcqs). Each question gets a fresh countdown. When
    the last question is answered, skipped or timed out, on_finish receives
    the ordered results and further input is ignored.

    Explicit skips are recorded with skipped=True; timeouts with skipped=False.
    Both count as incorrect.
    """

    def __init__(
        self,
        mcqs: Sequence[MCQ],
        on_finish: Callable[[List[MCQResult]], None],
        time_limit: int = settings.mcq_time_limit,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._mcqs: Tuple[MCQ, ...] = tuple(mcqs)
        self._on_finish = on_finish
        self._time_limit = int(time_limit)
        self._countdown = Countdown(self._time_limit, on_expire=self._on_timeout, clock=clock)
        self._index = 0
        self._selected: Optional[int] = None
        self._results: List[MCQResult] = []
        self._started = False
        self._finished = False

    # -----------------------
    # Read-only view state
    # -----------------------
    @property
    def total(self) -> int:
        return len(self._mcqs)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> Optional[MCQ]:
        if self._finished or self._index >= len(self._mcqs):
            return None
        return self._mcqs[self._index]

    @property
    def selected(self) -> Optional[int]:
        return self._selected

    @property
    def can_confirm(self) -> bool:
        return not self._finished and self._selected is not None

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def is_last(self) -> bool:
        return self._index == len(self._mcqs) - 1

    @property
    def results(self) -> List[MCQResult]:
        return list(self._results)

    def time_left(self) -> int:
        return self._countdown.remaining()

    # -----------------------
    # Input
    # -----------------------
    def start(self) -> None:
        if self._started:
            return
        self._started = True
        if not self._mcqs:
            logger.warning("MCQ screening started with no questions")
            self._finish()
            return
        self._countdown.restart(self._time_limit)

    def select(self, option: int) -> bool:
        mcq = self.current
        if mcq is None or not 0 <= option < len(mcq.options):
            return False
        self._selected = option
        return True

    def confirm(self) -> bool:
        if not self.can_confirm:
            return False
        self._record(self._selected, skipped=False)
        return True

    def skip(self) -> bool:
        if self.current is None:
            return False
        self._record(None, skipped=True)
        return True

    def poll(self) -> bool:
        """Check the countdown; auto-advances the question on timeout."""
        if self.current is None:
            return False
        return self._countdown.poll()

    # -----------------------
    # Internals
    # -----------------------
    def _on_timeout(self) -> None:
        logger.info("MCQ %s timed out", self._mcqs[self._index].id)
        # an unconfirmed selection does not count
        self._record(None, skipped=False)

    def _record(self, selection: Optional[int], skipped: bool) -> None:
        mcq = self._mcqs[self._index]
        time_taken = min(self._time_limit, max(0, self._time_limit - self._countdown.remaining()))
        self._results.append(
            MCQResult(
                question_id=mcq.id,
                is_correct=selection is not None and selection == mcq.correct_index,
                time_taken=time_taken,
                skipped=skipped,
                selection=selection,
            )
        )
        self._selected = None

        if self._index < len(self._mcqs) - 1:
            self._index += 1
            self._countdown.restart(self._time_limit)
        else:
            self._finish()

    def _finish(self) -> None:
        self._finished = True
        self._countdown.cancel()
        logger.info(
            "MCQ screening finished: %d/%d correct",
            sum(1 for r in self._results if r.is_correct),
            len(self._results),
        )
        self._on_finish(list(self._results))

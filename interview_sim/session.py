# interview_sim/session.py
"""
Interview session state machine.

    SETUP -> MCQ_SCREENING -> ADAPTIVE_INTERVIEW -> REPORT      (reset() -> SETUP from anywhere)

Stage changes only happen when a gateway call resolves. The session is the
single writer of PerformanceState; `performance` hands out copies.

Mutating actions (start, finish screening, submit, report retry) share one
`is_processing` flag. An action attempted while it is set is a logged no-op
returning False, so a countdown firing during a pending submit cannot submit
twice. reset() bumps an epoch so results from calls that were in flight
before the reset are dropped.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from dataclasses import replace
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from interview_sim.gateway import EvaluationGateway
from interview_sim.media import MediaCaptureController
from interview_sim.models import (
    MCQ,
    STAGE_ORDER,
    Answer,
    CoachAdvice,
    FinalReport,
    HistoryEntry,
    MCQResult,
    PerformanceState,
    Question,
    Stage,
    UserContext,
)
from interview_sim.timer import Countdown

logger = logging.getLogger(__name__)

TIMEOUT_ANSWER_TEXT = "(No response provided due to timeout)"
VIDEO_ANSWER_TEXT = "(Video response submitted)"


class Phase(str, Enum):
    SETUP = "SETUP"
    MCQ_SCREENING = "MCQ_SCREENING"
    ADAPTIVE_INTERVIEW = "ADAPTIVE_INTERVIEW"
    REPORT = "REPORT"


class InterviewSession:
    def __init__(
        self,
        gateway: EvaluationGateway,
        media: Optional[MediaCaptureController] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._media = media
        self._clock = clock
        self._epoch = 0
        self._clear()

    def _clear(self) -> None:
        self.phase = Phase.SETUP
        self.context: Optional[UserContext] = None
        self.mcqs: List[MCQ] = []
        self.current_question: Optional[Question] = None
        self.report: Optional[FinalReport] = None
        self.report_pending = False
        self.coach_advice: Optional[CoachAdvice] = None
        self.is_processing = False
        self.last_error: Optional[str] = None
        self._performance = PerformanceState()
        self._answer_clock = Countdown(0, clock=self._clock)
        self._unsent_media: Optional[str] = None

    # -----------------------
    # Read side
    # -----------------------
    @property
    def performance(self) -> PerformanceState:
        return copy.deepcopy(self._performance)

    @property
    def media(self) -> Optional[MediaCaptureController]:
        return self._media

    def answer_time_left(self) -> int:
        return self._answer_clock.remaining()

    def stage_progress(self) -> List[Tuple[Stage, str]]:
        """(stage, 'active' | 'completed' | 'pending') in interview order."""
        done = {h.question.stage for h in self._performance.history}
        out = []
        for stage in STAGE_ORDER:
            if stage == self._performance.current_stage and self.phase == Phase.ADAPTIVE_INTERVIEW:
                out.append((stage, "active"))
            elif stage in done:
                out.append((stage, "completed"))
            else:
                out.append((stage, "pending"))
        return out

    # -----------------------
    # Guards
    # -----------------------
    def _begin(self, action: str) -> bool:
        if self.is_processing:
            logger.warning("Ignoring %s: another operation is in flight", action)
            return False
        self.is_processing = True
        self.last_error = None
        return True

    def _end(self, epoch: int) -> None:
        if epoch == self._epoch:
            self.is_processing = False

    def _stale(self, epoch: int, action: str) -> bool:
        if epoch != self._epoch:
            logger.info("Dropping %s result: session was reset", action)
            return True
        return False

    def _gateway_failure(self, fallback: str) -> str:
        err = self._gateway.last_error
        return f"{fallback} ({err.message})" if err is not None else fallback

    def _set_question(self, question: Question) -> None:
        self.current_question = question
        self.coach_advice = None
        self._answer_clock.restart(question.time_limit)

    # -----------------------
    # Transitions
    # -----------------------
    async def start_assessment(self, context: UserContext) -> bool:
        """Analyze the resume and generate MCQs concurrently, then open the screening round."""
        if self.phase != Phase.SETUP:
            logger.warning("start_assessment called in phase %s", self.phase.value)
            return False
        context.validate()
        if not self._begin("start_assessment"):
            return False

        epoch = self._epoch
        self.context = context
        try:
            analysis, mcqs = await asyncio.gather(
                self._gateway.analyze_resume(context),
                self._gateway.generate_mcqs(context),
            )
            if self._stale(epoch, "start_assessment"):
                return False

            if analysis is None:
                logger.warning("Continuing without resume analysis")
            if not mcqs:
                logger.warning("Continuing with an empty MCQ set")
            self._performance = PerformanceState(skills_analysis=analysis)
            self.mcqs = list(mcqs)
            self.phase = Phase.MCQ_SCREENING
            logger.info("Assessment started for %s: %d MCQs", context.role, len(self.mcqs))
            return True
        finally:
            self._end(epoch)

    async def complete_mcq_screening(self, results: Sequence[MCQResult]) -> bool:
        """Store screening results and fetch the opening interview question."""
        if self.phase != Phase.MCQ_SCREENING or self.context is None:
            logger.warning("complete_mcq_screening called in phase %s", self.phase.value)
            return False
        if not self._begin("complete_mcq_screening"):
            return False

        epoch = self._epoch
        try:
            self._performance.mcq_results = list(results)
            step = await self._gateway.advance_interview(self.context, self.performance, None)
            if self._stale(epoch, "complete_mcq_screening"):
                return False

            if step is None or step.next_question is None:
                self.last_error = self._gateway_failure("Could not start the interview")
                logger.error("No opening question; staying in screening")
                return False

            question = step.next_question
            self._performance.current_stage = question.stage
            self._performance.current_difficulty = question.difficulty
            self._set_question(question)
            self.phase = Phase.ADAPTIVE_INTERVIEW
            logger.info("Interview started at %s/%s", question.stage.value, question.difficulty.value)
            return True
        finally:
            self._end(epoch)

    def build_answer(self, text: str, timed_out: bool = False) -> Optional[Answer]:
        """Turn the draft into an Answer, or None when submitting is not allowed yet."""
        question = self.current_question
        if question is None:
            return None
        draft = (text or "").strip()
        recording = self._media is not None and self._media.is_recording
        if not draft and not recording and not timed_out:
            return None
        if not draft:
            draft = VIDEO_ANSWER_TEXT if recording else TIMEOUT_ANSWER_TEXT
        return Answer(
            question_id=question.id,
            text=draft,
            response_time=int(round(self._answer_clock.elapsed())),
        )

    async def submit_draft(self, text: str, timed_out: bool = False) -> bool:
        answer = self.build_answer(text, timed_out=timed_out)
        if answer is None:
            return False
        return await self.submit_answer(answer)

    async def submit_answer(self, answer: Answer) -> bool:
        """Evaluate the answer and move to the next question, or to the report when complete."""
        question = self.current_question
        if self.phase != Phase.ADAPTIVE_INTERVIEW or question is None or self.context is None:
            logger.warning("submit_answer called with no current question")
            return False
        if answer.question_id != question.id:
            logger.warning("Ignoring answer for stale question %s", answer.question_id)
            return False
        if not self._begin("submit_answer"):
            return False

        epoch = self._epoch
        try:
            # finish the clip before anything is sent
            if self._media is not None and self._media.is_recording:
                self._unsent_media = await self._media.stop_recording()
            if answer.media_data is None and self._unsent_media:
                answer = replace(answer, media_data=self._unsent_media)

            step = await self._gateway.advance_interview(self.context, self.performance, answer)
            if self._stale(epoch, "submit_answer"):
                return False
            if step is None:
                self.last_error = self._gateway_failure("Could not evaluate the answer")
                logger.error("Advance failed for question %s; answer not recorded", question.id)
                return False

            self._unsent_media = None
            evaluation = step.evaluation
            entry = HistoryEntry(
                question=question,
                answer=replace(answer, score=evaluation.score, feedback=evaluation.feedback),
            )
            perf = self._performance
            perf.history.append(entry)
            perf.completed_questions += 1
            perf.total_score += evaluation.score or 0
            logger.info(
                "Answer %d scored %s (%s)",
                perf.completed_questions,
                evaluation.score,
                question.stage.value,
            )

            if step.is_complete:
                self.current_question = None
                self.coach_advice = None
                self._answer_clock.cancel()
                self.report_pending = True
                return await self._fetch_report(epoch)

            nxt = step.next_question
            perf.current_stage = nxt.stage
            perf.current_difficulty = nxt.difficulty
            self._set_question(nxt)
            return True
        finally:
            self._end(epoch)

    async def retry_report(self) -> bool:
        if not self.report_pending or self.phase != Phase.ADAPTIVE_INTERVIEW:
            return False
        if not self._begin("retry_report"):
            return False
        epoch = self._epoch
        try:
            return await self._fetch_report(epoch)
        finally:
            self._end(epoch)

    async def _fetch_report(self, epoch: int) -> bool:
        report = await self._gateway.generate_report(self.context, self.performance)
        if self._stale(epoch, "generate_report"):
            return False
        if report is None:
            self.last_error = self._gateway_failure("Could not generate the final report")
            logger.error("Report generation failed; interview stays open for retry")
            return False
        self.report = report
        self.report_pending = False
        self.phase = Phase.REPORT
        if self._media is not None:
            self._media.close()
        logger.info("Report ready: %s (%g)", report.readiness.value, report.overall_score)
        return True

    async def request_coach_advice(self) -> Optional[CoachAdvice]:
        """Hint for the current question. Never touches PerformanceState."""
        question = self.current_question
        if question is None or self.context is None:
            return None
        epoch = self._epoch
        advice = await self._gateway.coach_advice(self.context, question)
        if epoch != self._epoch or self.current_question is not question:
            return None
        self.coach_advice = advice
        return advice

    async def stop_recording(self) -> bool:
        """Stop a recording early; the clip is attached to the next submitted answer."""
        if self._media is None or not self._media.is_recording or self.current_question is None:
            return False
        self._unsent_media = await self._media.stop_recording()
        return True

    def poll_answer_timeout(self) -> bool:
        """True once when the current question's countdown runs out and no submit is in flight."""
        if self.phase != Phase.ADAPTIVE_INTERVIEW or self.current_question is None:
            return False
        if self.is_processing:
            return False
        return self._answer_clock.poll()

    def reset(self) -> None:
        if self._media is not None:
            self._media.close()
        self._epoch += 1
        self._clear()
        logger.info("Session reset")

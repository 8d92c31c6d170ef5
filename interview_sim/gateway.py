# interview_sim/gateway.py
"""
The only seam to the language model.

Each operation is one chat-completion round trip (no retries) bounded by
settings.request_timeout. Failures of any kind are logged and turned into the
operation's fallback value, so callers only ever see a result or an absence:

    analyze_resume     -> SkillsAnalysis | None
    generate_mcqs      -> list[MCQ]            ([] on failure)
    advance_interview  -> NextStep | None
    coach_advice       -> CoachAdvice          (default hint on failure)
    generate_report    -> FinalReport | None

The most recent absorbed failure is kept on `last_error` for display.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from interview_sim.config import Settings, settings
from interview_sim.errors import GatewayError, GatewayTimeout, MalformedResponse
from interview_sim.models import (
    MCQ,
    AdviceType,
    Answer,
    CoachAdvice,
    FinalReport,
    NextStep,
    PerformanceState,
    Question,
    SkillsAnalysis,
    UserContext,
)
from interview_sim.prompts import (
    ANALYSIS_PROMPT,
    COACH_SYSTEM_PROMPT,
    DEFAULT_COACH_ADVICE,
    INTERVIEWER_SYSTEM_PROMPT,
    MCQ_PROMPT,
    REPORT_PROMPT,
)
from interview_sim.scoring import mcq_correct_count, section_scores

logger = logging.getLogger(__name__)

# Shape errors raised by the models' from_dict parsers
_SHAPE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def parse_json_object(operation: str, content: str) -> Dict[str, Any]:
    """Parse a JSON object out of a model reply, tolerating code fences and chatter."""
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()
    if not text:
        raise MalformedResponse(operation, "empty response")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}") + 1
        if start == -1 or end <= start:
            raise MalformedResponse(operation, "response is not JSON")
        try:
            data = json.loads(text[start:end])
        except json.JSONDecodeError as e:
            raise MalformedResponse(operation, f"response is not JSON: {e}")

    if not isinstance(data, dict):
        raise MalformedResponse(operation, f"expected a JSON object, got {type(data).__name__}")
    return data


def _history_block(performance: PerformanceState) -> str:
    lines = []
    for h in performance.history:
        lines.append(
            f"Q: {h.question.text}\nA: {h.answer.text}\n"
            f"Score: {h.answer.score}\nFeedback: {h.answer.feedback}"
        )
    return "\n\n".join(lines) if lines else "(none yet)"


def _analysis_block(performance: PerformanceState) -> str:
    analysis = performance.skills_analysis
    if analysis is None:
        return "(not available)"
    return json.dumps(
        {
            "score": analysis.score,
            "strengths": list(analysis.strengths),
            "gaps": list(analysis.gaps),
            "mapping": [{"skill": m.skill, "proficiency": m.proficiency} for m in analysis.mapping],
        },
        ensure_ascii=False,
    )


class EvaluationGateway:
    def __init__(self, client: AsyncOpenAI, config: Settings = settings) -> None:
        self._client = client
        self._config = config
        self.last_error: Optional[GatewayError] = None

    # -----------------------
    # Transport
    # -----------------------
    async def _complete(
        self,
        operation: str,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.4,
    ) -> Dict[str, Any]:
        timeout = self._config.request_timeout
        # Don't force response_format here; some accounts/models reject it.
        try:
            resp = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model or self._config.model,
                    messages=messages,
                    temperature=temperature,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise GatewayTimeout(operation, timeout)
        except openai.OpenAIError as e:
            raise GatewayError(operation, str(e))

        try:
            content = resp.choices[0].message.content or ""
        except (AttributeError, IndexError):
            raise MalformedResponse(operation, "response has no choices")
        return parse_json_object(operation, content)

    def _absorb(self, operation: str, exc: Exception) -> None:
        err = exc if isinstance(exc, GatewayError) else MalformedResponse(operation, str(exc))
        self.last_error = err
        logger.error("Gateway %s failed: %s", operation, err.message)

    # -----------------------
    # Operations
    # -----------------------
    async def analyze_resume(self, context: UserContext) -> Optional[SkillsAnalysis]:
        parts: List[Dict[str, Any]] = [
            {
                "type": "text",
                "text": (
                    f"{ANALYSIS_PROMPT}\n\nRole: {context.role}\n"
                    f"JD: {context.job_description}\nResume Text: {context.resume}"
                ),
            }
        ]
        if context.has_resume_image:
            parts.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{context.resume_image_mime};base64,{context.resume_image}"},
                }
            )

        try:
            data = await self._complete("analyze_resume", [{"role": "user", "content": parts}], temperature=0.2)
            return SkillsAnalysis.from_dict(data)
        except GatewayError as e:
            self._absorb("analyze_resume", e)
        except _SHAPE_ERRORS as e:
            self._absorb("analyze_resume", e)
        return None

    async def generate_mcqs(self, context: UserContext) -> List[MCQ]:
        count = self._config.mcq_count
        prompt = (
            f"{MCQ_PROMPT.format(count=count)}\n\n"
            f"Role: {context.role}\nTarget Difficulty: {context.experience.value}"
        )
        try:
            data = await self._complete("generate_mcqs", [{"role": "user", "content": prompt}], temperature=0.7)
            raw = data.get("mcqs")
            if not isinstance(raw, list):
                raise MalformedResponse("generate_mcqs", "missing 'mcqs' list")
        except GatewayError as e:
            self._absorb("generate_mcqs", e)
            return []

        mcqs: List[MCQ] = []
        seen = set()
        for i, item in enumerate(raw, start=1):
            try:
                mcq = MCQ.from_dict(item, fallback_id=f"mcq-{i}")
            except _SHAPE_ERRORS as e:
                logger.warning("Dropping malformed MCQ #%d: %s", i, e)
                continue
            if mcq.id in seen:
                mcq = MCQ(id=f"mcq-{i}", question=mcq.question, options=mcq.options, correct_index=mcq.correct_index)
            seen.add(mcq.id)
            mcqs.append(mcq)
        return mcqs[:count]

    async def advance_interview(
        self,
        context: UserContext,
        performance: PerformanceState,
        last_answer: Optional[Answer] = None,
    ) -> Optional[NextStep]:
        results = performance.mcq_results
        if last_answer is not None:
            latest = (
                f'LATEST ANSWER TO EVALUATE: "{last_answer.text}" '
                f"(Time Taken: {last_answer.response_time}s)"
            )
        else:
            latest = "Start the interview with the INTRODUCTION stage (resume-based)."

        prompt = (
            "User Context:\n"
            f"Role: {context.role} | Difficulty: {context.experience.value}\n"
            f"MCQ Accuracy: {mcq_correct_count(results)}/{len(results)}\n"
            f"Resume Analysis: {_analysis_block(performance)}\n\n"
            "Current Progress:\n"
            f"Stage: {performance.current_stage.value} | Difficulty: {performance.current_difficulty.value}\n\n"
            "Interview History:\n"
            f"{_history_block(performance)}\n\n"
            f"{latest}"
        )
        messages = [
            {"role": "system", "content": INTERVIEWER_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            data = await self._complete("advance_interview", messages, temperature=0.5)
            return NextStep.from_dict(data)
        except GatewayError as e:
            self._absorb("advance_interview", e)
        except _SHAPE_ERRORS as e:
            self._absorb("advance_interview", e)
        return None

    async def coach_advice(self, context: UserContext, question: Question) -> CoachAdvice:
        prompt = (
            f"Role: {context.role}\n"
            f"Question: {question.text}\n"
            f"Stage: {question.stage.value}\n"
            f"Difficulty: {question.difficulty.value}"
        )
        messages = [
            {"role": "system", "content": COACH_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            data = await self._complete("coach_advice", messages, temperature=0.7)
            return CoachAdvice.from_dict(data)
        except GatewayError as e:
            self._absorb("coach_advice", e)
        except _SHAPE_ERRORS as e:
            self._absorb("coach_advice", e)
        return CoachAdvice(advice=DEFAULT_COACH_ADVICE, type=AdviceType.HINT)

    async def generate_report(self, context: UserContext, performance: PerformanceState) -> Optional[FinalReport]:
        scores = section_scores(performance)
        history = "\n".join(
            f"[{h.question.stage.value}] Q: {h.question.text} | A: {h.answer.text} | Score: {h.answer.score}"
            for h in performance.history
        )
        prompt = (
            f"Final Evaluation for: {context.role}\n"
            "Section Performance:\n"
            f"- Resume Score: {scores.resume:g}\n"
            f"- MCQ Score: {scores.mcq:g}\n"
            f"- Interview Avg (out of 100): {scores.interview:g}\n\n"
            "Detailed History:\n"
            f"{history or '(no answers)'}"
        )
        messages = [
            {"role": "system", "content": REPORT_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            data = await self._complete(
                "generate_report", messages, model=self._config.report_model, temperature=0.2
            )
            # fill a dropped section block from the local numbers
            data.setdefault("sectionScores", scores.as_dict())
            return FinalReport.from_dict(data)
        except GatewayError as e:
            self._absorb("generate_report", e)
        except _SHAPE_ERRORS as e:
            self._absorb("generate_report", e)
        return None

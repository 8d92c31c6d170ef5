"""
Tests for the evaluation gateway: prompt contents, response parsing and the
per-operation fallbacks.
"""
import asyncio
import dataclasses

import openai
import pytest

from conftest import make_client, make_question, sent_text
from interview_sim.config import settings
from interview_sim.errors import GatewayTimeout, MalformedResponse
from interview_sim.gateway import EvaluationGateway, parse_json_object
from interview_sim.models import (
    AdviceType,
    Answer,
    Difficulty,
    ExperienceLevel,
    MCQResult,
    PerformanceState,
    Readiness,
    SkillsAnalysis,
    Stage,
    UserContext,
)
from interview_sim.prompts import DEFAULT_COACH_ADVICE


def _results(correct, total):
    return [MCQResult(question_id=f"m{i}", is_correct=i < correct, time_taken=10) for i in range(total)]


NEXT_STEP = {
    "evaluation": {"score": 7, "feedback": "Clear and concise."},
    "nextQuestion": {
        "text": "Explain how a hash map handles collisions.",
        "stage": "TECHNICAL",
        "difficulty": "MEDIUM",
        "timeLimit": 150,
        "type": "NEW",
    },
    "isInterviewComplete": False,
}

REPORT = {
    "overallScore": 72,
    "readiness": "AVERAGE",
    "strengths": ["Communication"],
    "weaknesses": ["System design depth"],
    "suggestions": ["Practice capacity estimates"],
    "hiringIndicator": "Lean hire",
}


class TestParseJsonObject:
    """Test parse_json_object."""

    def test_plain_object(self):
        assert parse_json_object("op", '{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert parse_json_object("op", '```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_chatter(self):
        assert parse_json_object("op", 'Sure! Here it is: {"a": [1, 2]} Hope that helps.') == {"a": [1, 2]}

    @pytest.mark.parametrize("content", ["", "not json at all", "[1, 2, 3]", "{broken"])
    def test_malformed(self, content):
        with pytest.raises(MalformedResponse):
            parse_json_object("op", content)


class TestAnalyzeResume:
    """Test EvaluationGateway.analyze_resume."""

    @pytest.mark.asyncio
    async def test_parses_analysis(self, context):
        client = make_client(
            {
                "score": 130,
                "strengths": ["Python", " "],
                "gaps": ["Kubernetes"],
                "mapping": [{"skill": "Python", "proficiency": 85}],
            }
        )
        gateway = EvaluationGateway(client)

        analysis = await gateway.analyze_resume(context)

        assert analysis.score == 100.0
        assert analysis.strengths == ("Python",)
        assert analysis.mapping[0].skill == "Python"
        assert "Resume Text: 5 years of Python" in sent_text(client)

    @pytest.mark.asyncio
    async def test_sends_resume_image(self):
        ctx = UserContext.create(
            role="Cloud Engineer",
            experience=ExperienceLevel.ADVANCED,
            resume="",
            job_description="AWS",
            resume_image="aGVsbG8=",
            resume_image_mime="image/png",
        )
        client = make_client({"score": 60})
        gateway = EvaluationGateway(client)

        await gateway.analyze_resume(ctx)

        parts = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert parts[1] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,aGVsbG8="}}
        assert "Resume Text: Provided via image" in parts[0]["text"]

    @pytest.mark.asyncio
    async def test_missing_score_is_absent(self, context):
        gateway = EvaluationGateway(make_client({"strengths": ["x"]}))

        assert await gateway.analyze_resume(context) is None
        assert isinstance(gateway.last_error, MalformedResponse)


class TestGenerateMcqs:
    """Test EvaluationGateway.generate_mcqs."""

    @pytest.mark.asyncio
    async def test_drops_malformed_items(self, context):
        good = {"id": "a", "question": "2+2?", "options": ["1", "2", "3", "4"], "correctAnswerIndex": 3}
        client = make_client(
            {
                "mcqs": [
                    good,
                    {"id": "b", "question": "Three options?", "options": ["1", "2", "3"], "correctAnswerIndex": 0},
                    {"id": "c", "question": "Bad index?", "options": ["1", "2", "3", "4"], "correctAnswerIndex": 7},
                    dict(good, id="a"),
                ]
            }
        )
        gateway = EvaluationGateway(client)

        mcqs = await gateway.generate_mcqs(context)

        assert [m.id for m in mcqs] == ["a", "mcq-4"]
        assert mcqs[0].correct_index == 3
        assert "Target Difficulty: INTERMEDIATE" in sent_text(client)

    @pytest.mark.asyncio
    async def test_truncates_to_count(self, context):
        item = {"question": "?", "options": ["a", "b", "c", "d"], "correctAnswerIndex": 0}
        gateway = EvaluationGateway(make_client({"mcqs": [item] * 8}))

        mcqs = await gateway.generate_mcqs(context)

        assert len(mcqs) == settings.mcq_count

    @pytest.mark.asyncio
    async def test_failure_returns_empty(self, context):
        gateway = EvaluationGateway(make_client({"questions": []}))

        assert await gateway.generate_mcqs(context) == []
        assert gateway.last_error.operation == "generate_mcqs"


class TestAdvanceInterview:
    """Test EvaluationGateway.advance_interview."""

    @pytest.mark.asyncio
    async def test_opening_prompt(self, context):
        client = make_client(NEXT_STEP)
        gateway = EvaluationGateway(client)
        perf = PerformanceState(mcq_results=_results(3, 5))

        step = await gateway.advance_interview(context, perf)

        text = sent_text(client)
        assert "MCQ Accuracy: 3/5" in text
        assert "Start the interview with the INTRODUCTION stage" in text
        assert step.next_question.stage is Stage.TECHNICAL
        assert step.next_question.difficulty is Difficulty.MEDIUM
        assert step.next_question.time_limit == 150

    @pytest.mark.asyncio
    async def test_latest_answer_and_history(self, context):
        client = make_client(NEXT_STEP)
        gateway = EvaluationGateway(client)
        perf = PerformanceState(mcq_results=_results(2, 4))
        answer = Answer(question_id="q1", text="I led the migration.", response_time=42)

        await gateway.advance_interview(context, perf, answer)

        text = sent_text(client)
        assert "MCQ Accuracy: 2/4" in text
        assert 'LATEST ANSWER TO EVALUATE: "I led the migration." (Time Taken: 42s)' in text

    @pytest.mark.asyncio
    async def test_completion_without_next_question(self, context):
        gateway = EvaluationGateway(
            make_client({"evaluation": {"score": 9, "feedback": "Great"}, "isInterviewComplete": True})
        )

        step = await gateway.advance_interview(context, PerformanceState(), Answer("q", "a", 5))

        assert step.is_complete is True
        assert step.next_question is None
        assert step.evaluation.score == 9.0

    @pytest.mark.asyncio
    async def test_neither_question_nor_completion(self, context):
        gateway = EvaluationGateway(make_client({"evaluation": {"score": 5}}))

        assert await gateway.advance_interview(context, PerformanceState()) is None

    @pytest.mark.asyncio
    async def test_missing_time_limit_uses_stage_default(self, context):
        reply = dict(NEXT_STEP, nextQuestion={"text": "Tell me a story.", "stage": "SCENARIO", "difficulty": "HARD"})
        gateway = EvaluationGateway(make_client(reply))

        step = await gateway.advance_interview(context, PerformanceState())

        assert step.next_question.time_limit == 180

    @pytest.mark.asyncio
    async def test_sdk_error_absorbed(self, context):
        gateway = EvaluationGateway(make_client(openai.OpenAIError("boom")))

        assert await gateway.advance_interview(context, PerformanceState()) is None
        assert "boom" in gateway.last_error.message

    @pytest.mark.asyncio
    async def test_timeout(self, context):
        async def slow(**kwargs):
            await asyncio.sleep(1)

        client = make_client()
        client.chat.completions.create.side_effect = slow
        gateway = EvaluationGateway(client, config=dataclasses.replace(settings, request_timeout=0.01))

        assert await gateway.advance_interview(context, PerformanceState()) is None
        assert isinstance(gateway.last_error, GatewayTimeout)


class TestCoachAdvice:
    """Test EvaluationGateway.coach_advice."""

    @pytest.mark.asyncio
    async def test_parses_advice(self, context):
        gateway = EvaluationGateway(make_client({"advice": "Try rephrasing around impact.", "type": "rephrase"}))

        advice = await gateway.coach_advice(context, make_question())

        assert advice.type is AdviceType.REPHRASE

    @pytest.mark.asyncio
    async def test_default_on_failure(self, context):
        gateway = EvaluationGateway(make_client("no json here"))

        advice = await gateway.coach_advice(context, make_question())

        assert advice.advice == DEFAULT_COACH_ADVICE
        assert advice.type is AdviceType.HINT


class TestGenerateReport:
    """Test EvaluationGateway.generate_report."""

    @pytest.mark.asyncio
    async def test_fills_section_scores_and_uses_report_model(self, context):
        client = make_client(REPORT)
        gateway = EvaluationGateway(client)
        perf = PerformanceState(
            mcq_results=_results(3, 5),
            skills_analysis=SkillsAnalysis(score=80),
        )

        report = await gateway.generate_report(context, perf)

        assert report.readiness is Readiness.AVERAGE
        assert report.section_scores.resume == 80.0
        assert report.section_scores.mcq == 60.0
        assert client.chat.completions.create.call_args.kwargs["model"] == settings.report_model

        text = sent_text(client)
        assert "MCQ Score: 60" in text
        assert "(no answers)" in text

    @pytest.mark.asyncio
    async def test_failure_is_absent(self, context):
        gateway = EvaluationGateway(make_client({"readiness": "STRONG"}))

        assert await gateway.generate_report(context, PerformanceState()) is None
        assert gateway.last_error.operation == "generate_report"

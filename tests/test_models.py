"""
Tests for setup validation and the response parsers.
"""
import pytest

from interview_sim.errors import SetupValidationError
from interview_sim.models import (
    MCQ,
    RESUME_IMAGE_PLACEHOLDER,
    CoachAdvice,
    Difficulty,
    Evaluation,
    ExperienceLevel,
    FinalReport,
    Question,
    QuestionType,
    Readiness,
    Stage,
    UserContext,
)


class TestUserContext:
    """Test UserContext.create and validate."""

    def test_strips_fields(self):
        ctx = UserContext.create(
            role="  Data Analyst ",
            experience="beginner",
            resume=" SQL, pandas ",
            job_description=" Analyst role ",
        )
        assert ctx.role == "Data Analyst"
        assert ctx.experience is ExperienceLevel.BEGINNER
        assert ctx.resume == "SQL, pandas"
        assert ctx.has_resume_image is False

    def test_missing_fields_listed(self):
        with pytest.raises(SetupValidationError) as exc_info:
            UserContext.create(role=" ", experience=ExperienceLevel.ADVANCED, resume="", job_description="")

        err = exc_info.value
        assert err.missing_fields == ("role", "resume", "job_description")
        assert err.describe({"job_description": "job description"}) == (
            "Please provide: role, resume, job description"
        )

    def test_image_only_resume(self):
        ctx = UserContext.create(
            role="Cloud Engineer",
            experience=ExperienceLevel.INTERMEDIATE,
            resume="",
            job_description="AWS",
            resume_image="aGk=",
            resume_image_mime="image/jpeg",
        )
        assert ctx.resume == RESUME_IMAGE_PLACEHOLDER
        assert ctx.has_resume_image is True

    def test_image_without_mime_is_not_a_resume(self):
        with pytest.raises(SetupValidationError):
            UserContext.create(
                role="Cloud Engineer",
                experience=ExperienceLevel.INTERMEDIATE,
                resume="",
                job_description="AWS",
                resume_image="aGk=",
            )


class TestMCQ:
    """Test MCQ.from_dict."""

    def test_fallback_id(self):
        mcq = MCQ.from_dict({"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswerIndex": 1}, "mcq-3")
        assert mcq.id == "mcq-3"
        assert mcq.options == ("a", "b", "c", "d")

    @pytest.mark.parametrize(
        "data",
        [
            {"question": "Q?", "options": ["a", "b"], "correctAnswerIndex": 0},
            {"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswerIndex": 4},
            {"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswerIndex": True},
            {"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswerIndex": "1"},
            {"question": " ", "options": ["a", "b", "c", "d"], "correctAnswerIndex": 0},
            {"options": ["a", "b", "c", "d"], "correctAnswerIndex": 0},
        ],
    )
    def test_rejects(self, data):
        with pytest.raises((KeyError, ValueError)):
            MCQ.from_dict(data, "x")


class TestQuestion:
    """Test Question.from_dict."""

    def test_normalizes_enums(self):
        q = Question.from_dict(
            {"text": "Walk me through it.", "stage": "behavioral", "difficulty": "hard", "type": "follow-up", "timeLimit": 100},
            question_id="abc",
        )
        assert (q.id, q.stage, q.difficulty, q.type) == ("abc", Stage.BEHAVIORAL, Difficulty.HARD, QuestionType.FOLLOW_UP)
        assert q.time_limit == 100

    @pytest.mark.parametrize("limit", [None, 0, -5, "90", True])
    def test_bad_time_limit_uses_stage_default(self, limit):
        q = Question.from_dict({"text": "t", "stage": "BEHAVIORAL", "difficulty": "EASY", "timeLimit": limit})
        assert q.time_limit == 120

    def test_generated_ids_differ(self):
        data = {"text": "t", "stage": "TECHNICAL", "difficulty": "EASY"}
        assert Question.from_dict(data).id != Question.from_dict(data).id

    def test_unknown_stage(self):
        with pytest.raises(ValueError):
            Question.from_dict({"text": "t", "stage": "WARMUP", "difficulty": "EASY"})


class TestEvaluationAndAdvice:
    """Test Evaluation and CoachAdvice parsing."""

    def test_score_clamped(self):
        assert Evaluation.from_dict({"score": 14, "feedback": "x"}).score == 10.0
        assert Evaluation.from_dict({"score": -1}).score == 0.0

    def test_missing_evaluation(self):
        assert Evaluation.from_dict(None) == Evaluation(score=None)

    def test_empty_advice_rejected(self):
        with pytest.raises(ValueError):
            CoachAdvice.from_dict({"advice": "  "})


class TestFinalReport:
    """Test FinalReport.from_dict."""

    def test_parses(self):
        report = FinalReport.from_dict(
            {
                "overallScore": 64.5,
                "readiness": "needs improvement",
                "sectionScores": {"resume": 70, "mcq": 40, "interview": 66},
                "strengths": ["Clarity"],
                "weaknesses": [],
                "suggestions": ["Practice STAR"],
                "hiringIndicator": " Not yet ",
            }
        )
        assert report.readiness is Readiness.NEEDS_IMPROVEMENT
        assert report.section_scores.as_dict() == {"resume": 70.0, "mcq": 40.0, "interview": 66.0}
        assert report.hiring_indicator == "Not yet"
        assert report.weaknesses == ()

    def test_bad_readiness(self):
        with pytest.raises(ValueError):
            FinalReport.from_dict({"overallScore": 50, "readiness": "MAYBE", "sectionScores": {}})

# interview_sim/models.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from interview_sim.config import STAGE_TIME_LIMITS
from interview_sim.errors import SetupValidationError


class Stage(str, Enum):
    INTRODUCTION = "INTRODUCTION"
    TECHNICAL = "TECHNICAL"
    BEHAVIORAL = "BEHAVIORAL"
    SCENARIO = "SCENARIO"


STAGE_ORDER: Tuple[Stage, ...] = tuple(Stage)


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class ExperienceLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


class QuestionType(str, Enum):
    NEW = "NEW"
    FOLLOW_UP = "FOLLOW_UP"


class Readiness(str, Enum):
    STRONG = "STRONG"
    AVERAGE = "AVERAGE"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"


class AdviceType(str, Enum):
    HINT = "HINT"
    REPHRASE = "REPHRASE"


# -----------------------
# Coercion helpers (raise on shapes we cannot use)
# -----------------------
def _enum(enum_cls, value: Any):
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValueError(f"{enum_cls.__name__}: expected string, got {value!r}")
    return enum_cls(value.strip().upper().replace(" ", "_").replace("-", "_"))


def _number(value: Any, low: float, high: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected number, got {value!r}")
    return float(min(max(value, low), high))


def _strings(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ValueError(f"expected list of strings, got {value!r}")
    return tuple(str(v).strip() for v in value if str(v).strip())


def new_question_id() -> str:
    return uuid.uuid4().hex[:12]


# -----------------------
# Setup input
# -----------------------
RESUME_IMAGE_PLACEHOLDER = "Provided via image"


@dataclass(frozen=True)
class UserContext:
    role: str
    experience: ExperienceLevel
    resume: str
    job_description: str
    resume_image: Optional[str] = None  # base64, no data: prefix
    resume_image_mime: Optional[str] = None

    @property
    def has_resume_image(self) -> bool:
        return bool(self.resume_image and self.resume_image_mime)

    def validate(self) -> "UserContext":
        missing = []
        if not self.role.strip():
            missing.append("role")
        if not self.resume.strip() and not self.has_resume_image:
            missing.append("resume")
        if not self.job_description.strip():
            missing.append("job_description")
        if missing:
            raise SetupValidationError(missing)
        return self

    @classmethod
    def create(
        cls,
        role: str,
        experience: ExperienceLevel,
        resume: str,
        job_description: str,
        resume_image: Optional[str] = None,
        resume_image_mime: Optional[str] = None,
    ) -> "UserContext":
        """Build a validated context the way the setup form submits it."""
        ctx = cls(
            role=(role or "").strip(),
            experience=_enum(ExperienceLevel, experience),
            resume=(resume or "").strip(),
            job_description=(job_description or "").strip(),
            resume_image=resume_image or None,
            resume_image_mime=resume_image_mime or None,
        ).validate()
        if not ctx.resume:
            ctx = cls(
                role=ctx.role,
                experience=ctx.experience,
                resume=RESUME_IMAGE_PLACEHOLDER,
                job_description=ctx.job_description,
                resume_image=ctx.resume_image,
                resume_image_mime=ctx.resume_image_mime,
            )
        return ctx


# -----------------------
# Resume analysis
# -----------------------
@dataclass(frozen=True)
class SkillMapping:
    skill: str
    proficiency: float


@dataclass(frozen=True)
class SkillsAnalysis:
    score: float
    strengths: Tuple[str, ...] = ()
    gaps: Tuple[str, ...] = ()
    mapping: Tuple[SkillMapping, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkillsAnalysis":
        mapping = []
        for item in data.get("mapping") or []:
            mapping.append(
                SkillMapping(
                    skill=str(item["skill"]).strip(),
                    proficiency=_number(item.get("proficiency", 0), 0, 100),
                )
            )
        return cls(
            score=_number(data["score"], 0, 100),
            strengths=_strings(data.get("strengths")),
            gaps=_strings(data.get("gaps")),
            mapping=tuple(mapping),
        )


# -----------------------
# MCQ screening
# -----------------------
@dataclass(frozen=True)
class MCQ:
    id: str
    question: str
    options: Tuple[str, ...]
    correct_index: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fallback_id: str) -> "MCQ":
        options = data["options"]
        if not isinstance(options, list) or len(options) != 4:
            raise ValueError(f"MCQ needs exactly 4 options, got {options!r}")
        correct = data["correctAnswerIndex"]
        if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct <= 3:
            raise ValueError(f"correctAnswerIndex out of range: {correct!r}")
        text = str(data["question"]).strip()
        if not text:
            raise ValueError("MCQ question text is empty")
        return cls(
            id=str(data.get("id") or fallback_id),
            question=text,
            options=tuple(str(o) for o in options),
            correct_index=correct,
        )


@dataclass(frozen=True)
class MCQResult:
    question_id: str
    is_correct: bool
    time_taken: int
    skipped: bool = False
    selection: Optional[int] = None


# -----------------------
# Adaptive interview
# -----------------------
@dataclass(frozen=True)
class Question:
    id: str
    text: str
    stage: Stage
    difficulty: Difficulty
    time_limit: int
    type: QuestionType = QuestionType.NEW

    @classmethod
    def from_dict(cls, data: Dict[str, Any], question_id: Optional[str] = None) -> "Question":
        text = str(data["text"]).strip()
        if not text:
            raise ValueError("question text is empty")
        stage = _enum(Stage, data["stage"])
        limit = data.get("timeLimit")
        if isinstance(limit, bool) or not isinstance(limit, (int, float)) or limit <= 0:
            limit = STAGE_TIME_LIMITS[stage.value]
        return cls(
            id=question_id or new_question_id(),
            text=text,
            stage=stage,
            difficulty=_enum(Difficulty, data["difficulty"]),
            time_limit=int(limit),
            type=_enum(QuestionType, data.get("type") or "NEW"),
        )


@dataclass(frozen=True)
class Answer:
    question_id: str
    text: str
    response_time: int
    score: Optional[float] = None
    feedback: Optional[str] = None
    media_data: Optional[str] = None  # data URI of the recorded clip

    @property
    def has_media(self) -> bool:
        return bool(self.media_data)


@dataclass(frozen=True)
class HistoryEntry:
    question: Question
    answer: Answer


@dataclass(frozen=True)
class Evaluation:
    score: Optional[float]
    feedback: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Evaluation":
        if not data:
            return cls(score=None)
        score = data.get("score")
        return cls(
            score=None if score is None else _number(score, 0, 10),
            feedback=str(data.get("feedback") or "").strip(),
        )


@dataclass(frozen=True)
class NextStep:
    """Result of one advance round trip."""

    evaluation: Evaluation
    next_question: Optional[Question]
    is_complete: bool

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NextStep":
        complete = bool(data.get("isInterviewComplete", False))
        raw_question = data.get("nextQuestion")
        question = None
        if raw_question and not complete:
            question = Question.from_dict(raw_question)
        if question is None and not complete:
            raise ValueError("response has neither a next question nor completion")
        return cls(
            evaluation=Evaluation.from_dict(data.get("evaluation")),
            next_question=question,
            is_complete=complete,
        )


@dataclass(frozen=True)
class CoachAdvice:
    advice: str
    type: AdviceType = AdviceType.HINT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoachAdvice":
        advice = str(data["advice"]).strip()
        if not advice:
            raise ValueError("advice is empty")
        return cls(advice=advice, type=_enum(AdviceType, data.get("type") or "HINT"))


# -----------------------
# Session aggregate + report
# -----------------------
@dataclass
class PerformanceState:
    current_stage: Stage = Stage.INTRODUCTION
    current_difficulty: Difficulty = Difficulty.EASY
    mcq_results: List[MCQResult] = field(default_factory=list)
    completed_questions: int = 0
    total_score: float = 0.0
    history: List[HistoryEntry] = field(default_factory=list)
    skills_analysis: Optional[SkillsAnalysis] = None


@dataclass(frozen=True)
class SectionScores:
    resume: float
    mcq: float
    interview: float

    def as_dict(self) -> Dict[str, float]:
        return {"resume": self.resume, "mcq": self.mcq, "interview": self.interview}


@dataclass(frozen=True)
class FinalReport:
    overall_score: float
    readiness: Readiness
    section_scores: SectionScores
    strengths: Tuple[str, ...] = ()
    weaknesses: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()
    hiring_indicator: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FinalReport":
        sections = data["sectionScores"]
        return cls(
            overall_score=_number(data["overallScore"], 0, 100),
            readiness=_enum(Readiness, data["readiness"]),
            section_scores=SectionScores(
                resume=_number(sections.get("resume", 0), 0, 100),
                mcq=_number(sections.get("mcq", 0), 0, 100),
                interview=_number(sections.get("interview", 0), 0, 100),
            ),
            strengths=_strings(data.get("strengths")),
            weaknesses=_strings(data.get("weaknesses")),
            suggestions=_strings(data.get("suggestions")),
            hiring_indicator=str(data.get("hiringIndicator") or "").strip(),
        )

"""Domain models for the question/answer workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Stage(Enum):
    """Top-level workflow stage; exactly one is active at a time."""

    SUBMIT = "submit"
    QUESTIONS = "questions"
    SUBMITTED = "submitted"


class SubmitPhase(Enum):
    """Progress of a repository submission attempt while in the submit stage."""

    IDLE = "idle"
    VERIFYING = "verifying"
    GENERATING = "generating"


class AuthStatus(Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class GradingStatus(Enum):
    """State of the asynchronous grade collection after a batch is accepted."""

    IDLE = "idle"
    PENDING = "pending"
    COMPLETE = "complete"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class Identity:
    """Who the current caller is, as reported by the auth service."""

    authenticated: bool
    login: str | None = None
    is_instructor: bool = False

    @classmethod
    def anonymous(cls) -> Identity:
        return cls(authenticated=False)


@dataclass(frozen=True, slots=True)
class Question:
    """A generated question anchored to an excerpt of the submitted repository."""

    id: str
    text: str
    file_path: str
    line_start: int
    line_end: int
    excerpt: str

    @property
    def location(self) -> str:
        return f"{self.file_path}:{self.line_start}-{self.line_end}"


@dataclass(frozen=True, slots=True)
class Submission:
    """Server-side question set for one repository."""

    submission_id: str
    status: str
    questions: tuple[Question, ...]

    def question_ids(self) -> list[str]:
        return [question.id for question in self.questions]


@dataclass(slots=True)
class QuestionState:
    """Mutable per-question state while answering.

    Draft text, paste telemetry and timing live together so the key set of
    every per-question value is always the set of question ids.
    """

    question_id: str
    draft: str = ""
    paste_attempts: int = 0
    time_spent_ms: int = 0
    timer_started_at: float | None = None  # clock reading in ms while focused
    invalid: bool = False

    @property
    def timer_running(self) -> bool:
        return self.timer_started_at is not None


@dataclass(frozen=True, slots=True)
class AnswerRecord:
    """One entry of the answer batch sent to the grading service."""

    submission_id: str
    question_id: str
    answer_text: str
    time_spent_ms: int
    paste_attempts: int
    focus_loss_count: int
    typing_stats: dict[str, object] | None = None


@dataclass(frozen=True, slots=True)
class AnswerReceipt:
    """Acknowledgement for one accepted answer."""

    answer_id: str
    grade_id: str | None = None
    score: float | None = None


@dataclass(frozen=True, slots=True)
class Grade:
    """Graded outcome for one answer; immutable once received."""

    answer_id: str
    score: float
    rationale: str
    confidence: float


@dataclass(frozen=True, slots=True)
class DraftSnapshot:
    """Persisted in-progress answers and accumulated time for one repository."""

    answers: dict[str, str] = field(default_factory=dict)
    time_spent: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GradedQuestion:
    """A question paired with its grade for display."""

    question: Question
    answer_text: str
    grade: Grade | None
    score_band: str | None


@dataclass(frozen=True, slots=True)
class GradeSummary:
    """Derived display metrics once every grade has arrived."""

    total_score: float
    max_score: int
    percentage: int
    average_confidence: int
    level: str
    items: tuple[GradedQuestion, ...] = ()

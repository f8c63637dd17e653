from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from interviewer_bot.core.constants import (
    FREE_FOLLOW_UP_LIMIT,
    MAX_QUESTIONS,
    TIME_BUDGET_SECONDS,
    UNLIMITED_FOLLOW_UPS,
)
from interviewer_bot.core.session_state import DriverState, is_terminal_state


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Language(str, Enum):
    EN = "en"
    FR = "fr"
    ES = "es"
    AR = "ar"


class Tier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABORTED = "aborted"


class TurnRole(str, Enum):
    AI = "ai"
    USER = "user"


def time_budget_for(difficulty: Difficulty) -> int:
    return TIME_BUDGET_SECONDS[Difficulty(difficulty).value]


def question_budget_for(tier: Tier) -> int:
    return MAX_QUESTIONS[Tier(tier).value]


def _now() -> datetime:
    return datetime.now(UTC)


class Turn(BaseModel):
    """One immutable utterance of an interview."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: str(uuid4()))
    session_id: str
    role: TurnRole
    text: str
    sequence: int = 0
    created_at: datetime = Field(default_factory=_now)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Turn text cannot be empty")
        return v


class TranscriptLine(BaseModel):
    """Role and text only, as supplied by a client driving the room."""

    role: TurnRole
    text: str


class InterviewSession(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    owner_id: str
    job_title: str
    job_description: str
    difficulty: Difficulty
    language: Language
    tier_at_start: Tier = Tier.FREE
    status: SessionStatus = SessionStatus.IN_PROGRESS
    driver_state: DriverState = DriverState.CREATED
    total_budget_seconds: int = 0
    elapsed_seconds: int = 0
    max_questions: int = 0
    duration_seconds: int | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None

    def model_post_init(self, __context) -> None:
        if not self.total_budget_seconds:
            self.total_budget_seconds = time_budget_for(self.difficulty)
        if not self.max_questions:
            self.max_questions = question_budget_for(self.tier_at_start)

    @property
    def is_terminal(self) -> bool:
        return is_terminal_state(self.driver_state)

    @property
    def remaining_seconds(self) -> int:
        return max(0, self.total_budget_seconds - self.elapsed_seconds)

    @property
    def time_budget_exhausted(self) -> bool:
        return self.elapsed_seconds >= self.total_budget_seconds


class FollowUpBudget(BaseModel):
    """Derived budget; never persisted, recomputed from the transcript."""

    limit: int
    used: int = 0

    @classmethod
    def for_tier(cls, tier: Tier, used: int = 0) -> "FollowUpBudget":
        limit = UNLIMITED_FOLLOW_UPS if Tier(tier) is Tier.PREMIUM else FREE_FOLLOW_UP_LIMIT
        return cls(limit=limit, used=used)

    @property
    def unlimited(self) -> bool:
        return self.limit >= UNLIMITED_FOLLOW_UPS

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


class PolicyDecision(BaseModel):
    tier: Tier
    follow_ups_used: int
    follow_ups_limit: int
    follow_up_allowed: bool


class AdvanceOutcome(BaseModel):
    """Result of asking for the next question: a new AI turn, or completion."""

    session: InterviewSession
    question: Turn | None = None
    decision: PolicyDecision | None = None

    @property
    def completed(self) -> bool:
        return self.question is None

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from interviewer_bot.core.constants import MAX_ANSWER_LENGTH, MAX_JOB_DESCRIPTION_LENGTH
from interviewer_bot.core.models import (
    Difficulty,
    InterviewSession,
    Language,
    SessionStatus,
    Tier,
    TranscriptLine,
    Turn,
    TurnRole,
)
from interviewer_bot.core.session_state import DriverState


class NextQuestionRequest(BaseModel):
    """Stateless next-question request as sent by the interview room.

    Required fields are checked by the core so that a missing one is
    reported as a 400 with the field name rather than a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_title: str | None = Field(None, alias="jobTitle")
    job_description: str | None = Field(None, alias="jobDescription", max_length=MAX_JOB_DESCRIPTION_LENGTH)
    avatar_type: str | None = Field(None, alias="avatarType", description="Interview difficulty: easy, medium or hard")
    language: str | None = None
    turns: list[TranscriptLine] = Field(default_factory=list)
    plan: str | None = None


class NextQuestionResponse(BaseModel):
    question: str


class SessionCreateRequest(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=200)
    job_title: str | None = Field(None, max_length=200)
    job_description: str | None = Field(None, max_length=MAX_JOB_DESCRIPTION_LENGTH)
    difficulty: str | None = None
    language: str | None = None

    @field_validator("owner_id")
    @classmethod
    def validate_owner_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Owner ID cannot be empty or only whitespace")
        return v.strip()


class TurnResponse(BaseModel):
    id: str
    role: TurnRole
    text: str
    sequence: int
    created_at: datetime

    @classmethod
    def from_turn(cls, turn: Turn) -> "TurnResponse":
        return cls(id=turn.id, role=turn.role, text=turn.text, sequence=turn.sequence, created_at=turn.created_at)


class SessionResponse(BaseModel):
    id: str
    owner_id: str
    job_title: str
    difficulty: Difficulty
    language: Language
    tier: Tier
    status: SessionStatus
    driver_state: DriverState
    elapsed_seconds: int
    total_budget_seconds: int
    remaining_seconds: int
    max_questions: int
    duration_seconds: int | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None

    @classmethod
    def from_session(cls, session: InterviewSession) -> "SessionResponse":
        return cls(
            id=session.id,
            owner_id=session.owner_id,
            job_title=session.job_title,
            difficulty=session.difficulty,
            language=session.language,
            tier=session.tier_at_start,
            status=session.status,
            driver_state=session.driver_state,
            elapsed_seconds=session.elapsed_seconds,
            total_budget_seconds=session.total_budget_seconds,
            remaining_seconds=session.remaining_seconds,
            max_questions=session.max_questions,
            duration_seconds=session.duration_seconds,
            created_at=session.created_at,
            updated_at=session.updated_at,
            completed_at=session.completed_at,
        )


class SessionCreateResponse(BaseModel):
    session: SessionResponse
    opening_question: TurnResponse


class TurnListResponse(BaseModel):
    session_id: str
    turns: list[TurnResponse]


class AnswerRequest(BaseModel):
    answer_text: str = Field("", max_length=MAX_ANSWER_LENGTH, description="Blank to skip the question")


class TickRequest(BaseModel):
    elapsed_seconds: int = Field(..., ge=0)


class CompleteRequest(BaseModel):
    actual_duration_seconds: int = Field(0, ge=0)


class NextTurnResponse(BaseModel):
    """Outcome of moving a session forward: either a new question or completion."""

    session: SessionResponse
    question: TurnResponse | None = None
    follow_up_allowed: bool | None = None
    completed: bool

from typing import Annotated

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from interviewer_bot.api.dependencies import get_session_driver, get_validated_session_id
from interviewer_bot.api.schemas import (
    AnswerRequest,
    CompleteRequest,
    NextTurnResponse,
    SessionCreateRequest,
    SessionCreateResponse,
    SessionResponse,
    TickRequest,
    TurnListResponse,
    TurnResponse,
)
from interviewer_bot.core.models import AdvanceOutcome
from interviewer_bot.core.services import SessionDriver

router = APIRouter()

Driver = Annotated[SessionDriver, Depends(get_session_driver)]
SessionId = Annotated[str, Depends(get_validated_session_id)]


def _next_turn_response(outcome: AdvanceOutcome) -> NextTurnResponse:
    return NextTurnResponse(
        session=SessionResponse.from_session(outcome.session),
        question=TurnResponse.from_turn(outcome.question) if outcome.question else None,
        follow_up_allowed=outcome.decision.follow_up_allowed if outcome.decision else None,
        completed=outcome.completed,
    )


@router.post("/sessions", response_model=SessionCreateResponse, status_code=HTTP_201_CREATED)
async def create_session(request: SessionCreateRequest, driver: Driver) -> SessionCreateResponse:
    """Create an interview session and ask its opening question."""
    session = await driver.create_session(
        request.owner_id,
        request.job_title,
        request.job_description,
        request.difficulty,
        request.language,
    )
    opener = await driver.start(session.id)
    return SessionCreateResponse(
        session=SessionResponse.from_session(driver.get_session(session.id)),
        opening_question=TurnResponse.from_turn(opener),
    )


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: SessionId, driver: Driver) -> SessionResponse:
    return SessionResponse.from_session(driver.get_session(session_id))


@router.get("/sessions/{session_id}/turns", response_model=TurnListResponse)
async def list_turns(session_id: SessionId, driver: Driver) -> TurnListResponse:
    """Full transcript of the session in conversation order."""
    turns = driver.list_turns(session_id)
    return TurnListResponse(session_id=session_id, turns=[TurnResponse.from_turn(t) for t in turns])


@router.post("/sessions/{session_id}/answers", response_model=NextTurnResponse)
async def submit_answer(session_id: SessionId, request: AnswerRequest, driver: Driver) -> NextTurnResponse:
    """Record the candidate's answer and move on to the next question.

    If question generation fails the answer is kept and the session waits
    for ``/advance`` to be retried.
    """
    await driver.submit_answer(session_id, request.answer_text)
    return _next_turn_response(await driver.advance(session_id))


@router.post("/sessions/{session_id}/advance", response_model=NextTurnResponse)
async def advance(session_id: SessionId, driver: Driver) -> NextTurnResponse:
    return _next_turn_response(await driver.advance(session_id))


@router.post("/sessions/{session_id}/tick", response_model=SessionResponse)
async def tick(session_id: SessionId, request: TickRequest, driver: Driver) -> SessionResponse:
    return SessionResponse.from_session(await driver.tick(session_id, request.elapsed_seconds))


@router.post("/sessions/{session_id}/complete", response_model=SessionResponse)
async def complete(session_id: SessionId, request: CompleteRequest, driver: Driver) -> SessionResponse:
    return SessionResponse.from_session(await driver.complete(session_id, request.actual_duration_seconds))


@router.post("/sessions/{session_id}/abort", response_model=SessionResponse)
async def abort(session_id: SessionId, driver: Driver) -> SessionResponse:
    return SessionResponse.from_session(await driver.abort(session_id))

"""Per-session turn-taking loop.

Every state change for a session happens under that session's asyncio lock.
The oracle call in ``advance`` is the one await made without the lock held,
so a time-budget ``tick`` can end the session while a question is being
generated; the late question is then dropped.
"""

import asyncio
import logging
from datetime import UTC, datetime

from interviewer_bot.core.constants import TRANSCRIPT_WINDOW
from interviewer_bot.core.exceptions import (
    InterviewValidationError,
    InvalidSessionStateError,
    QuotaExceededError,
    SessionBusyError,
    StaleSessionError,
)
from interviewer_bot.core.logging import log_event, mask_text
from interviewer_bot.core.models import (
    AdvanceOutcome,
    InterviewSession,
    SessionStatus,
    Tier,
    Turn,
    TurnRole,
)
from interviewer_bot.core.prompts import opening_question, parse_difficulty, parse_language, require_text
from interviewer_bot.core.services.question_service import QuestionService
from interviewer_bot.core.services.session_finalization_service import SessionFinalizationService
from interviewer_bot.core.services.subscription_service import SubscriptionProvider
from interviewer_bot.core.session_state import DriverState, StateTransitionError, validate_transition
from interviewer_bot.core.storage import SessionNotFoundError
from interviewer_bot.core.storage_interface import StorageInterface

_TERMINAL_STATUS = {
    DriverState.COMPLETED: SessionStatus.COMPLETED,
    DriverState.ABORTED: SessionStatus.ABORTED,
}


class SessionDriver:
    def __init__(
        self,
        storage: StorageInterface,
        questions: QuestionService,
        subscriptions: SubscriptionProvider,
        finalization: SessionFinalizationService | None = None,
    ):
        self.storage = storage
        self.questions = questions
        self.subscriptions = subscriptions
        self.finalization = finalization or SessionFinalizationService(subscriptions)
        self._locks: dict[str, asyncio.Lock] = {}
        self._in_flight: set[str] = set()

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def _release_lock(self, session: InterviewSession) -> None:
        # Ended sessions are read-only; a waiter still holding the old lock only sees the end state
        if session.is_terminal and session.id not in self._in_flight:
            self._locks.pop(session.id, None)

    def _load(self, session_id: str) -> InterviewSession:
        session = self.storage.load_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _load_live(self, session_id: str, operation: str, expected: DriverState) -> InterviewSession:
        session = self._load(session_id)
        if session.is_terminal:
            self._release_lock(session)
            raise StaleSessionError(session_id, session.status.value, operation)
        if session.driver_state is not expected:
            raise InvalidSessionStateError(session_id, session.driver_state.value, expected.value, operation)
        return session

    def _transition(self, session: InterviewSession, new_state: DriverState) -> None:
        current = session.driver_state
        if not validate_transition(current, new_state):
            raise StateTransitionError(current, new_state)

        session.driver_state = new_state
        if new_state in _TERMINAL_STATUS:
            session.status = _TERMINAL_STATUS[new_state]

        log_event(
            "session.state_transition",
            component="session_driver",
            operation="transition",
            session_id=session.id,
            from_state=current.value,
            to_state=new_state.value,
        )

    def _record(self, session: InterviewSession, role: TurnRole, text: str) -> Turn:
        turn = self.storage.record_turn(session, role, text)
        log_event(
            "turn.appended",
            component="session_driver",
            operation="record_turn",
            session_id=session.id,
            role=role.value,
            sequence=turn.sequence,
            text=mask_text(text),
        )
        return turn

    async def create_session(
        self,
        owner_id: str,
        job_title: str,
        job_description: str,
        difficulty,
        language,
    ) -> InterviewSession:
        """Validate the setup and persist a new session in CREATED.

        The owner's tier is read here once and kept for the whole session.
        """
        owner_id = require_text("owner_id", owner_id)
        session = InterviewSession(
            owner_id=owner_id,
            job_title=require_text("job_title", job_title),
            job_description=require_text("job_description", job_description),
            difficulty=parse_difficulty(difficulty),
            language=parse_language(language),
            tier_at_start=self.subscriptions.get_tier(owner_id),
        )

        remaining = self.subscriptions.interviews_remaining(owner_id)
        if remaining is not None and remaining <= 0:
            raise QuotaExceededError(owner_id, remaining)

        self.storage.save_session(session)
        log_event(
            "session.created",
            component="session_driver",
            operation="create_session",
            session_id=session.id,
            owner_id=owner_id,
            difficulty=session.difficulty.value,
            language=session.language.value,
            tier=session.tier_at_start.value,
            max_questions=session.max_questions,
            total_budget_seconds=session.total_budget_seconds,
        )
        return session

    async def start(self, session_id: str) -> Turn:
        """Record the canonical opening question. No oracle call is made."""
        async with self._lock_for(session_id):
            session = self._load_live(session_id, "start", DriverState.CREATED)
            self._transition(session, DriverState.AWAITING_ANSWER)
            turn = self._record(session, TurnRole.AI, opening_question(session.difficulty, session.language))
            log_event("session.started", component="session_driver", operation="start", session_id=session_id)
            return turn

    async def submit_answer(self, session_id: str, answer_text: str | None) -> Turn | None:
        """Record the candidate's answer; a blank answer is a skip and records nothing."""
        async with self._lock_for(session_id):
            session = self._load_live(session_id, "submit answer", DriverState.AWAITING_ANSWER)
            text = (answer_text or "").strip()
            self._transition(session, DriverState.AWAITING_NEXT_QUESTION)
            if text:
                return self._record(session, TurnRole.USER, text)
            log_event("answer.skipped", component="session_driver", operation="submit_answer", session_id=session_id)
            self.storage.save_session(session)
            return None

    async def advance(self, session_id: str) -> AdvanceOutcome:
        """Produce the next AI question, or complete the session once the question budget is spent.

        Raises:
            UpstreamGenerationError: oracle failure; the session stays in
                AWAITING_NEXT_QUESTION and the call can be retried
            StaleSessionError: the session ended, possibly while the oracle was working
            SessionBusyError: another advance for this session is still waiting on the oracle
        """
        async with self._lock_for(session_id):
            if session_id in self._in_flight:
                raise SessionBusyError(session_id)
            session = self._load_live(session_id, "advance", DriverState.AWAITING_NEXT_QUESTION)

            turns = self.storage.list_turns(session_id)
            asked = sum(1 for t in turns if t.role is TurnRole.AI)
            if asked >= session.max_questions:
                log_event(
                    "session.question_budget_exhausted",
                    component="session_driver",
                    operation="advance",
                    session_id=session_id,
                    questions_asked=asked,
                    max_questions=session.max_questions,
                )
                await self._complete_locked(session, session.elapsed_seconds)
                return AdvanceOutcome(session=session)

            prompt, decision = self.questions.prepare(
                session.job_title,
                session.job_description,
                session.difficulty,
                session.language,
                turns,
                session.tier_at_start,
                session_id=session_id,
            )
            self._in_flight.add(session_id)

        try:
            question = await self.questions.generate(prompt, session_id=session_id)
        except BaseException:
            self._in_flight.discard(session_id)
            raise

        async with self._lock_for(session_id):
            self._in_flight.discard(session_id)
            session = self._load(session_id)
            if session.is_terminal:
                log_event(
                    "advance.result_discarded",
                    component="session_driver",
                    operation="advance",
                    session_id=session_id,
                    status=session.status.value,
                    level=logging.WARNING,
                )
                self._release_lock(session)
                raise StaleSessionError(session_id, session.status.value, "advance")
            if session.driver_state is not DriverState.AWAITING_NEXT_QUESTION:
                raise InvalidSessionStateError(
                    session_id, session.driver_state.value, DriverState.AWAITING_NEXT_QUESTION.value, "advance"
                )

            self._transition(session, DriverState.AWAITING_ANSWER)
            turn = self._record(session, TurnRole.AI, question)
            return AdvanceOutcome(session=session, question=turn, decision=decision)

    async def tick(self, session_id: str, elapsed_delta_seconds: int) -> InterviewSession:
        """Add elapsed time; reaching the time budget completes the session from any live state."""
        if elapsed_delta_seconds is None or elapsed_delta_seconds < 0:
            raise InterviewValidationError("elapsed_seconds", "Elapsed time must be a non-negative number of seconds")

        async with self._lock_for(session_id):
            session = self._load(session_id)
            if session.is_terminal:
                self._release_lock(session)
                return session

            session.elapsed_seconds += int(elapsed_delta_seconds)
            if session.time_budget_exhausted:
                log_event(
                    "session.time_budget_exhausted",
                    component="session_driver",
                    operation="tick",
                    session_id=session_id,
                    elapsed_seconds=session.elapsed_seconds,
                    total_budget_seconds=session.total_budget_seconds,
                    in_flight=session_id in self._in_flight,
                )
                await self._complete_locked(session, session.total_budget_seconds)
            else:
                self.storage.save_session(session)
            return session

    async def complete(self, session_id: str, actual_duration_seconds: int) -> InterviewSession:
        """End the session. Calling it again on an ended session returns it unchanged."""
        async with self._lock_for(session_id):
            session = self._load(session_id)
            if session.is_terminal:
                log_event(
                    "session.complete_noop",
                    component="session_driver",
                    operation="complete",
                    session_id=session_id,
                    status=session.status.value,
                )
                self._release_lock(session)
                return session
            await self._complete_locked(session, actual_duration_seconds)
            return session

    async def abort(self, session_id: str) -> InterviewSession:
        async with self._lock_for(session_id):
            session = self._load(session_id)
            if session.is_terminal:
                self._release_lock(session)
                return session
            self._transition(session, DriverState.ABORTED)
            session.duration_seconds = session.elapsed_seconds
            session.completed_at = datetime.now(UTC)
            self.storage.save_session(session)
            log_event("session.aborted", component="session_driver", operation="abort", session_id=session_id)
            self._release_lock(session)
            return session

    async def _complete_locked(self, session: InterviewSession, duration_seconds: int) -> None:
        self._transition(session, DriverState.COMPLETED)
        session.duration_seconds = max(0, int(duration_seconds or 0))
        session.completed_at = datetime.now(UTC)
        self.storage.save_session(session)
        log_event(
            "session.completed",
            component="session_driver",
            operation="complete",
            session_id=session.id,
            duration_seconds=session.duration_seconds,
        )
        self.finalization.finalize(session)
        self._release_lock(session)

    def get_session(self, session_id: str) -> InterviewSession:
        return self._load(session_id)

    def list_turns(self, session_id: str, limit: int | None = None) -> list[Turn]:
        self._load(session_id)
        if limit is None:
            return self.storage.list_turns(session_id)
        return self.storage.list_recent_turns(session_id, limit)

    def recent_transcript(self, session_id: str) -> list[Turn]:
        return self.list_turns(session_id, TRANSCRIPT_WINDOW)

    def get_tier(self, session_id: str) -> Tier:
        """Tier captured at session creation; later plan changes do not affect it."""
        return self._load(session_id).tier_at_start

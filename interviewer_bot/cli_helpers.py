import time
from collections.abc import Callable

from interviewer_bot.core.constants import EXIT_SIGNAL
from interviewer_bot.core.exceptions import StaleSessionError, UpstreamGenerationError
from interviewer_bot.core.io_interface import IOInterface
from interviewer_bot.core.logging import log_event
from interviewer_bot.core.models import InterviewSession
from interviewer_bot.core.services import SessionDriver


class InterviewRunner:
    """Drives one console interview through a SessionDriver.

    Wall-clock time is reported to the driver as ticks before each prompt and
    after each answer, so the time budget ends the interview the same way it
    does in the web room. The clock is not read while the prompt is waiting:
    a candidate who idles past the budget is stopped when they answer, and
    that late answer is not recorded.
    """

    def __init__(self, driver: SessionDriver, io: IOInterface, clock: Callable[[], float] = time.monotonic):
        self.driver = driver
        self.io = io
        self.clock = clock
        self._last_tick = 0.0

    async def _tick(self, session_id: str) -> InterviewSession:
        now = self.clock()
        elapsed = int(now - self._last_tick)
        # Carry the fractional remainder into the next tick
        self._last_tick += elapsed
        return await self.driver.tick(session_id, elapsed)

    async def _check_time(self, session_id: str) -> InterviewSession:
        session = await self._tick(session_id)
        if session.is_terminal:
            self.io.print_info("Time is up.")
        return session

    async def _advance_with_retry(self, session_id: str):
        while True:
            try:
                return await self.driver.advance(session_id)
            except UpstreamGenerationError as e:
                self.io.print_error(str(e))
                if self.io.input("Press Enter to retry, or type 'exit' to stop: ") == EXIT_SIGNAL:
                    return None

    async def run(
        self,
        owner_id: str,
        job_title: str,
        job_description: str,
        difficulty: str,
        language: str,
    ) -> InterviewSession:
        session = await self.driver.create_session(owner_id, job_title, job_description, difficulty, language)
        self.io.print_info(
            f"Session {session.id}: up to {session.max_questions} questions in {session.total_budget_seconds // 60} minutes."
        )
        opener = await self.driver.start(session.id)
        self.io.print_question(opener.text)
        self._last_tick = self.clock()

        while True:
            session = await self._check_time(session.id)
            if session.is_terminal:
                return session

            answer = self.io.input("> ")
            if answer == EXIT_SIGNAL:
                return await self.driver.abort(session.id)

            session = await self._check_time(session.id)
            if session.is_terminal:
                return session

            await self.driver.submit_answer(session.id, answer)
            try:
                outcome = await self._advance_with_retry(session.id)
            except StaleSessionError:
                log_event("cli.session_ended_during_generation", component="cli", operation="run", session_id=session.id)
                return self.driver.get_session(session.id)

            if outcome is None:
                return await self.driver.abort(session.id)
            if outcome.completed:
                self.io.print_info("That was the last question. Thank you!")
                return outcome.session
            self.io.print_question(outcome.question.text)

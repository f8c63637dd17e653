import asyncio
from unittest.mock import Mock

import pytest

from interviewer_bot.core.exceptions import (
    InterviewValidationError,
    InvalidSessionStateError,
    QuotaExceededError,
    SessionBusyError,
    StaleSessionError,
    UpstreamGenerationError,
)
from interviewer_bot.core.memory_storage import MemoryStorage
from interviewer_bot.core.models import SessionStatus, Tier, TurnRole
from interviewer_bot.core.services import (
    InMemorySubscriptionProvider,
    QuestionService,
    ReportRequester,
    SessionDriver,
    SessionFinalizationService,
)
from interviewer_bot.core.session_state import DriverState
from interviewer_bot.core.storage import DatabaseManager, SessionNotFoundError, TurnAppendError
from tests.mocks.mock_provider import MockProvider

OWNER = "candidate-1"
FOLLOW_UP_REPLIES = [
    "Can you elaborate on that last point?",
    "You mentioned a migration. Can you explain how you planned it?",
    "Could you clarify which part you owned?",
    "Can you elaborate on the outcome?",
]


@pytest.fixture
def provider():
    return MockProvider()


@pytest.fixture
def subscriptions():
    return InMemorySubscriptionProvider()


@pytest.fixture
def reports():
    return Mock(spec=ReportRequester)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def driver(storage, provider, subscriptions, reports):
    return SessionDriver(
        storage,
        QuestionService(provider, timeout=2.0),
        subscriptions,
        SessionFinalizationService(subscriptions, reports),
    )


async def _started_session(driver, difficulty="easy", language="en", owner_id=OWNER):
    session = await driver.create_session(owner_id, "Backend Engineer", "Python services", difficulty, language)
    await driver.start(session.id)
    return session


async def _wait_for_oracle(provider, calls=1):
    for _ in range(300):
        if provider.calls >= calls:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("oracle was never called")


class FlakySessionRows:
    """Stands in for DatabaseManager._session_row and fails the first ``failures`` calls."""

    def __init__(self, build, failures: int = 1):
        self.build = build
        self.failures = failures

    def __call__(self, session):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("disk I/O error")
        return self.build(session)


class SaveFailsOnceStorage(MemoryStorage):
    def __init__(self):
        super().__init__()
        self.fail_next_save = False

    def save_session(self, session):
        if self.fail_next_save:
            self.fail_next_save = False
            raise RuntimeError("write failed")
        return super().save_session(session)


class TestCreateAndStart:
    async def test_create_captures_tier_and_budgets(self, driver):
        session = await driver.create_session(OWNER, "Backend Engineer", "Python services", "easy", "fr")

        assert session.tier_at_start is Tier.FREE
        assert session.total_budget_seconds == 300
        assert session.max_questions == 5
        assert session.driver_state is DriverState.CREATED
        assert session.status is SessionStatus.IN_PROGRESS

    async def test_create_rejects_missing_fields(self, driver, storage):
        with pytest.raises(InterviewValidationError) as exc_info:
            await driver.create_session(OWNER, "Backend Engineer", "  ", "easy", "en")
        assert exc_info.value.field == "job_description"
        assert storage.list_sessions() == []

    async def test_create_rejects_exhausted_quota(self, subscriptions, provider, storage):
        exhausted = InMemorySubscriptionProvider(free_interviews=0)
        driver = SessionDriver(storage, QuestionService(provider), exhausted)
        with pytest.raises(QuotaExceededError):
            await driver.create_session(OWNER, "Backend Engineer", "Python services", "easy", "en")

    async def test_start_records_canonical_opener(self, driver, provider):
        session = await _started_session(driver, language="es")

        turns = driver.list_turns(session.id)
        assert [(t.role, t.text) for t in turns] == [(TurnRole.AI, "Háblame de ti.")]
        assert driver.get_session(session.id).driver_state is DriverState.AWAITING_ANSWER
        assert provider.calls == 0

    async def test_opener_follows_difficulty(self, driver):
        session = await _started_session(driver, difficulty="medium")
        turns = driver.list_turns(session.id)
        assert [t.text for t in turns] == ["Describe a challenging project you worked on."]

    async def test_start_twice_is_rejected(self, driver):
        session = await _started_session(driver)
        with pytest.raises(InvalidSessionStateError):
            await driver.start(session.id)

    async def test_unknown_session(self, driver):
        with pytest.raises(SessionNotFoundError):
            await driver.start("00000000-0000-0000-0000-000000000000")


class TestTurnTaking:
    async def test_turns_alternate_in_order(self, driver):
        session = await _started_session(driver)
        for i in range(2):
            await driver.submit_answer(session.id, f"answer {i}")
            outcome = await driver.advance(session.id)
            assert outcome.question is not None

        turns = driver.list_turns(session.id)
        assert [t.role for t in turns] == [TurnRole.AI, TurnRole.USER] * 2 + [TurnRole.AI]
        assert [t.sequence for t in turns] == list(range(1, 6))
        assert all(a.created_at <= b.created_at for a, b in zip(turns, turns[1:], strict=False))

    async def test_blank_answer_is_a_skip(self, driver):
        session = await _started_session(driver)
        assert await driver.submit_answer(session.id, "   ") is None
        await driver.advance(session.id)

        turns = driver.list_turns(session.id)
        assert [t.role for t in turns] == [TurnRole.AI, TurnRole.AI]

    async def test_recent_transcript_is_the_last_ten_turns(self, driver, subscriptions):
        subscriptions.set_tier(OWNER, Tier.PREMIUM)
        session = await _started_session(driver)
        for i in range(6):
            await driver.submit_answer(session.id, f"answer {i}")
            await driver.advance(session.id)

        recent = driver.recent_transcript(session.id)
        assert len(driver.list_turns(session.id)) == 13
        assert [t.sequence for t in recent] == list(range(4, 14))

    async def test_answer_out_of_turn(self, driver):
        session = await _started_session(driver)
        await driver.submit_answer(session.id, "first")
        with pytest.raises(InvalidSessionStateError):
            await driver.submit_answer(session.id, "second")

    async def test_advance_out_of_turn(self, driver, provider):
        session = await _started_session(driver)
        with pytest.raises(InvalidSessionStateError):
            await driver.advance(session.id)
        assert provider.calls == 0

    async def test_fourth_advance_is_told_not_to_follow_up(self, driver, provider):
        provider.replies = list(FOLLOW_UP_REPLIES)
        session = await _started_session(driver)

        decisions = []
        for i in range(4):
            await driver.submit_answer(session.id, f"answer {i}")
            outcome = await driver.advance(session.id)
            decisions.append(outcome.decision)

        assert [d.follow_ups_used for d in decisions] == [0, 1, 2, 3]
        assert [d.follow_up_allowed for d in decisions] == [True, True, False, False]
        assert "introduces a new topic" in provider.prompts[3]

    async def test_tier_change_mid_session_is_ignored(self, driver, provider, subscriptions):
        provider.replies = list(FOLLOW_UP_REPLIES)
        session = await _started_session(driver)
        subscriptions.set_tier(OWNER, Tier.PREMIUM)

        for i in range(3):
            await driver.submit_answer(session.id, f"answer {i}")
            outcome = await driver.advance(session.id)

        assert driver.get_tier(session.id) is Tier.FREE
        assert outcome.decision.tier is Tier.FREE
        assert not outcome.decision.follow_up_allowed

    async def test_premium_may_always_follow_up(self, driver, provider, subscriptions):
        subscriptions.set_tier(OWNER, Tier.PREMIUM)
        provider.replies = list(FOLLOW_UP_REPLIES)
        session = await _started_session(driver)

        for i in range(4):
            await driver.submit_answer(session.id, f"answer {i}")
            outcome = await driver.advance(session.id)
            assert outcome.decision.follow_up_allowed
        assert driver.get_session(session.id).max_questions == 15

    async def test_question_budget_completes_session(self, driver, provider, subscriptions, reports):
        session = await _started_session(driver)
        for i in range(4):
            await driver.submit_answer(session.id, f"answer {i}")
            assert not (await driver.advance(session.id)).completed

        await driver.submit_answer(session.id, "last answer")
        outcome = await driver.advance(session.id)

        assert outcome.completed
        assert outcome.session.status is SessionStatus.COMPLETED
        assert provider.calls == 4
        assert sum(1 for t in driver.list_turns(session.id) if t.role is TurnRole.AI) == 5
        assert reports.request_report.call_count == 1
        assert subscriptions.interviews_remaining(OWNER) == 1


class TestUpstreamFailures:
    async def test_failure_leaves_session_retryable(self, driver, provider):
        session = await _started_session(driver)
        await driver.submit_answer(session.id, "answer")
        provider.fail_times = 1

        with pytest.raises(UpstreamGenerationError):
            await driver.advance(session.id)
        assert driver.get_session(session.id).driver_state is DriverState.AWAITING_NEXT_QUESTION
        assert len(driver.list_turns(session.id)) == 2

        outcome = await driver.advance(session.id)
        assert outcome.question is not None
        assert len(driver.list_turns(session.id)) == 3

    async def test_timeout_leaves_session_retryable(self, storage, subscriptions):
        provider = MockProvider(delay=0.5)
        driver = SessionDriver(storage, QuestionService(provider, timeout=0.05), subscriptions)
        session = await _started_session(driver)
        await driver.submit_answer(session.id, "answer")

        with pytest.raises(UpstreamGenerationError):
            await driver.advance(session.id)
        assert driver.get_session(session.id).driver_state is DriverState.AWAITING_NEXT_QUESTION


class TestTimeBudget:
    async def test_tick_reaching_budget_completes(self, driver, subscriptions, reports):
        session = await _started_session(driver)
        await driver.tick(session.id, 120)
        await driver.tick(session.id, 179)
        assert driver.get_session(session.id).status is SessionStatus.IN_PROGRESS

        ended = await driver.tick(session.id, 1)

        assert ended.elapsed_seconds == 300
        assert ended.status is SessionStatus.COMPLETED
        assert ended.duration_seconds == 300
        assert reports.request_report.call_count == 1
        assert subscriptions.interviews_remaining(OWNER) == 1

    async def test_tick_after_end_is_noop(self, driver, reports):
        session = await _started_session(driver)
        await driver.tick(session.id, 400)
        again = await driver.tick(session.id, 50)

        assert again.elapsed_seconds == 400
        assert reports.request_report.call_count == 1

    async def test_negative_tick_is_rejected(self, driver):
        session = await _started_session(driver)
        with pytest.raises(InterviewValidationError):
            await driver.tick(session.id, -1)

    async def test_time_up_during_generation_discards_question(self, driver, provider):
        session = await _started_session(driver)
        await driver.submit_answer(session.id, "answer")
        provider.release.clear()

        pending = asyncio.create_task(driver.advance(session.id))
        await _wait_for_oracle(provider)
        ended = await driver.tick(session.id, 300)
        assert ended.status is SessionStatus.COMPLETED

        provider.release.set()
        with pytest.raises(StaleSessionError):
            await pending
        assert [t.role for t in driver.list_turns(session.id)] == [TurnRole.AI, TurnRole.USER]

    async def test_second_advance_while_generating_is_busy(self, driver, provider):
        session = await _started_session(driver)
        await driver.submit_answer(session.id, "answer")
        provider.release.clear()

        pending = asyncio.create_task(driver.advance(session.id))
        await _wait_for_oracle(provider)
        with pytest.raises(SessionBusyError):
            await driver.advance(session.id)

        provider.release.set()
        outcome = await pending
        assert outcome.question is not None
        assert provider.calls == 1


class TestCompletionAndAbort:
    async def test_complete_is_idempotent(self, driver, subscriptions, reports):
        session = await _started_session(driver)
        first = await driver.complete(session.id, 95)
        second = await driver.complete(session.id, 200)

        assert first.status is second.status is SessionStatus.COMPLETED
        assert second.duration_seconds == 95
        assert reports.request_report.call_count == 1
        assert subscriptions.interviews_remaining(OWNER) == 1

    async def test_usage_never_goes_below_zero(self, driver, subscriptions):
        for _ in range(2):
            session = await _started_session(driver)
            await driver.complete(session.id, 60)
        assert subscriptions.interviews_remaining(OWNER) == 0

        with pytest.raises(QuotaExceededError):
            await driver.create_session(OWNER, "Backend Engineer", "Python services", "easy", "en")

    async def test_premium_completion_does_not_use_quota(self, driver, subscriptions):
        subscriptions.set_tier(OWNER, Tier.PREMIUM)
        session = await _started_session(driver)
        await driver.complete(session.id, 60)
        subscriptions.set_tier(OWNER, Tier.FREE)
        assert subscriptions.interviews_remaining(OWNER) == 2

    async def test_abort_skips_side_effects(self, driver, subscriptions, reports):
        session = await _started_session(driver)
        aborted = await driver.abort(session.id)

        assert aborted.status is SessionStatus.ABORTED
        assert reports.request_report.call_count == 0
        assert subscriptions.interviews_remaining(OWNER) == 2
        assert (await driver.complete(session.id, 10)).status is SessionStatus.ABORTED

    async def test_operations_after_end_are_stale(self, driver):
        session = await _started_session(driver)
        await driver.complete(session.id, 30)

        with pytest.raises(StaleSessionError):
            await driver.submit_answer(session.id, "too late")
        with pytest.raises(StaleSessionError):
            await driver.advance(session.id)
        assert len(driver.list_turns(session.id)) == 1

    async def test_ended_sessions_release_their_lock(self, driver):
        completed = await _started_session(driver)
        aborted = await _started_session(driver)

        await driver.complete(completed.id, 30)
        await driver.abort(aborted.id)
        with pytest.raises(StaleSessionError):
            await driver.submit_answer(completed.id, "late")

        assert completed.id not in driver._locks
        assert aborted.id not in driver._locks

    async def test_lock_kept_while_question_in_flight(self, driver, provider):
        provider.release.clear()
        session = await _started_session(driver)
        await driver.submit_answer(session.id, "answer")
        pending = asyncio.create_task(driver.advance(session.id))
        await _wait_for_oracle(provider)

        await driver.tick(session.id, 300)
        assert session.id in driver._locks

        provider.release.set()
        with pytest.raises(StaleSessionError):
            await pending
        assert session.id not in driver._locks


@pytest.fixture
def db_storage(tmp_path):
    manager = DatabaseManager(db_path=str(tmp_path / "driver.db"))
    yield manager
    manager.engine.dispose()


@pytest.fixture
def db_driver(db_storage, provider, subscriptions):
    return SessionDriver(db_storage, QuestionService(provider, timeout=2.0), subscriptions)


class TestFailedWrites:
    async def test_failed_question_write_is_retried_without_duplicates(self, db_driver, db_storage, monkeypatch):
        session = await _started_session(db_driver)
        await db_driver.submit_answer(session.id, "answer")
        monkeypatch.setattr(db_storage, "_session_row", FlakySessionRows(db_storage._session_row))

        with pytest.raises(TurnAppendError):
            await db_driver.advance(session.id)
        assert db_driver.get_session(session.id).driver_state is DriverState.AWAITING_NEXT_QUESTION
        assert len(db_driver.list_turns(session.id)) == 2

        outcome = await db_driver.advance(session.id)
        assert outcome.question is not None
        roles = [t.role for t in db_driver.list_turns(session.id)]
        assert roles == [TurnRole.AI, TurnRole.USER, TurnRole.AI]

    async def test_failed_answer_write_is_retried_without_duplicates(self, db_driver, db_storage, monkeypatch):
        session = await _started_session(db_driver)
        monkeypatch.setattr(db_storage, "_session_row", FlakySessionRows(db_storage._session_row))

        with pytest.raises(TurnAppendError):
            await db_driver.submit_answer(session.id, "answer")
        assert db_driver.get_session(session.id).driver_state is DriverState.AWAITING_ANSWER

        await db_driver.submit_answer(session.id, "answer")
        assert [t.role for t in db_driver.list_turns(session.id)] == [TurnRole.AI, TurnRole.USER]

    async def test_failed_opener_write_is_retried_without_duplicates(self, db_driver, db_storage, monkeypatch):
        session = await db_driver.create_session(OWNER, "Backend Engineer", "Python services", "hard", "en")
        monkeypatch.setattr(db_storage, "_session_row", FlakySessionRows(db_storage._session_row))

        with pytest.raises(TurnAppendError):
            await db_driver.start(session.id)
        assert db_driver.get_session(session.id).driver_state is DriverState.CREATED
        assert db_driver.list_turns(session.id) == []

        await db_driver.start(session.id)
        turns = db_driver.list_turns(session.id)
        assert [t.text for t in turns] == ["Walk me through a complex technical decision you made."]

    async def test_turn_writes_do_not_go_through_save_session(self, provider, subscriptions):
        storage = SaveFailsOnceStorage()
        driver = SessionDriver(storage, QuestionService(provider, timeout=2.0), subscriptions)
        session = await _started_session(driver)
        await driver.submit_answer(session.id, "answer")

        storage.fail_next_save = True
        await driver.advance(session.id)

        assert storage.fail_next_save
        assert [t.role for t in driver.list_turns(session.id)] == [TurnRole.AI, TurnRole.USER, TurnRole.AI]
        assert driver.get_session(session.id).driver_state is DriverState.AWAITING_ANSWER

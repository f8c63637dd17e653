"""Next-question pipeline: classify follow-ups, decide policy, compose, ask the oracle."""

import asyncio
from collections.abc import Sequence

from interviewer_bot.core.constants import DEFAULT_ORACLE_TIMEOUT_SECONDS
from interviewer_bot.core.exceptions import UpstreamGenerationError
from interviewer_bot.core.followups import FollowUpClassifier, count_follow_ups_in_turns, is_follow_up
from interviewer_bot.core.logging import log_event, span
from interviewer_bot.core.models import PolicyDecision, Tier, TranscriptLine, Turn
from interviewer_bot.core.policy import decide
from interviewer_bot.core.prompts import (
    SYSTEM_INSTRUCTIONS,
    clean_question,
    next_question_prompt,
    parse_difficulty,
    parse_language,
    parse_tier,
    require_text,
)
from interviewer_bot.providers.base import Provider
from interviewer_bot.providers.exceptions import ProviderError


class QuestionService:
    def __init__(
        self,
        oracle: Provider,
        timeout: float = DEFAULT_ORACLE_TIMEOUT_SECONDS,
        classifier: FollowUpClassifier = is_follow_up,
    ):
        self.oracle = oracle
        self.timeout = timeout
        self.classifier = classifier

    def prepare(
        self,
        job_title: str | None,
        job_description: str | None,
        difficulty,
        language,
        turns: Sequence[Turn | TranscriptLine],
        tier: Tier,
        session_id: str | None = None,
    ) -> tuple[str, PolicyDecision]:
        """Validate the request and build the prompt without calling the oracle.

        ``turns`` is the whole known transcript: every AI turn counts toward
        the follow-up budget, only the most recent ones go into the prompt.

        Raises:
            InterviewValidationError: before any classification or oracle work
        """
        require_text("job_title", job_title)
        require_text("job_description", job_description)
        parse_difficulty(difficulty)
        parse_language(language)
        tier = parse_tier(tier)

        used = count_follow_ups_in_turns(turns, self.classifier)
        decision = decide(tier, used)
        log_event(
            "policy.decision",
            component="question_service",
            operation="decide",
            session_id=session_id,
            tier=decision.tier.value,
            follow_ups_used=decision.follow_ups_used,
            follow_ups_limit=decision.follow_ups_limit,
            follow_up_allowed=decision.follow_up_allowed,
        )

        prompt = next_question_prompt(job_title, job_description, difficulty, language, turns, decision)
        return prompt, decision

    async def generate(self, prompt: str, session_id: str | None = None) -> str:
        """Ask the oracle for one question, bounded by ``self.timeout``.

        Raises:
            UpstreamGenerationError: on oracle failure, timeout or an empty reply
        """
        try:
            with span(
                "llm.next_question",
                component="question_service",
                operation="generate",
                session_id=session_id,
                timeout_s=self.timeout,
            ):
                raw = await asyncio.wait_for(
                    asyncio.to_thread(self.oracle.complete, prompt, SYSTEM_INSTRUCTIONS["interviewer"]),
                    timeout=self.timeout,
                )
        except asyncio.TimeoutError as e:
            raise UpstreamGenerationError(cause=f"oracle timed out after {self.timeout}s") from e
        except ProviderError as e:
            raise UpstreamGenerationError(cause=str(e)) from e

        question = clean_question(raw)
        if not question:
            raise UpstreamGenerationError(cause="oracle returned an empty question")
        return question

    async def next_question(
        self,
        job_title: str | None,
        job_description: str | None,
        difficulty,
        language,
        turns: Sequence[Turn | TranscriptLine],
        tier: Tier,
    ) -> str:
        prompt, _ = self.prepare(job_title, job_description, difficulty, language, turns, tier)
        return await self.generate(prompt)

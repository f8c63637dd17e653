import logging

from interviewer_bot.core.logging import log_event
from interviewer_bot.core.models import FollowUpBudget, PolicyDecision, Tier


def resolve_follow_up_limit(tier: Tier) -> int:
    return FollowUpBudget.for_tier(tier).limit


def decide(tier: Tier, follow_ups_used: int, follow_ups_limit: int | None = None) -> PolicyDecision:
    """Decide whether the next question may be a follow-up.

    The decision is advisory: it is written into the prompt, and the
    returned question is not checked against it.
    """
    tier = Tier(tier)
    limit = resolve_follow_up_limit(tier) if follow_ups_limit is None else follow_ups_limit

    if follow_ups_used < 0 or limit < 0:
        log_event(
            "policy.invalid_input",
            component="policy",
            operation="decide",
            tier=tier.value,
            follow_ups_used=follow_ups_used,
            follow_ups_limit=limit,
            level=logging.ERROR,
        )
        raise ValueError(f"Follow-up counts must be non-negative (used={follow_ups_used}, limit={limit})")

    allowed = tier is Tier.PREMIUM or follow_ups_used < limit
    return PolicyDecision(
        tier=tier,
        follow_ups_used=follow_ups_used,
        follow_ups_limit=limit,
        follow_up_allowed=allowed,
    )

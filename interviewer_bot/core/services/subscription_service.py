"""Subscription metadata and free-interview quota.

Billing lives outside this service; these classes only answer "which tier is
this account on" and "how many free interviews are left".
"""

import threading
from abc import ABC, abstractmethod

from interviewer_bot.core.constants import FREE_INTERVIEWS_PER_ACCOUNT
from interviewer_bot.core.logging import log_event
from interviewer_bot.core.models import Tier


class SubscriptionProvider(ABC):
    @abstractmethod
    def get_tier(self, owner_id: str) -> Tier:
        pass

    @abstractmethod
    def interviews_remaining(self, owner_id: str) -> int | None:
        """Interviews left for the account, or None when unmetered."""
        pass

    @abstractmethod
    def record_completed_interview(self, owner_id: str) -> None:
        pass


class InMemorySubscriptionProvider(SubscriptionProvider):
    """Process-local accounts: every unknown owner is on the free tier."""

    def __init__(
        self,
        default_tier: Tier = Tier.FREE,
        tiers: dict[str, Tier] | None = None,
        free_interviews: int = FREE_INTERVIEWS_PER_ACCOUNT,
    ):
        self.default_tier = Tier(default_tier)
        self._tiers = {k: Tier(v) for k, v in (tiers or {}).items()}
        self._free_interviews = free_interviews
        self._remaining: dict[str, int] = {}
        self._lock = threading.Lock()

    def set_tier(self, owner_id: str, tier: Tier) -> None:
        with self._lock:
            self._tiers[owner_id] = Tier(tier)

    def get_tier(self, owner_id: str) -> Tier:
        with self._lock:
            return self._tiers.get(owner_id, self.default_tier)

    def interviews_remaining(self, owner_id: str) -> int | None:
        if self.get_tier(owner_id) is Tier.PREMIUM:
            return None
        with self._lock:
            return self._remaining.get(owner_id, self._free_interviews)

    def record_completed_interview(self, owner_id: str) -> None:
        if self.get_tier(owner_id) is not Tier.FREE:
            return
        with self._lock:
            current = self._remaining.get(owner_id, self._free_interviews)
            if current <= 0:
                return
            self._remaining[owner_id] = current - 1
        log_event(
            "usage.free_interview_decremented",
            component="subscription",
            operation="record_completed_interview",
            owner_id=owner_id,
            remaining=current - 1,
        )

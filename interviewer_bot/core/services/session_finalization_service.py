from abc import ABC, abstractmethod

from interviewer_bot.core.logging import log_event
from interviewer_bot.core.models import InterviewSession, Tier
from interviewer_bot.core.services.subscription_service import SubscriptionProvider


class ReportRequester(ABC):
    """Hands a finished session to whatever scores it and writes the report."""

    @abstractmethod
    def request_report(self, session: InterviewSession) -> None:
        pass


class LoggingReportRequester(ReportRequester):
    """Default requester: records the request for an external scoring job to pick up."""

    def request_report(self, session: InterviewSession) -> None:
        log_event(
            "report.requested",
            component="finalization",
            operation="request_report",
            session_id=session.id,
            owner_id=session.owner_id,
            duration_seconds=session.duration_seconds,
        )


class SessionFinalizationService:
    """Runs the side effects of a completed session.

    The driver calls this once per session, on the first transition to
    COMPLETED. Aborted sessions never reach it.
    """

    def __init__(self, subscriptions: SubscriptionProvider, reports: ReportRequester | None = None):
        self.subscriptions = subscriptions
        self.reports = reports or LoggingReportRequester()

    def finalize(self, session: InterviewSession) -> None:
        self.reports.request_report(session)
        if session.tier_at_start is Tier.FREE:
            self.subscriptions.record_completed_interview(session.owner_id)
        log_event(
            "session.finalized",
            component="finalization",
            operation="finalize",
            session_id=session.id,
            tier=session.tier_at_start.value,
        )

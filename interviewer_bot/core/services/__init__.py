"""Core services for the interviewer bot."""

from .question_service import QuestionService
from .session_driver import SessionDriver
from .session_finalization_service import LoggingReportRequester, ReportRequester, SessionFinalizationService
from .subscription_service import InMemorySubscriptionProvider, SubscriptionProvider

__all__ = [
    "QuestionService",
    "SessionDriver",
    "SessionFinalizationService",
    "ReportRequester",
    "LoggingReportRequester",
    "SubscriptionProvider",
    "InMemorySubscriptionProvider",
]

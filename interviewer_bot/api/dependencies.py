import os
from functools import lru_cache
from typing import Annotated

from fastapi import Path

from interviewer_bot.api.exceptions import InvalidSessionIdException
from interviewer_bot.core.constants import (
    DEFAULT_DB_PATH,
    DEFAULT_MODEL_ID,
    DEFAULT_ORACLE_TIMEOUT_SECONDS,
    MAX_ORACLE_TIMEOUT_SECONDS,
    MIN_ORACLE_TIMEOUT_SECONDS,
)
from interviewer_bot.core.logging import log_event
from interviewer_bot.core.memory_storage import MemoryStorage
from interviewer_bot.core.services import (
    InMemorySubscriptionProvider,
    QuestionService,
    SessionDriver,
    SessionFinalizationService,
    SubscriptionProvider,
)
from interviewer_bot.core.storage import DatabaseManager, InvalidSessionIdError, validate_session_id
from interviewer_bot.core.storage_interface import StorageInterface
from interviewer_bot.providers.base import Provider


class StorageConfigurationError(Exception):
    """Raised when storage is not configured correctly."""

    pass


def clamp_oracle_timeout(value: float) -> float:
    return min(MAX_ORACLE_TIMEOUT_SECONDS, max(MIN_ORACLE_TIMEOUT_SECONDS, value))


def get_oracle_timeout() -> float:
    """Oracle timeout in seconds from INTERVIEWER_BOT_ORACLE_TIMEOUT, clamped to the allowed range."""
    raw = os.getenv("INTERVIEWER_BOT_ORACLE_TIMEOUT")
    if not raw:
        return DEFAULT_ORACLE_TIMEOUT_SECONDS
    try:
        return clamp_oracle_timeout(float(raw))
    except ValueError:
        log_event("config.invalid_oracle_timeout", component="api", operation="config", value=raw)
        return DEFAULT_ORACLE_TIMEOUT_SECONDS


@lru_cache
def get_storage() -> StorageInterface:
    """Get storage instance (cached)."""
    backend = os.getenv("INTERVIEWER_BOT_STORAGE", "sqlite").lower()
    if backend == "memory":
        return MemoryStorage()
    if backend != "sqlite":
        raise StorageConfigurationError(f"Unknown storage backend '{backend}', expected 'sqlite' or 'memory'")
    return DatabaseManager(os.getenv("INTERVIEWER_BOT_DB_PATH", DEFAULT_DB_PATH))


@lru_cache
def get_oracle() -> Provider:
    """Get the text-generation provider named by INTERVIEWER_BOT_MODEL (cached)."""
    return Provider.from_id(os.getenv("INTERVIEWER_BOT_MODEL", DEFAULT_MODEL_ID), timeout=get_oracle_timeout())


@lru_cache
def get_subscriptions() -> SubscriptionProvider:
    return InMemorySubscriptionProvider()


@lru_cache
def get_question_service() -> QuestionService:
    return QuestionService(get_oracle(), timeout=get_oracle_timeout())


@lru_cache
def get_session_driver() -> SessionDriver:
    """Get the session driver (cached: it owns the per-session locks)."""
    subscriptions = get_subscriptions()
    return SessionDriver(
        get_storage(),
        get_question_service(),
        subscriptions,
        SessionFinalizationService(subscriptions),
    )


def get_validated_session_id(session_id: Annotated[str, Path()]) -> str:
    """Validate and return session ID from path parameter."""
    try:
        return validate_session_id(session_id)
    except InvalidSessionIdError as e:
        raise InvalidSessionIdException(session_id) from e

"""Error taxonomy for the interview core.

Validation errors are never retried. Upstream generation errors are
retryable: the session is left where it was so the caller can ask again.
"""


class InterviewError(Exception):
    """Base class for interview core errors."""

    retryable = False


class InterviewValidationError(InterviewError):
    """A required field is missing or malformed."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Missing required field: {field}")


class UpstreamGenerationError(InterviewError):
    """The text-generation oracle failed, timed out or returned nothing usable."""

    retryable = True

    def __init__(self, message: str = "Could not get next question, please try again", cause: str | None = None):
        self.cause = cause
        super().__init__(message)


class StaleSessionError(InterviewError):
    """An operation reached a session that is already completed or aborted."""

    def __init__(self, session_id: str, status: str, operation: str):
        self.session_id = session_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation}: session {session_id} is {status}")


class InvalidSessionStateError(InterviewError):
    """The session is live but not in the state the operation requires."""

    def __init__(self, session_id: str, current: str, expected: str, operation: str):
        self.session_id = session_id
        self.current = current
        self.expected = expected
        super().__init__(f"Cannot {operation} for session {session_id}: state is {current}, expected {expected}")


class SessionBusyError(InterviewError):
    """A next-question request is already outstanding for the session."""

    retryable = True

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"A question is already being generated for session {session_id}")


class QuotaExceededError(InterviewError):
    """A free account has no interviews left."""

    def __init__(self, owner_id: str, remaining: int = 0):
        self.owner_id = owner_id
        self.remaining = remaining
        super().__init__(f"No interviews remaining for account {owner_id}")

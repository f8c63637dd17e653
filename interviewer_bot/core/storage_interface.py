from abc import ABC, abstractmethod
from datetime import datetime

from .models import InterviewSession, Turn, TurnRole


class StorageInterface(ABC):
    """Abstract interface for interview session and transcript storage."""

    @abstractmethod
    def save_session(self, session: InterviewSession) -> str:
        """Insert or update a session. Returns session ID."""
        pass

    @abstractmethod
    def load_session(self, session_id: str) -> InterviewSession | None:
        """Load a session from storage."""
        pass

    @abstractmethod
    def list_sessions(self, owner_id: str | None = None) -> list[tuple[str, str, datetime, str]]:
        """List sessions. Returns (id, job_title, updated_at, status), newest first."""
        pass

    @abstractmethod
    def delete_session(self, session_id: str) -> bool:
        """Delete a session and its turns. Returns True if deleted, False if not found."""
        pass

    @abstractmethod
    def append_turn(self, session_id: str, role: TurnRole, text: str) -> Turn:
        """Append a turn after every existing turn of the session and return it as stored."""
        pass

    @abstractmethod
    def record_turn(self, session: InterviewSession, role: TurnRole, text: str) -> Turn:
        """Append a turn and save ``session`` as one write.

        Either both land or neither does, so a failed call can be retried
        without duplicating the turn.
        """
        pass

    @abstractmethod
    def list_turns(self, session_id: str) -> list[Turn]:
        """All turns of a session in append order."""
        pass

    def list_recent_turns(self, session_id: str, limit: int) -> list[Turn]:
        """The last ``limit`` turns of a session, still in append order."""
        if limit <= 0:
            return []
        return self.list_turns(session_id)[-limit:]

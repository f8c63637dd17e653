import copy
import threading
from collections import defaultdict
from datetime import UTC, datetime, timedelta

from .models import InterviewSession, Turn, TurnRole
from .storage_interface import StorageInterface


class MemoryStorage(StorageInterface):
    """In-memory storage implementation for testing and development."""

    def __init__(self):
        self._sessions: dict[str, InterviewSession] = {}
        self._turns: dict[str, list[Turn]] = defaultdict(list)
        self._lock = threading.Lock()

    def save_session(self, session: InterviewSession) -> str:
        with self._lock:
            session.updated_at = datetime.now(UTC)
            # Deep copy to avoid external mutations
            self._sessions[session.id] = copy.deepcopy(session)
            return session.id

    def load_session(self, session_id: str) -> InterviewSession | None:
        with self._lock:
            session = self._sessions.get(session_id)
            return copy.deepcopy(session) if session else None

    def list_sessions(self, owner_id: str | None = None) -> list[tuple[str, str, datetime, str]]:
        with self._lock:
            sessions = [s for s in self._sessions.values() if owner_id is None or s.owner_id == owner_id]
            return [
                (s.id, s.job_title, s.updated_at, s.status.value)
                for s in sorted(sessions, key=lambda x: x.updated_at, reverse=True)
            ]

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            if session_id not in self._sessions:
                return False
            del self._sessions[session_id]
            self._turns.pop(session_id, None)
            return True

    def _next_turn(self, session_id: str, role: TurnRole, text: str) -> Turn:
        turns = self._turns[session_id]
        now = datetime.now(UTC)
        # created_at must stay strictly increasing even within one clock tick
        if turns and now <= turns[-1].created_at:
            now = turns[-1].created_at + timedelta(microseconds=1)
        return Turn(session_id=session_id, role=role, text=text, sequence=len(turns) + 1, created_at=now)

    def append_turn(self, session_id: str, role: TurnRole, text: str) -> Turn:
        with self._lock:
            turn = self._next_turn(session_id, role, text)
            self._turns[session_id].append(turn)
            return turn

    def record_turn(self, session: InterviewSession, role: TurnRole, text: str) -> Turn:
        with self._lock:
            turn = self._next_turn(session.id, role, text)
            session.updated_at = datetime.now(UTC)
            stored = copy.deepcopy(session)
            self._turns[session.id].append(turn)
            self._sessions[session.id] = stored
            return turn

    def list_turns(self, session_id: str) -> list[Turn]:
        with self._lock:
            return list(self._turns.get(session_id, []))

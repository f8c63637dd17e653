import re
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from .database_models import Base, InterviewSessionTable, TurnTable, enable_sqlite_foreign_keys
from .logging import span
from .models import (
    Difficulty,
    InterviewSession,
    Language,
    SessionStatus,
    Tier,
    Turn,
    TurnRole,
)
from .session_state import DriverState
from .storage_interface import StorageInterface

SESSION_ID_PATTERN = re.compile(r"^[a-f0-9-]{36}$")


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class SessionNotFoundError(StorageError):
    """Raised when a session cannot be found."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class InvalidSessionIdError(StorageError, ValueError):
    """Raised when a session ID is not a UUID string."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Invalid session ID format: {session_id}")


class SessionSaveError(StorageError):
    pass


class SessionLoadError(StorageError):
    pass


class SessionDeleteError(StorageError):
    pass


class TurnAppendError(StorageError):
    """Raised when a turn could not be written; the turn must be treated as absent."""

    pass


def validate_session_id(session_id: str) -> str:
    if not isinstance(session_id, str) or not SESSION_ID_PATTERN.match(session_id):
        raise InvalidSessionIdError(str(session_id))
    return session_id


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class DatabaseManager(StorageInterface):
    def __init__(self, db_path: str = "interviewer_bot.db"):
        """Initialize database manager with a SQLite database file."""
        self.db_path = str(Path(db_path).resolve())
        self._session_locks: dict[str, threading.Lock] = {}
        self._lock_manager_lock = threading.Lock()

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=False,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        self.SessionLocal = sessionmaker(bind=self.engine)
        enable_sqlite_foreign_keys(self.engine)
        Base.metadata.create_all(bind=self.engine)

    def _get_session_lock(self, session_id: str) -> threading.Lock:
        """Get or create the lock that serializes writes for one session."""
        with self._lock_manager_lock:
            if session_id not in self._session_locks:
                self._session_locks[session_id] = threading.Lock()
            return self._session_locks[session_id]

    def _span_fields(self, operation: str, **fields) -> dict:
        return {
            "component": "db",
            "operation": operation,
            "db_engine": "sqlite",
            "db_path": Path(self.db_path).name,
            **fields,
        }

    @staticmethod
    def _session_from_row(row: InterviewSessionTable) -> InterviewSession:
        return InterviewSession(
            id=row.id,
            owner_id=row.owner_id,
            job_title=row.job_title,
            job_description=row.job_description,
            difficulty=Difficulty(row.difficulty),
            language=Language(row.language),
            tier_at_start=Tier(row.tier_at_start),
            status=SessionStatus(row.status),
            driver_state=DriverState(row.driver_state),
            total_budget_seconds=row.total_budget_seconds,
            elapsed_seconds=row.elapsed_seconds,
            max_questions=row.max_questions,
            duration_seconds=row.duration_seconds,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            completed_at=_as_utc(row.completed_at),
        )

    @staticmethod
    def _turn_from_row(row: TurnTable) -> Turn:
        return Turn(
            id=row.id,
            session_id=row.session_id,
            role=TurnRole(row.role),
            text=row.text,
            sequence=row.sequence,
            created_at=_as_utc(row.created_at),
        )

    @staticmethod
    def _session_row(session: InterviewSession) -> InterviewSessionTable:
        return InterviewSessionTable(
            id=session.id,
            owner_id=session.owner_id,
            job_title=session.job_title,
            job_description=session.job_description,
            difficulty=session.difficulty.value,
            language=session.language.value,
            tier_at_start=session.tier_at_start.value,
            status=session.status.value,
            driver_state=session.driver_state.value,
            total_budget_seconds=session.total_budget_seconds,
            elapsed_seconds=session.elapsed_seconds,
            max_questions=session.max_questions,
            duration_seconds=session.duration_seconds,
            created_at=session.created_at,
            updated_at=session.updated_at,
            completed_at=session.completed_at,
        )

    def save_session(self, session: InterviewSession) -> str:
        """Insert or update the session row. Turns are written only through append_turn."""
        validate_session_id(session.id)
        with span("db.save_session", **self._span_fields("save_session", session_id=session.id)):
            with self._get_session_lock(session.id):
                with self.SessionLocal() as db_session:
                    try:
                        session.updated_at = datetime.now(UTC)
                        db_session.merge(self._session_row(session))
                        db_session.commit()
                        return session.id
                    except Exception as e:
                        db_session.rollback()
                        raise SessionSaveError(f"Failed to save session {session.id}: {e}") from e

    def load_session(self, session_id: str) -> InterviewSession | None:
        session_id = validate_session_id(session_id)
        with span("db.load_session", **self._span_fields("load_session", session_id=session_id)):
            with self.SessionLocal() as db_session:
                try:
                    row = db_session.get(InterviewSessionTable, session_id)
                    return self._session_from_row(row) if row else None
                except Exception as e:
                    raise SessionLoadError(f"Failed to load session {session_id}: {e}") from e

    def list_sessions(self, owner_id: str | None = None) -> list[tuple[str, str, datetime, str]]:
        with span("db.list_sessions", **self._span_fields("list_sessions")):
            with self.SessionLocal() as db_session:
                try:
                    query = select(InterviewSessionTable).order_by(InterviewSessionTable.updated_at.desc())
                    if owner_id is not None:
                        query = query.where(InterviewSessionTable.owner_id == owner_id)
                    rows = db_session.execute(query).scalars().all()
                    return [(r.id, r.job_title, _as_utc(r.updated_at), r.status) for r in rows]
                except Exception as e:
                    raise StorageError(f"Failed to list sessions: {e}") from e

    def delete_session(self, session_id: str) -> bool:
        session_id = validate_session_id(session_id)
        with span("db.delete_session", **self._span_fields("delete_session", session_id=session_id)):
            with self.SessionLocal() as db_session:
                try:
                    row = db_session.get(InterviewSessionTable, session_id)
                    if not row:
                        return False
                    db_session.delete(row)
                    db_session.commit()
                    return True
                except Exception as e:
                    db_session.rollback()
                    raise SessionDeleteError(f"Failed to delete session {session_id}: {e}") from e

    @staticmethod
    def _add_turn_row(db_session, session_id: str, role: TurnRole, text: str) -> TurnTable:
        last = db_session.execute(
            select(TurnTable.sequence, TurnTable.created_at)
            .where(TurnTable.session_id == session_id)
            .order_by(TurnTable.sequence.desc())
            .limit(1)
        ).first()
        sequence = (last.sequence if last else 0) + 1
        created_at = datetime.now(UTC)
        if last and _as_utc(last.created_at) >= created_at:
            created_at = _as_utc(last.created_at) + timedelta(microseconds=1)

        row = TurnTable(
            session_id=session_id,
            sequence=sequence,
            role=role.value,
            text=text,
            created_at=created_at,
        )
        db_session.add(row)
        return row

    def append_turn(self, session_id: str, role: TurnRole, text: str) -> Turn:
        """Write one turn with the next sequence number for the session."""
        session_id = validate_session_id(session_id)
        role = TurnRole(role)
        if not text or not text.strip():
            raise ValueError("Turn text cannot be empty")
        with span("db.append_turn", **self._span_fields("append_turn", session_id=session_id, role=role.value)):
            with self._get_session_lock(session_id):
                with self.SessionLocal() as db_session:
                    try:
                        row = self._add_turn_row(db_session, session_id, role, text)
                        db_session.commit()
                        db_session.refresh(row)
                        return self._turn_from_row(row)
                    except Exception as e:
                        db_session.rollback()
                        raise TurnAppendError(f"Failed to append {role.value} turn to session {session_id}: {e}") from e

    def record_turn(self, session: InterviewSession, role: TurnRole, text: str) -> Turn:
        """Write the turn and the session row in one transaction."""
        session_id = validate_session_id(session.id)
        role = TurnRole(role)
        if not text or not text.strip():
            raise ValueError("Turn text cannot be empty")
        with span("db.record_turn", **self._span_fields("record_turn", session_id=session_id, role=role.value)):
            with self._get_session_lock(session_id):
                with self.SessionLocal() as db_session:
                    try:
                        row = self._add_turn_row(db_session, session_id, role, text)
                        session.updated_at = datetime.now(UTC)
                        db_session.merge(self._session_row(session))
                        db_session.commit()
                        db_session.refresh(row)
                        return self._turn_from_row(row)
                    except Exception as e:
                        db_session.rollback()
                        raise TurnAppendError(f"Failed to append {role.value} turn to session {session_id}: {e}") from e

    def list_turns(self, session_id: str) -> list[Turn]:
        session_id = validate_session_id(session_id)
        with span("db.list_turns", **self._span_fields("list_turns", session_id=session_id)):
            with self.SessionLocal() as db_session:
                try:
                    rows = (
                        db_session.execute(
                            select(TurnTable).where(TurnTable.session_id == session_id).order_by(TurnTable.sequence)
                        )
                        .scalars()
                        .all()
                    )
                    return [self._turn_from_row(r) for r in rows]
                except Exception as e:
                    raise SessionLoadError(f"Failed to read turns for session {session_id}: {e}") from e

    def list_recent_turns(self, session_id: str, limit: int) -> list[Turn]:
        if limit <= 0:
            return []
        session_id = validate_session_id(session_id)
        with self.SessionLocal() as db_session:
            try:
                rows = (
                    db_session.execute(
                        select(TurnTable)
                        .where(TurnTable.session_id == session_id)
                        .order_by(TurnTable.sequence.desc())
                        .limit(limit)
                    )
                    .scalars()
                    .all()
                )
                return [self._turn_from_row(r) for r in reversed(rows)]
            except Exception as e:
                raise SessionLoadError(f"Failed to read turns for session {session_id}: {e}") from e


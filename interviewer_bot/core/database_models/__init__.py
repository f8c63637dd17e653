from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def enable_sqlite_foreign_keys(engine: Engine):
    """Enable foreign key enforcement for SQLite connections on an engine."""

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        if "sqlite" in str(dbapi_connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()


class InterviewSessionTable(Base):
    """One interview attempt, from opening question to completion or abort."""

    __tablename__ = "interview_sessions"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id = Column(String, nullable=False)
    job_title = Column(String, nullable=False)
    job_description = Column(Text, nullable=False)
    difficulty = Column(String, nullable=False)
    language = Column(String, nullable=False)
    tier_at_start = Column(String, nullable=False, default="free")
    status = Column(String, nullable=False, default="in-progress")
    driver_state = Column(String, nullable=False, default="created")
    total_budget_seconds = Column(Integer, nullable=False)
    elapsed_seconds = Column(Integer, nullable=False, default=0)
    max_questions = Column(Integer, nullable=False)
    duration_seconds = Column(Integer)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))
    completed_at = Column(DateTime)

    turns = relationship(
        "TurnTable",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="TurnTable.sequence",
    )

    __table_args__ = (Index("ix_interview_sessions_owner_id", "owner_id"),)


class TurnTable(Base):
    """Append-only transcript rows."""

    __tablename__ = "interview_turns"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    session_id = Column(String, ForeignKey("interview_sessions.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    role = Column(String, nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))

    session = relationship("InterviewSessionTable", back_populates="turns")

    __table_args__ = (
        Index("ix_interview_turns_session_id", "session_id"),
        UniqueConstraint("session_id", "sequence", name="uq_interview_turns_session_sequence"),
    )


__all__ = [
    "Base",
    "InterviewSessionTable",
    "TurnTable",
    "enable_sqlite_foreign_keys",
]

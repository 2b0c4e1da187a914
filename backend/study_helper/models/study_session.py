"""Study session model — per-session metadata, generated content, progress and chat history."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from study_helper.database import Base


class StudySession(Base):
    __tablename__ = "study_sessions"

    # Opaque, caller-supplied identifier
    session_id = Column(String(255), primary_key=True)

    metadata_json = Column(Text, nullable=True)  # JSON: {className, mode, topic}
    content_json = Column(Text, nullable=True)  # JSON: {flashcards: [...]} | {questions: [...]}
    progress_json = Column(Text, nullable=True)  # JSON: {results: [...], totalScore, totalPossible}
    history_json = Column(Text, nullable=True)  # JSON: [{role, content}]

    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

"""SQLAlchemy ORM models."""

from study_helper.models.study_session import StudySession

__all__ = [
    "StudySession",
]

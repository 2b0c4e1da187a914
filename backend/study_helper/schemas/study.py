"""Study request/response schemas.

Request fields that must fail with a 400 (className, count, answers) are typed
as ``Any`` and checked by ``study_helper.validators`` instead of pydantic.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class StudyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ValidateClassRequest(StudyRequest):
    class_name: Any = Field(default=None, alias="className")


class GenerateRequest(StudyRequest):
    class_name: Any = Field(default=None, alias="className")
    topic: Optional[str] = ""
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    count: Any = None


class GradeTestRequest(StudyRequest):
    answers: Any = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class ClearSessionRequest(StudyRequest):
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class ValidateClassResponse(BaseModel):
    valid: bool
    message: str


class SessionMetadata(BaseModel):
    """Shape of the metadata slot. Every key is absent until a generate call."""
    className: Optional[str] = None
    mode: Optional[Literal["flashcards", "quiz", "test", "unset"]] = None
    topic: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool


# ── Content shapes (documented; generated payloads are returned unmodified) ──

class Flashcard(BaseModel):
    question: str
    answer: str


class QuizQuestion(BaseModel):
    question: str
    options: list[str]
    correct: int
    hint: str
    explanation: str


class GradedTestQuestion(BaseModel):
    question: str
    type: Literal["multiple_choice", "short_answer"]
    correctAnswer: Any
    points: int
    options: Optional[list[str]] = None


class FlashcardsResponse(BaseModel):
    flashcards: list[Flashcard]


class QuizResponse(BaseModel):
    questions: list[QuizQuestion]


class GradedTestResponse(BaseModel):
    questions: list[GradedTestQuestion]


class GradedResult(BaseModel):
    questionIndex: int
    pointsEarned: float
    pointsPossible: float
    feedback: str


class GradingResponse(BaseModel):
    results: list[GradedResult]
    totalScore: float
    totalPossible: float

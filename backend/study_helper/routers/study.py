"""Study router — class validation, content generation, grading and session reads."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from study_helper.config import settings
from study_helper.schemas.study import (
    ClearSessionRequest,
    FlashcardsResponse,
    GenerateRequest,
    GradedTestResponse,
    GradeTestRequest,
    GradingResponse,
    QuizResponse,
    SessionMetadata,
    SuccessResponse,
    ValidateClassRequest,
    ValidateClassResponse,
)
from study_helper.services.study_service import StudyOrchestrator, get_orchestrator

router = APIRouter(prefix="/api", tags=["study"])


def _session(session_id: Optional[str]) -> str:
    return session_id or settings.DEFAULT_SESSION_ID


@router.post("/validate-class", response_model=ValidateClassResponse)
async def validate_class(
    req: ValidateClassRequest,
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    """Ask the model whether the class name is a real academic subject."""
    return await orchestrator.validate_class(req.class_name)


# Generated payloads are returned exactly as decoded, so the content models
# are only used to document the 200 response.

@router.post("/generate-flashcards", responses={200: {"model": FlashcardsResponse}})
async def generate_flashcards(
    req: GenerateRequest,
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.generate_flashcards(
        _session(req.session_id), req.class_name, req.topic or "", req.count,
    )


@router.post("/generate-quiz", responses={200: {"model": QuizResponse}})
async def generate_quiz(
    req: GenerateRequest,
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.generate_quiz(
        _session(req.session_id), req.class_name, req.topic or "", req.count,
    )


@router.post("/generate-test", responses={200: {"model": GradedTestResponse}})
async def generate_test(
    req: GenerateRequest,
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.generate_test(
        _session(req.session_id), req.class_name, req.topic or "", req.count,
    )


@router.post("/grade-test", responses={200: {"model": GradingResponse}})
async def grade_test(
    req: GradeTestRequest,
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    """Grade the submitted answers against the test stored for the session."""
    return await orchestrator.grade_test(_session(req.session_id), req.answers)


@router.get("/session", response_model=SessionMetadata, response_model_exclude_unset=True)
async def get_session(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    """Session metadata (className, mode, topic); empty when nothing was generated."""
    return await orchestrator.get_session(_session(session_id))


@router.get("/content")
async def get_content(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_content(_session(session_id))


@router.get("/progress")
async def get_progress(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_progress(_session(session_id))


@router.post("/clear-session", response_model=SuccessResponse)
async def clear_session(
    req: ClearSessionRequest,
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    """Wipe every slot stored for the session."""
    await orchestrator.clear_session(_session(req.session_id))
    return SuccessResponse(success=True)

"""AI Study Helper — FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from study_helper.config import GenerationConfig, Settings, settings as default_settings
from study_helper.database import build_engine, build_sessionmaker, init_db
from study_helper.exceptions import DecodeError, NotFoundError, TransportError, ValidationError
from study_helper.routers import chat, study
from study_helper.services.ai_client import GenAIClient, ModelClient
from study_helper.services.session_store import SessionStore, SqlSessionStore
from study_helper.services.study_service import StudyOrchestrator

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Internal server error"


def _error(status_code: int, message: str, details: Optional[str] = None) -> JSONResponse:
    body = {"error": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Translate the error taxonomy into the {error, details?} envelope."""

    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError):
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _bad_body(request: Request, exc: RequestValidationError):
        logger.warning("Malformed request to %s: %s", request.url.path, exc.errors())
        return _error(400, "Invalid request body")

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return _error(400, str(exc))

    @app.exception_handler(DecodeError)
    async def _decode(request: Request, exc: DecodeError):
        # Raw model output is logged by the orchestrator, never returned
        return _error(500, exc.summary, exc.detail)

    @app.exception_handler(TransportError)
    async def _transport(request: Request, exc: TransportError):
        logger.error("Transport failure on %s: %s", request.url.path, exc)
        return _error(500, GENERIC_ERROR)

    # Starlette runs an Exception handler outside CORS, so unknown errors
    # are answered from a middleware instead.
    @app.middleware("http")
    async def _unhandled(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return _error(500, GENERIC_ERROR)


def create_app(
    s: Settings = default_settings,
    client: Optional[ModelClient] = None,
    store: Optional[SessionStore] = None,
) -> FastAPI:
    """Build the application.

    ``client`` and ``store`` default to the OCI/Anthropic GenAIClient and a
    SqlSessionStore on ``s.DATABASE_URL``; tests pass their own.
    """
    logging.basicConfig(
        level=s.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    engine = None
    if store is None:
        engine = build_engine(s.DATABASE_URL)
        store = SqlSessionStore(build_sessionmaker(engine), history_limit=s.HISTORY_LIMIT)
    if client is None:
        client = GenAIClient(s)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            init_db(engine)
            logger.info("Session store ready (%s)", engine.url.get_backend_name())
        provider = app.state.provider_name
        if provider == "none":
            logger.warning("AI NOT CONFIGURED: set OCI_* / ORACLE_GENAI_* or ANTHROPIC_API_KEY in .env")
        else:
            logger.info("AI provider: %s", provider)
        yield
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title="AI Study Helper",
        description="AI-generated flashcards, quizzes and graded tests with per-session state.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.orchestrator = StudyOrchestrator(GenerationConfig.from_settings(s), client, store)
    app.state.client = client
    app.state.provider_name = client.provider_name() if hasattr(client, "provider_name") else "custom"

    # Must precede the CORS middleware so CORS wraps the catch-all 500 too
    register_exception_handlers(app)

    # CORS
    origins = [o.strip() for o in s.ALLOWED_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # Routers
    app.include_router(study.router)
    app.include_router(chat.router)

    @app.get("/")
    def root():
        return {
            "name": "AI Study Helper API",
            "version": "1.0.0",
            "docs": "/docs",
            "aiProvider": app.state.provider_name,
        }

    @app.get("/health")
    def health():
        return {"status": "ok", "aiProvider": app.state.provider_name}

    @app.get("/api/health/ai")
    async def health_ai():
        """Live connectivity test for the configured AI provider.

        Returns:
            provider: which AI is active
            status:   "ok" | "error" | "unconfigured"
            testReply / error / message: result of a tiny test call
        """
        if not hasattr(app.state.client, "health_check"):
            return {"provider": app.state.provider_name, "status": "unknown"}
        return await app.state.client.health_check()

    return app


app = create_app()

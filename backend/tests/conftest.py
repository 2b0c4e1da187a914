"""Shared fixtures: scripted model client, in-memory session store, app client."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from study_helper.config import GenerationConfig, Settings
from study_helper.database import build_engine, build_sessionmaker, init_db
from study_helper.services.session_store import SqlSessionStore
from study_helper.services.study_service import StudyOrchestrator


class FakeModelClient:
    """Returns queued replies in order and records every call."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def provider_name(self) -> str:
        return "fake"

    async def run(self, model: str, inputs: dict) -> dict:
        self.calls.append({"model": model, **inputs})
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return {"response": reply}


def make_store(url: str = "sqlite:///:memory:", history_limit: int = 20) -> SqlSessionStore:
    engine = build_engine(url)
    init_db(engine)
    return SqlSessionStore(build_sessionmaker(engine), history_limit=history_limit)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite:///:memory:",
        ORACLE_GENAI_MODEL="test-model",
        ORACLE_GENAI_COMPARTMENT_ID="",
        ANTHROPIC_API_KEY="",
        ALLOWED_ORIGINS="*",
    )


@pytest.fixture
def model():
    return FakeModelClient()


@pytest.fixture
def store(tmp_path):
    # File-backed so concurrent transactions each get their own connection
    return make_store(f"sqlite:///{tmp_path / 'sessions.db'}")


@pytest.fixture
def orchestrator(settings, model, store):
    return StudyOrchestrator(GenerationConfig.from_settings(settings), model, store)


@pytest.fixture
def client(settings, model, store):
    from fastapi.testclient import TestClient
    from study_helper.main import create_app

    app = create_app(settings, client=model, store=store)
    with TestClient(app) as test_client:
        yield test_client

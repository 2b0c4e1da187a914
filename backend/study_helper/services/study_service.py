"""
Study orchestrator — one method per study/chat action.

Every generation operation follows the same pipeline:

  validate input → build prompt → model.run() → decode → persist → return

The model call holds no session lock; only the store calls that follow it are
serialized per session.
"""

import json
import logging
from typing import Any, Mapping

from fastapi import Request

from study_helper import prompts
from study_helper.config import (
    CHAT_TURN,
    GENERATE_FLASHCARDS,
    GENERATE_QUIZ,
    GENERATE_TEST,
    GRADE_TEST,
    VALIDATE_CLASS,
    GenerationConfig,
)
from study_helper.exceptions import DecodeError, DecodeFailure, NotFoundError
from study_helper.services.ai_client import ModelClient
from study_helper.services.response_decoder import ARRAY, decode
from study_helper.services.session_store import SessionStore, Slot
from study_helper.validators import (
    clamp_count,
    validate_answers,
    validate_class_name,
    validate_message,
)

logger = logging.getLogger(__name__)

# operation -> (mode stored in metadata, prompt builder, expected fields, failure summary)
_GENERATORS = {
    GENERATE_FLASHCARDS: ("flashcards", prompts.flashcards_messages, {"flashcards": ARRAY},
                          "Failed to generate flashcards. Please try again."),
    GENERATE_QUIZ: ("quiz", prompts.quiz_messages, {"questions": ARRAY},
                    "Failed to generate quiz. Please try again."),
    GENERATE_TEST: ("test", prompts.graded_test_messages, {"questions": ARRAY},
                    "Failed to generate test. Please try again."),
}


class StudyOrchestrator:
    """Composes prompts, calls the model, decodes replies and persists results."""

    def __init__(self, config: GenerationConfig, client: ModelClient, store: SessionStore):
        self.config = config
        self.client = client
        self.store = store

    # ── Model plumbing ───────────────────────────────────────────────────────

    async def _invoke(self, operation: str, messages: list[dict]) -> Any:
        params = self.config.params(operation)
        result = await self.client.run(self.config.model_id, {
            "messages": messages,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        })
        return result.get("response") if isinstance(result, Mapping) else None

    def _decode(self, operation: str, raw: Any, expected: Mapping[str, str], summary: str) -> dict:
        try:
            return decode(raw, expected)
        except DecodeError as e:
            e.summary = summary
            logger.error("Decode failed for %s (%s: %s). Raw reply: %r", operation, e.reason.value, e.detail, raw)
            raise

    # ── Operations ───────────────────────────────────────────────────────────

    async def validate_class(self, class_name: Any) -> dict:
        """Ask the model whether ``class_name`` is a real subject. No persistence."""
        class_name = validate_class_name(class_name)
        raw = await self._invoke(VALIDATE_CLASS, prompts.validate_class_messages(class_name))
        if not isinstance(raw, str):
            error = DecodeError(DecodeFailure.UNEXPECTED_FORMAT, "Unexpected response format",
                                summary="Error validating class")
            logger.error("Class validation reply was not text: %r", raw)
            raise error

        result = raw.strip()
        is_valid = result.upper().startswith("VALID")
        return {
            "valid": is_valid,
            "message": "Valid class!" if is_valid else result,
        }

    async def _generate(self, operation: str, session_id: str, class_name: Any, topic: Any, count: Any) -> dict:
        mode, build_messages, expected, summary = _GENERATORS[operation]
        class_name = validate_class_name(class_name)
        topic = topic if isinstance(topic, str) else ""
        if count is None:
            count = self.config.default_count(operation)
        count = clamp_count(count, self.config.count_min, self.config.count_max)

        raw = await self._invoke(operation, build_messages(class_name, topic, count))
        payload = self._decode(operation, raw, expected, summary)

        await self.store.put(session_id, Slot.METADATA, {"className": class_name, "mode": mode, "topic": topic})
        await self.store.put(session_id, Slot.CONTENT, payload)

        items = payload[next(iter(expected))]
        logger.info("%s: session=%s items=%d", operation, session_id, len(items))
        return payload

    async def generate_flashcards(self, session_id: str, class_name: Any, topic: Any = "", count: Any = None) -> dict:
        return await self._generate(GENERATE_FLASHCARDS, session_id, class_name, topic, count)

    async def generate_quiz(self, session_id: str, class_name: Any, topic: Any = "", count: Any = None) -> dict:
        return await self._generate(GENERATE_QUIZ, session_id, class_name, topic, count)

    async def generate_test(self, session_id: str, class_name: Any, topic: Any = "", count: Any = None) -> dict:
        return await self._generate(GENERATE_TEST, session_id, class_name, topic, count)

    def build_grading_records(self, questions: list, answers: list) -> list[dict]:
        """Pair each stored question with the student's answer.

        Answers missing at the tail are left out of the record rather than sent
        as null.
        """
        records = []
        for i, q in enumerate(questions):
            q = q if isinstance(q, dict) else {}
            points = q.get("points")
            record = {
                "question": q.get("question"),
                "correctAnswer": q.get("correctAnswer"),
            }
            if i < len(answers):
                record["studentAnswer"] = answers[i]
            record["points"] = points if points is not None else self.config.default_points
            records.append(record)
        return records

    async def grade_test(self, session_id: str, answers: Any) -> dict:
        """Grade ``answers`` against the test stored for the session."""
        answers = validate_answers(answers)

        content = await self.store.get(session_id, Slot.CONTENT)
        if not isinstance(content, dict) or not isinstance(content.get("questions"), list):
            logger.warning("grade_test: no test content for session=%s", session_id)
            raise NotFoundError("No test found for this session")
        questions = content["questions"]

        records = self.build_grading_records(questions, answers)
        raw = await self._invoke(GRADE_TEST, prompts.grade_messages(records))
        summary = "Failed to grade test. Please try again."
        grading = self._decode(GRADE_TEST, raw, {"results": ARRAY}, summary)

        if len(grading["results"]) != len(questions):
            logger.error("Grading returned %d results for %d questions. Raw reply: %r",
                         len(grading["results"]), len(questions), raw)
            raise DecodeError(
                DecodeFailure.SHAPE_MISMATCH,
                f"Expected {len(questions)} graded results, got {len(grading['results'])}",
                summary=summary,
            )

        await self.store.put(session_id, Slot.PROGRESS, grading)
        logger.info("grade_test: session=%s score=%s/%s", session_id,
                    grading.get("totalScore"), grading.get("totalPossible"))
        return grading

    async def chat_turn(self, session_id: str, message: Any) -> str:
        """Answer a chat message with the session's history as context."""
        message = validate_message(message)
        history = await self.store.get(session_id, Slot.HISTORY)

        raw = await self._invoke(CHAT_TURN, prompts.chat_messages(history, message))
        if isinstance(raw, str):
            reply = raw
        else:
            reply = "" if raw is None else json.dumps(raw)
        reply = reply.strip()

        await self.store.append_history(
            session_id,
            {"role": "user", "content": message},
            {"role": "assistant", "content": reply},
        )
        return reply

    # ── Reads / housekeeping ─────────────────────────────────────────────────

    async def get_session(self, session_id: str) -> dict:
        return await self.store.get(session_id, Slot.METADATA)

    async def get_content(self, session_id: str) -> Any:
        return await self.store.get(session_id, Slot.CONTENT)

    async def get_progress(self, session_id: str) -> dict:
        return await self.store.get(session_id, Slot.PROGRESS)

    async def get_history(self, session_id: str) -> list:
        return await self.store.get(session_id, Slot.HISTORY)

    async def clear_session(self, session_id: str) -> None:
        await self.store.clear(session_id)
        logger.info("clear_session: session=%s", session_id)


def get_orchestrator(request: Request) -> StudyOrchestrator:
    """FastAPI dependency returning the orchestrator built by create_app()."""
    return request.app.state.orchestrator

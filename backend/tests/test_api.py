"""HTTP-level tests: routes, status codes and the {error, details} envelope."""

import json

from study_helper.exceptions import ModelError

FLASHCARDS = {"flashcards": [{"question": "What is DNA?", "answer": "Genetic material"}]}
TEST = {"questions": [
    {"question": "Define gene", "type": "short_answer", "correctAnswer": "Unit of heredity", "points": 10},
]}
GRADING = {
    "results": [{"questionIndex": 0, "pointsEarned": 10, "pointsPossible": 10, "feedback": "Great"}],
    "totalScore": 10,
    "totalPossible": 10,
}


class TestValidateClassRoute:
    def test_valid(self, client, model):
        model.queue("VALID")
        resp = client.post("/api/validate-class", json={"className": "Biology 101"})
        assert resp.status_code == 200
        assert resp.json() == {"valid": True, "message": "Valid class!"}

    def test_missing_class_name(self, client, model):
        resp = client.post("/api/validate-class", json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Class name is required"}
        assert model.calls == []

    def test_malformed_body(self, client):
        resp = client.post("/api/validate-class", content="not json",
                           headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert "error" in resp.json()


class TestGenerateRoutes:
    def test_flashcards_default_session(self, client, model):
        model.queue("Sure! " + json.dumps(FLASHCARDS))
        resp = client.post("/api/generate-flashcards", json={"className": "Biology", "count": 1})
        assert resp.status_code == 200
        assert resp.json() == FLASHCARDS

        session = client.get("/api/session").json()
        assert session == {"className": "Biology", "mode": "flashcards", "topic": ""}
        assert client.get("/api/content").json() == FLASHCARDS

    def test_explicit_session_is_isolated(self, client, model):
        model.queue(FLASHCARDS)
        client.post("/api/generate-flashcards", json={"className": "Bio", "sessionId": "A"})
        assert client.get("/api/session", params={"sessionId": "A"}).json()["className"] == "Bio"
        assert client.get("/api/session", params={"sessionId": "B"}).json() == {}
        assert client.get("/api/content", params={"sessionId": "B"}).json() is None

    def test_decode_failure_envelope(self, client, model):
        model.queue("I'd rather not. INTERNAL-PROMPT-TEXT")
        resp = client.post("/api/generate-quiz", json={"className": "History"})
        assert resp.status_code == 500
        body = resp.json()
        assert body == {
            "error": "Failed to generate quiz. Please try again.",
            "details": "No JSON found in response",
        }
        assert "INTERNAL-PROMPT-TEXT" not in resp.text

    def test_wrong_field_type_envelope(self, client, model):
        model.queue({"flashcards": "notarray"})
        resp = client.post("/api/generate-flashcards", json={"className": "Biology"})
        assert resp.status_code == 500
        assert resp.json()["details"] == "Field 'flashcards' should be an array"

    def test_model_transport_failure(self, client, model):
        model.queue(ModelError("connection reset by 10.0.0.7"))
        resp = client.post("/api/generate-test", json={"className": "Biology"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}

    def test_unexpected_error_keeps_cors_headers(self, client, model):
        model.queue(RuntimeError("client bug"))
        resp = client.post("/api/generate-test", json={"className": "Biology"},
                           headers={"Origin": "http://localhost:3000"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}
        assert resp.headers["access-control-allow-origin"] == "*"


class TestGradeRoute:
    def test_grade_after_generate(self, client, model):
        model.queue(TEST, GRADING)
        client.post("/api/generate-test", json={"className": "Biology", "sessionId": "g"})
        resp = client.post("/api/grade-test", json={"answers": ["a gene"], "sessionId": "g"})
        assert resp.status_code == 200
        assert resp.json() == GRADING
        assert client.get("/api/progress", params={"sessionId": "g"}).json() == GRADING

    def test_no_test_for_session(self, client):
        resp = client.post("/api/grade-test", json={"answers": ["x"], "sessionId": "empty"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "No test found for this session"}

    def test_answers_required(self, client):
        resp = client.post("/api/grade-test", json={"sessionId": "g"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Answers array is required"}

    def test_shape_mismatch(self, client, model):
        model.queue(TEST, {"results": [], "totalScore": 0, "totalPossible": 10})
        client.post("/api/generate-test", json={"className": "Biology"})
        resp = client.post("/api/grade-test", json={"answers": ["x"]})
        assert resp.status_code == 500
        assert resp.json()["error"] == "Failed to grade test. Please try again."
        assert client.get("/api/progress").json() == {}


class TestChatRoutes:
    def test_new_session_id_issued(self, client, model):
        model.queue("Hello!")
        resp = client.post("/api/chat", json={"message": "hi"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["response"] == "Hello!"
        assert len(body["sessionId"]) == 32

        history = client.get("/api/history", params={"sessionId": body["sessionId"]}).json()
        assert history == {"history": [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "Hello!"},
        ]}

    def test_existing_session_kept(self, client, model):
        model.queue("one", "two")
        client.post("/api/chat", json={"message": "a", "sessionId": "chat-1"})
        resp = client.post("/api/chat", json={"message": "b", "sessionId": "chat-1"})
        assert resp.json() == {"response": "two", "sessionId": "chat-1"}
        assert len(client.get("/api/history", params={"sessionId": "chat-1"}).json()["history"]) == 4

    def test_missing_message(self, client, model):
        resp = client.post("/api/chat", json={"sessionId": "x"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message is required"}
        assert model.calls == []

    def test_history_of_unknown_session(self, client):
        assert client.get("/api/history", params={"sessionId": "nobody"}).json() == {"history": []}


class TestSessionRoutes:
    def test_clear_session(self, client, model):
        model.queue(FLASHCARDS, "hey")
        client.post("/api/generate-flashcards", json={"className": "Bio", "sessionId": "c"})
        client.post("/api/chat", json={"message": "hi", "sessionId": "c"})

        resp = client.post("/api/clear-session", json={"sessionId": "c"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        assert client.get("/api/session", params={"sessionId": "c"}).json() == {}
        assert client.get("/api/history", params={"sessionId": "c"}).json() == {"history": []}

    def test_fresh_progress(self, client):
        assert client.get("/api/progress", params={"sessionId": "fresh"}).json() == {}


class TestServiceRoutes:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["name"] == "AI Study Helper API"
        assert body["aiProvider"] == "fake"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "aiProvider": "fake"}

    def test_ai_health_without_probe(self, client):
        assert client.get("/api/health/ai").json() == {"provider": "fake", "status": "unknown"}

    def test_cors_header(self, client, model):
        model.queue("VALID")
        resp = client.post("/api/validate-class", json={"className": "Art"},
                           headers={"Origin": "http://localhost:3000"})
        assert resp.headers["access-control-allow-origin"] == "*"


class TestRequestSchemas:
    """Request models accept both the camelCase wire names and field names."""

    def test_generate_request_by_alias_and_name(self):
        from study_helper.schemas.study import GenerateRequest

        by_alias = GenerateRequest.model_validate({"className": "Bio", "sessionId": "s"})
        by_name = GenerateRequest(class_name="Bio", session_id="s")
        assert by_alias.class_name == by_name.class_name == "Bio"
        assert by_alias.session_id == by_name.session_id == "s"

    def test_chat_request_by_name(self):
        from study_helper.schemas.chat import ChatRequest

        assert ChatRequest(message="hi", session_id="c").session_id == "c"

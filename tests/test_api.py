import pytest
from fastapi.testclient import TestClient

from menuquiz.main import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("MENUQUIZ_STATE_DB", raising=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def catalog_payload(catalog):
    return catalog.model_dump(by_alias=True, mode="json")


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestGenerate:

    def test_generates_requested_count(self, client, catalog_payload):
        response = client.post(
            "/v1/quiz/generate",
            json={"restaurantData": catalog_payload, "configuration": {"questionCount": 6}},
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["questions"]) == 6
        assert body["error"] is None
        assert {"id", "type", "questionText", "options", "correctAnswerIds", "isSingleChoice"} <= set(
            body["questions"][0]
        )

    def test_reports_missing_data(self, client):
        response = client.post("/v1/quiz/generate", json={"restaurantData": {}})

        assert response.status_code == 200
        assert response.json()["questions"] == []
        assert response.json()["error"]

    def test_rejects_zero_questions(self, client, catalog_payload):
        response = client.post(
            "/v1/quiz/generate",
            json={"restaurantData": catalog_payload, "configuration": {"questionCount": 0}},
        )

        assert response.status_code == 422


class TestSessions:

    def test_full_round(self, client, catalog_payload):
        started = client.post(
            "/v1/quiz/sessions/abc/start",
            json={"restaurantData": catalog_payload, "configuration": {"questionCount": 2}},
        )
        assert started.status_code == 200
        state = started.json()
        assert state["inProgress"] is True
        assert state["totalQuestions"] == 2

        first = state["questions"][0]
        answered = client.post(
            "/v1/quiz/sessions/abc/answer",
            json={"selectedAnswerIds": first["correctAnswerIds"]},
        )
        assert answered.status_code == 200
        assert answered.json()["userAnswers"] == {"0": first["correctAnswerIds"]}

        submitted = client.post("/v1/quiz/sessions/abc/submit")
        assert submitted.status_code == 200
        assert submitted.json()["correct"] is True
        assert submitted.json()["state"]["score"] == 1

        submitted = client.post("/v1/quiz/sessions/abc/submit")
        assert submitted.json()["correct"] is False
        assert submitted.json()["state"]["completed"] is True

        fetched = client.get("/v1/quiz/sessions/abc")
        assert fetched.json()["completed"] is True

        reset = client.post("/v1/quiz/sessions/abc/reset")
        assert reset.status_code == 200
        assert client.get("/v1/quiz/sessions/abc").json()["questions"] == []

    def test_second_start_is_rejected(self, client, catalog_payload):
        payload = {"restaurantData": catalog_payload, "configuration": {"questionCount": 2}}
        assert client.post("/v1/quiz/sessions/twice/start", json=payload).status_code == 200

        response = client.post("/v1/quiz/sessions/twice/start", json=payload)

        assert response.status_code == 400

    def test_answer_without_quiz(self, client):
        response = client.post("/v1/quiz/sessions/nobody/answer", json={"selectedAnswerIds": ["a"]})

        assert response.status_code == 400

    def test_submit_without_quiz(self, client):
        assert client.post("/v1/quiz/sessions/nobody/submit").status_code == 400

    def test_unknown_session_is_idle(self, client):
        body = client.get("/v1/quiz/sessions/fresh").json()

        assert body["inProgress"] is False
        assert body["completed"] is False

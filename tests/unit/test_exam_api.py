"""
API tests for the exam router.

Runs the FastAPI app in-process with the in-memory store.
"""

import random

import pytest
from fastapi.testclient import TestClient

from config import Settings
from src.api.main import create_app, status_for
from src.exam.errors import (
    ExamEngineError,
    InvalidBlueprint,
    SessionInvalid,
    StoreUnavailable,
)

ADMIN = {"X-User-Id": "1", "X-User-Role": "admin"}
STUDENT = {"X-User-Id": "42", "X-User-Role": "student"}
OTHER_STUDENT = {"X-User-Id": "43", "X-User-Role": "student"}


@pytest.fixture
def client(memory_store, clock, add_questions):
    add_questions(memory_store, "math", 6, difficulty="hard", correct="B")
    add_questions(memory_store, "physics", 2, correct="C")
    settings = Settings(log_file=None, log_level="WARNING")
    app = create_app(settings=settings, store=memory_store, clock=clock, rng=random.Random(11))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def exam_id(client):
    response = client.post("/exams", json={"title": "Finals", "duration_minutes": 45}, headers=ADMIN)
    assert response.status_code == 201
    return response.json()["exam_id"]


@pytest.fixture
def assigned_exam(client, exam_id):
    response = client.post(
        f"/exams/{exam_id}/questions",
        json={"blueprint": [{"subject": "math", "difficulty": "hard", "count": 3}, {"subject": "physics", "count": 1}]},
        headers=ADMIN,
    )
    assert response.status_code == 201
    return exam_id


class TestAuth:
    def test_missing_principal_is_401(self, client):
        assert client.post("/exams", json={"title": "x", "duration_minutes": 5}).status_code == 401

    def test_student_cannot_create_exam(self, client):
        response = client.post("/exams", json={"title": "x", "duration_minutes": 5}, headers=STUDENT)
        assert response.status_code == 403

    def test_admin_cannot_start_exam(self, client, assigned_exam):
        assert client.post(f"/exams/{assigned_exam}/start", headers=ADMIN).status_code == 403


class TestAssignment:
    def test_assign_reports_total_and_ids(self, client, exam_id, memory_store):
        response = client.post(
            f"/exams/{exam_id}/questions",
            json={"blueprint": [{"subject": "math", "count": 4}]},
            headers=ADMIN,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["total_questions"] == 4
        assert body["question_ids"] == memory_store.get_assigned_question_ids(exam_id)
        assert len(set(body["question_ids"])) == 4

    def test_missing_blueprint_is_validation_error(self, client, exam_id, memory_store):
        response = client.post(f"/exams/{exam_id}/questions", json={"blocks": []}, headers=ADMIN)
        assert response.status_code == 422
        assert memory_store.get_assigned_question_count(exam_id) == 0

    def test_reassign_is_conflict(self, client, assigned_exam):
        response = client.post(
            f"/exams/{assigned_exam}/questions",
            json={"blueprint": [{"subject": "math", "count": 1}]},
            headers=ADMIN,
        )
        assert response.status_code == 409
        assert response.json()["error"] == "AlreadyAssigned"

    def test_empty_blueprint_is_invalid(self, client, exam_id):
        response = client.post(f"/exams/{exam_id}/questions", json={"blueprint": []}, headers=ADMIN)
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidBlueprint"

    def test_insufficient_questions(self, client, exam_id):
        response = client.post(
            f"/exams/{exam_id}/questions",
            json={"blueprint": [{"subject": "physics", "count": 5}]},
            headers=ADMIN,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "InsufficientQuestions"

    def test_unknown_exam(self, client):
        response = client.post(
            "/exams/999/questions", json={"blueprint": [{"subject": "math", "count": 1}]}, headers=ADMIN
        )
        assert response.status_code == 404


class TestSessionFlow:
    def test_full_flow(self, client, assigned_exam, memory_store):
        start = client.post(f"/exams/{assigned_exam}/start", headers=STUDENT)
        assert start.status_code == 201
        body = start.json()
        assert len(body["questions"]) == 4
        assert all("correct_option" not in q for q in body["questions"])

        session_id = body["session_id"]
        for question in body["questions"][:3]:
            saved = client.post(
                "/exams/answer",
                json={"sessionId": session_id, "questionId": question["id"], "selected_option": "B"},
                headers=STUDENT,
            )
            assert saved.status_code == 200
            assert saved.json() == {"message": "Answer saved"}

        submitted = client.post("/exams/submit", json={"sessionId": session_id}, headers=STUDENT)
        assert submitted.status_code == 200
        assert submitted.json() == {
            "session_id": session_id,
            "score": 3,
            "total": 4,
            "percentage": 75.0,
            "no_questions": False,
        }

        again = client.post("/exams/submit", json={"sessionId": session_id}, headers=STUDENT)
        assert again.status_code == 403
        assert again.json()["error"] == "SessionInvalid"

    def test_resume_returns_200_with_same_session(self, client, assigned_exam):
        first = client.post(f"/exams/{assigned_exam}/start", headers=STUDENT).json()
        second = client.post(f"/exams/{assigned_exam}/start", headers=STUDENT)

        assert second.status_code == 200
        assert second.json()["session_id"] == first["session_id"]
        assert second.json()["message"] == "Exam already started"

    def test_start_unassigned_exam_is_conflict(self, client, exam_id):
        response = client.post(f"/exams/{exam_id}/start", headers=STUDENT)
        assert response.status_code == 409
        assert response.json()["error"] == "NotAssigned"

    def test_autosave_after_expiry_is_rejected(self, client, assigned_exam, clock):
        body = client.post(f"/exams/{assigned_exam}/start", headers=STUDENT).json()
        clock.advance(minutes=46)

        response = client.post(
            "/exams/answer",
            json={"sessionId": body["session_id"], "questionId": body["questions"][0]["id"], "selected_option": "A"},
            headers=STUDENT,
        )
        assert response.status_code == 403
        assert response.json()["error"] == "SessionInvalid"

    def test_autosave_on_other_students_session_is_rejected(self, client, assigned_exam):
        body = client.post(f"/exams/{assigned_exam}/start", headers=STUDENT).json()
        response = client.post(
            "/exams/answer",
            json={"sessionId": body["session_id"], "questionId": body["questions"][0]["id"], "selected_option": "A"},
            headers=OTHER_STUDENT,
        )
        assert response.status_code == 403

    def test_bad_option_is_400(self, client, assigned_exam):
        body = client.post(f"/exams/{assigned_exam}/start", headers=STUDENT).json()
        response = client.post(
            "/exams/answer",
            json={"sessionId": body["session_id"], "questionId": body["questions"][0]["id"], "selected_option": "Z"},
            headers=STUDENT,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidAnswer"

    def test_missing_fields_fail_validation(self, client):
        response = client.post("/exams/answer", json={"selected_option": "A"}, headers=STUDENT)
        assert response.status_code == 422

    def test_session_status(self, client, assigned_exam, clock):
        body = client.post(f"/exams/{assigned_exam}/start", headers=STUDENT).json()
        clock.advance(minutes=15)

        response = client.get(f"/exams/sessions/{body['session_id']}", headers=STUDENT)

        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert response.json()["seconds_remaining"] == 30 * 60


class TestHealth:
    def test_health_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_reports_store_failure(self, client, memory_store, monkeypatch):
        def broken():
            raise StoreUnavailable("database down")

        monkeypatch.setattr(memory_store, "ping", broken)
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


class TestStatusMapping:
    def test_known_kinds(self):
        assert status_for(InvalidBlueprint("x")) == 400
        assert status_for(SessionInvalid(SessionInvalid.EXPIRED)) == 403
        assert status_for(StoreUnavailable("x")) == 503

    def test_unknown_kind_is_500(self):
        assert status_for(ExamEngineError("boom")) == 500

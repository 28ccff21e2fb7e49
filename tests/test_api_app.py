"""End-to-end tests for the FastAPI application with offline providers."""

from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from courserag.api.app import create_app
from courserag.config import get_settings

ADMIN = {"X-User-Id": "1", "X-User-Role": "admin"}
STUDENT = {"X-User-Id": "2", "X-User-Role": "user"}
NOTES = " ".join(f"Note {i}: the mitochondria produce energy for the cell." for i in range(30)).encode("utf-8")


def create_test_client(tmp_path: Path, **overrides) -> TestClient:
    values = {
        "environment": "test",
        "data_dir": tmp_path,
        "database_url": f"sqlite:///{(tmp_path / 'api.db').as_posix()}",
        "chroma_persist_dir": tmp_path / "chroma",
        "embedding_provider": "hash",
        "embedding_dim": 8,
        "chat_provider": "template",
        "chunk_size": 200,
        "chunk_overlap": 40,
    }
    values.update(overrides)
    return TestClient(create_app(settings=get_settings(values)))


def _create_course(client: TestClient, **fields) -> int:
    payload = {"title": "Intro to Biology", "description": "Cells and energy"}
    payload.update(fields)
    response = client.post("/courses", json=payload, headers=ADMIN)
    assert response.status_code == 201
    return response.json()["id"]


def test_health_and_metrics_endpoints(tmp_path):
    with create_test_client(tmp_path) as client:
        health = client.get("/healthz")
        assert health.status_code == 200
        assert health.json()["status"] == "ok"
        assert client.head("/healthz").status_code == 200
        assert client.get("/livez").json() == {"status": "alive"}
        assert client.get("/healthz/ready").json() == {"status": "ready"}
        metrics = client.get("/metrics")
        assert metrics.status_code == 200
        assert "courserag_ingestion_duration_seconds" in metrics.text


def test_correlation_id_is_echoed(tmp_path):
    with create_test_client(tmp_path) as client:
        response = client.get("/livez", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Correlation-ID"] == "req-123"


def test_missing_identity_is_unauthorized(tmp_path):
    with create_test_client(tmp_path) as client:
        assert client.get("/courses/1").status_code == 401
        assert client.get("/courses/1", headers={"X-User-Id": "abc"}).status_code == 401


def test_student_cannot_use_admin_routes(tmp_path):
    with create_test_client(tmp_path) as client:
        response = client.post("/courses", json={"title": "Sneaky"}, headers=STUDENT)
        assert response.status_code == 403
        body = response.json()
        assert body["detail"] == "Administrator role required"
        assert body["correlation_id"]


def test_api_key_is_enforced_when_configured(tmp_path):
    with create_test_client(tmp_path, api_key="secret") as client:
        assert client.get("/courses/1", headers=STUDENT).status_code == 401
        headers = {**STUDENT, "X-API-Key": "secret"}
        assert client.get("/courses/1", headers=headers).status_code == 404


def test_upload_chat_and_delete_flow(tmp_path):
    with create_test_client(tmp_path) as client:
        course_id = _create_course(client)

        upload = client.post(
            f"/courses/{course_id}/rag-documents",
            files={"file": ("notes.txt", NOTES, "text/plain")},
            data={"title": "Lecture notes"},
            headers=ADMIN,
        )
        assert upload.status_code == 201, upload.text
        document_id = upload.json()["document_id"]
        assert upload.json()["chunks_processed"] > 1

        listed = client.get(f"/courses/{course_id}/rag-documents", headers=ADMIN).json()
        assert [(d["id"], d["title"]) for d in listed] == [(document_id, "Lecture notes")]

        reply = client.post(
            f"/courses/{course_id}/chat",
            json={"message": "What do mitochondria do?"},
            headers=STUDENT,
        )
        assert reply.status_code == 200
        assert reply.json() == {"response": "You asked: What do mitochondria do?"}

        history = client.get(f"/courses/{course_id}/chat", headers=STUDENT).json()
        assert [(m["role"], m["content"]) for m in history] == [
            ("user", "What do mitochondria do?"),
            ("assistant", "You asked: What do mitochondria do?"),
        ]
        assert client.get(f"/courses/{course_id}/chat", headers=ADMIN).json() == []

        deleted = client.delete(f"/courses/{course_id}/rag-documents/{document_id}", headers=ADMIN)
        assert deleted.status_code == 204
        again = client.delete(f"/courses/{course_id}/rag-documents/{document_id}", headers=ADMIN)
        assert again.status_code == 404


def test_ingest_by_url_and_clear_index(tmp_path):
    source = tmp_path / "reading.txt"
    source.write_bytes(NOTES)
    with create_test_client(tmp_path) as client:
        course_id = _create_course(client)

        response = client.post(
            f"/courses/{course_id}/rag-documents/url",
            json={"title": "Reading", "file_url": source.as_uri(), "mime_type": "text/plain"},
            headers=ADMIN,
        )
        assert response.status_code == 201, response.text

        cleared = client.delete(f"/courses/{course_id}/rag-index", headers=ADMIN)
        assert cleared.json() == {"course_id": course_id, "documents_removed": 1}
        assert client.get(f"/courses/{course_id}/rag-documents", headers=ADMIN).json() == []


def test_empty_document_is_unprocessable(tmp_path):
    source = tmp_path / "empty.txt"
    source.write_text("   ", encoding="utf-8")
    with create_test_client(tmp_path) as client:
        course_id = _create_course(client)
        response = client.post(
            f"/courses/{course_id}/rag-documents/url",
            json={"title": "Empty", "file_url": source.as_uri()},
            headers=ADMIN,
        )
        assert response.status_code == 422
        assert "No content" in response.json()["detail"]


def test_unreachable_document_is_unprocessable(tmp_path):
    with create_test_client(tmp_path) as client:
        course_id = _create_course(client)
        response = client.post(
            f"/courses/{course_id}/rag-documents/url",
            json={"title": "Gone", "file_url": (tmp_path / "gone.txt").as_uri()},
            headers=ADMIN,
        )
        assert response.status_code == 422


def test_upload_rejects_unsupported_and_empty_files(tmp_path):
    with create_test_client(tmp_path) as client:
        course_id = _create_course(client)
        image = client.post(
            f"/courses/{course_id}/rag-documents",
            files={"file": ("diagram.png", b"\x89PNG", "image/png")},
            headers=ADMIN,
        )
        assert image.status_code == 415
        empty = client.post(
            f"/courses/{course_id}/rag-documents",
            files={"file": ("blank.txt", b"", "text/plain")},
            headers=ADMIN,
        )
        assert empty.status_code == 400


def test_upload_to_unknown_course_is_not_found(tmp_path):
    with create_test_client(tmp_path) as client:
        response = client.post(
            "/courses/404/rag-documents",
            files={"file": ("notes.txt", NOTES, "text/plain")},
            headers=ADMIN,
        )
        assert response.status_code == 404


def test_ai_config_round_trip(tmp_path):
    with create_test_client(tmp_path) as client:
        course_id = _create_course(client)
        assert client.get(f"/courses/{course_id}/ai-config", headers=STUDENT).status_code == 404

        payload = {"system_prompt": "You are a patient tutor.", "temperature": 0.4, "max_tokens": 800}
        saved = client.put(f"/courses/{course_id}/ai-config", json=payload, headers=ADMIN)
        assert saved.status_code == 200
        updated = client.put(
            f"/courses/{course_id}/ai-config",
            json={**payload, "max_tokens": 900},
            headers=ADMIN,
        )
        assert updated.json()["max_tokens"] == 900

        fetched = client.get(f"/courses/{course_id}/ai-config", headers=STUDENT).json()
        assert fetched == {
            "course_id": course_id,
            "system_prompt": "You are a patient tutor.",
            "temperature": 0.4,
            "max_tokens": 900,
        }


def test_reference_documents(tmp_path):
    with create_test_client(tmp_path) as client:
        course_id = _create_course(client)
        created = client.post(
            f"/courses/{course_id}/documents",
            json={"title": "Syllabus", "document_url": "https://files.test/syllabus.pdf"},
            headers=ADMIN,
        )
        assert created.status_code == 201
        listed = client.get(f"/courses/{course_id}/documents", headers=STUDENT).json()
        assert [d["title"] for d in listed] == ["Syllabus"]
        assert client.get(f"/courses/{course_id}", headers=STUDENT).json()["title"] == "Intro to Biology"


def test_chat_for_unknown_course_is_not_found(tmp_path):
    with create_test_client(tmp_path) as client:
        response = client.post("/courses/999/chat", json={"message": "hello"}, headers=STUDENT)
        assert response.status_code == 404
        history = client.get("/courses/999/chat", headers=STUDENT).json()
        assert [m["content"] for m in history] == ["hello"]


def test_exam_score_endpoint(tmp_path):
    with create_test_client(tmp_path) as client:
        empty = client.post("/exams/score", json={"questions": [], "answers": {}}, headers=STUDENT)
        assert empty.json() == {"score": None}
        scored = client.post(
            "/exams/score",
            json={
                "questions": [{"id": 1, "correct_answer": "A"}, {"id": 2, "correct_answer": None}],
                "answers": {"1": "A", "2": "B"},
            },
            headers=STUDENT,
        )
        assert scored.json() == {"score": 50.0}

from __future__ import annotations

from fastapi.testclient import TestClient


def _assert_error_shape(res, *, error: str | None = None):
    data = res.json()
    assert isinstance(data, dict)
    assert isinstance(data.get("error"), str) and data["error"]
    assert isinstance(data.get("message"), str) and data["message"]
    if error is not None:
        assert data["error"] == error


def test_error_shape_401_missing_token(app):
    with TestClient(app) as c:
        res = c.get("/notifications")
    assert res.status_code == 401
    _assert_error_shape(res, error="UNAUTHORIZED")


def test_error_shape_404_application_not_found(client_for, candidate):
    with client_for(candidate) as c:
        res = c.get("/applications/999999")
    assert res.status_code == 404
    _assert_error_shape(res, error="NOT_FOUND")


def test_error_shape_409_duplicate_application(client_for, published_job, candidate):
    with client_for(candidate) as c:
        assert c.post("/applications", json={"job_id": published_job.id}).status_code == 201
        res = c.post("/applications", json={"job_id": published_job.id})
    assert res.status_code == 409
    _assert_error_shape(res, error="CONFLICT")


def test_error_shape_400_quota_exceeded(client_for, published_job, company, owner):
    with client_for(owner) as c:
        res = c.post("/jobs", json={"company_id": company.id, "title": "Second"})
    assert res.status_code == 400
    _assert_error_shape(res, error="QUOTA_EXCEEDED")


def test_error_shape_422_request_validation_error(client_for, candidate):
    with client_for(candidate) as c:
        res = c.post("/applications", json={"job_id": "not-a-number"})
    assert res.status_code == 422
    _assert_error_shape(res, error="VALIDATION_ERROR")
    body = res.json()
    assert isinstance(body.get("details"), dict)
    assert isinstance(body["details"].get("errors"), list)


def test_health(app):
    with TestClient(app) as c:
        assert c.get("/health").json() == {"status": "ok"}

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


def _get(app, token: str | None):
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    with TestClient(app) as c:
        return c.get("/notifications/unread-count", headers=headers)


def test_valid_access_token(app, owner, make_token):
    res = _get(app, make_token(owner.email))
    assert res.status_code == 200
    assert res.json() == {"unread": 0}


def test_email_claim_is_case_insensitive(app, owner, make_token):
    assert _get(app, make_token(owner.email.upper())).status_code == 200


def test_wrong_purpose_rejected(app, owner, make_token):
    res = _get(app, make_token(owner.email, purpose="email_verification"))
    assert res.status_code == 401
    assert res.json()["error"] == "UNAUTHORIZED"


def test_bad_signature_rejected(app, owner, make_token):
    assert _get(app, make_token(owner.email, secret="not-the-secret")).status_code == 401


def test_unknown_and_inactive_users_rejected(app, db_session, owner, make_token):
    assert _get(app, make_token("ghost@example.test")).status_code == 401

    owner.is_active = False
    db_session.commit()
    res = _get(app, make_token(owner.email))
    assert res.status_code == 401
    assert res.json()["message"] == "User is inactive"


def test_missing_header(app):
    res = _get(app, None)
    assert res.status_code == 401
    assert res.headers.get("www-authenticate") == "Bearer"


def test_blank_jwt_secret_fails_token_decoding(monkeypatch):
    from jobboard.core import config as app_config
    from jobboard.core.security import decode_token

    monkeypatch.setattr(app_config.settings, "JWT_SECRET", "   ")
    with pytest.raises(RuntimeError, match="JWT_SECRET must be set"):
        decode_token("anything")


def test_prod_settings_fail_fast_without_secrets(monkeypatch):
    from jobboard.core.config import Settings

    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("JWT_SECRET", "")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("DB_HOST", raising=False)
    with pytest.raises(RuntimeError):
        Settings()

"""
API endpoint tests for the Keygate application.

Tests cover:
- POST /token - token exchange and session cookie issue
- GET / and PUT / - key file access gated by session permissions
- Session expiry and sliding window over HTTP
- /health, /metrics, CORS preflight

The app runs with a fake-clock store so expiry is deterministic.
"""

import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from conftest import SESSION_TTL, exchange
from keygate.modules.auth import TokenTable, TokenTableError
from keygate.modules.config import ConfigModule


# =============================================================================
# Token exchange
# =============================================================================

def test_exchange_without_token(client):
    response = client.post("/token", content=b"")
    assert response.status_code == 400
    assert response.json() == {"error": "No Token Sent"}
    assert "sessionId" not in client.cookies


def test_exchange_unknown_token(client):
    response = client.post("/token", content=b"who-knows")
    assert response.status_code == 400
    assert response.json() == {"error": "Token Not Recognized"}
    assert "sessionId" not in client.cookies


def test_exchange_valid_token_sets_cookie(client, store):
    response = client.post("/token", content=b"writer-token\n")

    assert response.status_code == 200
    assert response.json() == {"message": "Session created"}
    set_cookie = response.headers["set-cookie"]
    assert "sessionId=" in set_cookie
    assert "HttpOnly" in set_cookie

    session_id = client.cookies.get("sessionId")
    assert store.get(session_id) == 6


def test_exchange_with_live_session_keeps_it(client, store):
    session_id = exchange(client, "reader-token")

    response = client.post("/token", content=b"writer-token")
    assert response.status_code == 200
    assert response.json() == {"message": "Session already valid"}
    assert client.cookies.get("sessionId") == session_id
    assert len(store) == 1


def test_exchange_with_stale_cookie_issues_new_session(client, clock):
    old_session = exchange(client, "reader-token")
    clock.advance(SESSION_TTL + 1)

    response = client.post("/token", content=b"writer-token")
    assert response.status_code == 200
    assert response.json() == {"message": "Session created"}
    assert client.cookies.get("sessionId") != old_session


# =============================================================================
# Session enforcement
# =============================================================================

def test_read_without_session(client):
    response = client.get("/")
    assert response.status_code == 401
    assert response.json() == {"message": "No sessionId sent"}


def test_read_with_unknown_session(client):
    client.cookies.set("sessionId", "not-a-session")
    response = client.get("/")
    assert response.status_code == 400
    assert response.json() == {"message": "sessionId not recognized"}


def test_reader_can_read(client):
    exchange(client, "reader-token")
    response = client.get("/")
    assert response.status_code == 200
    assert response.content == b"original-keys\n"
    assert response.headers["content-type"] == "application/octet-stream"


def test_reader_cannot_write(client, app_config):
    exchange(client, "reader-token")
    response = client.put("/", content=b"hijacked")
    assert response.status_code == 403
    assert response.json() == {"message": "Permission denied"}


def test_exchange_only_token_cannot_read(client):
    exchange(client, "exchange-token")
    assert client.get("/").status_code == 403


def test_zero_permission_session_is_valid_but_unauthorized(client):
    exchange(client, "empty-token")
    assert client.get("/").status_code == 403


def test_unsupported_method_is_never_authorized(client):
    exchange(client, "writer-token")
    assert client.delete("/").status_code == 403


def test_unknown_route_with_session(client):
    exchange(client, "reader-token")
    assert client.get("/nowhere").status_code == 404


# =============================================================================
# Key file
# =============================================================================

def test_writer_replaces_key_file_with_backup(client, app_config, tmp_path):
    exchange(client, "writer-token")

    response = client.put("/", content=b"new-keys")
    assert response.status_code == 200
    assert response.json() == {"message": "Key file updated"}

    backups = list((tmp_path / "ksv").glob("*.keys"))
    assert len(backups) == 1
    assert backups[0].read_bytes() == b"original-keys\n"

    response = client.get("/")
    assert response.content == b"new-keys"


def test_read_missing_key_file(client, tmp_path):
    (tmp_path / ".keys").unlink()
    exchange(client, "reader-token")

    response = client.get("/")
    assert response.status_code == 404


def test_backup_failure_returns_500(client, tmp_path):
    (tmp_path / "ksv").write_text("blocks the backup directory")
    exchange(client, "writer-token")

    response = client.put("/", content=b"new-keys")
    assert response.status_code == 500
    assert response.json() == {"message": "Failed to backup old key file"}
    assert (tmp_path / ".keys").read_bytes() == b"original-keys\n"


# =============================================================================
# Expiry over HTTP
# =============================================================================

def test_session_expires_after_ttl(client, clock):
    exchange(client, "reader-token")
    clock.advance(SESSION_TTL)

    response = client.get("/")
    assert response.status_code == 400


def test_expiry_found_on_access_is_counted(client, clock, app):
    before = REGISTRY.get_sample_value("keygate_sessions_expired_total") or 0.0
    exchange(client, "reader-token")
    clock.advance(SESSION_TTL)

    assert client.get("/").status_code == 400
    assert len(app.state.store) == 0

    # The background sweep may already be reporting it
    app.state.reaper.sweep()
    for _ in range(50):
        after = REGISTRY.get_sample_value("keygate_sessions_expired_total")
        if after - before == 1:
            break
        time.sleep(0.01)
    assert after - before == 1


def test_session_slides_while_used(client, clock):
    exchange(client, "reader-token")

    for _ in range(5):
        clock.advance(SESSION_TTL - 1)
        assert client.get("/").status_code == 200

    clock.advance(SESSION_TTL)
    assert client.get("/").status_code == 400


# =============================================================================
# Probes, metrics, CORS
# =============================================================================

def test_health_needs_no_session(client):
    exchange(client, "reader-token")
    client.cookies.clear()

    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "sessions": 1}


def test_metrics_needs_no_session(client):
    client.get("/")  # rejected, still counted
    response = client.get("/metrics")

    assert response.status_code == 200
    body = response.text
    assert "keygate_http_requests_total" in body
    assert 'path="/",status="401"' in body
    assert "keygate_http_request_duration_seconds_bucket" in body


def test_cors_preflight(client):
    response = client.options(
        "/",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "PUT",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert response.headers["access-control-allow-credentials"] == "true"
    assert "PUT" in response.headers["access-control-allow-methods"]


def test_cors_headers_on_rejection(client):
    response = client.get("/", headers={"Origin": "http://localhost:3000"})
    assert response.status_code == 401
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


# =============================================================================
# Application wiring
# =============================================================================

def test_app_state_wiring(app, store):
    assert app.state.store is store
    assert app.state.session_module.store is store
    assert len(app.state.token_table) == 4


def test_reaper_runs_with_lifespan(app):
    assert app.state.reaper.running is False
    with TestClient(app):
        assert app.state.reaper.running is True
    assert app.state.reaper.running is False


def test_create_app_requires_token_source(tmp_path):
    from keygate.main import create_app

    config = ConfigModule(
        overrides={"token_file": str(tmp_path / "missing.json"), "tokens": None}
    )
    with pytest.raises(TokenTableError):
        create_app(config)


def test_create_app_with_explicit_token_table(app_config):
    from keygate.main import create_app

    app = create_app(app_config, token_table=TokenTable({"direct": 2}))
    with TestClient(app) as test_client:
        exchange(test_client, "direct")
        assert test_client.get("/").status_code == 200


def test_module_level_app_is_built_on_first_access(app_config):
    import keygate.main

    with patch("keygate.main.get_config", return_value=app_config):
        try:
            app = keygate.main.app
            assert app.state.config is app_config
            assert keygate.main.app is app

            with TestClient(app) as test_client:
                exchange(test_client, "reader-token")
                assert test_client.get("/").status_code == 200
        finally:
            vars(keygate.main).pop("app", None)


def test_module_has_no_other_lazy_attributes():
    import keygate.main

    with pytest.raises(AttributeError):
        keygate.main.not_an_app

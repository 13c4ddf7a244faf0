"""
Shared pytest fixtures for Keygate tests.

This module provides common fixtures including:
- FakeClock: deterministic time source for TTL and expiry tests
- TTL store and session module wired to the fake clock
- FastAPI test client backed by temp token/key files
"""

import json
import os
import sys
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from keygate.modules.config import ConfigModule
from keygate.modules.session import SessionModule
from keygate.modules.storage import TTLStore

SESSION_TTL = 300

TEST_TOKENS = {
    "reader-token": 2,
    "writer-token": 6,
    "exchange-token": 1,
    "empty-token": 0,
}


# =============================================================================
# Clock and store
# =============================================================================

@dataclass
class FakeClock:
    """Monotonic clock that only moves when told to."""
    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    """TTL store with the default session TTL and a fake clock."""
    return TTLStore(default_ttl=SESSION_TTL, clock=clock)


@pytest.fixture
def session_module(store):
    return SessionModule(store)


# =============================================================================
# Application
# =============================================================================

@pytest.fixture
def app_config(tmp_path):
    """Config pointing at temp token, key and backup locations."""
    token_file = tmp_path / "btoken.json"
    token_file.write_text(json.dumps(TEST_TOKENS))

    key_file = tmp_path / ".keys"
    key_file.write_bytes(b"original-keys\n")

    return ConfigModule(
        overrides={
            "session_ttl": SESSION_TTL,
            "sweep_interval": 0.05,
            "token_file": str(token_file),
            "tokens": None,
            "key_file": str(key_file),
            "backup_dir": str(tmp_path / "ksv"),
            "cors_origins": ["http://localhost:3000"],
            "cookie_name": "sessionId",
            "cookie_secure": False,
        }
    )


@pytest.fixture
def app(app_config, store):
    from keygate.main import create_app

    return create_app(app_config, store=store)


@pytest.fixture
def client(app):
    """TestClient running the app lifespan (expiry reaper included)."""
    with TestClient(app) as test_client:
        yield test_client


def exchange(client: TestClient, token: str) -> str:
    """Trade a token for a fresh session cookie and return the session ID."""
    client.cookies.clear()
    response = client.post("/token", content=token)
    assert response.status_code == 200, response.text
    session_id = client.cookies.get("sessionId")
    assert session_id
    return session_id


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: Tests that wait on the real clock"
    )

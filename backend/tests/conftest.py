"""
Pytest configuration & fixtures for the RxSafe backend tests.

Key design decisions:
  - Uses sqlite:///:memory: for speed and isolation.
  - The Ollama client is real, but its requests.Session is a MagicMock, so
    no test ever touches the network; tests script the HTTP replies.
  - Rate limiting is disabled so request-heavy tests never hit 429.
"""

import json
import os
import sys
import tempfile
import uuid
from unittest import mock

import pytest
import requests

# ── 1. Ensure backend package is importable ──
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# ── 2. Set test environment BEFORE anything else ──
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["FLASK_SECRET_KEY"] = "test-secret-key"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["APP_ENV"] = "testing"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["OLLAMA_BASE_URL"] = "http://ollama.test"
os.environ["OLLAMA_MODEL"] = "qwen2.5:1.5b"
os.environ["OLLAMA_VISION_MODEL"] = "llava:latest"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="rxsafe-uploads-")

# ── 3. NOW safe to import application modules ──
from app.main import create_app
from app.database import db as _db
from app.services.ollama_client import OllamaClient


SAMPLE_ANALYSIS = {
    "medication_schedule": [
        {"medicine": "Aspirin", "dosage": "100mg", "timing": "twice daily", "instructions": "after meals"}
    ],
    "harmful_combinations": [
        {"medicines": ["Aspirin", "Ibuprofen"], "risk": "bleeding", "recommendation": "avoid together"}
    ],
    "overdose_warnings": [
        {"medicine": "Aspirin", "warning": "do not exceed dose", "max_daily_dose": "4g"}
    ],
    "side_effects": {
        "common": [{"medicine": "Aspirin", "effects": ["nausea", "heartburn"]}],
        "serious": [{"medicine": "Aspirin", "effects": ["GI bleeding"], "action_required": "seek care"}],
    },
    "food_interactions": [
        {"medicine": "Aspirin", "food_item": "alcohol", "interaction": "stomach irritation", "recommendation": "avoid"}
    ],
    "lifestyle_advice": [
        {"medicine": "Aspirin", "advice": "take with water", "restrictions": ["no alcohol"]}
    ],
    "general_tips": ["Keep a medication list."],
}


def make_response(status=200, payload=None, text=None, url="http://ollama.test/api/generate"):
    """Build a real requests.Response carrying `payload` as its JSON body."""
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    if payload is not None:
        resp._content = json.dumps(payload).encode()
    else:
        resp._content = (text or "").encode()
    resp.encoding = "utf-8"
    return resp


# ═══════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════

@pytest.fixture(scope="session")
def ollama_client():
    """Process-wide client, as create_app() would own it, over a mocked session."""
    return OllamaClient(base_url="http://ollama.test", session=mock.MagicMock())


@pytest.fixture(scope="session")
def app(ollama_client):
    """Create application for testing."""
    application = create_app(ollama_client=ollama_client)
    application.config["TESTING"] = True
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables once for the test session."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture
def ollama(ollama_client):
    """The shared client with its mocked session reset for this test."""
    ollama_client.session.reset_mock(return_value=True, side_effect=True)
    return ollama_client


@pytest.fixture
def client(app, _setup_db, ollama):
    """Flask test client with database ready."""
    with app.test_client() as c:
        with app.app_context():
            yield c


@pytest.fixture
def user_credentials():
    return {
        "name": "Test Patient",
        "email": f"patient-{uuid.uuid4().hex[:8]}@example.com",
        "password": "TestPass123",
    }


@pytest.fixture
def auth_headers(client, user_credentials):
    """Register a fresh user and return valid auth headers."""
    resp = client.post("/auth/register", json=user_credentials)
    token = resp.get_json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}

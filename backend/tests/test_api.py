"""
API endpoint tests – verifies all REST endpoints return correct structure.
Covers health, auth, profile, prescription analysis (text and image),
history, and the error body contract.
"""

import io
import json
import os
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import requests

from app.config import Config
from app.models.models import AuditLog
from conftest import SAMPLE_ANALYSIS, make_response


def _ok_analysis():
    return make_response(200, {"response": json.dumps(SAMPLE_ANALYSIS)})


def _upload_files():
    return set(os.listdir(Config.UPLOAD_DIR))


class TestHealthEndpoint:
    def test_health_check(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "ok"
        assert "timestamp" in data

    def test_ollama_health_up(self, client, ollama):
        ollama.session.get.return_value = make_response(200, {"models": []})
        ollama.session.request.return_value = make_response(
            200, {"models": [{"name": "qwen2.5:1.5b"}]}, url="http://ollama.test/api/tags"
        )
        data = client.get("/health/ollama").get_json()
        assert data["ollama"] is True
        assert data["model"] == "qwen2.5:1.5b"
        assert data["model_available"] is True
        assert data["vision_model_available"] is False

    def test_ollama_health_down(self, client, ollama):
        ollama.session.get.side_effect = requests.exceptions.ConnectionError()
        resp = client.get("/health/ollama")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["ollama"] is False
        assert data["model_available"] is False
        ollama.session.request.assert_not_called()

    def test_ollama_health_malformed_tags(self, client, ollama):
        ollama.session.get.return_value = make_response(200, {"models": None})
        ollama.session.request.return_value = make_response(
            200, {"models": None}, url="http://ollama.test/api/tags"
        )
        resp = client.get("/health/ollama")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["ollama"] is True
        assert data["model_available"] is False
        assert data["vision_model_available"] is False

    def test_unknown_route(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Route not found"


# ════════════════════════════════════════════
# AUTH
# ════════════════════════════════════════════

class TestAuthEndpoints:
    def test_register_success(self, client, user_credentials):
        resp = client.post("/auth/register", json={**user_credentials, "city": "Pune"})
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["message"] == "User registered successfully"
        assert data["data"]["token"]
        user = data["data"]["user"]
        assert user["email"] == user_credentials["email"]
        assert user["city"] == "Pune"
        assert "password_hash" not in user

    def test_register_missing_fields(self, client):
        resp = client.post("/auth/register", json={"email": "x@x.com"})
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["kind"] == "validation_error"
        assert "Name is required" in data["details"]

    def test_register_non_string_name(self, client, user_credentials):
        resp = client.post("/auth/register", json={**user_credentials, "name": 123})
        assert resp.status_code == 400
        assert "Name is required" in resp.get_json()["details"]

    def test_register_non_string_email(self, client, user_credentials):
        resp = client.post("/auth/register", json={**user_credentials, "email": ["a@b.com"]})
        assert resp.status_code == 400
        assert "Invalid email format" in resp.get_json()["details"]

    def test_login_non_string_email(self, client):
        resp = client.post("/auth/login", json={"email": {"x": 1}, "password": "Secret123"})
        assert resp.status_code == 400

    def test_register_array_body(self, client):
        resp = client.post("/auth/register", json=["not", "an", "object"])
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"

    def test_register_short_password(self, client, user_credentials):
        resp = client.post("/auth/register", json={**user_credentials, "password": "abc"})
        assert resp.status_code == 400

    def test_register_duplicate_email(self, client, user_credentials):
        """Duplicate email returns 409."""
        client.post("/auth/register", json=user_credentials)
        resp = client.post("/auth/register", json=user_credentials)
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "User with this email already exists"

    def test_login_success(self, client, user_credentials):
        client.post("/auth/register", json=user_credentials)
        resp = client.post("/auth/login", json={
            "email": user_credentials["email"].upper(),
            "password": user_credentials["password"],
        })
        assert resp.status_code == 200
        assert resp.get_json()["data"]["token"]

    def test_login_wrong_password(self, client, user_credentials):
        client.post("/auth/register", json=user_credentials)
        resp = client.post("/auth/login", json={
            "email": user_credentials["email"],
            "password": "WrongPass",
        })
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid email or password"

    def test_protected_route_no_token(self, client):
        resp = client.get("/prescription/history")
        assert resp.status_code == 401
        assert resp.get_json()["kind"] == "unauthorized"

    def test_protected_route_bad_token(self, client):
        resp = client.get("/prescription/history", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401

    def test_expired_token(self, client, user_credentials):
        user_id = client.post("/auth/register", json=user_credentials).get_json()["data"]["user"]["id"]
        token = pyjwt.encode(
            {"user_id": user_id, "exp": datetime.now(timezone.utc) - timedelta(hours=1)},
            Config.JWT_SECRET,
            algorithm="HS256",
        )
        resp = client.get("/profile", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Token has expired."

    def test_password_never_audited(self, client, user_credentials):
        client.post("/auth/register", json=user_credentials)
        entry = AuditLog.query.filter_by(endpoint="/auth/register").order_by(AuditLog.id.desc()).first()
        assert entry is not None
        assert user_credentials["password"] not in (entry.request_body or "")
        assert "token" not in (entry.response_summary or "")


# ════════════════════════════════════════════
# PROFILE
# ════════════════════════════════════════════

class TestProfileEndpoints:
    def test_get_profile(self, client, auth_headers, user_credentials):
        resp = client.get("/profile", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["email"] == user_credentials["email"]

    def test_update_profile(self, client, auth_headers):
        resp = client.put("/profile", headers=auth_headers, json={
            "phone": "+91 98765 43210",
            "dateOfBirth": "1990-05-17",
            "zipCode": "411001",
        })
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["phone"] == "+91 98765 43210"
        assert data["dateOfBirth"] == "1990-05-17"
        assert data["zipCode"] == "411001"

    def test_update_profile_empty_name(self, client, auth_headers):
        resp = client.put("/profile", headers=auth_headers, json={"name": "  "})
        assert resp.status_code == 400

    def test_update_profile_bad_date(self, client, auth_headers):
        resp = client.put("/profile", headers=auth_headers, json={"dateOfBirth": "yesterday"})
        assert resp.status_code == 400


# ════════════════════════════════════════════
# PRESCRIPTION ANALYSIS
# ════════════════════════════════════════════

class TestAnalyzeEndpoint:
    def test_analyze_success(self, client, auth_headers, ollama):
        ollama.session.request.return_value = _ok_analysis()
        resp = client.post("/prescription/analyze", headers=auth_headers,
                           json={"rawText": "Take Aspirin 100mg twice daily"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"] == "Prescription analyzed successfully"
        assert body["data"]["analysis"] == SAMPLE_ANALYSIS
        assert body["data"]["rawText"] == "Take Aspirin 100mg twice daily"
        assert body["data"]["id"]

    def test_analyze_missing_text(self, client, auth_headers, ollama):
        resp = client.post("/prescription/analyze", headers=auth_headers, json={"rawText": "   "})
        assert resp.status_code == 400
        assert "Prescription text is required" in resp.get_json()["details"]
        ollama.session.request.assert_not_called()

    def test_analyze_array_body(self, client, auth_headers, ollama):
        resp = client.post("/prescription/analyze", headers=auth_headers, json=["Aspirin"])
        assert resp.status_code == 400
        ollama.session.request.assert_not_called()

    def test_analyze_text_too_long(self, client, auth_headers, ollama):
        resp = client.post("/prescription/analyze", headers=auth_headers, json={"rawText": "x" * 15001})
        assert resp.status_code == 400
        ollama.session.request.assert_not_called()

    def test_analyze_service_down(self, client, auth_headers, ollama):
        ollama.session.request.side_effect = requests.exceptions.ConnectionError("refused")
        resp = client.post("/prescription/analyze", headers=auth_headers, json={"rawText": "Aspirin"})
        assert resp.status_code == 503
        data = resp.get_json()
        assert data["error"].startswith("Failed to analyze prescription: ")
        assert data["kind"] == "service_unavailable"
        assert data["suggestion"]

    def test_analyze_model_missing(self, client, auth_headers, ollama):
        ollama.session.request.return_value = make_response(404, {"error": "model not found"})
        resp = client.post("/prescription/analyze", headers=auth_headers, json={"rawText": "Aspirin"})
        assert resp.status_code == 404
        data = resp.get_json()
        assert data["kind"] == "model_not_found"
        assert "qwen2.5:1.5b" in data["error"]

    def test_analyze_empty_model_output(self, client, auth_headers, ollama):
        ollama.session.request.return_value = make_response(200, {"response": ""})
        resp = client.post("/prescription/analyze", headers=auth_headers, json={"rawText": "Aspirin"})
        assert resp.status_code == 502
        assert resp.get_json()["kind"] == "empty_response"

    def test_analyze_garbled_output_returns_default(self, client, auth_headers, ollama):
        ollama.session.request.return_value = make_response(200, {"response": "I cannot help."})
        resp = client.post("/prescription/analyze", headers=auth_headers, json={"rawText": "Aspirin"})
        assert resp.status_code == 200
        analysis = resp.get_json()["data"]["analysis"]
        assert analysis["side_effects"] == {"common": [], "serious": []}
        assert len(analysis["general_tips"]) == 1


class TestUploadEndpoint:
    def test_upload_success(self, client, auth_headers, ollama):
        ollama.session.request.side_effect = [
            make_response(200, {"message": {"content": " Aspirin 100mg twice daily "}}),
            _ok_analysis(),
        ]
        before = _upload_files()
        resp = client.post(
            "/prescription/upload",
            headers=auth_headers,
            data={"prescriptionImage": (io.BytesIO(b"fake png"), "my rx.png")},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["extractedText"] == "Aspirin 100mg twice daily"
        assert data["analysis"] == SAMPLE_ANALYSIS
        assert data["uploadedImagePath"].endswith("my_rx.png")
        assert len(_upload_files() - before) == 1

    def test_upload_vision_unavailable_cleans_up(self, client, auth_headers, ollama):
        ollama.session.request.side_effect = requests.exceptions.ConnectionError("refused")
        before = _upload_files()
        resp = client.post(
            "/prescription/upload",
            headers=auth_headers,
            data={"prescriptionImage": (io.BytesIO(b"fake png"), "rx.jpg")},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 503
        data = resp.get_json()
        assert data["kind"] == "manual_entry_required"
        assert data["suggestion"]
        assert _upload_files() == before

    def test_upload_missing_file(self, client, auth_headers):
        resp = client.post("/prescription/upload", headers=auth_headers, data={},
                           content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_upload_rejects_non_image(self, client, auth_headers, ollama):
        resp = client.post(
            "/prescription/upload",
            headers=auth_headers,
            data={"prescriptionImage": (io.BytesIO(b"%PDF"), "rx.pdf")},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
        ollama.session.request.assert_not_called()


class TestHistoryEndpoints:
    def test_history_lists_own_prescriptions(self, client, auth_headers, ollama):
        ollama.session.request.return_value = _ok_analysis()
        client.post("/prescription/analyze", headers=auth_headers, json={"rawText": "Aspirin"})

        resp = client.get("/prescription/history", headers=auth_headers)
        assert resp.status_code == 200
        history = resp.get_json()["data"]
        assert len(history) == 1
        assert history[0]["analysis"] == SAMPLE_ANALYSIS

    def test_get_by_id(self, client, auth_headers, ollama):
        ollama.session.request.return_value = _ok_analysis()
        created = client.post("/prescription/analyze", headers=auth_headers,
                              json={"rawText": "Aspirin"}).get_json()["data"]

        resp = client.get(f"/prescription/{created['id']}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["id"] == created["id"]

    def test_get_by_id_not_found(self, client, auth_headers):
        resp = client.get("/prescription/does-not-exist", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Prescription not found"

    def test_other_users_prescription_hidden(self, client, auth_headers, ollama):
        ollama.session.request.return_value = _ok_analysis()
        created = client.post("/prescription/analyze", headers=auth_headers,
                              json={"rawText": "Aspirin"}).get_json()["data"]

        other = client.post("/auth/register", json={
            "name": "Other", "email": "other-patient@example.com", "password": "Secret123",
        }).get_json()["data"]["token"]
        resp = client.get(f"/prescription/{created['id']}", headers={"Authorization": f"Bearer {other}"})
        assert resp.status_code == 404

"""
Authentication middleware – JWT bearer tokens.
/prescription/* and /profile routes require a valid token; /auth/* and
/health stay public.
"""

from flask import request, g, jsonify
import jwt as pyjwt

from app.config import Config
from app.database import db
from app.models.models import User

# Routes that require authentication
PROTECTED_PREFIXES = ("/prescription", "/profile")


def jwt_required_middleware():
    """Before-request hook: validates JWT bearer token."""
    g.current_user = None
    if request.method == "OPTIONS":
        return None

    path = request.path
    if not any(path.startswith(p) for p in PROTECTED_PREFIXES):
        return None

    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        return jsonify({"error": "Authorization header is required", "kind": "unauthorized"}), 401

    token = auth_header[7:] if auth_header.startswith("Bearer ") else auth_header
    if not token.strip():
        return jsonify({"error": "Token is required", "kind": "unauthorized"}), 401

    try:
        payload = pyjwt.decode(token, Config.JWT_SECRET, algorithms=["HS256"])
    except pyjwt.ExpiredSignatureError:
        return jsonify({"error": "Token has expired.", "kind": "unauthorized"}), 401
    except pyjwt.InvalidTokenError:
        return jsonify({"error": "Invalid or expired token", "kind": "unauthorized"}), 401

    user = db.session.get(User, payload.get("user_id"))
    if not user:
        return jsonify({"error": "Unauthorized", "kind": "unauthorized"}), 401

    g.current_user = user
    return None


def get_current_user() -> User:
    """Convenience accessor for the authenticated user."""
    return getattr(g, "current_user", None)

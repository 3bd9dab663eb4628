"""
Authentication routes – user registration and login.
Returns JWT tokens for authenticated sessions.
"""

import re
from datetime import datetime, timedelta, timezone
from flask import Blueprint, request, jsonify
import bcrypt
import jwt as pyjwt

from app.config import Config
from app.database import db
from app.errors import ConflictError, ValidationError
from app.models.models import User
from app.routes.profile import PROFILE_FIELDS, apply_profile_fields

auth_bp = Blueprint("auth", __name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def _validate_credentials(data: dict, registering: bool) -> list[str]:
    errors = []
    name = data.get("name")
    if registering and (not isinstance(name, str) or not name.strip()):
        errors.append("Name is required")
    email = data.get("email")
    if not isinstance(email, str) or not _EMAIL_RE.match(email.strip()):
        errors.append("Invalid email format")
    password = data.get("password") or ""
    if not isinstance(password, str) or not password:
        errors.append("Password is required")
    elif registering and len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return errors


@auth_bp.route("/register", methods=["POST"])
def register():
    """Register a new user account."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    errors = _validate_credentials(data, registering=True)
    if errors:
        raise ValidationError("Validation error", details=errors)

    email = data["email"].strip().lower()
    if User.query.filter_by(email=email).first():
        raise ConflictError("User with this email already exists")

    pw_hash = bcrypt.hashpw(data["password"].encode(), bcrypt.gensalt(rounds=10)).decode()

    user = User(name=data["name"].strip(), email=email, password_hash=pw_hash)
    apply_profile_fields(user, {k: v for k, v in data.items() if k in PROFILE_FIELDS and k != "name"})
    db.session.add(user)
    db.session.commit()

    return jsonify({
        "message": "User registered successfully",
        "data": {"user": user.to_dict(include_timestamps=False), "token": _issue_token(user)},
    }), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate a user and return a JWT."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    errors = _validate_credentials(data, registering=False)
    if errors:
        raise ValidationError("Validation error", details=errors)

    user = User.query.filter_by(email=data["email"].strip().lower()).first()
    if not user or not bcrypt.checkpw(data["password"].encode(), user.password_hash.encode()):
        return jsonify({"error": "Invalid email or password", "kind": "unauthorized"}), 401

    return jsonify({
        "message": "Login successful",
        "data": {"user": user.to_dict(include_timestamps=False), "token": _issue_token(user)},
    }), 200


def _issue_token(user: User) -> str:
    payload = {
        "user_id": user.id,
        "email": user.email,
        "exp": datetime.now(timezone.utc) + timedelta(hours=Config.JWT_EXPIRES_HOURS),
        "iat": datetime.now(timezone.utc),
    }
    return pyjwt.encode(payload, Config.JWT_SECRET, algorithm="HS256")

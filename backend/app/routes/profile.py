"""
Profile routes – read and partially update the authenticated user's profile.
"""

from datetime import date
from flask import Blueprint, request, jsonify

from app.database import db
from app.errors import NotFoundError, ValidationError
from app.middleware.auth_middleware import get_current_user

profile_bp = Blueprint("profile", __name__)

# request key -> model attribute
PROFILE_FIELDS = {
    "name": "name",
    "phone": "phone",
    "dateOfBirth": "date_of_birth",
    "address": "address",
    "city": "city",
    "state": "state",
    "zipCode": "zip_code",
    "country": "country",
}


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValidationError("Validation error", details=["dateOfBirth must be an ISO date (YYYY-MM-DD)"])


def apply_profile_fields(user, data: dict) -> None:
    """Copy supplied profile fields onto `user`.

    A present-but-empty optional field clears it; `name` is only replaced
    by a non-empty value.
    """
    for key, attr in PROFILE_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if value is not None and not isinstance(value, str):
            raise ValidationError("Validation error", details=[f"{key} must be a string"])
        value = (value or "").strip()

        if attr == "name":
            if value:
                user.name = value
        elif attr == "date_of_birth":
            user.date_of_birth = _parse_date(value) if value else None
        else:
            setattr(user, attr, value or None)


@profile_bp.route("", methods=["GET"])
def get_profile():
    user = get_current_user()
    if not user:
        raise NotFoundError("User not found")
    return jsonify({"message": "Profile retrieved successfully", "data": user.to_dict()}), 200


@profile_bp.route("", methods=["PUT"])
def update_profile():
    """
    Update the caller's profile.
    Body: any subset of {name, phone, dateOfBirth, address, city, state, zipCode, country}
    """
    user = get_current_user()
    if not user:
        raise NotFoundError("User not found")

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    if "name" in data and not str(data.get("name") or "").strip():
        raise ValidationError("Validation error", details=["Name is required"])

    apply_profile_fields(user, data)
    db.session.commit()
    return jsonify({"message": "Profile updated successfully", "data": user.to_dict()}), 200

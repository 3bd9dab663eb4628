"""
Prescription analysis routes.
Accepts typed prescription text or a prescription photo and returns the
stored record with its safety analysis (schedule, interactions, overdose
warnings, side effects, food and lifestyle advice).

This is an INFORMATION tool, not a clinical approval system.
"""

import logging
import os
import uuid
from pathlib import Path

from flask import Blueprint, request, jsonify
from werkzeug.utils import secure_filename

from app.config import Config
from app.errors import NotFoundError, ValidationError
from app.extensions import get_ollama_client, get_vision_extractor, limiter
from app.middleware.auth_middleware import get_current_user
from app.services.prescription_service import (
    analyze_prescription,
    analyze_prescription_image,
    get_prescription,
    get_prescription_history,
)

logger = logging.getLogger("rxsafe.routes.prescription")

prescription_bp = Blueprint("prescription", __name__)

MAX_TEXT_LENGTH = 15000
ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "webp", "gif", "bmp", "tif", "tiff"}
IMAGE_FIELD = "prescriptionImage"


def _allowed_image(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_IMAGE_EXTENSIONS


@prescription_bp.route("/analyze", methods=["POST"])
@limiter.limit(Config.RATE_LIMIT_ANALYZE)
def analyze():
    """
    Analyze typed prescription text.

    Body: {
        "rawText": "Take Aspirin 100mg twice daily",
        "uploadedImagePath": "optional reference to a stored image"
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    raw_text = data.get("rawText")
    image_ref = data.get("uploadedImagePath")

    if not isinstance(raw_text, str) or not raw_text.strip():
        raise ValidationError("Validation error", details=["Prescription text is required"])
    if len(raw_text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"Prescription text too long (max {MAX_TEXT_LENGTH:,} characters).")
    if image_ref is not None and not isinstance(image_ref, str):
        raise ValidationError("Validation error", details=["uploadedImagePath must be a string"])

    result = analyze_prescription(
        get_current_user().id, raw_text, image_ref, client=get_ollama_client()
    )
    return jsonify({"message": "Prescription analyzed successfully", "data": result}), 200


@prescription_bp.route("/upload", methods=["POST"])
@limiter.limit(Config.RATE_LIMIT_ANALYZE)
def upload():
    """
    Upload a prescription photo, extract its text with the vision model,
    then analyze it. Multipart field: prescriptionImage.
    """
    file = request.files.get(IMAGE_FIELD)
    if file is None or not file.filename:
        raise ValidationError("No image file provided")
    if not _allowed_image(file.filename):
        raise ValidationError(
            f"Only image files are allowed ({', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))})."
        )

    upload_dir = Path(Config.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    saved_path = upload_dir / f"{uuid.uuid4().hex}_{secure_filename(file.filename)}"
    file.save(saved_path)
    logger.info("Stored upload %s", saved_path.name)

    try:
        result = analyze_prescription_image(
            get_current_user().id,
            str(saved_path),
            os.path.relpath(saved_path, Path.cwd()),
            client=get_ollama_client(),
            extractor=get_vision_extractor(),
        )
    except Exception:
        saved_path.unlink(missing_ok=True)
        logger.info("Removed upload %s after failed analysis", saved_path.name)
        raise

    return jsonify({"message": "Prescription image analyzed successfully", "data": result}), 200


@prescription_bp.route("/history", methods=["GET"])
def history():
    history = get_prescription_history(get_current_user().id)
    return jsonify({"message": "Prescription history retrieved successfully", "data": history}), 200


@prescription_bp.route("/<prescription_id>", methods=["GET"])
def get_one(prescription_id):
    record = get_prescription(prescription_id, get_current_user().id)
    if record is None:
        raise NotFoundError("Prescription not found")
    return jsonify({"message": "Prescription retrieved successfully", "data": record}), 200

"""
RxSafe – Flask Application Factory
Wires config, extensions, middleware, blueprints and the shared Ollama client.
"""

import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from app.config import Config
from app.database import db
from app.errors import RxSafeError
from app.extensions import (
    OLLAMA_CLIENT_KEY,
    VISION_EXTRACTOR_KEY,
    get_ollama_client,
    limiter,
)
from app.routes.auth import auth_bp
from app.routes.prescription import prescription_bp
from app.routes.profile import profile_bp
from app.middleware.auth_middleware import jwt_required_middleware
from app.middleware.audit_logger import audit_after_request
from app.services.ollama_client import OllamaClient
from app.services.vision_service import VisionExtractor

logger = logging.getLogger("rxsafe.app")


def configure_logging(level: str = Config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_app(ollama_client: OllamaClient | None = None) -> Flask:
    Config.validate()
    configure_logging()

    app = Flask(__name__)
    app.config["SECRET_KEY"] = Config.FLASK_SECRET_KEY
    app.config["SQLALCHEMY_DATABASE_URI"] = Config.DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["DEBUG"] = Config.DEBUG
    app.config["MAX_CONTENT_LENGTH"] = Config.MAX_UPLOAD_MB * 1024 * 1024
    app.config["RATELIMIT_ENABLED"] = Config.RATE_LIMIT_ENABLED
    app.config["RATELIMIT_STORAGE_URI"] = "memory://"

    # Extensions
    CORS(app, origins=Config.CORS_ORIGIN, supports_credentials=True)
    limiter.init_app(app)
    db.init_app(app)

    # One pooled client per process, shared by every request thread.
    client = ollama_client or OllamaClient()
    app.extensions[OLLAMA_CLIENT_KEY] = client
    app.extensions[VISION_EXTRACTOR_KEY] = VisionExtractor(client)

    # Create tables if they don't already exist
    with app.app_context():
        from app.models import models as _models  # noqa: F401 – ensure all models are registered
        db.create_all()

    # Middleware
    app.before_request(jwt_required_middleware)
    app.after_request(audit_after_request)

    # Blueprints
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(prescription_bp, url_prefix="/prescription")
    app.register_blueprint(profile_bp, url_prefix="/profile")

    _register_error_handlers(app)

    # Health checks
    @app.route("/health")
    @limiter.exempt
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.route("/health/ollama")
    @limiter.exempt
    def health_ollama():
        ollama = get_ollama_client()
        reachable = ollama.health_check()
        return {
            "ollama": reachable,
            "model": ollama.model,
            "model_available": reachable and ollama.verify_model_available(),
            "vision_model": ollama.vision_model,
            "vision_model_available": reachable and ollama.verify_model_available(ollama.vision_model),
        }

    logger.info(
        "RxSafe started (env=%s, ollama=%s, model=%s, vision_model=%s)",
        Config.APP_ENV, client.base_url, client.model, client.vision_model,
    )
    return app


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(RxSafeError)
    def handle_rxsafe_error(err: RxSafeError):
        if err.status_code >= 500:
            logger.warning("%s %s -> %s: %s", request.method, request.path, err.status_code, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(_err):
        return jsonify({
            "error": f"File too large (max {Config.MAX_UPLOAD_MB} MB).",
            "kind": "validation_error",
        }), 413

    @app.errorhandler(404)
    def handle_not_found(_err):
        return jsonify({"error": "Route not found", "path": request.path}), 404

    @app.errorhandler(HTTPException)
    def handle_http_error(err: HTTPException):
        return jsonify({"error": err.description, "kind": "http_error"}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500

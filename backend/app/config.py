"""
RxSafe Backend – Configuration Loader
Loads all secrets and settings from .env via environment variables.
No secret may be hard-coded anywhere in the codebase.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration – values sourced exclusively from environment."""

    # --- Secrets ---
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///rxsafe.db")
    FLASK_SECRET_KEY: str = os.environ.get("FLASK_SECRET_KEY", "")
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "")
    JWT_EXPIRES_HOURS: int = int(os.environ.get("JWT_EXPIRES_HOURS", "168"))

    # --- Ollama (local model server) ---
    OLLAMA_BASE_URL: str = os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    OLLAMA_MODEL: str = os.environ.get("OLLAMA_MODEL", "qwen2.5:1.5b")
    OLLAMA_VISION_MODEL: str = os.environ.get("OLLAMA_VISION_MODEL", "llava:latest")
    OLLAMA_TIMEOUT_S: float = float(os.environ.get("OLLAMA_TIMEOUT_S", "60"))
    OLLAMA_VISION_TIMEOUT_S: float = float(os.environ.get("OLLAMA_VISION_TIMEOUT_S", "120"))
    OLLAMA_HEALTH_TIMEOUT_S: float = float(os.environ.get("OLLAMA_HEALTH_TIMEOUT_S", "5"))
    OLLAMA_POOL_SIZE: int = int(os.environ.get("OLLAMA_POOL_SIZE", "10"))
    VISION_ENABLED: bool = _env_bool("VISION_ENABLED", "true")

    # --- Uploads ---
    UPLOAD_DIR: str = os.environ.get(
        "UPLOAD_DIR", str(Path(__file__).resolve().parent.parent / "uploads")
    )
    MAX_UPLOAD_MB: int = int(os.environ.get("MAX_UPLOAD_MB", "10"))

    # --- App ---
    APP_ENV: str = os.environ.get("APP_ENV", "development")
    DEBUG: bool = APP_ENV == "development"
    CORS_ORIGIN: str = os.environ.get("CORS_ORIGIN", "*")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()

    # --- Rate limiting ---
    RATE_LIMIT_ENABLED: bool = _env_bool("RATE_LIMIT_ENABLED", "true")
    RATE_LIMIT_DEFAULT: str = os.environ.get("RATE_LIMIT_DEFAULT", "120/minute")
    RATE_LIMIT_ANALYZE: str = os.environ.get("RATE_LIMIT_ANALYZE", "10/minute")

    # --- Validation ---
    @classmethod
    def validate(cls) -> None:
        """Raise on missing critical environment variables."""
        if cls.APP_ENV == "development":
            return
        required = ["DATABASE_URL", "FLASK_SECRET_KEY", "JWT_SECRET"]
        missing = [k for k in required if not getattr(cls, k)]
        if missing:
            raise EnvironmentError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Ensure a .env file exists with all required values."
            )

"""
Flask extensions and shared service handles.
The Ollama client and vision extractor are built once in create_app() and
stored on app.extensions; blueprints fetch them through the accessors below.
"""

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from app.config import Config

limiter = Limiter(key_func=get_remote_address, default_limits=[Config.RATE_LIMIT_DEFAULT])

OLLAMA_CLIENT_KEY = "rxsafe.ollama_client"
VISION_EXTRACTOR_KEY = "rxsafe.vision_extractor"


def get_ollama_client():
    return current_app.extensions[OLLAMA_CLIENT_KEY]


def get_vision_extractor():
    return current_app.extensions[VISION_EXTRACTOR_KEY]

"""
Ollama HTTP client.
Talks to a locally hosted Ollama server over one pooled, keep-alive
requests.Session. Constructed once by create_app() and injected wherever it
is needed; it holds no per-request state, so worker threads share it.

Failures are classified into the exceptions in app.errors:
  connection refused  -> ServiceNotRunningError
  timeout             -> RequestTimedOutError
  HTTP 404            -> ModelNotInstalledError
  HTTP 500            -> UpstreamServerError
  anything else       -> OllamaAPIError
"""

import logging
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter

from app.config import Config
from app.errors import (
    EmptyResponseError,
    InputRequiredError,
    ModelNotInstalledError,
    OllamaAPIError,
    OllamaError,
    RequestTimedOutError,
    ServiceNotRunningError,
    UpstreamServerError,
)
from app.services.prompt_builder import build_prompt
from app.services.response_parser import parse_response

logger = logging.getLogger("rxsafe.ollama")

# Tuned for consistent, bounded JSON answers from a small model.
GENERATION_OPTIONS = {
    "temperature": 0.1,
    "top_p": 0.9,
    "num_predict": 2048,
}


def _upstream_message(response: requests.Response) -> str:
    """Ollama reports failures as {"error": "..."}; fall back to raw text."""
    try:
        body = response.json()
    except ValueError:
        return (response.text or "").strip()[:500]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return (response.text or "").strip()[:500]


class OllamaClient:
    """Thin wrapper over the Ollama REST API (/api/generate, /api/chat, /api/tags)."""

    def __init__(
        self,
        base_url: str = Config.OLLAMA_BASE_URL,
        model: str = Config.OLLAMA_MODEL,
        vision_model: str = Config.OLLAMA_VISION_MODEL,
        timeout: float = Config.OLLAMA_TIMEOUT_S,
        vision_timeout: float = Config.OLLAMA_VISION_TIMEOUT_S,
        health_timeout: float = Config.OLLAMA_HEALTH_TIMEOUT_S,
        pool_size: int = Config.OLLAMA_POOL_SIZE,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.vision_model = vision_model
        self.timeout = timeout
        self.vision_timeout = vision_timeout
        self.health_timeout = health_timeout

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
            session.headers.update({"Content-Type": "application/json"})
        self.session = session

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    # ── error classification ──

    def _classify(self, exc: Exception, model: str, vision: bool = False) -> OllamaError:
        err = self._classify_for(exc, model, vision)
        if vision and not err.suggestion:
            err.suggestion = (
                f"Please install a vision model: ollama pull {model}, or use manual entry instead."
            )
        return err

    def _classify_for(self, exc: Exception, model: str, vision: bool) -> OllamaError:
        label = "Vision model request" if vision else "Ollama request"

        # ConnectTimeout is both a Timeout and a ConnectionError; timeout wins.
        if isinstance(exc, requests.exceptions.Timeout):
            return RequestTimedOutError(
                f"{label} timed out. The model may be too slow or unavailable."
            )
        if isinstance(exc, requests.exceptions.ConnectionError):
            return ServiceNotRunningError(
                f"Ollama service is not running. Please start Ollama on {self.base_url}",
                suggestion="Start the server with: ollama serve",
            )
        if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
            status = exc.response.status_code
            upstream = _upstream_message(exc.response)
            if status == 404:
                if vision:
                    return ModelNotInstalledError(
                        model,
                        "Vision model not available. Please install a vision model like "
                        f"{model} using: ollama pull {model}",
                    )
                return ModelNotInstalledError(model)
            if status == 500:
                detail = f": {upstream}" if upstream else ""
                return UpstreamServerError(f"Ollama server error{detail}")
            prefix = "Ollama vision API error" if vision else "Ollama API error"
            return OllamaAPIError(f"{prefix} ({status}): {upstream or exc}")
        prefix = "Ollama vision API error" if vision else "Ollama API error"
        return OllamaAPIError(f"{prefix}: {exc}")

    def _request(
        self, method: str, path: str, model: str, timeout: float, vision: bool = False, **kwargs
    ) -> Any:
        try:
            response = self.session.request(method, self._url(path), timeout=timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as exc:
            err = self._classify(exc, model, vision)
            logger.error("%s %s failed (model=%s): %s", method, path, model, err)
            raise err from exc
        except ValueError as exc:
            logger.error("%s %s returned a non-JSON body: %s", method, path, exc)
            raise OllamaAPIError(f"Ollama API error: invalid JSON body ({exc})") from exc

    # ── raw endpoints ──

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        images: Optional[list[str]] = None,
        options: Optional[dict] = None,
        timeout: Optional[float] = None,
        vision: bool = False,
    ) -> str:
        """POST /api/generate (non-streaming) and return the `response` text.

        `vision` marks an image-reading call, so failures carry the vision
        label and install hint even when one model serves both roles.
        """
        model = model or self.model
        payload: dict[str, Any] = {"model": model, "prompt": prompt, "stream": False}
        if images:
            payload["images"] = images
        if options:
            payload["options"] = options
        data = self._request(
            "POST", "/api/generate", model, timeout or self.timeout, vision=vision, json=payload
        )
        text = data.get("response") if isinstance(data, dict) else None
        return text if isinstance(text, str) else ""

    def chat(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        vision: bool = False,
    ) -> str:
        """POST /api/chat (non-streaming) and return the assistant message content."""
        model = model or self.model
        payload = {"model": model, "messages": messages, "stream": False}
        data = self._request(
            "POST", "/api/chat", model, timeout or self.timeout, vision=vision, json=payload
        )
        message = data.get("message") if isinstance(data, dict) else None
        text = message.get("content") if isinstance(message, dict) else None
        return text if isinstance(text, str) else ""

    def list_models(self, timeout: Optional[float] = None) -> list[str]:
        """GET /api/tags and return installed model names."""
        data = self._request("GET", "/api/tags", self.model, timeout or self.health_timeout)
        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            raise OllamaAPIError("Ollama API error: unexpected /api/tags body")
        return [m.get("name") or m.get("model") for m in models if isinstance(m, dict)]

    # ── high-level operations ──

    def analyze(self, text: str) -> dict:
        """Run the prescription-safety prompt on `text` and return the parsed analysis."""
        if not text or not text.strip():
            raise InputRequiredError("Prescription text is required")

        response_text = self.generate(build_prompt(text), options=GENERATION_OPTIONS)
        if not response_text.strip():
            raise EmptyResponseError("Empty response from Ollama")

        logger.info("Ollama returned %d chars (model=%s)", len(response_text), self.model)
        return parse_response(response_text)

    def health_check(self) -> bool:
        try:
            response = self.session.get(self._url("/api/tags"), timeout=self.health_timeout)
            return response.ok
        except requests.exceptions.RequestException:
            return False

    def verify_model_available(self, model: Optional[str] = None) -> bool:
        """True if `model` (default: the text model) is installed on the server."""
        wanted = model or self.model
        candidates = {wanted} if ":" in wanted else {wanted, f"{wanted}:latest"}
        try:
            return any(name in candidates for name in self.list_models())
        except OllamaError as exc:
            logger.warning("Model availability check failed for %s: %s", wanted, exc)
            return False

    def close(self) -> None:
        self.session.close()

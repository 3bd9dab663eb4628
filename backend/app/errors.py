"""
Error taxonomy for the analysis pipeline.

Every error the API can surface derives from RxSafeError and carries the HTTP
status and a stable `kind` string, so routes never have to sniff messages.
Malformed-but-present model output is deliberately absent from this module:
the response parser absorbs it and returns a default analysis instead.
"""

from typing import Optional


class RxSafeError(Exception):
    """Base class: a human-readable message plus HTTP status and error kind."""

    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def to_dict(self) -> dict:
        data = {"error": self.message, "kind": self.kind}
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data


# ── Validation ──

class ValidationError(RxSafeError):
    status_code = 400
    kind = "validation_error"

    def __init__(self, message: str, details: Optional[list] = None):
        super().__init__(message)
        self.details = details or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.details:
            data["details"] = self.details
        return data


class InputRequiredError(ValidationError):
    """Required text was empty or missing; raised before any network call."""


class NotFoundError(RxSafeError):
    status_code = 404
    kind = "not_found"


class ConflictError(RxSafeError):
    status_code = 409
    kind = "conflict"


# ── Upstream model server ──

class OllamaError(RxSafeError):
    """Any failure talking to the Ollama server."""

    status_code = 502
    kind = "upstream_error"


class ServiceNotRunningError(OllamaError):
    status_code = 503
    kind = "service_unavailable"


class RequestTimedOutError(OllamaError):
    status_code = 503
    kind = "service_unavailable"


class ModelNotInstalledError(OllamaError):
    status_code = 404
    kind = "model_not_found"

    def __init__(self, model: str, message: Optional[str] = None):
        super().__init__(
            message or f"Model '{model}' is not installed. Install it with: ollama pull {model}",
            suggestion=f"Run: ollama pull {model}",
        )
        self.model = model


class UpstreamServerError(OllamaError):
    """Ollama answered HTTP 500."""


class OllamaAPIError(OllamaError):
    """Any other HTTP or network failure."""


class EmptyResponseError(OllamaError):
    kind = "empty_response"


class ManualEntryRequiredError(RxSafeError):
    status_code = 503
    kind = "manual_entry_required"


# ── Orchestrator boundary ──

ANALYSIS_FAILURE_PREFIX = "Failed to analyze prescription"


class AnalysisFailedError(RxSafeError):
    """Wraps any failure of the LLM call with a stable message prefix.

    Status and kind follow the wrapped error so that a missing model still
    reads as not-found and a stopped server as service-unavailable.
    """

    def __init__(self, cause: BaseException):
        detail = getattr(cause, "message", None) or str(cause) or "Unknown error"
        super().__init__(
            f"{ANALYSIS_FAILURE_PREFIX}: {detail}",
            suggestion=getattr(cause, "suggestion", None),
        )
        self.cause = cause
        if isinstance(cause, RxSafeError):
            self.status_code = cause.status_code
            self.kind = cause.kind
        else:
            self.status_code = 503
            self.kind = "analysis_failed"

"""
LLM response parser.
Extracts a JSON object from free-form model output and normalizes it into
the fixed analysis schema. parse_response() never raises: malformed output
yields a default analysis carrying a single advisory tip.

Known limitation: the object is located by the first "{" and the last "}".
A reply holding two independent JSON objects is spanned as one substring,
fails to parse, and falls back to the default analysis.
"""

import copy
import json
import logging
import re

logger = logging.getLogger("rxsafe.parser")

FALLBACK_TIP = (
    "Unable to parse analysis. Please review prescription manually "
    "and consult with a healthcare provider."
)

LIST = "list"
GROUP = "group"

# field name -> container kind; GROUP entries map to their own list sub-fields.
ANALYSIS_SCHEMA = {
    "medication_schedule": LIST,
    "harmful_combinations": LIST,
    "overdose_warnings": LIST,
    "side_effects": {"common": LIST, "serious": LIST},
    "food_interactions": LIST,
    "lifestyle_advice": LIST,
    "general_tips": LIST,
}

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)


class ResponseParseError(ValueError):
    """Internal signal: no JSON object could be recovered from the text."""


def strip_code_fences(text: str) -> str:
    """Remove ```json and bare ``` markers."""
    return _FENCE_RE.sub("", text or "").strip()


def extract_json(text: str) -> str:
    """Return the substring from the first "{" to the last "}"."""
    cleaned = strip_code_fences(text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or start >= end:
        raise ResponseParseError("No valid JSON object found in response")
    return cleaned[start:end + 1]


def _normalize_fields(data, schema: dict) -> dict:
    if not isinstance(data, dict):
        data = {}
    out = {}
    for name, kind in schema.items():
        value = data.get(name)
        if isinstance(kind, dict):
            out[name] = _normalize_fields(value, kind)
        else:
            out[name] = value if isinstance(value, list) else []
    return out


def normalize_analysis(data) -> dict:
    """Coerce a decoded JSON value into the analysis schema.

    Only container kinds are enforced; list elements pass through as the
    model wrote them.
    """
    return _normalize_fields(data, ANALYSIS_SCHEMA)


def default_analysis() -> dict:
    analysis = normalize_analysis({})
    analysis["general_tips"] = [FALLBACK_TIP]
    return analysis


def _reject_constant(name: str):
    # NaN / Infinity are not JSON and cannot be echoed back to API clients.
    raise ResponseParseError(f"Non-standard JSON constant {name}")


def parse_response(raw_model_text: str) -> dict:
    """Parse model output into a normalized analysis dict. Never raises."""
    try:
        parsed = json.loads(extract_json(raw_model_text), parse_constant=_reject_constant)
        if not isinstance(parsed, dict):
            raise ResponseParseError(f"Expected a JSON object, got {type(parsed).__name__}")
        return copy.deepcopy(normalize_analysis(parsed))
    except (ResponseParseError, ValueError, TypeError, RecursionError) as exc:
        excerpt = (raw_model_text or "")[:200]
        logger.warning("Failed to parse LLM response: %s | excerpt=%r", exc, excerpt)
        return default_analysis()

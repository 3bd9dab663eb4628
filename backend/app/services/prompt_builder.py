"""
Prompt builder for prescription analysis.
Renders prescription text into a fixed-schema, JSON-only instruction prompt.

The target model is small (1–3B parameters), so the schema is given as
compact one-line JSON shapes: shorter prompts answer faster and drift less.
"""

# One line per top-level key; order matches the normalized analysis.
SCHEMA_LINES = (
    '"medication_schedule": [{"medicine": "", "dosage": "", "timing": "", "instructions": ""}]',
    '"harmful_combinations": [{"medicines": [""], "risk": "", "recommendation": ""}]',
    '"overdose_warnings": [{"medicine": "", "warning": "", "max_daily_dose": ""}]',
    '"side_effects": {"common": [{"medicine": "", "effects": [""]}], '
    '"serious": [{"medicine": "", "effects": [""], "action_required": ""}]}',
    '"food_interactions": [{"medicine": "", "food_item": "", "interaction": "", "recommendation": ""}]',
    '"lifestyle_advice": [{"medicine": "", "advice": "", "restrictions": [""]}]',
    '"general_tips": [""]',
)

PROMPT_TEMPLATE = """You are a medical safety assistant. Analyze the prescription below and reply with ONLY one JSON object.

Prescription:
{prescription}

JSON shape (use exactly these keys):
{{
{schema}
}}

Rules:
- Output ONLY the JSON object. No markdown, no code fences, no explanations.
- Use [] for any list with no findings.
- Use "" for missing text values, never null.
- Be accurate; do not invent medicines that are not in the prescription."""


def build_prompt(prescription_text: str) -> str:
    """Return the analysis prompt for `prescription_text` (embedded verbatim)."""
    return PROMPT_TEMPLATE.format(
        prescription=prescription_text,
        schema=",\n".join(SCHEMA_LINES),
    )

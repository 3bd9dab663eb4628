"""
Prescription analysis service.
Sequences prompt → model call → parse, then stores the prescription and its
analysis for the user. Image uploads go through the vision extractor first.

This is an INFORMATION tool, not a clinical approval system.
"""

import logging
from typing import Optional

from app.config import Config
from app.database import db
from app.errors import (
    AnalysisFailedError,
    InputRequiredError,
    ManualEntryRequiredError,
    RxSafeError,
)
from app.models.models import AnalysisResult, Prescription
from app.services.ollama_client import OllamaClient
from app.services.vision_service import VisionExtractor

logger = logging.getLogger("rxsafe.prescription")


def _store_analysis(user_id: str, raw_text: str, image_ref: Optional[str], analysis: dict, model: str) -> Prescription:
    prescription = Prescription(
        user_id=user_id,
        raw_text=raw_text,
        uploaded_image_path=image_ref or None,
    )
    prescription.analysis_results.append(AnalysisResult(llm_response=analysis, model_name=model))
    db.session.add(prescription)
    db.session.commit()
    return prescription


def analyze_prescription(
    user_id: str,
    raw_text: str,
    image_ref: Optional[str] = None,
    *,
    client: OllamaClient,
) -> dict:
    """Analyze `raw_text` with the LLM and persist the result for `user_id`."""
    if not raw_text or not raw_text.strip():
        raise InputRequiredError("Prescription text is required")

    try:
        analysis = client.analyze(raw_text)
    except Exception as exc:
        logger.error("Prescription analysis failed for user %s: %s", user_id, exc)
        raise AnalysisFailedError(exc) from exc

    prescription = _store_analysis(user_id, raw_text, image_ref, analysis, client.model)
    logger.info("Stored prescription %s for user %s", prescription.id, user_id)

    data = prescription.to_dict()
    data["analysis"] = analysis
    return data


def extract_prescription_text(image_path: str, extractor: VisionExtractor) -> str:
    """Run the vision chain; fall back to the manual-entry signal when it is
    disabled or exhausted. The surfaced error keeps the vision failure text."""
    if not Config.VISION_ENABLED:
        logger.info("Vision extraction disabled; requesting manual entry")
        return extractor.extract_text_manual(image_path)

    try:
        return extractor.extract_text(image_path)
    except RxSafeError as vision_error:
        try:
            return extractor.extract_text_manual(image_path)
        except ManualEntryRequiredError as manual:
            raise ManualEntryRequiredError(
                vision_error.message,
                suggestion=vision_error.suggestion or manual.suggestion,
            ) from vision_error


def analyze_prescription_image(
    user_id: str,
    image_path: str,
    stored_path: Optional[str] = None,
    *,
    client: OllamaClient,
    extractor: VisionExtractor,
) -> dict:
    """Extract text from an uploaded image, then analyze it like typed text."""
    extracted_text = extract_prescription_text(image_path, extractor)
    if not extracted_text or not extracted_text.strip():
        raise InputRequiredError("Could not extract text from image. Please try manual entry.")

    data = analyze_prescription(user_id, extracted_text, stored_path or image_path, client=client)
    data["extractedText"] = extracted_text
    return data


def get_prescription_history(user_id: str) -> list[dict]:
    prescriptions = (
        Prescription.query.filter_by(user_id=user_id)
        .order_by(Prescription.created_at.desc())
        .all()
    )
    return [p.to_dict() for p in prescriptions]


def get_prescription(prescription_id: str, user_id: str) -> Optional[dict]:
    prescription = Prescription.query.filter_by(id=prescription_id, user_id=user_id).first()
    return prescription.to_dict() if prescription else None

"""
Audit logger – after-request hook that writes every authenticated API
interaction to the audit_log table.
"""

import json
import logging
from flask import request, g
from app.database import db
from app.models.models import AuditLog

logger = logging.getLogger("rxsafe.audit")

AUDITED_PREFIXES = ("/auth", "/prescription", "/profile")
REDACTED_FIELDS = ("password", "token")


def audit_after_request(response):
    """Log every API request/response pair for later review."""
    if not request.path.startswith(AUDITED_PREFIXES):
        return response

    try:
        user = getattr(g, "current_user", None)

        # Capture request body (truncated, sensitive fields redacted)
        req_body = None
        if request.is_json:
            body = request.get_json(silent=True)
            if isinstance(body, dict):
                safe_body = {k: v for k, v in body.items() if k not in REDACTED_FIELDS}
                req_body = json.dumps(safe_body)[:2000]

        resp_summary = None
        if response.is_json:
            resp_data = response.get_json(silent=True) or {}
            # Auth responses carry the issued token; keep only the status text.
            if request.path.startswith("/auth") and isinstance(resp_data, dict):
                resp_data.pop("data", None)
            resp_summary = json.dumps(resp_data)[:2000]

        entry = AuditLog(
            user_id=user.id if user else None,
            endpoint=request.path,
            method=request.method,
            status_code=response.status_code,
            request_body=req_body,
            response_summary=resp_summary,
        )
        db.session.add(entry)
        db.session.commit()
    except Exception as exc:
        logger.warning("Audit logging failed: %s", exc)
        db.session.rollback()

    return response

"""
SQLAlchemy ORM models – users, their prescriptions, and the stored analyses.
The analysis payload is persisted verbatim as an opaque JSON blob.
"""

import uuid
from datetime import datetime

from app.database import db


def _uuid() -> str:
    return str(uuid.uuid4())


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50))
    date_of_birth = db.Column(db.Date)
    address = db.Column(db.Text)
    city = db.Column(db.String(120))
    state = db.Column(db.String(120))
    zip_code = db.Column(db.String(20))
    country = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    prescriptions = db.relationship(
        "Prescription", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    def to_dict(self, include_timestamps=True):
        data = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "dateOfBirth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "country": self.country,
        }
        if include_timestamps:
            data["createdAt"] = self.created_at.isoformat() if self.created_at else None
            data["updatedAt"] = self.updated_at.isoformat() if self.updated_at else None
        return data


class Prescription(db.Model):
    __tablename__ = "prescriptions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    raw_text = db.Column(db.Text, nullable=False)
    uploaded_image_path = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    analysis_results = db.relationship(
        "AnalysisResult",
        backref="prescription",
        lazy="selectin",
        order_by="AnalysisResult.created_at.desc()",
        cascade="all, delete-orphan",
    )

    def latest_analysis(self):
        return self.analysis_results[0].llm_response if self.analysis_results else None

    def to_dict(self):
        return {
            "id": self.id,
            "rawText": self.raw_text,
            "uploadedImagePath": self.uploaded_image_path,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "analysis": self.latest_analysis(),
        }


class AnalysisResult(db.Model):
    __tablename__ = "analysis_results"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    prescription_id = db.Column(
        db.String(36), db.ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    llm_response = db.Column(db.JSON, nullable=False)
    model_name = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class AuditLog(db.Model):
    __tablename__ = "audit_log"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    endpoint = db.Column(db.String(255))
    method = db.Column(db.String(10))
    status_code = db.Column(db.Integer)
    request_body = db.Column(db.Text)
    response_summary = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

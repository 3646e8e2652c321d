from __future__ import annotations

import json

from ..extensions import db
from tokopos.time_utils import to_utc_z


class AuditLog(db.Model):
    """
    Activity log written after a core operation commits.

    Written best-effort: a failed insert here never undoes the operation it
    describes.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    table_name = db.Column(db.String(64), nullable=True)
    record_id = db.Column(db.String(64), nullable=True)
    new_value = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    store_id = db.Column(db.Integer, nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "new_value": json.loads(self.new_value) if self.new_value else None,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "store_id": self.store_id,
            "created_at": to_utc_z(self.created_at),
        }


class Notification(db.Model):
    """Store- or user-addressed notification (e.g. a distribution awaiting acceptance)."""
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_store_ack", "store_id", "acknowledged"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(64), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    severity = db.Column(db.String(16), nullable=False, default="MEDIUM")  # LOW, MEDIUM, HIGH, CRITICAL
    data = db.Column(db.Text, nullable=True)
    acknowledged = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "store_id": self.store_id,
            "user_id": self.user_id,
            "severity": self.severity,
            "data": json.loads(self.data) if self.data else None,
            "acknowledged": self.acknowledged,
            "created_at": to_utc_z(self.created_at),
        }

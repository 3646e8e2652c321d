# Overview: Post-commit notification sink; failures are logged, never raised.

from __future__ import annotations

import json
import logging

from ..extensions import db
from ..models import Notification

logger = logging.getLogger(__name__)

TYPE_DISTRIBUTION_PENDING = "DISTRIBUTION_PENDING"
TYPE_DISTRIBUTION_REJECTED = "DISTRIBUTION_REJECTED"

SEVERITIES = {"LOW", "MEDIUM", "HIGH", "CRITICAL"}


def create_notification(
    *,
    type: str,
    title: str,
    message: str,
    store_id: int | None = None,
    user_id: int | None = None,
    severity: str = "MEDIUM",
    data: dict | None = None,
) -> Notification | None:
    severity = (severity or "MEDIUM").upper()
    if severity not in SEVERITIES:
        severity = "MEDIUM"
    try:
        notification = Notification(
            type=type,
            title=title,
            message=message,
            store_id=store_id,
            user_id=user_id,
            severity=severity,
            data=json.dumps(data, default=str) if data is not None else None,
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except Exception:
        db.session.rollback()
        logger.exception("Notification %s for store %s could not be stored", type, store_id)
        return None

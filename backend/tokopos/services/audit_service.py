# Overview: Post-commit audit trail writers; failures are logged, never raised.

from __future__ import annotations

import json
import logging

from ..extensions import db
from ..models import AuditLog

logger = logging.getLogger(__name__)

ACTION_SALE_CREATE = "SALE_CREATE"
ACTION_SALE_DELETE = "SALE_DELETE"
ACTION_WAREHOUSE_DISTRIBUTION = "WAREHOUSE_DISTRIBUTION"
ACTION_DISTRIBUTION_ACCEPT = "DISTRIBUTION_ACCEPT"
ACTION_DISTRIBUTION_REJECT = "DISTRIBUTION_REJECT"
ACTION_DISTRIBUTION_CANCEL = "DISTRIBUTION_CANCEL"
ACTION_RECEIVABLE_PAYMENT = "RECEIVABLE_PAYMENT"


def log_audit(
    *,
    user_id: int | None,
    action: str,
    table_name: str | None = None,
    record_id=None,
    new_value: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    store_id: int | None = None,
) -> AuditLog | None:
    """
    Write one audit row in its own commit.

    Called only after the core unit of work has committed, so a failure here
    cannot undo the operation being audited. Returns None on failure.
    """
    try:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            table_name=table_name,
            record_id=str(record_id) if record_id is not None else None,
            new_value=json.dumps(new_value, default=str) if new_value is not None else None,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:255] or None,
            store_id=store_id,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        logger.exception("Audit log write failed for %s record=%s", action, record_id)
        return None


def log_warehouse_distribution(actor_id, record: dict, ip_address=None, user_agent=None, target_store_id=None):
    return log_audit(
        user_id=actor_id,
        action=ACTION_WAREHOUSE_DISTRIBUTION,
        table_name="distribution_batches",
        record_id=record.get("id"),
        new_value=record,
        ip_address=ip_address,
        user_agent=user_agent,
        store_id=target_store_id,
    )


def log_sale_creation(actor_id, record: dict, ip_address=None, user_agent=None):
    return log_audit(
        user_id=actor_id,
        action=ACTION_SALE_CREATE,
        table_name="sales",
        record_id=record.get("id"),
        new_value=record,
        ip_address=ip_address,
        user_agent=user_agent,
        store_id=record.get("store_id"),
    )

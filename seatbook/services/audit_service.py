from __future__ import annotations

from typing import Any, Mapping

from fastapi import Request
from sqlalchemy.orm import Session

from seatbook.models.audit_log import AuditLog

# Payment and contact details never land in the audit trail
REDACTED_KEYS = {"email", "to_email", "payment_account_id", "checkout_session_id"}


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: "<redacted>" if k in REDACTED_KEYS else _redact(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_redact(v) for v in obj]
    return obj


def _request_meta(request: Request | None) -> tuple[str, str]:
    if request is None:
        return "", ""
    client_ip = request.client.host if request.client else ""
    return client_ip, request.headers.get("user-agent", "")[:255]


def write_audit_log(
    db: Session,
    *,
    actor_user_id: str | None,
    action_type: str,
    target_type: str = "",
    target_id: str = "",
    summary: str = "",
    diff_json: Mapping[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog:
    """Record a booking lifecycle event (create, confirm, cancel) and commit it."""
    client_ip, user_agent = _request_meta(request)
    entry = AuditLog(
        actor_user_id=actor_user_id,
        action_type=action_type,
        target_type=target_type,
        target_id=str(target_id),
        summary=summary[:255],
        diff_json=_redact(dict(diff_json)) if diff_json is not None else None,
        ip_address=client_ip,
        user_agent=user_agent,
    )
    db.add(entry)
    db.commit()
    return entry

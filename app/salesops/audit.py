"""Append-only audit trail. Callers add the event to their session and commit with their own change."""
import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.salesops.models import AuditEvent, User


def _request_fields() -> dict[str, str | None]:
    if not has_request_context():
        return {"request_id": None, "client_ip": None}
    return {"request_id": g.get("request_id"), "client_ip": request.remote_addr}


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    ctx = _request_fields()
    ev = AuditEvent(
        request_id=request_id or ctx["request_id"],
        client_ip=ctx["client_ip"],
        actor_user_id=actor.id if actor is not None else None,
        actor_user_email=actor.email if actor is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        # default=str: dates, Decimals and the like end up readable rather than failing the write.
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    s.add(ev)
    return ev

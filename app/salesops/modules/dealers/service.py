"""Dealer directory: the resellers a quote can be routed through."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.salesops.audit import record_event
from app.salesops.modules.dealers.models import Dealer
from app.salesops.utils import clean

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.salesops.models import User


DEALER_FIELDS = (
    "code",
    "name",
    "branch_code",
    "branch_name",
    "contact_name",
    "contact_email",
    "contact_phone",
    "address_line1",
    "city",
    "state",
    "zip_code",
    "factory",
    "notes",
)


def payload_from_form(form) -> dict[str, Any]:
    payload: dict[str, Any] = {k: form.get(k) for k in DEALER_FIELDS}
    payload["is_active"] = form.get("is_active")
    return payload


def validate_dealer_payload(s: "Session", payload: dict[str, Any], *, dealer_id: int | None = None) -> list[str]:
    errors: list[str] = []
    code = (clean(payload, "code") or "").upper()
    if not code:
        errors.append("Dealer code is required.")
    if not clean(payload, "name"):
        errors.append("Dealer name is required.")
    if code:
        q = s.query(Dealer).filter(Dealer.code == code)
        if dealer_id is not None:
            q = q.filter(Dealer.id != dealer_id)
        if q.first() is not None:
            errors.append(f"Dealer code {code} is already in use.")
    return errors


def _apply(d: Dealer, payload: dict[str, Any]) -> None:
    for field in DEALER_FIELDS:
        setattr(d, field, clean(payload, field))
    d.code = (d.code or "").upper()
    if d.state:
        d.state = d.state.upper()


def create_dealer(s: "Session", payload: dict[str, Any], *, user: "User") -> Dealer:
    now = datetime.utcnow()
    d = Dealer(is_active=True, created_at=now, updated_at=now)
    _apply(d, payload)
    s.add(d)
    s.flush()
    record_event(
        s,
        actor=user,
        action="dealer.create",
        entity_type="Dealer",
        entity_id=str(d.id),
        metadata={"code": d.code, "name": d.name},
    )
    return d


def update_dealer(s: "Session", d: Dealer, payload: dict[str, Any], *, user: "User") -> Dealer:
    changes = {}
    for field in DEALER_FIELDS:
        old = getattr(d, field)
        new = clean(payload, field)
        if field == "code":
            new = (new or "").upper()
        if field == "state" and new:
            new = new.upper()
        if old != new:
            changes[field] = {"old": old, "new": new}
            setattr(d, field, new)
    is_active = str(payload.get("is_active") or "") == "1"
    if is_active != d.is_active:
        changes["is_active"] = {"old": d.is_active, "new": is_active}
        d.is_active = is_active
    d.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="dealer.update",
        entity_type="Dealer",
        entity_id=str(d.id),
        metadata={"code": d.code, "changes": changes},
    )
    return d


def active_dealers(s: "Session") -> list[Dealer]:
    return s.query(Dealer).filter(Dealer.is_active.is_(True)).order_by(Dealer.name.asc(), Dealer.branch_name.asc()).all()

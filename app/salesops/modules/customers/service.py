from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.salesops.audit import record_event
from app.salesops.constants import COMPANY_TYPES, CUSTOMER_SOURCES
from app.salesops.modules.customers.models import SalesCustomer
from app.salesops.utils import clean

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.salesops.models import User


CUSTOMER_FIELDS = (
    "company_name",
    "company_type",
    "contact_name",
    "contact_title",
    "contact_email",
    "contact_phone",
    "secondary_contact_name",
    "secondary_contact_email",
    "secondary_contact_phone",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "zip_code",
    "source",
    "notes",
    "factory",
)

_COMPANY_TYPE_KEYS = {k for k, _ in COMPANY_TYPES}
_SOURCE_KEYS = {k for k, _ in CUSTOMER_SOURCES}


def payload_from_form(form) -> dict[str, Any]:
    payload: dict[str, Any] = {k: form.get(k) for k in CUSTOMER_FIELDS}
    payload["is_active"] = form.get("is_active")
    return payload


def validate_customer_payload(payload: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    if not clean(payload, "company_name"):
        errors.append("Company name is required")
    if not clean(payload, "factory"):
        errors.append("Factory is required")
    company_type = clean(payload, "company_type")
    if company_type and company_type not in _COMPANY_TYPE_KEYS:
        errors.append(f"Unknown company type {company_type!r}.")
    source = clean(payload, "source")
    if source and source not in _SOURCE_KEYS:
        errors.append(f"Unknown source {source!r}.")
    return errors


def _apply(c: SalesCustomer, payload: dict[str, Any]) -> None:
    for field in CUSTOMER_FIELDS:
        setattr(c, field, clean(payload, field))
    c.company_type = c.company_type or "general"
    if c.contact_email:
        c.contact_email = c.contact_email.lower()
    if c.state:
        c.state = c.state.upper()


def create_customer(s: "Session", payload: dict[str, Any], *, user: "User") -> SalesCustomer:
    now = datetime.utcnow()
    c = SalesCustomer(is_active=True, created_by_user_id=user.id, created_at=now, updated_at=now)
    _apply(c, payload)
    s.add(c)
    s.flush()
    record_event(
        s,
        actor=user,
        action="customer.create",
        entity_type="SalesCustomer",
        entity_id=str(c.id),
        metadata={"company_name": c.company_name, "factory": c.factory},
    )
    return c


def update_customer(s: "Session", c: SalesCustomer, payload: dict[str, Any], *, user: "User") -> SalesCustomer:
    before = {f: getattr(c, f) for f in CUSTOMER_FIELDS}
    before["is_active"] = c.is_active

    _apply(c, payload)
    if "is_active" in payload:
        c.is_active = str(payload.get("is_active") or "") == "1"
    c.updated_at = datetime.utcnow()

    after = {f: getattr(c, f) for f in CUSTOMER_FIELDS}
    after["is_active"] = c.is_active
    fields_changed = [k for k in before if before[k] != after[k]]
    record_event(
        s,
        actor=user,
        action="customer.update",
        entity_type="SalesCustomer",
        entity_id=str(c.id),
        metadata={"fields_changed": fields_changed},
    )
    return c


def search_customers(s: "Session", *, q: str = "", factory: str = "", include_inactive: bool = False):
    query = s.query(SalesCustomer)
    if not include_inactive:
        query = query.filter(SalesCustomer.is_active.is_(True))
    if q:
        like = f"%{q}%"
        query = query.filter(
            (SalesCustomer.company_name.ilike(like))
            | (SalesCustomer.contact_name.ilike(like))
            | (SalesCustomer.city.ilike(like))
        )
    if factory:
        query = query.filter(SalesCustomer.factory == factory)
    return query.order_by(SalesCustomer.company_name.asc())


def active_customers(s: "Session", factory: str | None = None) -> list[SalesCustomer]:
    """Customer dropdown for the quote form."""
    return search_customers(s, factory=factory or "").all()

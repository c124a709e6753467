"""
Quote lifecycle: numbering, create/edit (with revision snapshots), the status
workflow, PM review flags, the handoff that turns a won quote into a project,
and the activity log that records all of it.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from app.salesops.audit import record_event
from app.salesops.constants import (
    BUILDING_TYPES,
    MANUAL_ACTIVITY_TYPES,
    OCCUPANCY_TYPES,
    PAYMENT_TERMS,
    PRODUCT_TYPES,
    SET_TYPES,
    SPRINKLER_TYPES,
    VALID_STATUSES,
    LOST_REASON_LABELS,
)
from app.salesops.models import User
from app.salesops.modules.customers.models import SalesCustomer
from app.salesops.modules.dealers.models import Dealer
from app.salesops.modules.projects.models import Project
from app.salesops.modules.quotes.models import QuoteRevision, SalesActivity, SalesQuote
from app.salesops.modules.quotes.pricing import calculate_total, square_footage
from app.salesops.utils import parse_bool, parse_date, parse_int, parse_json_object, parse_money

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session

logger = logging.getLogger(__name__)


TEXT_FIELDS = (
    "project_name",
    "project_description",
    "project_location",
    "project_city",
    "project_state",
    "factory",
    "product_type",
    "payment_terms",
    "internal_notes",
    "customer_notes",
    "dealer_branch",
    "dealer_contact_name",
    "praxis_quote_number",
    "praxis_source_factory",
    "building_type",
    "state_tags",
    "occupancy_type",
    "set_type",
    "sprinkler_type",
    "waiting_on",
    "expected_close_timeframe",
)
DECIMAL_FIELDS = (
    "base_price",
    "options_price",
    "discount_amount",
    "discount_percent",
    "deposit_required",
    "building_width",
    "building_length",
)
INT_FIELDS = (
    "estimated_production_weeks",
    "square_footage",
    "module_count",
    "stories",
    "climate_zone",
    "outlook_percentage",
    "difficulty_rating",
    "customer_id",
    "dealer_id",
    "assigned_to_user_id",
)
DATE_FIELDS = (
    "requested_delivery_date",
    "quote_valid_until",
    "qa_due_date",
    "quote_due_date",
    "promised_delivery_date",
)
BOOL_FIELDS = ("has_plumbing", "wui_compliant")

QUOTE_FORM_FIELDS = TEXT_FIELDS + DECIMAL_FIELDS + INT_FIELDS + DATE_FIELDS + BOOL_FIELDS + ("product_config",)

_CHOICES: dict[str, set[str]] = {
    "building_type": set(BUILDING_TYPES),
    "product_type": {k for k, _ in PRODUCT_TYPES},
    "payment_terms": {k for k, _ in PAYMENT_TERMS},
    "occupancy_type": set(OCCUPANCY_TYPES),
    "set_type": set(SET_TYPES),
    "sprinkler_type": set(SPRINKLER_TYPES),
}


def _label(field: str) -> str:
    return field.replace("_", " ").capitalize()


def payload_from_form(form) -> dict[str, Any]:
    return {k: form.get(k) for k in QUOTE_FORM_FIELDS}


def parse_quote_payload(s: "Session", payload: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """
    Convert raw form strings into column values.

    Returns (values, errors). values only holds keys present in QUOTE_FORM_FIELDS;
    errors is empty when the payload can be saved.
    """
    values: dict[str, Any] = {}
    errors: list[str] = []

    for f in TEXT_FIELDS:
        values[f] = (str(payload.get(f) or "")).strip() or None
    for f in DECIMAL_FIELDS:
        try:
            values[f] = parse_money(payload.get(f))
        except ValueError:
            errors.append(f"{_label(f)} must be a number.")
            values[f] = None
    for f in INT_FIELDS:
        try:
            values[f] = parse_int(payload.get(f))
        except ValueError:
            errors.append(f"{_label(f)} must be a whole number.")
            values[f] = None
    for f in DATE_FIELDS:
        try:
            values[f] = parse_date(payload.get(f))
        except ValueError:
            errors.append(f"{_label(f)} must be a date (YYYY-MM-DD).")
            values[f] = None
    for f in BOOL_FIELDS:
        values[f] = parse_bool(payload.get(f))

    config, config_err = parse_json_object(payload.get("product_config"))
    values["product_config"] = config
    if config_err:
        errors.append(config_err)

    if not values["project_name"]:
        errors.append("Project name is required")
    if not values["factory"]:
        errors.append("Factory is required")
    if values["project_state"]:
        values["project_state"] = values["project_state"].upper()

    for f in ("base_price", "options_price", "discount_amount", "deposit_required"):
        if values[f] is not None and values[f] < 0:
            errors.append(f"{_label(f)} cannot be negative.")
    if values["discount_percent"] is not None and not 0 <= values["discount_percent"] <= 100:
        errors.append("Discount percent must be between 0 and 100.")
    if values["outlook_percentage"] is not None and not 0 <= values["outlook_percentage"] <= 100:
        errors.append("Outlook must be between 0 and 100.")
    if values["difficulty_rating"] is not None and not 1 <= values["difficulty_rating"] <= 5:
        errors.append("Difficulty rating must be between 1 and 5.")

    for f, allowed in _CHOICES.items():
        if values[f] and values[f] not in allowed:
            errors.append(f"Unknown {_label(f).lower()} {values[f]!r}.")

    if values["customer_id"] is not None and s.get(SalesCustomer, values["customer_id"]) is None:
        errors.append("Customer not found.")
    if values["dealer_id"] is not None and s.get(Dealer, values["dealer_id"]) is None:
        errors.append("Dealer not found.")
    if values["assigned_to_user_id"] is not None:
        rep = s.get(User, values["assigned_to_user_id"])
        if rep is None or not rep.is_active:
            errors.append("Assigned user not found or inactive.")

    if values["square_footage"] is None:
        values["square_footage"] = square_footage(values["building_width"], values["building_length"])

    return values, errors


def generate_quote_number(s: "Session", factory: str | None, today: date | None = None) -> str:
    """
    Next number in the {FACTORY}-{YEAR}-{NNNN} sequence, e.g. NWBS-2026-0007.
    Sequence restarts each year and is independent per factory.
    """
    today = today or date.today()
    prefix = f"{(factory or '').strip().upper() or 'QT'}-{today.year}-"
    existing = {
        row[0]
        for row in s.query(SalesQuote.quote_number).filter(SalesQuote.quote_number.like(f"{prefix}%")).all()
    }
    seq = 0
    for number in existing:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            seq = max(seq, int(suffix))
    while True:
        seq += 1
        candidate = f"{prefix}{seq:04d}"
        if candidate not in existing:
            return candidate


def quote_snapshot(quote: SalesQuote) -> dict[str, Any]:
    """JSON-safe copy of every column, used for revision history."""
    snap: dict[str, Any] = {}
    for col in SalesQuote.__table__.columns:
        v = getattr(quote, col.key)
        if isinstance(v, (date, datetime)):
            v = v.isoformat()
        snap[col.key] = v
    return snap


def log_activity(
    s: "Session",
    quote: SalesQuote,
    *,
    user: User | None,
    activity_type: str,
    subject: str,
    description: str | None = None,
    old_status: str | None = None,
    new_status: str | None = None,
) -> SalesActivity:
    act = SalesActivity(
        quote_id=quote.id,
        customer_id=quote.customer_id,
        activity_type=activity_type,
        subject=subject,
        description=description,
        old_status=old_status,
        new_status=new_status,
        created_by_user_id=user.id if user else None,
        created_at=datetime.utcnow(),
    )
    s.add(act)
    return act


def _recalculate_total(quote: SalesQuote) -> None:
    # Imported quotes arrive with only a total; keep it until someone prices the parts.
    if quote.base_price is None and quote.options_price is None and quote.total_price is not None:
        return
    quote.total_price = calculate_total(
        quote.base_price, quote.options_price, quote.discount_amount, quote.discount_percent
    )


def create_quote(s: "Session", values: dict[str, Any], *, user: User, quote_number: str | None = None) -> SalesQuote:
    """values come from parse_quote_payload (already validated)."""
    now = datetime.utcnow()
    quote = SalesQuote(
        quote_number=quote_number or generate_quote_number(s, values.get("factory")),
        version=1,
        is_latest_version=True,
        status="draft",
        created_by_user_id=user.id,
        last_modified_by_user_id=user.id,
        created_at=now,
        updated_at=now,
    )
    for k, v in values.items():
        setattr(quote, k, v)
    if quote.assigned_to_user_id is None:
        quote.assigned_to_user_id = user.id
    _recalculate_total(quote)
    s.add(quote)
    s.flush()
    record_event(
        s,
        actor=user,
        action="quote.create",
        entity_type="SalesQuote",
        entity_id=str(quote.id),
        metadata={"quote_number": quote.quote_number, "factory": quote.factory, "total_price": quote.total_price},
    )
    return quote


def update_quote(
    s: "Session",
    quote: SalesQuote,
    values: dict[str, Any],
    *,
    user: User,
    change_notes: str | None = None,
) -> SalesQuote:
    before = quote_snapshot(quote)
    s.add(
        QuoteRevision(
            quote_id=quote.id,
            version=quote.version,
            snapshot=before,
            change_notes=change_notes,
            changed_by_user_id=user.id,
            created_at=datetime.utcnow(),
        )
    )
    for k, v in values.items():
        setattr(quote, k, v)
    _recalculate_total(quote)
    quote.version = (quote.version or 1) + 1
    quote.last_modified_by_user_id = user.id
    quote.updated_at = datetime.utcnow()

    after = quote_snapshot(quote)
    fields_changed = sorted(k for k in values if before.get(k) != after.get(k))
    record_event(
        s,
        actor=user,
        action="quote.update",
        entity_type="SalesQuote",
        entity_id=str(quote.id),
        reason=change_notes,
        metadata={"quote_number": quote.quote_number, "version": quote.version, "fields_changed": fields_changed},
    )
    return quote


def delete_quote(s: "Session", quote: SalesQuote, *, user: User) -> None:
    record_event(
        s,
        actor=user,
        action="quote.delete",
        entity_type="SalesQuote",
        entity_id=str(quote.id),
        metadata={"quote_number": quote.quote_number, "project_name": quote.project_name, "status": quote.status},
    )
    s.delete(quote)


def change_status(
    s: "Session", quote: SalesQuote, new_status: str, *, user: User, today: date | None = None
) -> SalesActivity | None:
    """
    Move a quote to another status. Returns the logged activity, or None when
    the quote already had that status.
    """
    new_status = (new_status or "").strip()
    if new_status not in VALID_STATUSES:
        raise ValueError(f"Unknown status {new_status!r}.")
    if new_status == "lost":
        raise ValueError("Use Mark as Lost to record why the quote was lost.")
    old_status = quote.status
    if new_status == old_status:
        return None

    now = datetime.utcnow()
    quote.status = new_status
    if new_status == "sent" and quote.sent_at is None:
        quote.sent_at = now
    if new_status == "won":
        quote.won_date = today or date.today()
    quote.last_modified_by_user_id = user.id
    quote.updated_at = now

    act = log_activity(
        s,
        quote,
        user=user,
        activity_type="status_change",
        subject=f"Status changed to {new_status}",
        old_status=old_status,
        new_status=new_status,
    )
    record_event(
        s,
        actor=user,
        action="quote.status_change",
        entity_type="SalesQuote",
        entity_id=str(quote.id),
        metadata={"from": old_status, "to": new_status},
    )
    logger.info("Quote %s status %s -> %s", quote.quote_number, old_status, new_status)
    return act


def mark_lost(
    s: "Session",
    quote: SalesQuote,
    *,
    reason: str | None,
    competitor_name: str | None,
    user: User,
    today: date | None = None,
) -> SalesActivity:
    reason = (reason or "").strip()
    if not reason:
        raise ValueError("Please select a reason")
    if reason not in LOST_REASON_LABELS:
        raise ValueError(f"Unknown lost reason {reason!r}.")
    competitor = (competitor_name or "").strip() or None

    old_status = quote.status
    quote.status = "lost"
    quote.lost_date = today or date.today()
    quote.lost_reason = reason
    quote.competitor_name = competitor
    quote.last_modified_by_user_id = user.id
    quote.updated_at = datetime.utcnow()

    description = f"Reason: {reason}"
    if competitor:
        description += f", Competitor: {competitor}"
    act = log_activity(
        s,
        quote,
        user=user,
        activity_type="status_change",
        subject="Quote marked as lost",
        description=description,
        old_status=old_status,
        new_status="lost",
    )
    record_event(
        s,
        actor=user,
        action="quote.mark_lost",
        entity_type="SalesQuote",
        entity_id=str(quote.id),
        reason=description,
        metadata={"from": old_status, "lost_reason": reason, "competitor_name": competitor},
    )
    return act


def flag_for_pm(s: "Session", quote: SalesQuote, *, reason: str | None, user: User) -> None:
    reason = (reason or "").strip() or None
    quote.pm_flagged = True
    quote.pm_flagged_at = datetime.utcnow()
    quote.pm_flagged_by_user_id = user.id
    quote.pm_flagged_reason = reason
    quote.updated_at = datetime.utcnow()
    log_activity(s, quote, user=user, activity_type="note", subject="Flagged for PM review", description=reason)
    record_event(
        s,
        actor=user,
        action="quote.pm_flag",
        entity_type="SalesQuote",
        entity_id=str(quote.id),
        reason=reason,
    )


def clear_pm_flag(s: "Session", quote: SalesQuote, *, user: User) -> None:
    if not quote.pm_flagged:
        return
    quote.pm_flagged = False
    quote.pm_flagged_at = None
    quote.pm_flagged_by_user_id = None
    quote.pm_flagged_reason = None
    quote.updated_at = datetime.utcnow()
    log_activity(s, quote, user=user, activity_type="note", subject="PM review flag cleared")
    record_event(s, actor=user, action="quote.pm_unflag", entity_type="SalesQuote", entity_id=str(quote.id))


def create_project_from_quote(s: "Session", quote: SalesQuote, *, user: User) -> Project:
    """Hand a won quote over to project management."""
    if quote.status != "won":
        raise ValueError("Only won quotes can be handed off to PM.")
    if quote.handed_off_to_pm or quote.project_id:
        raise ValueError("This quote has already been handed off to PM.")

    customer = quote.customer
    now = datetime.utcnow()
    project = Project(
        name=quote.project_name,
        factory=quote.factory,
        status="Planning",
        source_quote_id=quote.id,
        contract_value=quote.total_price or None,
        client_name=customer.company_name if customer else None,
        client_contact=customer.contact_name if customer else None,
        client_email=customer.contact_email if customer else None,
        client_phone=customer.contact_phone if customer else None,
        location=quote.project_location,
        city=quote.project_city,
        state=quote.project_state,
        description=quote.project_description,
        created_by_user_id=user.id,
        created_at=now,
        updated_at=now,
    )
    s.add(project)
    s.flush()

    quote.handed_off_to_pm = True
    quote.handed_off_date = now
    quote.handed_off_by_user_id = user.id
    quote.project_id = project.id
    quote.updated_at = now

    log_activity(
        s,
        quote,
        user=user,
        activity_type="other",
        subject="Project created from quote",
        description=f"PM Project created: {project.name}",
    )
    record_event(
        s,
        actor=user,
        action="quote.handoff",
        entity_type="SalesQuote",
        entity_id=str(quote.id),
        metadata={"project_id": project.id, "contract_value": project.contract_value},
    )
    return project


def add_activity(s: "Session", quote: SalesQuote, payload: dict[str, Any], *, user: User) -> SalesActivity:
    """Manual call/email/meeting/note entry from the quote page."""
    activity_type = (payload.get("activity_type") or "note").strip()
    subject = (payload.get("subject") or "").strip()
    if activity_type not in MANUAL_ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type {activity_type!r}.")
    if not subject:
        raise ValueError("Subject is required.")
    act = log_activity(
        s,
        quote,
        user=user,
        activity_type=activity_type,
        subject=subject,
        description=(payload.get("description") or "").strip() or None,
    )
    s.flush()
    record_event(
        s,
        actor=user,
        action="quote.activity_add",
        entity_type="SalesActivity",
        entity_id=str(act.id),
        metadata={"quote_id": quote.id, "activity_type": activity_type},
    )
    return act


def recent_activities(s: "Session", quote: SalesQuote, limit: int = 10) -> list[SalesActivity]:
    return (
        s.query(SalesActivity)
        .filter(SalesActivity.quote_id == quote.id)
        .order_by(SalesActivity.created_at.desc(), SalesActivity.id.desc())
        .limit(limit)
        .all()
    )


def list_revisions(s: "Session", quote: SalesQuote) -> list[QuoteRevision]:
    return (
        s.query(QuoteRevision)
        .filter(QuoteRevision.quote_id == quote.id)
        .order_by(QuoteRevision.version.desc())
        .all()
    )


def latest_quotes_query(
    s: "Session",
    *,
    factory: str | None = None,
    assigned_to_user_id: int | None = None,
) -> "Query":
    """Base query every dashboard starts from: latest versions, newest first."""
    q = s.query(SalesQuote).filter(SalesQuote.is_latest_version.is_(True))
    if factory:
        q = q.filter(SalesQuote.factory == factory)
    if assigned_to_user_id is not None:
        q = q.filter(SalesQuote.assigned_to_user_id == assigned_to_user_id)
    return q.order_by(SalesQuote.created_at.desc(), SalesQuote.id.desc())

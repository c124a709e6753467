from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.salesops.audit import record_event
from app.salesops.constants import IMPORT_STATUSES, factory_code
from app.salesops.modules.dealers.models import Dealer
from app.salesops.modules.quote_import.parsers import ImportPreview, ImportRowError
from app.salesops.modules.quotes.models import SalesQuote
from app.salesops.modules.quotes.service import create_quote, generate_quote_number, parse_quote_payload
from app.salesops.utils import parse_money

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.salesops.models import User

logger = logging.getLogger(__name__)


def create_manual_praxis_quote(s: "Session", payload: dict[str, Any], *, user: "User") -> tuple[SalesQuote | None, list[str]]:
    """
    Manual entry of a quote priced in Praxis.

    The factory arrives as a picklist option ("NWBS - Northwest Building
    Systems"); only the code is stored. Returns (quote, errors).
    """
    payload = dict(payload)
    code = factory_code(payload.get("factory"))
    payload["factory"] = code
    payload["praxis_source_factory"] = code or None

    values, errors = parse_quote_payload(s, payload)
    status = (payload.get("status") or "draft").strip()
    if status not in IMPORT_STATUSES:
        errors.append(f"Status {status!r} cannot be set on import.")
    try:
        total_price = parse_money(payload.get("total_price"))
    except ValueError:
        errors.append("Total price must be a number.")
        total_price = None

    praxis_number = values.get("praxis_quote_number")
    if praxis_number and s.query(SalesQuote.id).filter(SalesQuote.quote_number == praxis_number).first():
        errors.append(f"Quote number {praxis_number} already exists.")
    if errors:
        return None, errors

    values["total_price"] = total_price
    if values.get("module_count") is None:
        values["module_count"] = 1
    if values.get("stories") is None:
        values["stories"] = 1

    quote = create_quote(s, values, user=user, quote_number=praxis_number or generate_quote_number(s, code or "QT"))
    quote.status = status
    quote.imported_from = "manual_entry"
    quote.praxis_synced_at = datetime.utcnow()
    return quote, []


def _find_dealer(s: "Session", text: str | None) -> Dealer | None:
    if not text:
        return None
    return (
        s.query(Dealer)
        .filter((Dealer.code == text.upper()) | (func.lower(Dealer.name) == text.lower()))
        .order_by(Dealer.is_active.desc(), Dealer.id.asc())
        .first()
    )


def validate_import(s: "Session", preview: ImportPreview, *, user: "User") -> ImportPreview:
    """
    Database-aware checks layered on top of the file parse: factory fallback,
    duplicate quote numbers and dealer lookups. Mutates and returns preview.
    """
    seen: set[str] = set()
    for row in preview.rows:
        v = row.values
        if not v.get("factory"):
            if user.factory:
                v["factory"] = user.factory
            else:
                preview.errors.append(ImportRowError(row.row_number, "Factory is required"))
        number = v.get("quote_number")
        if number:
            if number in seen:
                preview.errors.append(ImportRowError(row.row_number, f"Quote number {number} appears more than once"))
            elif s.query(SalesQuote.id).filter(SalesQuote.quote_number == number).first():
                preview.errors.append(ImportRowError(row.row_number, f"Quote number {number} already exists"))
            seen.add(number)
        dealer_text = v.get("dealer")
        if dealer_text:
            dealer = _find_dealer(s, dealer_text)
            v["dealer_id"] = dealer.id if dealer else None
            if dealer is None:
                preview.warnings.append(f"Row {row.row_number}: Dealer {dealer_text!r} not found; left blank")
    return preview


def import_quotes(s: "Session", preview: ImportPreview, *, user: "User") -> list[SalesQuote]:
    """Insert every previewed row. Caller commits; any failure rolls back the batch."""
    if not preview.valid:
        raise ValueError("Import has errors; fix the file and upload it again.")
    now = datetime.utcnow()
    created: list[SalesQuote] = []
    for row in preview.rows:
        v = row.values
        quote = SalesQuote(
            quote_number=v.get("quote_number") or generate_quote_number(s, v.get("factory") or "QT"),
            praxis_quote_number=v.get("praxis_quote_number"),
            version=1,
            is_latest_version=True,
            status="draft",
            project_name=v["project_name"],
            project_description=v.get("project_description"),
            project_city=v.get("project_city"),
            project_state=v.get("project_state"),
            factory=v["factory"],
            total_price=v.get("total_price"),
            building_type=v.get("building_type"),
            square_footage=v.get("square_footage"),
            module_count=v.get("module_count") or 1,
            stories=v.get("stories") or 1,
            dealer_id=v.get("dealer_id"),
            imported_from="csv_import",
            praxis_synced_at=now,
            assigned_to_user_id=user.id,
            created_by_user_id=user.id,
            last_modified_by_user_id=user.id,
            created_at=now,
            updated_at=now,
        )
        s.add(quote)
        # Flush per row so the next generated number sees this one.
        s.flush()
        created.append(quote)

    record_event(
        s,
        actor=user,
        action="quote.import",
        entity_type="SalesQuote",
        metadata={"count": len(created), "quote_numbers": [q.quote_number for q in created][:50]},
    )
    logger.info("Imported %s quotes for user_id=%s", len(created), user.id)
    return created

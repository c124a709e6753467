from __future__ import annotations

import json

from flask import Blueprint, Response, current_app, flash, g, redirect, render_template, request, url_for

from app.salesops.constants import (
    BUILDING_TYPES,
    IMPORT_STATUSES,
    OCCUPANCY_TYPES,
    PRAXIS_FACTORY_OPTIONS,
    SET_TYPES,
    SPRINKLER_TYPES,
    status_label,
)
from app.salesops.db import db_session
from app.salesops.models import User
from app.salesops.modules.dealers.service import active_dealers
from app.salesops.modules.quote_import.parsers import (
    TEMPLATE_FILENAME,
    parse_upload,
    preview_from_table,
    template_csv,
)
from app.salesops.modules.quote_import.service import create_manual_praxis_quote, import_quotes, validate_import
from app.salesops.rbac import require_permission

bp = Blueprint("quote_import", __name__)

MANUAL_FIELDS = (
    "praxis_quote_number",
    "factory",
    "project_name",
    "project_description",
    "project_location",
    "project_city",
    "project_state",
    "total_price",
    "status",
    "building_type",
    "building_width",
    "building_length",
    "square_footage",
    "module_count",
    "stories",
    "state_tags",
    "climate_zone",
    "occupancy_type",
    "set_type",
    "sprinkler_type",
    "has_plumbing",
    "wui_compliant",
    "dealer_id",
    "dealer_contact_name",
    "outlook_percentage",
    "waiting_on",
    "expected_close_timeframe",
    "difficulty_rating",
    "promised_delivery_date",
    "quote_due_date",
)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _page_context() -> dict:
    return {
        "factory_options": PRAXIS_FACTORY_OPTIONS,
        "statuses": [(st, status_label(st)) for st in IMPORT_STATUSES],
        "building_types": BUILDING_TYPES,
        "occupancy_types": OCCUPANCY_TYPES,
        "set_types": SET_TYPES,
        "sprinkler_types": SPRINKLER_TYPES,
        "dealers": active_dealers(db_session()),
    }


@bp.get("/sales/quotes/import")
@require_permission("quotes.import")
def import_get():
    tab = request.args.get("tab") if request.args.get("tab") in ("manual", "csv") else "manual"
    return render_template("admin/quote_import/index.html", tab=tab, preview=None, table_json=None, **_page_context())


@bp.post("/sales/quotes/import/manual")
@require_permission("quotes.import")
def import_manual_post():
    s = db_session()
    u = _current_user()
    payload = {k: request.form.get(k) for k in MANUAL_FIELDS}
    try:
        quote, errors = create_manual_praxis_quote(s, payload, user=u)
        if errors:
            for e in errors:
                flash(e, "danger")
            return redirect(url_for("quote_import.import_get", tab="manual"))
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Praxis manual entry failed")
        flash(f"Failed to import quote: {e}", "danger")
        return redirect(url_for("quote_import.import_get", tab="manual"))
    flash(f"Quote {quote.quote_number} imported.", "success")
    return redirect(url_for("quotes.quote_detail", quote_id=quote.id))


@bp.post("/sales/quotes/import/upload")
@require_permission("quotes.import")
def import_upload_post():
    s = db_session()
    u = _current_user()
    f = request.files.get("file")
    if not f or not f.filename:
        flash("Choose a CSV or Excel file to upload.", "danger")
        return redirect(url_for("quote_import.import_get", tab="csv"))
    try:
        preview = parse_upload(f.filename, f.read())
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("quote_import.import_get", tab="csv"))
    except Exception as e:
        current_app.logger.exception("Quote import parse failed (filename=%s)", f.filename)
        flash(f"Failed to parse file: {e}", "danger")
        return redirect(url_for("quote_import.import_get", tab="csv"))

    validate_import(s, preview, user=u)
    return render_template(
        "admin/quote_import/index.html",
        tab="csv",
        preview=preview,
        table_json=json.dumps(preview.table),
        filename=f.filename,
        **_page_context(),
    )


@bp.post("/sales/quotes/import/confirm")
@require_permission("quotes.import")
def import_confirm_post():
    s = db_session()
    u = _current_user()
    try:
        table = json.loads(request.form.get("table_json") or "[]")
    except json.JSONDecodeError:
        flash("Import data was corrupted; upload the file again.", "danger")
        return redirect(url_for("quote_import.import_get", tab="csv"))
    if not isinstance(table, list) or not all(isinstance(r, list) for r in table):
        flash("Import data was corrupted; upload the file again.", "danger")
        return redirect(url_for("quote_import.import_get", tab="csv"))

    preview = validate_import(s, preview_from_table(table), user=u)
    if not preview.valid:
        for e in preview.errors[:20]:
            flash(str(e), "danger")
        return redirect(url_for("quote_import.import_get", tab="csv"))
    try:
        created = import_quotes(s, preview, user=u)
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Quote import failed")
        flash(f"Failed to import quotes from CSV: {e}", "danger")
        return redirect(url_for("quote_import.import_get", tab="csv"))
    flash(f"Imported {len(created)} quote(s).", "success")
    return redirect(url_for("pipeline.sales_dashboard", status="all"))


@bp.get("/sales/quotes/import/template")
@require_permission("quotes.import")
def import_template():
    return Response(
        template_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={TEMPLATE_FILENAME}"},
    )

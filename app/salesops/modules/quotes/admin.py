from __future__ import annotations

from datetime import datetime

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for

from app.salesops.constants import (
    ACTIVITY_TYPES,
    BUILDING_TYPES,
    FACTORIES,
    LOST_REASONS,
    OCCUPANCY_TYPES,
    PAYMENT_TERMS,
    PRODUCT_TYPES,
    QUOTE_STATUSES,
    SET_TYPES,
    SPRINKLER_TYPES,
)
from app.salesops.db import db_session
from app.salesops.models import User
from app.salesops.modules.customers.service import active_customers
from app.salesops.modules.dealers.service import active_dealers
from app.salesops.modules.pipeline.metrics import aging_label, aging_level, days_ago
from app.salesops.modules.quotes.models import SalesQuote
from app.salesops.modules.quotes.service import (
    add_activity,
    change_status,
    clear_pm_flag,
    create_project_from_quote,
    create_quote,
    delete_quote,
    flag_for_pm,
    list_revisions,
    mark_lost,
    parse_quote_payload,
    payload_from_form,
    recent_activities,
    update_quote,
)
from app.salesops.rbac import require_permission

bp = Blueprint("quotes", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _get_quote_or_404(quote_id: int) -> SalesQuote:
    quote = db_session().get(SalesQuote, quote_id)
    if not quote:
        abort(404)
    return quote


def _form_context(factory: str | None) -> dict:
    s = db_session()
    reps = s.query(User).filter(User.is_active.is_(True)).order_by(User.name.asc(), User.email.asc()).all()
    return {
        "factories": FACTORIES,
        "customers": active_customers(s),
        "dealers": active_dealers(s),
        "reps": reps,
        "building_types": BUILDING_TYPES,
        "product_types": PRODUCT_TYPES,
        "payment_terms": PAYMENT_TERMS,
        "occupancy_types": OCCUPANCY_TYPES,
        "set_types": SET_TYPES,
        "sprinkler_types": SPRINKLER_TYPES,
        "default_factory": factory,
    }


# ---------- New ----------
@bp.get("/sales/quotes/new")
@require_permission("quotes.create")
def quotes_new_get():
    u = _current_user()
    customer_id = request.args.get("customer_id", type=int)
    return render_template(
        "admin/quotes/form.html",
        quote=None,
        preset_customer_id=customer_id,
        **_form_context(u.factory or current_app.config.get("DEFAULT_FACTORY") or None),
    )


@bp.post("/sales/quotes/new")
@require_permission("quotes.create")
def quotes_new_post():
    s = db_session()
    u = _current_user()
    values, errors = parse_quote_payload(s, payload_from_form(request.form))
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("quotes.quotes_new_get"))
    try:
        quote = create_quote(s, values, user=u)
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Quote create failed")
        flash(f"Failed to save quote: {e}", "danger")
        return redirect(url_for("quotes.quotes_new_get"))
    flash(f"Quote {quote.quote_number} created.", "success")
    return redirect(url_for("quotes.quote_detail", quote_id=quote.id))


# ---------- Detail ----------
@bp.get("/sales/quotes/<int:quote_id>")
@require_permission("sales.view")
def quote_detail(quote_id: int):
    s = db_session()
    quote = _get_quote_or_404(quote_id)
    days = days_ago(quote.created_at, datetime.utcnow())
    return render_template(
        "admin/quotes/detail.html",
        quote=quote,
        activities=recent_activities(s, quote),
        revisions=list_revisions(s, quote),
        statuses=QUOTE_STATUSES,
        lost_reasons=LOST_REASONS,
        activity_types=[a for a in ACTIVITY_TYPES if a[0] != "status_change"],
        age_days=days,
        age_label=aging_label(days),
        age_level=aging_level(days),
    )


# ---------- Edit ----------
@bp.get("/sales/quotes/<int:quote_id>/edit")
@require_permission("quotes.edit")
def quote_edit_get(quote_id: int):
    quote = _get_quote_or_404(quote_id)
    return render_template(
        "admin/quotes/form.html",
        quote=quote,
        preset_customer_id=quote.customer_id,
        **_form_context(quote.factory),
    )


@bp.post("/sales/quotes/<int:quote_id>/edit")
@require_permission("quotes.edit")
def quote_edit_post(quote_id: int):
    s = db_session()
    u = _current_user()
    quote = _get_quote_or_404(quote_id)
    values, errors = parse_quote_payload(s, payload_from_form(request.form))
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("quotes.quote_edit_get", quote_id=quote.id))
    try:
        update_quote(s, quote, values, user=u, change_notes=(request.form.get("change_notes") or "").strip() or None)
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Quote update failed (quote_id=%s)", quote_id)
        flash(f"Failed to save quote: {e}", "danger")
        return redirect(url_for("quotes.quote_edit_get", quote_id=quote_id))
    flash("Quote updated.", "success")
    return redirect(url_for("quotes.quote_detail", quote_id=quote.id))


# ---------- Workflow ----------
@bp.post("/sales/quotes/<int:quote_id>/status")
@require_permission("quotes.edit")
def quote_status_post(quote_id: int):
    s = db_session()
    u = _current_user()
    quote = _get_quote_or_404(quote_id)
    new_status = (request.form.get("status") or "").strip()
    if new_status == "lost":
        flash("Record a reason to mark this quote as lost.", "warning")
        return redirect(url_for("quotes.quote_detail", quote_id=quote.id, lost=1))
    try:
        act = change_status(s, quote, new_status, user=u)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("quotes.quote_detail", quote_id=quote.id))
    except Exception:
        s.rollback()
        current_app.logger.exception("Quote status change failed (quote_id=%s)", quote_id)
        flash("Failed to update status.", "danger")
        return redirect(url_for("quotes.quote_detail", quote_id=quote.id))
    if act is not None:
        flash(f"Status changed to {new_status}.", "success")
    return redirect(url_for("quotes.quote_detail", quote_id=quote.id))


@bp.post("/sales/quotes/<int:quote_id>/lost")
@require_permission("quotes.edit")
def quote_mark_lost_post(quote_id: int):
    s = db_session()
    u = _current_user()
    quote = _get_quote_or_404(quote_id)
    try:
        mark_lost(
            s,
            quote,
            reason=request.form.get("lost_reason"),
            competitor_name=request.form.get("competitor_name"),
            user=u,
        )
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("quotes.quote_detail", quote_id=quote.id, lost=1))
    flash("Quote marked as lost.", "success")
    return redirect(url_for("quotes.quote_detail", quote_id=quote.id))


@bp.post("/sales/quotes/<int:quote_id>/pm-flag")
@require_permission("quotes.edit")
def quote_pm_flag_post(quote_id: int):
    s = db_session()
    u = _current_user()
    quote = _get_quote_or_404(quote_id)
    clearing = request.form.get("action") == "clear"
    try:
        if clearing:
            clear_pm_flag(s, quote, user=u)
        else:
            flag_for_pm(s, quote, reason=request.form.get("reason"), user=u)
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("PM flag update failed (quote_id=%s)", quote_id)
        flash(f"Failed to update PM flag: {e}", "danger")
        return redirect(url_for("quotes.quote_detail", quote_id=quote_id))
    flash("PM review flag cleared." if clearing else "Quote flagged for PM review.", "success")
    return redirect(url_for("quotes.quote_detail", quote_id=quote.id))


@bp.post("/sales/quotes/<int:quote_id>/handoff")
@require_permission("quotes.edit")
def quote_handoff_post(quote_id: int):
    s = db_session()
    u = _current_user()
    quote = _get_quote_or_404(quote_id)
    try:
        project = create_project_from_quote(s, quote, user=u)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("quotes.quote_detail", quote_id=quote.id))
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Project handoff failed (quote_id=%s)", quote_id)
        flash(f"Failed to create project: {e}", "danger")
        return redirect(url_for("quotes.quote_detail", quote_id=quote.id))
    flash(f"Project created successfully (project #{project.id}).", "success")
    return redirect(url_for("quotes.quote_detail", quote_id=quote.id))


@bp.post("/sales/quotes/<int:quote_id>/activities")
@require_permission("quotes.edit")
def quote_activity_add(quote_id: int):
    s = db_session()
    u = _current_user()
    quote = _get_quote_or_404(quote_id)
    try:
        add_activity(s, quote, request.form, user=u)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("quotes.quote_detail", quote_id=quote.id))
    flash("Activity logged.", "success")
    return redirect(url_for("quotes.quote_detail", quote_id=quote.id))


# ---------- Delete ----------
@bp.post("/sales/quotes/<int:quote_id>/delete")
@require_permission("quotes.delete")
def quote_delete_post(quote_id: int):
    s = db_session()
    u = _current_user()
    quote = _get_quote_or_404(quote_id)
    number = quote.quote_number
    try:
        delete_quote(s, quote, user=u)
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Quote delete failed (quote_id=%s)", quote_id)
        flash(f"Failed to delete quote: {e}", "danger")
        return redirect(url_for("quotes.quote_detail", quote_id=quote_id))
    flash(f"Quote {number} deleted.", "success")
    return redirect(url_for("pipeline.sales_dashboard"))

from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for

from app.salesops.constants import COMPANY_TYPES, CUSTOMER_SOURCES, FACTORIES
from app.salesops.db import db_session
from app.salesops.models import User
from app.salesops.modules.customers.models import SalesCustomer
from app.salesops.modules.customers.service import (
    create_customer,
    payload_from_form,
    search_customers,
    update_customer,
    validate_customer_payload,
)
from app.salesops.modules.quotes.models import SalesQuote
from app.salesops.rbac import require_permission

bp = Blueprint("customers", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _form_context() -> dict:
    return {"factories": FACTORIES, "company_types": COMPANY_TYPES, "sources": CUSTOMER_SOURCES}


@bp.get("/sales/customers")
@require_permission("customers.view")
def customers_list():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    factory = (request.args.get("factory") or "").strip()
    include_inactive = request.args.get("inactive") == "1"
    customers = search_customers(s, q=q, factory=factory, include_inactive=include_inactive).all()
    return render_template(
        "admin/customers/list.html",
        customers=customers,
        q=q,
        factory=factory,
        include_inactive=include_inactive,
        factories=FACTORIES,
    )


@bp.get("/sales/customers/new")
@require_permission("customers.create")
def customers_new_get():
    u = _current_user()
    return render_template(
        "admin/customers/form.html",
        customer=None,
        default_factory=u.factory or current_app.config.get("DEFAULT_FACTORY") or None,
        **_form_context(),
    )


@bp.post("/sales/customers/new")
@require_permission("customers.create")
def customers_new_post():
    s = db_session()
    u = _current_user()
    payload = payload_from_form(request.form)
    errors = validate_customer_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("customers.customers_new_get"))
    try:
        c = create_customer(s, payload, user=u)
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Customer create failed")
        flash(f"Failed to save customer: {e}", "danger")
        return redirect(url_for("customers.customers_new_get"))
    flash("Customer created.", "success")
    return redirect(url_for("customers.customer_detail", customer_id=c.id))


@bp.get("/sales/customers/<int:customer_id>")
@require_permission("customers.view")
def customer_detail(customer_id: int):
    s = db_session()
    c = s.get(SalesCustomer, customer_id)
    if not c:
        abort(404)
    quotes = (
        s.query(SalesQuote)
        .filter(SalesQuote.customer_id == c.id, SalesQuote.is_latest_version.is_(True))
        .order_by(SalesQuote.created_at.desc())
        .all()
    )
    return render_template("admin/customers/detail.html", customer=c, quotes=quotes)


@bp.get("/sales/customers/<int:customer_id>/edit")
@require_permission("customers.edit")
def customer_edit_get(customer_id: int):
    s = db_session()
    c = s.get(SalesCustomer, customer_id)
    if not c:
        abort(404)
    return render_template("admin/customers/form.html", customer=c, default_factory=c.factory, **_form_context())


@bp.post("/sales/customers/<int:customer_id>/edit")
@require_permission("customers.edit")
def customer_edit_post(customer_id: int):
    s = db_session()
    u = _current_user()
    c = s.get(SalesCustomer, customer_id)
    if not c:
        abort(404)
    payload = payload_from_form(request.form)
    errors = validate_customer_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("customers.customer_edit_get", customer_id=c.id))
    try:
        update_customer(s, c, payload, user=u)
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Customer update failed (customer_id=%s)", c.id)
        flash(f"Failed to save customer: {e}", "danger")
        return redirect(url_for("customers.customer_edit_get", customer_id=c.id))
    flash("Customer updated.", "success")
    return redirect(url_for("customers.customer_detail", customer_id=c.id))

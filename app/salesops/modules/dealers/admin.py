from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for

from app.salesops.constants import FACTORIES
from app.salesops.db import db_session
from app.salesops.models import User
from app.salesops.modules.dealers.models import Dealer
from app.salesops.modules.dealers.service import (
    create_dealer,
    payload_from_form,
    update_dealer,
    validate_dealer_payload,
)
from app.salesops.rbac import require_permission

bp = Blueprint("dealers", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- List ----------
@bp.get("/sales/dealers")
@require_permission("dealers.view")
def dealers_list():
    s = db_session()
    search = (request.args.get("q") or "").strip()
    show = (request.args.get("show") or "active").strip()

    q = s.query(Dealer)
    if search:
        like = f"%{search}%"
        q = q.filter((Dealer.name.ilike(like)) | (Dealer.code.ilike(like)) | (Dealer.branch_name.ilike(like)))
    if show == "active":
        q = q.filter(Dealer.is_active.is_(True))
    elif show == "inactive":
        q = q.filter(Dealer.is_active.is_(False))

    dealers = q.order_by(Dealer.name.asc(), Dealer.branch_name.asc()).all()
    return render_template("admin/dealers/list.html", dealers=dealers, search=search, show=show)


# ---------- New ----------
@bp.get("/sales/dealers/new")
@require_permission("dealers.edit")
def dealers_new_get():
    return render_template("admin/dealers/form.html", dealer=None, factories=FACTORIES)


@bp.post("/sales/dealers/new")
@require_permission("dealers.edit")
def dealers_new_post():
    s = db_session()
    u = _current_user()
    payload = payload_from_form(request.form)
    errors = validate_dealer_payload(s, payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("dealers.dealers_new_get"))
    try:
        dealer = create_dealer(s, payload, user=u)
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Dealer create failed")
        flash(f"Failed to save dealer: {e}", "danger")
        return redirect(url_for("dealers.dealers_new_get"))
    flash("Dealer created.", "success")
    return redirect(url_for("dealers.dealer_detail", dealer_id=dealer.id))


# ---------- Detail / Edit ----------
@bp.get("/sales/dealers/<int:dealer_id>")
@require_permission("dealers.view")
def dealer_detail(dealer_id: int):
    s = db_session()
    dealer = s.get(Dealer, dealer_id)
    if not dealer:
        abort(404)
    return render_template("admin/dealers/detail.html", dealer=dealer)


@bp.get("/sales/dealers/<int:dealer_id>/edit")
@require_permission("dealers.edit")
def dealer_edit_get(dealer_id: int):
    s = db_session()
    dealer = s.get(Dealer, dealer_id)
    if not dealer:
        abort(404)
    return render_template("admin/dealers/form.html", dealer=dealer, factories=FACTORIES)


@bp.post("/sales/dealers/<int:dealer_id>/edit")
@require_permission("dealers.edit")
def dealer_edit_post(dealer_id: int):
    s = db_session()
    u = _current_user()
    dealer = s.get(Dealer, dealer_id)
    if not dealer:
        abort(404)
    payload = payload_from_form(request.form)
    errors = validate_dealer_payload(s, payload, dealer_id=dealer.id)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("dealers.dealer_edit_get", dealer_id=dealer.id))
    try:
        update_dealer(s, dealer, payload, user=u)
        s.commit()
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Dealer update failed (dealer_id=%s)", dealer.id)
        flash(f"Failed to save dealer: {e}", "danger")
        return redirect(url_for("dealers.dealer_edit_get", dealer_id=dealer.id))
    flash("Dealer updated.", "success")
    return redirect(url_for("dealers.dealer_detail", dealer_id=dealer.id))

from __future__ import annotations

from datetime import datetime

from flask import Blueprint, g, render_template, request

from app.salesops.constants import BUILDING_TYPES, FACTORIES, QUOTE_STATUSES, SALES_ROLES
from app.salesops.db import db_session
from app.salesops.models import User
from app.salesops.modules.pipeline.metrics import (
    WORKLOAD_SORTS,
    attention_items,
    building_type_breakdown,
    filter_quotes,
    funnel_stages,
    pipeline_metrics,
    pm_flagged_quotes,
    quick_stats,
    stale_quotes,
    team_metrics,
    team_totals,
    team_workload,
)
from app.salesops.modules.quotes.service import latest_quotes_query
from app.salesops.rbac import require_permission

bp = Blueprint("pipeline", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _filters_from_args() -> dict:
    member = (request.args.get("member") or "").strip()
    return {
        "search": (request.args.get("q") or "").strip(),
        "status": (request.args.get("status") or "active").strip(),
        "factory": (request.args.get("factory") or "").strip(),
        "building_type": (request.args.get("building_type") or "").strip(),
        "pm_flagged_only": request.args.get("pm_flagged") == "1",
        "assigned_to": int(member) if member.isdigit() else None,
    }


def _team_members(s, factory: str | None) -> list[User]:
    q = s.query(User).filter(User.is_active.is_(True), User.sales_role.in_(SALES_ROLES))
    if factory:
        q = q.filter(User.factory == factory)
    return q.order_by(User.name.asc(), User.email.asc()).all()


@bp.get("/sales")
@require_permission("sales.view")
def sales_dashboard():
    """Company-wide pipeline: every latest-version quote."""
    s = db_session()
    now = datetime.utcnow()
    quotes = latest_quotes_query(s).all()
    filters = _filters_from_args()
    return render_template(
        "admin/sales/dashboard.html",
        metrics=pipeline_metrics(quotes, now),
        quotes=filter_quotes(quotes, **filters),
        filters=filters,
        statuses=QUOTE_STATUSES,
        factories=FACTORIES,
        building_types=BUILDING_TYPES,
    )


@bp.get("/sales/manager")
@require_permission("sales.manage")
def manager_dashboard():
    s = db_session()
    u = _current_user()
    now = datetime.utcnow()
    factory = u.factory or None
    quotes = latest_quotes_query(s, factory=factory).all()
    members = _team_members(s, factory)
    filters = _filters_from_args()
    filters["factory"] = ""
    return render_template(
        "admin/sales/manager.html",
        factory=factory,
        metrics=pipeline_metrics(quotes, now),
        team=team_metrics(members, quotes),
        members=members,
        funnel=funnel_stages(quotes),
        building_types_chart=building_type_breakdown(quotes),
        stale=stale_quotes(quotes, now),
        flagged=pm_flagged_quotes(quotes),
        quotes=filter_quotes(quotes, **filters),
        filters=filters,
        statuses=QUOTE_STATUSES,
        building_types=BUILDING_TYPES,
    )


@bp.get("/sales/my")
@require_permission("sales.view")
def my_dashboard():
    s = db_session()
    u = _current_user()
    now = datetime.utcnow()
    quotes = latest_quotes_query(s, assigned_to_user_id=u.id).all()
    filters = _filters_from_args()
    filters["assigned_to"] = None
    return render_template(
        "admin/sales/my.html",
        metrics=pipeline_metrics(quotes, now),
        attention=attention_items(quotes, now),
        stats=quick_stats(quotes, now),
        quotes=filter_quotes(quotes, **filters),
        filters=filters,
        statuses=QUOTE_STATUSES,
        building_types=BUILDING_TYPES,
    )


@bp.get("/sales/team")
@require_permission("sales.manage")
def team_page():
    s = db_session()
    u = _current_user()
    now = datetime.utcnow()
    sort_by = (request.args.get("sort") or "pipeline").strip()
    if sort_by not in WORKLOAD_SORTS:
        sort_by = "pipeline"
    factory = u.factory or None
    quotes = latest_quotes_query(s, factory=factory).all()
    workload = team_workload(_team_members(s, factory), quotes, now, sort_by=sort_by)
    return render_template(
        "admin/sales/team.html",
        factory=factory,
        workload=workload,
        totals=team_totals(workload),
        sort_by=sort_by,
        sort_options=list(WORKLOAD_SORTS),
    )

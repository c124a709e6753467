"""
Admin shell: landing page with pipeline counts, the audit trail, and user
accounts (login, roles, and the sales profile that drives dashboards).
"""
import re
from datetime import date, datetime, time, timedelta

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for
from sqlalchemy import func, text
from werkzeug.security import generate_password_hash

from app.salesops.audit import record_event
from app.salesops.constants import ACTIVE_STATUSES, FACTORIES, SALES_ROLES
from app.salesops.db import db_session
from app.salesops.models import AuditEvent, Role, User
from app.salesops.modules.customers.models import SalesCustomer
from app.salesops.modules.dealers.models import Dealer
from app.salesops.modules.quotes.models import SalesQuote
from app.salesops.rbac import require_permission

bp = Blueprint("admin", __name__)

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MIN_PASSWORD_LENGTH = 8
AUDIT_PAGE_SIZE = 200


def _iso_date(raw: str) -> date | None:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def _acting_user() -> User:
    u = getattr(g, "current_user", None)
    if u is None:
        raise RuntimeError("No current user")
    return u


def _get_user_or_404(user_id: int) -> User:
    user = db_session().get(User, user_id)
    if user is None:
        abort(404)
    return user


@bp.get("/")
@require_permission("admin.view")
def index():
    s = db_session()
    try:
        s.execute(text("SELECT 1"))
    except Exception as e:
        return render_template("admin/index.html", system_status={"db_connected": False, "db_error": str(e)}, counts={})

    def _count(col, *criteria) -> int:
        return s.query(func.count(col)).filter(*criteria).scalar() or 0

    counts = {
        "customers": _count(SalesCustomer.id, SalesCustomer.is_active.is_(True)),
        "dealers": _count(Dealer.id, Dealer.is_active.is_(True)),
        "active_quotes": _count(
            SalesQuote.id, SalesQuote.is_latest_version.is_(True), SalesQuote.status.in_(ACTIVE_STATUSES)
        ),
    }
    return render_template("admin/index.html", system_status={"db_connected": True, "db_error": None}, counts=counts)


# ---------- Audit trail ----------

def _audit_filters() -> dict[str, str]:
    return {k: (request.args.get(k) or "").strip() for k in ("action", "actor_email", "date_from", "date_to")}


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """Newest first. action / actor_email match substrings; dates are inclusive YYYY-MM-DD."""
    f = _audit_filters()
    q = db_session().query(AuditEvent)
    if f["action"]:
        q = q.filter(AuditEvent.action.like(f"%{f['action']}%"))
    if f["actor_email"]:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{f['actor_email'].lower()}%"))

    for key in ("date_from", "date_to"):
        if not f[key]:
            continue
        day = _iso_date(f[key])
        if day is None:
            flash(f"{key} must be YYYY-MM-DD", "danger")
        elif key == "date_from":
            q = q.filter(AuditEvent.created_at >= datetime.combine(day, time.min))
        else:
            q = q.filter(AuditEvent.created_at < datetime.combine(day + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(AUDIT_PAGE_SIZE).all()
    return render_template("admin/audit/list.html", events=events, **f)


# ---------- Accounts ----------

def _profile_from_form() -> tuple[dict, list[str]]:
    """name / factory / sales_role as posted; blank means unset."""
    sales_role = (request.form.get("sales_role") or "").strip() or None
    errors = ["Unknown sales role."] if sales_role and sales_role not in SALES_ROLES else []
    return {
        "name": (request.form.get("name") or "").strip() or None,
        "factory": (request.form.get("factory") or "").strip().upper() or None,
        "sales_role": sales_role,
    }, errors


def _password_from_form() -> tuple[str, list[str]]:
    password = request.form.get("password") or ""
    if not password:
        return password, ["Password is required."]
    if len(password) < MIN_PASSWORD_LENGTH:
        return password, [f"Password must be at least {MIN_PASSWORD_LENGTH} characters."]
    if password != (request.form.get("password_confirm") or ""):
        return password, ["Passwords do not match."]
    return password, []


def _posted_roles(s) -> list[Role]:
    ids = [int(r) for r in request.form.getlist("role_ids") if r.isdigit()]
    if not ids:
        return []
    return s.query(Role).filter(Role.id.in_(ids)).order_by(Role.key.asc()).all()


def _account_snapshot(user: User) -> dict:
    return {
        "is_active": user.is_active,
        "roles": sorted(r.key for r in user.roles),
        "name": user.name,
        "factory": user.factory,
        "sales_role": user.sales_role,
    }


def _flash_all(errors: list[str]) -> None:
    for e in errors:
        flash(e, "danger")


def _form_context(s) -> dict:
    return {
        "roles": s.query(Role).order_by(Role.name.asc()).all(),
        "factories": FACTORIES,
        "sales_roles": SALES_ROLES,
    }


@bp.get("/accounts")
@require_permission("admin.edit")
def accounts_list():
    s = db_session()
    sales_role = (request.args.get("sales_role") or "").strip()
    q = s.query(User)
    if sales_role in SALES_ROLES:
        q = q.filter(User.sales_role == sales_role)
    users = q.order_by(User.email.asc()).all()
    return render_template("admin/accounts/list.html", users=users, sales_role=sales_role, **_form_context(s))


@bp.get("/accounts/new")
@require_permission("admin.edit")
def accounts_new_get():
    return render_template("admin/accounts/new.html", **_form_context(db_session()))


@bp.post("/accounts/new")
@require_permission("admin.edit")
def accounts_new_post():
    s = db_session()
    actor = _acting_user()

    email = (request.form.get("email") or "").strip().lower()
    errors: list[str] = []
    if not email:
        errors.append("Email is required.")
    elif not EMAIL_RE.match(email):
        errors.append("Invalid email format.")
    elif s.query(User.id).filter(User.email == email).first():
        errors.append("An account with this email already exists.")
    password, password_errors = _password_from_form()
    profile, profile_errors = _profile_from_form()
    errors += password_errors + profile_errors
    if errors:
        _flash_all(errors)
        return redirect(url_for("admin.accounts_new_get"))

    user = User(email=email, password_hash=generate_password_hash(password), is_active=True, **profile)
    user.roles.extend(_posted_roles(s))
    s.add(user)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": email, **_account_snapshot(user)},
    )
    s.commit()
    flash(f"Account created for {email}.", "success")
    return redirect(url_for("admin.accounts_list"))


@bp.get("/accounts/<int:user_id>")
@require_permission("admin.edit")
def accounts_detail(user_id: int):
    return render_template("admin/accounts/detail.html", account=_get_user_or_404(user_id), **_form_context(db_session()))


@bp.post("/accounts/<int:user_id>/update")
@require_permission("admin.edit")
def accounts_update(user_id: int):
    s = db_session()
    actor = _acting_user()
    user = _get_user_or_404(user_id)
    back = redirect(url_for("admin.accounts_detail", user_id=user.id))

    # Self-edits could strip the last admin role.
    if user.id == actor.id:
        flash("You cannot modify your own account from this page.", "danger")
        return back
    profile, errors = _profile_from_form()
    if errors:
        _flash_all(errors)
        return back

    before = _account_snapshot(user)
    user.is_active = request.form.get("is_active") == "1"
    for key, value in profile.items():
        setattr(user, key, value)
    user.roles = _posted_roles(s)
    after = _account_snapshot(user)

    record_event(
        s,
        actor=actor,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"before": before, "after": after},
    )
    s.commit()
    flash(f"Account updated for {user.email}.", "success")
    return back


@bp.post("/accounts/<int:user_id>/reset-password")
@require_permission("admin.edit")
def accounts_reset_password(user_id: int):
    s = db_session()
    actor = _acting_user()
    user = _get_user_or_404(user_id)

    password, errors = _password_from_form()
    if errors:
        _flash_all(errors)
        return redirect(url_for("admin.accounts_detail", user_id=user.id))

    user.password_hash = generate_password_hash(password)
    record_event(
        s,
        actor=actor,
        action="user.password_reset",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"target_email": user.email},
    )
    s.commit()
    flash(f"Password reset for {user.email}.", "success")
    return redirect(url_for("admin.accounts_detail", user_id=user.id))

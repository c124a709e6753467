from __future__ import annotations

import uuid
from collections import defaultdict, deque
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from werkzeug.security import check_password_hash

from app.salesops.audit import record_event
from app.salesops.db import db_session
from app.salesops.models import User
from app.salesops.rbac import sales_home_endpoint

bp = Blueprint("auth", __name__)

_UNAUTHENTICATED_PREFIXES = ("/static/", "/health", "/healthz")


class LoginThrottle:
    """Per-IP sliding window of failed logins (process-local)."""

    def __init__(self, limit: int = 5, window: timedelta = timedelta(minutes=5)) -> None:
        self.limit = limit
        self.window = window
        self._failures: dict[str, deque[datetime]] = defaultdict(deque)

    def _prune(self, ip: str, now: datetime) -> deque[datetime]:
        hits = self._failures[ip]
        while hits and hits[0] <= now - self.window:
            hits.popleft()
        return hits

    def blocked(self, ip: str) -> bool:
        return len(self._prune(ip, datetime.utcnow())) >= self.limit

    def fail(self, ip: str) -> None:
        self._failures[ip].append(datetime.utcnow())

    def reset(self, ip: str) -> None:
        self._failures.pop(ip, None)


throttle = LoginThrottle()


def _safe_next(nxt: str) -> str | None:
    # Local paths only; "//host" would leave the site.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


def load_current_user() -> None:
    """Resolve g.current_user from the session and tag the request with an id for audit rows."""
    g.request_id = getattr(g, "request_id", None) or uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(_UNAUTHENTICATED_PREFIXES):
        return

    user_id = session.get("user_id")
    if not user_id:
        return
    user = db_session().get(User, int(user_id))
    if user is None or not user.is_active:
        # Deactivated mid-session.
        session.pop("user_id", None)
        return
    g.current_user = user


@bp.get("/login")
def login_get():
    return render_template("auth/login.html", next=(request.args.get("next") or "").strip())


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if throttle.blocked(ip):
        current_app.logger.warning("Login throttled ip=%s email=%s", ip, email)
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if user is None or not user.is_active or not check_password_hash(user.password_hash, password):
        throttle.fail(ip)
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
        )
        s.commit()
        flash("Invalid credentials.", "danger")
        return redirect(url_for("auth.login_get", next=nxt or None))

    throttle.reset(ip)
    session["user_id"] = user.id
    record_event(
        s,
        actor=user,
        action="auth.login",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"sales_role": user.sales_role, "factory": user.factory} if user.sales_role else None,
    )
    s.commit()
    return redirect(_safe_next(nxt) or url_for(sales_home_endpoint(user)))


@bp.get("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user is not None:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return redirect(url_for("routes.index"))

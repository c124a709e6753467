from flask import Blueprint, g, redirect, render_template, url_for
from sqlalchemy import text

from app.salesops.db import db_session
from app.salesops.rbac import sales_home_endpoint

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    user = getattr(g, "current_user", None)
    if user is not None:
        return redirect(url_for(sales_home_endpoint(user)))
    return render_template("public/index.html")


@bp.get("/health")
def health():
    """Readiness: JSON with a database round trip."""
    try:
        db_session().execute(text("SELECT 1"))
    except Exception as e:
        return {"ok": False, "db": str(e)}, 503
    return {"ok": True, "db": "ok"}


@bp.get("/healthz")
def healthz():
    # Liveness only; never touches the database.
    return "ok", 200

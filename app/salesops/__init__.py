import logging
import os
from datetime import datetime, timedelta

from dotenv import load_dotenv
from flask import Flask, flash, g, redirect, render_template, request, url_for

from app.salesops.config import load_config
from app.salesops.db import init_db, teardown_db_session

logger = logging.getLogger(__name__)

_NO_SESSION_PREFIXES = ("/static/", "/health", "/healthz")


def _check_production_config(app: Flask) -> None:
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    db_url = str(app.config.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if str(app.config.get("SECRET_KEY") or "") in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")


def _register_template_helpers(app: Flask) -> None:
    from app.salesops.constants import lost_reason_label, status_label
    from app.salesops.modules.pipeline.metrics import (
        aging_label,
        aging_level,
        days_ago,
        format_compact_currency,
        format_currency,
    )
    from app.salesops.rbac import user_has_permission

    @app.context_processor
    def _inject_permissions() -> dict:
        def has_perm(key: str) -> bool:
            return user_has_permission(getattr(g, "current_user", None), key)

        return {"has_perm": has_perm}

    @app.template_filter("dateformat")
    def _dateformat(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        return value.strftime(format) if hasattr(value, "strftime") else str(value)

    @app.template_filter("aging")
    def _aging(created_at) -> str:
        return aging_label(days_ago(created_at, datetime.utcnow()))

    @app.template_filter("aging_level")
    def _aging_level(created_at) -> str:
        return aging_level(days_ago(created_at, datetime.utcnow()))

    app.add_template_filter(format_currency, "currency")
    app.add_template_filter(format_compact_currency, "compact_currency")
    app.add_template_filter(status_label, "status_label")
    app.add_template_filter(lost_reason_label, "lost_reason_label")


def _register_blueprints(app: Flask) -> None:
    from app.salesops.admin import bp as admin_bp
    from app.salesops.auth import bp as auth_bp
    from app.salesops.modules.customers.admin import bp as customers_bp
    from app.salesops.modules.dealers.admin import bp as dealers_bp
    from app.salesops.modules.pipeline.admin import bp as pipeline_bp
    from app.salesops.modules.quote_import.admin import bp as quote_import_bp
    from app.salesops.modules.quotes.admin import bp as quotes_bp
    from app.salesops.routes import bp as routes_bp

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    # Everything behind a login lives under /admin.
    for bp in (admin_bp, customers_bp, dealers_bp, quote_import_bp, quotes_bp, pipeline_bp):
        app.register_blueprint(bp, url_prefix="/admin")


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(403)
    def _forbidden(e):
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("403 missing_permission=%s path=%s request_id=%s", missing, request.path, g.get("request_id"))
        return render_template("errors/403.html", missing_permission=missing), 403

    @app.errorhandler(404)
    def _not_found(e):
        return render_template("errors/404.html"), 404

    @app.errorhandler(413)
    def _too_large(e):
        limit_mb = (app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        flash(f"File too large. Maximum size is {limit_mb}MB.", "danger")
        back = request.referrer
        if back and back.startswith(request.host_url):
            return redirect(back)
        return redirect(url_for("quote_import.import_get", tab="csv"))

    @app.errorhandler(500)
    def _server_error(e):
        app.logger.exception("Unhandled error path=%s request_id=%s", request.path, g.get("request_id"))
        return render_template("errors/500.html"), 500


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config.update(
        PERMANENT_SESSION_LIFETIME=timedelta(hours=app.config["SESSION_HOURS"]),
        SESSION_REFRESH_EACH_REQUEST=True,
    )
    _check_production_config(app)

    from app.salesops.auth import load_current_user
    from app.salesops.security import init_csrf

    init_csrf(app, skip_prefixes=_NO_SESSION_PREFIXES)
    _register_template_helpers(app)

    init_db(app)
    if hasattr(os, "register_at_fork"):
        # Pooled connections must not cross a gunicorn fork.
        def _dispose_engine_in_child() -> None:
            engine = app.extensions.get("sqlalchemy_engine")
            if engine is not None:
                engine.dispose()

        os.register_at_fork(after_in_child=_dispose_engine_in_child)

    _register_blueprints(app)
    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)
    _register_error_handlers(app)

    logger.info("SalesOps app created (env=%s)", app.config.get("ENV"))
    return app

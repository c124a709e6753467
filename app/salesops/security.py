"""
Session-bound CSRF tokens.

Every form renders ``csrf_token`` into a hidden field; unsafe requests must
echo it back (form field or ``X-CSRF-Token`` header). Login and logout are
exempt.
"""
import secrets

from flask import Flask, Request, render_template, request, session

UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
EXEMPT_BLUEPRINTS = frozenset({"auth"})


def ensure_csrf_token() -> str:
    token = session.get("csrf_token")
    if not token:
        token = session["csrf_token"] = secrets.token_urlsafe(32)
    return token


def submitted_token(req: Request) -> str | None:
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")
    if not token and req.is_json:
        token = (req.get_json(silent=True) or {}).get("csrf_token")
    return token


def validate_csrf(req: Request) -> bool:
    token = submitted_token(req)
    expected = session.get("csrf_token") or ""
    return bool(token) and secrets.compare_digest(str(token), str(expected))


def init_csrf(app: Flask, *, skip_prefixes: tuple[str, ...] = ()) -> None:
    """Register the token context processor and the before_request check."""

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.before_request
    def _csrf_guard():
        if skip_prefixes and request.path.startswith(skip_prefixes):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method not in UNSAFE_METHODS or request.blueprint in EXEMPT_BLUEPRINTS:
            return None
        if not validate_csrf(request):
            app.logger.warning("CSRF check failed path=%s", request.path)
            return render_template("errors/400.html", message="CSRF token missing or invalid."), 400
        return None

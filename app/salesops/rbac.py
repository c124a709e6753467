"""
Role-based access for routes and templates.

Permissions hang off roles; a user's effective set is resolved once per
request and kept on ``g`` so nav rendering does not walk the role graph for
every ``has_perm`` call.
"""
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, has_app_context, redirect, request, url_for

from app.salesops.models import User


def effective_permissions(user: User | None) -> frozenset[str]:
    if not user or not user.is_active:
        return frozenset()
    cache: dict[int, frozenset[str]] | None = None
    if has_app_context():
        cache = g.setdefault("_permission_cache", {})
        if user.id in cache:
            return cache[user.id]
    keys = frozenset(p.key for role in user.roles for p in role.permissions)
    if cache is not None:
        cache[user.id] = keys
    return keys


def user_has_permission(user: User | None, permission_key: str) -> bool:
    return permission_key in effective_permissions(user)


def sales_home_endpoint(user: User) -> str:
    """Dashboard a user lands on after login, based on their sales role."""
    if user.sales_role == "Sales_Manager" and user_has_permission(user, "sales.manage"):
        return "pipeline.manager_dashboard"
    if user.sales_role == "Sales_Rep" and user_has_permission(user, "sales.view"):
        return "pipeline.my_dashboard"
    return "admin.index"


def _login_redirect():
    target = request.full_path if request.query_string else request.path
    return redirect(url_for("auth.login_get", next=target))


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Anonymous visitors go to the login page; signed-in users without the key get a 403."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def guarded(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                return _login_redirect()
            if not user_has_permission(user, permission_key):
                # Read by the 403 handler for logging and the error page.
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return guarded

    return decorator

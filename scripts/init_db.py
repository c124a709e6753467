import os
import sys
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.salesops.models import Permission, Role, User  # noqa: E402

PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("admin.view", "Admin: view shell"),
    ("admin.edit", "Admin: manage accounts"),
    ("sales.view", "Sales: view pipeline"),
    ("sales.manage", "Sales: manager dashboards"),
    ("quotes.create", "Quotes: create"),
    ("quotes.edit", "Quotes: edit"),
    ("quotes.delete", "Quotes: delete"),
    ("quotes.import", "Quotes: import from Praxis"),
    ("customers.view", "Customers: view"),
    ("customers.create", "Customers: create"),
    ("customers.edit", "Customers: edit"),
    ("dealers.view", "Dealers: view"),
    ("dealers.edit", "Dealers: create/edit"),
)

_REP_PERMS = (
    "admin.view",
    "sales.view",
    "quotes.create",
    "quotes.edit",
    "quotes.import",
    "customers.view",
    "customers.create",
    "customers.edit",
    "dealers.view",
)
ROLES: dict[str, tuple[str, tuple[str, ...]]] = {
    "admin": ("Administrator", tuple(k for k, _ in PERMISSIONS)),
    "sales_manager": ("Sales Manager", _REP_PERMS + ("sales.manage", "quotes.delete", "dealers.edit")),
    "sales_rep": ("Sales Rep", _REP_PERMS),
}


@contextmanager
def _session_scope(database_url: str):
    engine = create_engine(database_url, future=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def seed(s: Session, *, admin_email: str, admin_password: str) -> User:
    """
    Idempotent: creates missing permissions, roles and the admin account.
    Never overwrites an existing admin password.
    """
    perms: dict[str, Permission] = {}
    for key, name in PERMISSIONS:
        p = s.query(Permission).filter(Permission.key == key).one_or_none()
        if not p:
            p = Permission(key=key, name=name)
            s.add(p)
        perms[key] = p

    roles: dict[str, Role] = {}
    for key, (name, perm_keys) in ROLES.items():
        role = s.query(Role).filter(Role.key == key).one_or_none()
        if not role:
            role = Role(key=key, name=name)
            s.add(role)
        for pk in perm_keys:
            if perms[pk] not in role.permissions:
                role.permissions.append(perms[pk])
        roles[key] = role

    user = s.query(User).filter(User.email == admin_email).one_or_none()
    if not user:
        user = User(email=admin_email, password_hash=generate_password_hash(admin_password), name="Administrator", is_active=True)
        s.add(user)
    if roles["admin"] not in user.roles:
        user.roles.append(roles["admin"])
    return user


def seed_only(*, database_url: str | None = None) -> None:
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///salesops.db").strip()

    # Direct engine/session so release can seed without importing app.wsgi.
    with _session_scope(db_url) as s:
        seed(s, admin_email=admin_email, admin_password=admin_password)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()

import pytest
from werkzeug.security import check_password_hash, generate_password_hash

from app.salesops import create_app
from app.salesops.db import session_scope
from app.salesops.models import AuditEvent, Base, Permission, Role, User

CSRF = "test-csrf-token"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        view = Permission(key="admin.view", name="Admin: view shell")
        edit = Permission(key="admin.edit", name="Admin: manage accounts")
        admin = Role(key="admin", name="Administrator")
        admin.permissions.extend([view, edit])
        rep = Role(key="sales_rep", name="Sales Rep")
        u = User(
            email="admin@example.com", name="Avery Admin", password_hash=generate_password_hash("pw"), is_active=True
        )
        u.roles.append(admin)
        s.add_all([view, edit, admin, rep, u])

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF


def _role_id(app, key):
    with session_scope(app) as s:
        return s.query(Role).filter(Role.key == key).one().id


def _new_account(client, **overrides):
    data = {
        "csrf_token": CSRF,
        "email": "Riley@Example.com",
        "password": "longenough",
        "password_confirm": "longenough",
        "name": "Riley Park",
        "factory": "nwbs",
        "sales_role": "Sales_Rep",
    }
    data.update(overrides)
    return client.post("/admin/accounts/new", data=data, follow_redirects=True)


def test_create_account_with_sales_profile(app, client):
    _login(client)
    rep_role_id = _role_id(app, "sales_rep")
    r = _new_account(client, role_ids=str(rep_role_id))
    assert b"Account created for riley@example.com." in r.data

    with session_scope(app) as s:
        u = s.query(User).filter(User.email == "riley@example.com").one()
        assert u.name == "Riley Park"
        assert u.factory == "NWBS"
        assert u.sales_role == "Sales_Rep"
        assert [r.key for r in u.roles] == ["sales_rep"]
        assert check_password_hash(u.password_hash, "longenough")
        assert s.query(AuditEvent).filter(AuditEvent.action == "user.create").count() == 1


def test_create_account_validation(app, client):
    _login(client)
    r = _new_account(client, password="short", password_confirm="short")
    assert b"Password must be at least 8 characters." in r.data
    r = _new_account(client, password_confirm="different1")
    assert b"Passwords do not match." in r.data
    r = _new_account(client, email="not-an-email")
    assert b"Invalid email format." in r.data
    r = _new_account(client, sales_role="Sales_Director")
    assert b"Unknown sales role." in r.data
    with session_scope(app) as s:
        assert s.query(User).count() == 1


def test_update_account_roles_and_deactivate(app, client):
    _login(client)
    _new_account(client)
    with session_scope(app) as s:
        user_id = s.query(User).filter(User.email == "riley@example.com").one().id
    manager_role_id = _role_id(app, "admin")

    r = client.post(
        f"/admin/accounts/{user_id}/update",
        data={"csrf_token": CSRF, "role_ids": str(manager_role_id), "sales_role": "Sales_Manager", "factory": "SSI"},
        follow_redirects=True,
    )
    assert b"Account updated for riley@example.com." in r.data
    with session_scope(app) as s:
        u = s.get(User, user_id)
        assert u.is_active is False
        assert u.sales_role == "Sales_Manager"
        assert u.factory == "SSI"
        assert [r.key for r in u.roles] == ["admin"]


def test_cannot_modify_own_account(app, client):
    _login(client)
    with session_scope(app) as s:
        me = s.query(User).filter(User.email == "admin@example.com").one().id
    r = client.post(f"/admin/accounts/{me}/update", data={"csrf_token": CSRF}, follow_redirects=True)
    assert b"You cannot modify your own account from this page." in r.data
    with session_scope(app) as s:
        assert s.get(User, me).is_active is True


def test_reset_password(app, client):
    _login(client)
    _new_account(client)
    with session_scope(app) as s:
        user_id = s.query(User).filter(User.email == "riley@example.com").one().id
    r = client.post(
        f"/admin/accounts/{user_id}/reset-password",
        data={"csrf_token": CSRF, "password": "brand-new-pw", "password_confirm": "brand-new-pw"},
        follow_redirects=True,
    )
    assert b"Password reset for riley@example.com." in r.data
    with session_scope(app) as s:
        assert check_password_hash(s.get(User, user_id).password_hash, "brand-new-pw")


def test_audit_list_filters(client):
    _login(client)
    _new_account(client)
    r = client.get("/admin/audit?action=user.create")
    assert r.status_code == 200
    assert b"user.create" in r.data
    r = client.get("/admin/audit?date_from=yesterday")
    assert b"date_from must be YYYY-MM-DD" in r.data


def test_accounts_list_filters_by_sales_role(client):
    _login(client)
    _new_account(client)
    r = client.get("/admin/accounts?sales_role=Sales_Rep")
    assert b"riley@example.com" in r.data
    assert b"admin@example.com" not in r.data
    r = client.get("/admin/accounts?sales_role=Bogus")
    assert b"admin@example.com" in r.data

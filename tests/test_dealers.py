import pytest
from werkzeug.security import generate_password_hash

from app.salesops import create_app
from app.salesops.db import session_scope
from app.salesops.models import Base, Permission, Role, User
from app.salesops.modules.dealers.models import Dealer

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
        view = Permission(key="dealers.view", name="Dealers: view")
        edit = Permission(key="dealers.edit", name="Dealers: create/edit")
        manager = Role(key="sales_manager", name="Sales Manager")
        manager.permissions.extend([view, edit])
        rep = Role(key="sales_rep", name="Sales Rep")
        rep.permissions.append(view)
        m = User(email="manager@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        m.roles.append(manager)
        r = User(email="rep@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        r.roles.append(rep)
        s.add_all([view, edit, manager, rep, m, r])
        s.add(Dealer(code="MOBILE", name="Mobile Modular", branch_name="Sacramento", is_active=True))
        s.add(Dealer(code="GONE", name="Retired Dealer", is_active=False))

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="manager@example.com"):
    client.post("/auth/login", data={"email": email, "password": "pw"}, follow_redirects=True)
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF


def test_list_show_filter(client):
    _login(client)
    r = client.get("/admin/sales/dealers")
    assert b"Mobile Modular (Sacramento)" in r.data
    assert b"Retired Dealer" not in r.data

    r = client.get("/admin/sales/dealers?show=inactive")
    assert b"Retired Dealer" in r.data
    assert b"Mobile Modular" not in r.data

    r = client.get("/admin/sales/dealers?show=all&q=mobile")
    assert b"Mobile Modular" in r.data
    assert b"Retired Dealer" not in r.data


def test_create_dealer_uppercases_code(app, client):
    _login(client)
    r = client.post(
        "/admin/sales/dealers/new",
        data={"csrf_token": CSRF, "code": "wills", "name": "WillScot", "state": "az"},
        follow_redirects=True,
    )
    assert b"Dealer created." in r.data
    with session_scope(app) as s:
        d = s.query(Dealer).filter(Dealer.name == "WillScot").one()
        assert d.code == "WILLS"
        assert d.state == "AZ"


def test_dealer_code_must_be_unique(app, client):
    _login(client)
    r = client.post(
        "/admin/sales/dealers/new",
        data={"csrf_token": CSRF, "code": "mobile", "name": "Duplicate"},
        follow_redirects=True,
    )
    assert b"Dealer code MOBILE is already in use." in r.data
    with session_scope(app) as s:
        assert s.query(Dealer).count() == 2


def test_edit_dealer_keeps_own_code(app, client):
    with session_scope(app) as s:
        dealer_id = s.query(Dealer).filter(Dealer.code == "MOBILE").one().id
    _login(client)
    r = client.post(
        f"/admin/sales/dealers/{dealer_id}/edit",
        data={"csrf_token": CSRF, "code": "MOBILE", "name": "Mobile Modular", "branch_name": "Fresno", "is_active": "1"},
        follow_redirects=True,
    )
    assert b"Dealer updated." in r.data
    assert b"Mobile Modular (Fresno)" in r.data


def test_rep_can_view_but_not_edit(client):
    _login(client, "rep@example.com")
    assert client.get("/admin/sales/dealers").status_code == 200
    assert client.get("/admin/sales/dealers/new").status_code == 403

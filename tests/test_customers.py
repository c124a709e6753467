import pytest
from werkzeug.security import generate_password_hash

from app.salesops import create_app
from app.salesops.db import session_scope
from app.salesops.models import AuditEvent, Base, Permission, Role, User
from app.salesops.modules.customers.models import SalesCustomer
from app.salesops.modules.quotes.models import SalesQuote

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
        view = Permission(key="customers.view", name="Customers: view")
        create = Permission(key="customers.create", name="Customers: create")
        edit = Permission(key="customers.edit", name="Customers: edit")
        sales = Permission(key="sales.view", name="Sales: view pipeline")
        rep = Role(key="sales_rep", name="Sales Rep")
        rep.permissions.extend([view, create, edit, sales])
        readonly = Role(key="readonly", name="Read only")
        readonly.permissions.append(view)

        u = User(email="rep@example.com", password_hash=generate_password_hash("pw"), factory="NWBS", is_active=True)
        u.roles.append(rep)
        ro = User(email="ro@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        ro.roles.append(readonly)
        s.add_all([view, create, edit, sales, rep, readonly, u, ro])
        s.add(SalesCustomer(company_name="Boise School District", factory="NWBS", city="Boise", is_active=True))
        s.add(SalesCustomer(company_name="Old Contractor LLC", factory="SSI", is_active=False))

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="rep@example.com"):
    client.post("/auth/login", data={"email": email, "password": "pw"}, follow_redirects=True)
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF


def _customer_id(app, name):
    with session_scope(app) as s:
        return s.query(SalesCustomer).filter(SalesCustomer.company_name == name).one().id


def test_list_hides_inactive_by_default(client):
    _login(client)
    r = client.get("/admin/sales/customers")
    assert r.status_code == 200
    assert b"Boise School District" in r.data
    assert b"Old Contractor LLC" not in r.data

    r = client.get("/admin/sales/customers?inactive=1")
    assert b"Old Contractor LLC" in r.data


def test_list_search_and_factory_filter(client):
    _login(client)
    r = client.get("/admin/sales/customers?q=boise")
    assert b"Boise School District" in r.data
    r = client.get("/admin/sales/customers?factory=SSI&inactive=1")
    assert b"Old Contractor LLC" in r.data
    assert b"Boise School District" not in r.data


def test_create_customer(app, client):
    _login(client)
    r = client.post(
        "/admin/sales/customers/new",
        data={
            "csrf_token": CSRF,
            "company_name": "  Acme Schools ",
            "factory": "NWBS",
            "contact_name": "Pat Lee",
            "contact_email": "Pat@Acme.EDU",
            "state": "id",
            "company_type": "government",
        },
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Customer created." in r.data
    assert b"Acme Schools" in r.data
    assert b"No quotes yet." in r.data

    with session_scope(app) as s:
        c = s.query(SalesCustomer).filter(SalesCustomer.company_name == "Acme Schools").one()
        assert c.contact_email == "pat@acme.edu"
        assert c.state == "ID"
        assert c.is_active is True
        assert s.query(AuditEvent).filter(AuditEvent.action == "customer.create").count() == 1


def test_create_customer_requires_name_and_factory(app, client):
    _login(client)
    r = client.post(
        "/admin/sales/customers/new",
        data={"csrf_token": CSRF, "company_name": "", "factory": ""},
        follow_redirects=True,
    )
    assert b"Company name is required" in r.data
    assert b"Factory is required" in r.data
    with session_scope(app) as s:
        assert s.query(SalesCustomer).count() == 2


def test_company_type_defaults_to_general(app, client):
    _login(client)
    client.post(
        "/admin/sales/customers/new",
        data={"csrf_token": CSRF, "company_name": "Plain Co", "factory": "NWBS"},
    )
    with session_scope(app) as s:
        assert s.query(SalesCustomer).filter(SalesCustomer.company_name == "Plain Co").one().company_type == "general"


def test_detail_lists_customer_quotes(app, client):
    customer_id = _customer_id(app, "Boise School District")
    with session_scope(app) as s:
        s.add(SalesQuote(quote_number="NWBS-2026-0001", project_name="Gym Annex", factory="NWBS", customer_id=customer_id))
    _login(client)
    r = client.get(f"/admin/sales/customers/{customer_id}")
    assert r.status_code == 200
    assert b"NWBS-2026-0001" in r.data
    assert b"Gym Annex" in r.data


def test_edit_customer_and_deactivate(app, client):
    customer_id = _customer_id(app, "Boise School District")
    _login(client)
    r = client.get(f"/admin/sales/customers/{customer_id}/edit")
    assert r.status_code == 200

    r = client.post(
        f"/admin/sales/customers/{customer_id}/edit",
        data={"csrf_token": CSRF, "company_name": "Boise SD #1", "factory": "NWBS", "city": "Meridian"},
        follow_redirects=True,
    )
    assert b"Customer updated." in r.data
    with session_scope(app) as s:
        c = s.get(SalesCustomer, customer_id)
        assert c.company_name == "Boise SD #1"
        assert c.city == "Meridian"
        # Unchecked checkbox means inactive.
        assert c.is_active is False
        ev = s.query(AuditEvent).filter(AuditEvent.action == "customer.update").one()
        assert "company_name" in ev.metadata_json


def test_missing_customer_is_404(client):
    _login(client)
    assert client.get("/admin/sales/customers/999").status_code == 404


def test_read_only_user_cannot_create(client):
    _login(client, "ro@example.com")
    assert client.get("/admin/sales/customers").status_code == 200
    r = client.get("/admin/sales/customers/new")
    assert r.status_code == 403
    assert b"customers.create" in r.data

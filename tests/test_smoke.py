import pytest
from werkzeug.security import generate_password_hash

from app.salesops import create_app
from app.salesops.db import session_scope
from app.salesops.models import AuditEvent, Base, Permission, Role, User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        p = Permission(key="admin.view", name="Admin: view shell")
        r = Role(key="admin", name="Administrator")
        r.permissions.append(p)
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        plain = User(email="viewer@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        s.add_all([p, r, u, plain])

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_public_index(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"Log in" in r.data


def test_login_and_admin_access(client):
    # Anonymous is sent to the login page
    r = client.get("/admin/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Admin" in r.data


def test_bad_password_is_rejected_and_audited(app, client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"}, follow_redirects=True)
    assert b"Invalid credentials" in r.data
    r = client.get("/admin/")
    assert r.status_code == 302

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "auth.login_failed").one()
        assert ev.entity_id == "admin@example.com"


def test_missing_permission_is_403(client):
    client.post("/auth/login", data={"email": "viewer@example.com", "password": "pw"})
    r = client.get("/admin/")
    assert r.status_code == 403
    assert b"admin.view" in r.data


def test_post_without_csrf_token_is_rejected(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    r = client.post("/admin/accounts/new", data={"email": "x@example.com"})
    assert r.status_code == 400
    assert b"CSRF" in r.data


def test_next_parameter_is_honoured_for_local_paths_only(client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw", "next": "//evil.example.com/"})
    assert r.status_code == 302
    assert "evil.example.com" not in r.headers["Location"]


def test_logout(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    r = client.get("/auth/logout")
    assert r.status_code == 302
    r = client.get("/admin/")
    assert r.status_code == 302


def test_unknown_page_is_404(client):
    r = client.get("/no-such-page")
    assert r.status_code == 404
    assert b"Not found" in r.data


def test_production_requires_postgres(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "a-real-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()

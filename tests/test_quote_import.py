import io
import json
from datetime import date

import pytest
from openpyxl import Workbook
from werkzeug.security import generate_password_hash

from app.salesops import create_app
from app.salesops.db import session_scope
from app.salesops.models import AuditEvent, Base, Permission, Role, User
from app.salesops.modules.dealers.models import Dealer
from app.salesops.modules.quote_import.parsers import (
    parse_quote_csv,
    parse_upload,
    preview_from_table,
    snake_case_header,
    template_csv,
)
from app.salesops.modules.quotes.models import SalesQuote

CSRF = "test-csrf-token"
YEAR = date.today().year

SAMPLE_CSV = (
    "Quote Number,Project Name,Factory,Building Type,Square Footage,Module Count,Stories,Total Price,State,City,Dealer,Notes\n"
    'PX-1001,Clinic,NWBS - Northwest Building Systems,custom,1440,2,1,"$250,000",id,Boise,mobile,Rush job\n'
    "\n"
    ",Warehouse,,,,,,,,,Nobody,\n"
)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        perms = [
            Permission(key="quotes.import", name="Quotes: import from Praxis"),
            Permission(key="sales.view", name="Sales: view pipeline"),
        ]
        r = Role(key="sales_rep", name="Sales Rep")
        r.permissions.extend(perms)
        u = User(email="rep@example.com", password_hash=generate_password_hash("pw"), factory="NWBS", is_active=True)
        u.roles.append(r)
        s.add_all(perms + [r, u])
        s.add(Dealer(code="MOBILE", name="Mobile Modular", is_active=True))

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client):
    client.post("/auth/login", data={"email": "rep@example.com", "password": "pw"}, follow_redirects=True)
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF


def _upload(client, content: bytes, filename: str):
    return client.post(
        "/admin/sales/quotes/import/upload",
        data={"csrf_token": CSRF, "file": (io.BytesIO(content), filename)},
        content_type="multipart/form-data",
        follow_redirects=True,
    )


# ---------- parsers ----------

def test_snake_case_header():
    assert snake_case_header("  Square  Footage ") == "square_footage"
    assert snake_case_header("Quote Number") == "quote_number"
    assert snake_case_header(None) == ""


def test_parse_csv_maps_rows_and_skips_blank_lines():
    preview = parse_quote_csv(SAMPLE_CSV.encode("utf-8"))
    assert preview.errors == []
    assert preview.row_count == 2
    first, second = preview.rows
    assert first.row_number == 2
    assert first.values["quote_number"] == "PX-1001"
    assert first.values["factory"] == "NWBS"
    assert first.values["building_type"] == "CUSTOM"
    assert first.values["square_footage"] == 1440
    assert first.values["module_count"] == 2
    assert first.values["total_price"] == 250000
    assert first.values["project_state"] == "ID"
    assert first.values["project_description"] == "Rush job"

    assert second.row_number == 3
    assert second.values["quote_number"] is None
    assert second.values["factory"] is None
    assert second.values["module_count"] == 1
    assert second.values["stories"] == 1


def test_parse_csv_header_only_is_an_error():
    preview = parse_quote_csv(b"Quote Number,Project Name\n")
    assert not preview.valid
    assert str(preview.errors[0]) == "CSV file must have at least a header row and one data row"


def test_parse_csv_reports_bad_numbers_with_row():
    preview = parse_quote_csv(b"Project Name,Factory,Square Footage\nDepot,SSI,big\n")
    assert not preview.valid
    assert [str(e) for e in preview.errors] == ["Row 2: Square Footage 'big' is not a number"]


def test_parse_csv_rejects_non_finite_numbers():
    preview = parse_quote_csv(
        b"Quote Number,Project Name,Total Price,Stories\nA-1,School,nan,1\nA-2,Clinic,inf,1\nA-3,Depot,100,-inf\n"
    )
    assert not preview.valid
    assert [str(e) for e in preview.errors] == [
        "Row 2: Total Price 'nan' is not a number",
        "Row 3: Total Price 'inf' is not a number",
        "Row 4: Stories '-inf' is not a number",
    ]


def test_parse_csv_warns_on_missing_identity():
    preview = parse_quote_csv(b"Quote Number,Project Name,Factory\n,,SSI\n")
    assert preview.errors == []
    assert preview.warnings == ["Row 2: Missing quote number or project name"]
    assert preview.rows[0].values["project_name"] == "Imported Quote"


def test_parse_xlsx():
    wb = Workbook()
    ws = wb.active
    ws.append(["Quote Number", "Project Name", "Factory", "Total Price"])
    ws.append(["PX-9", "Depot", "SSI", 125000])
    buf = io.BytesIO()
    wb.save(buf)

    preview = parse_upload("quotes.xlsx", buf.getvalue())
    assert preview.errors == []
    assert preview.row_count == 1
    values = preview.rows[0].values
    assert values["quote_number"] == "PX-9"
    assert values["factory"] == "SSI"
    assert values["total_price"] == 125000


def test_parse_upload_rejects_other_extensions():
    with pytest.raises(ValueError, match="Please upload a CSV or Excel file"):
        parse_upload("quotes.pdf", b"%PDF")


def test_template_headers_parse_cleanly():
    text = template_csv()
    assert text.startswith("Quote Number,Project Name,Factory,")
    preview = preview_from_table([text.strip().split(","), ["", "Sample", "NWBS"] + [""] * 9])
    assert preview.errors == []
    assert preview.headers[0] == "quote_number"


# ---------- routes ----------

def test_import_page_renders_both_tabs(client):
    _login(client)
    r = client.get("/admin/sales/quotes/import")
    assert r.status_code == 200
    assert b"NWBS - Northwest Building Systems" in r.data
    r = client.get("/admin/sales/quotes/import?tab=csv")
    assert b"import template" in r.data


def test_template_download(client):
    _login(client)
    r = client.get("/admin/sales/quotes/import/template")
    assert r.status_code == 200
    assert r.mimetype == "text/csv"
    assert "praxis_quote_import_template.csv" in r.headers["Content-Disposition"]
    assert r.data.startswith(b"Quote Number,Project Name")


def test_upload_shows_preview_with_warnings(client):
    _login(client)
    r = _upload(client, SAMPLE_CSV.encode("utf-8"), "export.csv")
    assert r.status_code == 200
    assert b"2 row(s) found." in r.data
    assert b"Clinic" in r.data
    assert b"not found; left blank" in r.data
    assert b"Import 2 quote(s)" in r.data


def test_upload_duplicate_numbers_blocks_import(client):
    _login(client)
    content = b"Quote Number,Project Name,Factory\nPX-1,A,SSI\nPX-1,B,SSI\n"
    r = _upload(client, content, "dupes.csv")
    assert b"appears more than once" in r.data
    assert b"Fix these before importing" in r.data
    assert b"Import 2 quote(s)" not in r.data


def test_upload_rejects_unsupported_file(client):
    _login(client)
    r = _upload(client, b"hello", "notes.txt")
    assert b"Please upload a CSV or Excel file" in r.data


def test_upload_requires_file(client):
    _login(client)
    r = client.post(
        "/admin/sales/quotes/import/upload",
        data={"csrf_token": CSRF},
        content_type="multipart/form-data",
        follow_redirects=True,
    )
    assert b"Choose a CSV or Excel file to upload." in r.data


def test_confirm_imports_rows(app, client):
    _login(client)
    table = preview_from_table(
        [line.split(",") for line in SAMPLE_CSV.replace('"$250,000"', "250000").splitlines()]
    ).table
    r = client.post(
        "/admin/sales/quotes/import/confirm",
        data={"csrf_token": CSRF, "table_json": json.dumps(table)},
    )
    assert r.status_code == 302
    assert "status=all" in r.headers["Location"]

    with session_scope(app) as s:
        rep = s.query(User).filter(User.email == "rep@example.com").one()
        quotes = s.query(SalesQuote).order_by(SalesQuote.id.asc()).all()
        assert [q.quote_number for q in quotes] == ["PX-1001", f"NWBS-{YEAR}-0001"]
        clinic, warehouse = quotes
        assert clinic.total_price == 250000
        assert clinic.dealer_id is not None
        assert clinic.imported_from == "csv_import"
        assert clinic.status == "draft"
        assert clinic.assigned_to_user_id == rep.id
        assert warehouse.factory == "NWBS"
        assert warehouse.dealer_id is None
        assert s.query(AuditEvent).filter(AuditEvent.action == "quote.import").count() == 1


def test_confirm_rejects_corrupt_payload(app, client):
    _login(client)
    r = client.post(
        "/admin/sales/quotes/import/confirm",
        data={"csrf_token": CSRF, "table_json": "{not json"},
        follow_redirects=True,
    )
    assert b"Import data was corrupted" in r.data
    with session_scope(app) as s:
        assert s.query(SalesQuote).count() == 0


def test_manual_entry_creates_quote(app, client):
    _login(client)
    r = client.post(
        "/admin/sales/quotes/import/manual",
        data={
            "csrf_token": CSRF,
            "praxis_quote_number": "P-2001",
            "factory": "NWBS - Northwest Building Systems",
            "project_name": "Library Wing",
            "total_price": "250000",
            "status": "sent",
            "building_type": "CUSTOM",
            "has_plumbing": "1",
        },
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Quote P-2001 imported." in r.data

    with session_scope(app) as s:
        q = s.query(SalesQuote).filter(SalesQuote.quote_number == "P-2001").one()
        assert q.status == "sent"
        assert q.factory == "NWBS"
        assert q.praxis_source_factory == "NWBS"
        assert q.total_price == 250000
        assert q.imported_from == "manual_entry"
        assert q.has_plumbing is True
        assert q.module_count == 1
        assert q.praxis_synced_at is not None


def test_manual_entry_rejects_terminal_status(app, client):
    _login(client)
    client.post(
        "/admin/sales/quotes/import/manual",
        data={"csrf_token": CSRF, "factory": "SSI - Specialized Structures", "project_name": "X", "status": "won"},
    )
    with session_scope(app) as s:
        assert s.query(SalesQuote).count() == 0

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from typing import Any

from app.salesops.constants import BUILDING_TYPES, factory_code
from app.salesops.utils import parse_int, parse_money

TEMPLATE_HEADERS = (
    "Quote Number",
    "Project Name",
    "Factory",
    "Building Type",
    "Square Footage",
    "Module Count",
    "Stories",
    "Total Price",
    "State",
    "City",
    "Dealer",
    "Notes",
)
TEMPLATE_FILENAME = "praxis_quote_import_template.csv"


@dataclass(frozen=True)
class ImportRowError:
    row_number: int | None
    message: str

    def __str__(self) -> str:
        if self.row_number is None:
            return self.message
        return f"Row {self.row_number}: {self.message}"


@dataclass
class ImportRow:
    row_number: int
    raw: dict[str, str]
    values: dict[str, Any]


@dataclass
class ImportPreview:
    headers: list[str] = field(default_factory=list)
    rows: list[ImportRow] = field(default_factory=list)
    errors: list[ImportRowError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    # Cleaned cell grid (header first), carried through the confirm step.
    table: list[list[str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def valid(self) -> bool:
        return not self.errors and bool(self.rows)


_WS_RE = re.compile(r"\s+")


def snake_case_header(header: str | None) -> str:
    """'Square  Footage' -> 'square_footage'."""
    return _WS_RE.sub("_", (header or "").strip().lower())


def _clean_cell(v: Any) -> str:
    if v is None:
        return ""
    txt = str(v).strip()
    if len(txt) >= 2 and txt.startswith('"') and txt.endswith('"'):
        txt = txt[1:-1].strip()
    return txt


def _first(row: dict[str, str], *keys: str) -> str:
    for k in keys:
        v = row.get(k)
        if v:
            return v
    return ""


def map_row_to_quote(row: dict[str, str]) -> tuple[dict[str, Any], list[str]]:
    """
    Map one snake_cased import row onto quote columns.
    Returns (values, errors); quote_number stays None when the file had none.
    """
    errors: list[str] = []

    def _num(key: str, parser, default=None):
        raw = row.get(key) or ""
        try:
            v = parser(raw)
        except ValueError:
            errors.append(f"{key.replace('_', ' ').title()} {raw!r} is not a number")
            return default
        return default if v is None else v

    building_type = row.get("building_type") or None
    if building_type and building_type not in BUILDING_TYPES:
        # Case-insensitive match against the known types, otherwise keep as typed.
        for bt in BUILDING_TYPES:
            if bt.lower() == building_type.lower():
                building_type = bt
                break

    state = row.get("state") or None
    values: dict[str, Any] = {
        "quote_number": _first(row, "quote_number", "praxis_quote_number") or None,
        "praxis_quote_number": row.get("praxis_quote_number") or None,
        "project_name": _first(row, "project_name", "name") or "Imported Quote",
        "project_description": _first(row, "description", "notes") or None,
        "factory": factory_code(row.get("factory")).upper() or None,
        "total_price": _num("total_price", parse_money),
        "building_type": building_type,
        "square_footage": _num("square_footage", parse_int),
        "module_count": _num("module_count", parse_int, 1),
        "stories": _num("stories", parse_int, 1),
        "project_state": state.upper() if state else None,
        "project_city": row.get("city") or None,
        "dealer": row.get("dealer") or None,
    }
    if values["total_price"] is not None and values["total_price"] < 0:
        errors.append("Total Price cannot be negative")
    return values, errors


def _build_preview(table: list[list[str]]) -> ImportPreview:
    # Blank lines never count, including for row numbering.
    table = [r for r in table if any(c for c in r)]
    if len(table) < 2:
        return ImportPreview(
            errors=[ImportRowError(None, "CSV file must have at least a header row and one data row")]
        )

    headers = [snake_case_header(h) for h in table[0]]
    preview = ImportPreview(headers=headers, table=table)
    for idx, cells in enumerate(table[1:]):
        row_number = idx + 2  # 1 = header
        first = cells[0] if len(cells) > 0 else ""
        second = cells[1] if len(cells) > 1 else ""
        if not first and not second:
            preview.warnings.append(f"Row {row_number}: Missing quote number or project name")
        raw = {h: (cells[i] if i < len(cells) else "") for i, h in enumerate(headers) if h}
        values, errs = map_row_to_quote(raw)
        for e in errs:
            preview.errors.append(ImportRowError(row_number, e))
        preview.rows.append(ImportRow(row_number=row_number, raw=raw, values=values))
    return preview


def parse_quote_csv(file_bytes: bytes) -> ImportPreview:
    """
    Parse a Praxis quote export / import template.

    Header names are matched case-insensitively with whitespace folded to
    underscores, so "Quote Number" and "quote_number" are the same column.
    """
    text = file_bytes.decode("utf-8-sig", errors="replace")
    reader = csv.reader(io.StringIO(text))
    table = [[_clean_cell(c) for c in r] for r in reader]
    return _build_preview(table)


def parse_quote_xlsx(file_bytes: bytes) -> ImportPreview:
    """Same contract as parse_quote_csv, reading the first worksheet."""
    from openpyxl import load_workbook

    wb = load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        table = [[_clean_cell(c) for c in r] for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()
    return _build_preview(table)


def parse_upload(filename: str, file_bytes: bytes) -> ImportPreview:
    name = (filename or "").lower()
    if name.endswith(".csv"):
        return parse_quote_csv(file_bytes)
    if name.endswith(".xlsx"):
        return parse_quote_xlsx(file_bytes)
    raise ValueError("Please upload a CSV or Excel file")


def template_csv() -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(TEMPLATE_HEADERS)
    return buf.getvalue()


def preview_from_table(table: list[list[Any]]) -> ImportPreview:
    """Rebuild a preview from the grid echoed back by the confirm form."""
    return _build_preview([[_clean_cell(c) for c in r] for r in table])

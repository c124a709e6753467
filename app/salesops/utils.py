from __future__ import annotations

import json
import math
from datetime import date


def clean(payload: dict, key: str) -> str | None:
    """Trimmed string value, or None when blank."""
    v = payload.get(key)
    if v is None:
        return None
    return str(v).strip() or None


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string. Raises ValueError on a malformed value."""
    if not s:
        return None
    s = str(s).strip()
    if not s:
        return None
    return date.fromisoformat(s)


def parse_money(s) -> float | None:
    """'$12,500.00' -> 12500.0. Blank -> None. Raises ValueError on junk."""
    if s is None:
        return None
    if isinstance(s, (int, float)):
        v = float(s)
    else:
        txt = str(s).strip().replace("$", "").replace(",", "")
        if not txt:
            return None
        v = float(txt)
    if not math.isfinite(v):
        raise ValueError(f"{s!r} is not a finite amount")
    return v


def parse_int(s) -> int | None:
    """Blank -> None. Accepts '3' and '3.0' (spreadsheets love trailing zeros)."""
    if s is None:
        return None
    if isinstance(s, bool):
        return int(s)
    if isinstance(s, int):
        return s
    if isinstance(s, float):
        if not math.isfinite(s) or not s.is_integer():
            raise ValueError(f"{s!r} is not a whole number")
        return int(s)
    txt = str(s).strip().replace(",", "")
    if not txt:
        return None
    try:
        return int(txt)
    except ValueError:
        f = float(txt)
        if not math.isfinite(f) or not f.is_integer():
            raise ValueError(f"{txt!r} is not a whole number") from None
        return int(f)


def parse_bool(s) -> bool:
    return str(s or "").strip().lower() in ("1", "true", "yes", "on", "y")


def parse_json_object(raw: str | None) -> tuple[dict | None, str | None]:
    """Parse a JSON object typed into a textarea. Returns (value, error)."""
    if not raw or not str(raw).strip():
        return None, None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        return None, f"Product configuration JSON is invalid: {e}"
    if not isinstance(value, dict):
        return None, "Product configuration must be a JSON object."
    return value, None

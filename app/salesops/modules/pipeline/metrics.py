"""
Pipeline aggregation over already-loaded quote rows.

Nothing in here touches the database: every function takes plain sequences of
quotes (ORM rows or any object exposing the same attributes) plus an explicit
``now`` so results are reproducible in tests.
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from app.salesops.constants import (
    ACTIVE_STATUSES,
    AGING_AGING_DAYS,
    AGING_FRESH_DAYS,
    AGING_STALE_DAYS,
    BUILDING_TYPES,
    DEFAULT_OUTLOOK_PERCENT,
    FUNNEL_STAGES,
    status_label,
)


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------

def _price(q: Any) -> float:
    return float(getattr(q, "total_price", None) or 0)


def _is_active(q: Any) -> bool:
    return getattr(q, "status", None) in ACTIVE_STATUSES


def days_ago(ts: date | datetime | None, now: datetime) -> int | None:
    """Whole days elapsed since ts (floored). None when ts is missing."""
    if ts is None:
        return None
    if not isinstance(ts, datetime):
        ts = datetime.combine(ts, datetime.min.time())
    return math.floor((now - ts).total_seconds() / 86400)


def aging_label(days: int | None) -> str:
    if days is None:
        return ""
    if days <= 0:
        return "Today"
    if days <= AGING_FRESH_DAYS:
        return f"{days}d"
    if days <= AGING_AGING_DAYS:
        return f"{days}d (aging)"
    return f"{days}d (stale)"


def aging_level(days: int | None) -> str:
    """Colour bucket for an age badge: none / fresh / aging / stale."""
    if days is None:
        return "none"
    if days <= AGING_FRESH_DAYS:
        return "fresh"
    if days <= AGING_AGING_DAYS:
        return "aging"
    return "stale"


def quote_age(q: Any, now: datetime) -> int | None:
    return days_ago(getattr(q, "created_at", None), now)


def is_stale(q: Any, now: datetime) -> bool:
    days = quote_age(q, now)
    return _is_active(q) and days is not None and days >= AGING_STALE_DAYS


def weighted_value(q: Any) -> float:
    outlook = getattr(q, "outlook_percentage", None)
    if outlook is None:
        outlook = DEFAULT_OUTLOOK_PERCENT
    return _price(q) * outlook / 100


def win_rate(won: int, lost: int) -> int:
    closed = won + lost
    if closed <= 0:
        return 0
    # Half-up rounding, not Python's banker's rounding.
    return int(math.floor(won / closed * 100 + 0.5))


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

@dataclass
class PipelineMetrics:
    pipeline_value: float = 0.0
    weighted_value: float = 0.0
    pipeline_count: int = 0
    won_value: float = 0.0
    won_count: int = 0
    lost_count: int = 0
    win_rate: int = 0
    pm_flagged_count: int = 0
    stale_count: int = 0
    total_count: int = 0


def pipeline_metrics(quotes: Iterable[Any], now: datetime) -> PipelineMetrics:
    m = PipelineMetrics()
    for q in quotes:
        m.total_count += 1
        status = getattr(q, "status", None)
        if _is_active(q):
            m.pipeline_value += _price(q)
            m.weighted_value += weighted_value(q)
            m.pipeline_count += 1
            if getattr(q, "pm_flagged", False):
                m.pm_flagged_count += 1
            if is_stale(q, now):
                m.stale_count += 1
        elif status == "won":
            m.won_value += _price(q)
            m.won_count += 1
        elif status == "lost":
            m.lost_count += 1
    m.win_rate = win_rate(m.won_count, m.lost_count)
    return m


@dataclass
class FunnelStage:
    status: str
    label: str
    count: int = 0
    value: float = 0.0
    weighted: float = 0.0
    height_pct: int = 10


def funnel_stages(quotes: Iterable[Any]) -> list[FunnelStage]:
    stages = {st: FunnelStage(status=st, label=status_label(st)) for st in FUNNEL_STAGES}
    for q in quotes:
        stage = stages.get(getattr(q, "status", None))
        if stage is None:
            continue
        stage.count += 1
        stage.value += _price(q)
        stage.weighted += weighted_value(q)
    biggest = max((st.count for st in stages.values()), default=0)
    for st in stages.values():
        if biggest:
            st.height_pct = max(10, round(st.count / biggest * 100))
    return [stages[k] for k in FUNNEL_STAGES]


@dataclass
class BuildingTypeSlice:
    building_type: str
    count: int = 0
    value: float = 0.0
    share_pct: int = 0


def building_type_breakdown(quotes: Iterable[Any]) -> list[BuildingTypeSlice]:
    """Active quotes grouped by building type; unknown types land in Other."""
    order = list(BUILDING_TYPES) + ["Other"]
    slices = {bt: BuildingTypeSlice(building_type=bt) for bt in order}
    for q in quotes:
        if not _is_active(q):
            continue
        bt = getattr(q, "building_type", None)
        sl = slices[bt] if bt in slices and bt != "Other" else slices["Other"]
        sl.count += 1
        sl.value += _price(q)
    total_value = sum(sl.value for sl in slices.values())
    out = []
    for bt in order:
        sl = slices[bt]
        if sl.count == 0:
            continue
        sl.share_pct = round(sl.value / total_value * 100) if total_value else 0
        out.append(sl)
    return out


def stale_quotes(quotes: Iterable[Any], now: datetime, limit: int = 5) -> list[Any]:
    """Active quotes past the stale threshold, oldest first."""
    rows = [q for q in quotes if is_stale(q, now)]
    rows.sort(key=lambda q: quote_age(q, now) or 0, reverse=True)
    return rows[:limit]


def pm_flagged_quotes(quotes: Iterable[Any]) -> list[Any]:
    rows = [q for q in quotes if getattr(q, "pm_flagged", False)]
    rows.sort(key=lambda q: getattr(q, "pm_flagged_at", None) or datetime.min, reverse=True)
    return rows


@dataclass
class AttentionItem:
    quote: Any
    kind: str  # stale / aging / pm_flagged
    priority: int
    message: str


def attention_items(quotes: Sequence[Any], now: datetime, limit: int = 5) -> list[AttentionItem]:
    """
    Rep to-do list: stale and aging active quotes, then PM flags on active
    quotes that are not already listed. Stable sort by priority (1 first).
    """
    items: list[AttentionItem] = []
    seen: set[int] = set()
    for q in quotes:
        if not _is_active(q):
            continue
        days = quote_age(q, now)
        if days is None:
            continue
        if days >= AGING_STALE_DAYS:
            items.append(AttentionItem(q, "stale", 1, f"{days} days without activity"))
            seen.add(id(q))
        elif days >= AGING_AGING_DAYS:
            items.append(AttentionItem(q, "aging", 2, f"{days} days old - follow up soon"))
            seen.add(id(q))
    for q in quotes:
        if _is_active(q) and getattr(q, "pm_flagged", False) and id(q) not in seen:
            reason = getattr(q, "pm_flagged_reason", None)
            items.append(AttentionItem(q, "pm_flagged", 1, reason or "Flagged for PM review"))
    items.sort(key=lambda it: it.priority)
    return items[:limit]


def _month_start(d: datetime) -> datetime:
    return datetime(d.year, d.month, 1)


def _prev_month_start(d: datetime) -> datetime:
    first = _month_start(d)
    prev_last = first - timedelta(days=1)
    return datetime(prev_last.year, prev_last.month, 1)


@dataclass
class QuickStats:
    new_this_month: int = 0
    new_last_month: int = 0
    won_this_month: int = 0
    won_value_this_month: float = 0.0
    converted_this_month: int = 0

    @property
    def trend(self) -> int:
        return self.new_this_month - self.new_last_month


def quick_stats(quotes: Iterable[Any], now: datetime) -> QuickStats:
    this_month = _month_start(now)
    last_month = _prev_month_start(now)
    st = QuickStats()
    for q in quotes:
        created = getattr(q, "created_at", None)
        updated = getattr(q, "updated_at", None)
        if created is not None:
            if created >= this_month:
                st.new_this_month += 1
            elif created >= last_month:
                st.new_last_month += 1
        status = getattr(q, "status", None)
        if updated is not None and updated >= this_month:
            if status == "won":
                st.won_this_month += 1
                st.won_value_this_month += _price(q)
            elif status == "converted":
                st.converted_this_month += 1
    return st


@dataclass
class MemberMetrics:
    member: Any
    pipeline_value: float = 0.0
    weighted_value: float = 0.0
    active_count: int = 0
    won_count: int = 0
    won_value: float = 0.0
    lost_count: int = 0
    win_rate: int = 0
    total_count: int = 0
    stale_count: int = 0
    recent_wins: int = 0
    capacity: int = 100
    capacity_label: str = "Available"
    top_quotes: list = field(default_factory=list)


def _by_member(quotes: Iterable[Any]) -> dict[int, list[Any]]:
    out: dict[int, list[Any]] = {}
    for q in quotes:
        uid = getattr(q, "assigned_to_user_id", None)
        if uid is not None:
            out.setdefault(uid, []).append(q)
    return out


def _member_base(member: Any, rows: list[Any]) -> MemberMetrics:
    mm = MemberMetrics(member=member, total_count=len(rows))
    for q in rows:
        status = getattr(q, "status", None)
        if _is_active(q):
            mm.pipeline_value += _price(q)
            mm.weighted_value += weighted_value(q)
            mm.active_count += 1
        elif status == "won":
            mm.won_count += 1
            mm.won_value += _price(q)
        elif status == "lost":
            mm.lost_count += 1
    mm.win_rate = win_rate(mm.won_count, mm.lost_count)
    return mm


def team_metrics(members: Iterable[Any], quotes: Iterable[Any]) -> list[MemberMetrics]:
    """Per-member pipeline totals, biggest pipeline first."""
    grouped = _by_member(quotes)
    out = [_member_base(m, grouped.get(m.id, [])) for m in members]
    out.sort(key=lambda mm: mm.pipeline_value, reverse=True)
    return out


def capacity_score(active: int, stale: int) -> int:
    return max(0, min(100, 100 - active * 8 - stale * 15))


def capacity_label(score: int) -> str:
    if score >= 60:
        return "Available"
    if score >= 30:
        return "Busy"
    return "At Capacity"


WORKLOAD_SORTS: dict[str, Any] = {
    "pipeline": lambda mm: mm.pipeline_value,
    "active": lambda mm: mm.active_count,
    "winRate": lambda mm: mm.win_rate,
    "overdue": lambda mm: mm.stale_count,
}


def team_workload(
    members: Iterable[Any],
    quotes: Iterable[Any],
    now: datetime,
    sort_by: str = "pipeline",
) -> list[MemberMetrics]:
    grouped = _by_member(quotes)
    recent_cutoff = (now - timedelta(days=30)).date()
    out: list[MemberMetrics] = []
    for m in members:
        rows = grouped.get(m.id, [])
        mm = _member_base(m, rows)
        mm.stale_count = sum(1 for q in rows if is_stale(q, now))
        mm.recent_wins = sum(
            1
            for q in rows
            if getattr(q, "status", None) == "won"
            and getattr(q, "won_date", None) is not None
            and _as_date(q.won_date) >= recent_cutoff
        )
        mm.capacity = capacity_score(mm.active_count, mm.stale_count)
        mm.capacity_label = capacity_label(mm.capacity)
        mm.top_quotes = [q for q in rows if _is_active(q)][:5]
        out.append(mm)
    key = WORKLOAD_SORTS.get(sort_by, WORKLOAD_SORTS["pipeline"])
    out.sort(key=key, reverse=True)
    return out


def _as_date(v: date | datetime) -> date:
    return v.date() if isinstance(v, datetime) else v


@dataclass
class TeamTotals:
    pipeline_value: float = 0.0
    weighted_value: float = 0.0
    won_value: float = 0.0
    active_count: int = 0
    stale_count: int = 0


def team_totals(workload: Iterable[MemberMetrics]) -> TeamTotals:
    t = TeamTotals()
    for mm in workload:
        t.pipeline_value += mm.pipeline_value
        t.weighted_value += mm.weighted_value
        t.won_value += mm.won_value
        t.active_count += mm.active_count
        t.stale_count += mm.stale_count
    return t


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def filter_quotes(
    quotes: Iterable[Any],
    *,
    search: str = "",
    status: str = "active",
    factory: str = "",
    building_type: str = "",
    pm_flagged_only: bool = False,
    assigned_to: int | None = None,
) -> list[Any]:
    """
    status: "active" (default), "all", or one specific status.
    search matches quote number, project name, customer company and Praxis number.
    """
    needle = (search or "").strip().lower()
    out = []
    for q in quotes:
        st = getattr(q, "status", None)
        if status == "active" and st not in ACTIVE_STATUSES:
            continue
        if status not in ("active", "all", "") and st != status:
            continue
        if factory and getattr(q, "factory", None) != factory:
            continue
        if building_type and getattr(q, "building_type", None) != building_type:
            continue
        if pm_flagged_only and not getattr(q, "pm_flagged", False):
            continue
        if assigned_to is not None and getattr(q, "assigned_to_user_id", None) != assigned_to:
            continue
        if needle:
            customer = getattr(q, "customer", None)
            haystack = [
                getattr(q, "quote_number", None),
                getattr(q, "project_name", None),
                getattr(customer, "company_name", None) if customer else None,
                getattr(q, "praxis_quote_number", None),
            ]
            if not any(needle in (h or "").lower() for h in haystack):
                continue
        out.append(q)
    return out


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_currency(value: float | int | None) -> str:
    """12500 -> '$12,500'; None -> '-'."""
    if value is None:
        return "-"
    v = float(value)
    sign = "-" if v < 0 else ""
    return f"{sign}${abs(v):,.0f}"


def format_compact_currency(value: float | int | None) -> str:
    """1_500_000 -> '$1.5M'; 500_000 -> '$500K'."""
    if value is None:
        return "-"
    v = float(value)
    if abs(v) >= 1_000_000:
        return f"${v / 1_000_000:.1f}M"
    if abs(v) >= 1_000:
        return f"${v / 1_000:.0f}K"
    return format_currency(v)

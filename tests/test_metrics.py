"""Pipeline aggregation over plain objects; no database needed."""
from datetime import date, datetime, timedelta
from types import SimpleNamespace

from app.salesops.modules.pipeline.metrics import (
    aging_label,
    aging_level,
    attention_items,
    building_type_breakdown,
    capacity_label,
    capacity_score,
    days_ago,
    filter_quotes,
    format_compact_currency,
    format_currency,
    funnel_stages,
    is_stale,
    pipeline_metrics,
    quick_stats,
    stale_quotes,
    team_metrics,
    team_totals,
    team_workload,
    weighted_value,
    win_rate,
)

NOW = datetime(2026, 3, 15, 12, 0, 0)
_ids = iter(range(1, 10_000))


def _q(status="draft", price=1000.0, age=0, **kw):
    defaults = dict(
        id=next(_ids),
        status=status,
        total_price=price,
        created_at=NOW - timedelta(days=age),
        updated_at=NOW - timedelta(days=age),
        outlook_percentage=None,
        pm_flagged=False,
        pm_flagged_at=None,
        pm_flagged_reason=None,
        building_type=None,
        factory="NWBS",
        assigned_to_user_id=None,
        quote_number=f"NWBS-2026-{age:04d}",
        project_name="Classroom",
        praxis_quote_number=None,
        customer=None,
        won_date=None,
    )
    defaults.update(kw)
    return SimpleNamespace(**defaults)


def test_days_ago_floors_and_handles_missing():
    assert days_ago(NOW - timedelta(days=3, hours=23), NOW) == 3
    assert days_ago(date(2026, 3, 10), NOW) == 5
    assert days_ago(None, NOW) is None


def test_aging_labels_and_levels():
    assert aging_label(None) == ""
    assert aging_label(0) == "Today"
    assert aging_label(15) == "15d"
    assert aging_label(20) == "20d (aging)"
    assert aging_label(26) == "26d (stale)"
    assert [aging_level(d) for d in (None, 3, 16, 40)] == ["none", "fresh", "aging", "stale"]


def test_stale_means_active_and_thirty_days_old():
    assert is_stale(_q("sent", age=30), NOW)
    assert not is_stale(_q("sent", age=29), NOW)
    assert not is_stale(_q("won", age=90), NOW)


def test_weighted_value_defaults_outlook_to_half():
    assert weighted_value(_q(price=1000)) == 500
    assert weighted_value(_q(price=1000, outlook_percentage=80)) == 800
    assert weighted_value(_q(price=1000, outlook_percentage=0)) == 0
    assert weighted_value(_q(price=None, outlook_percentage=80)) == 0


def test_win_rate_rounds_half_up():
    assert win_rate(0, 0) == 0
    assert win_rate(1, 1) == 50
    assert win_rate(1, 7) == 13  # 12.5 -> 13
    assert win_rate(2, 1) == 67


def test_pipeline_metrics():
    quotes = [
        _q("draft", 1000, outlook_percentage=100),
        _q("sent", 2000, age=45, pm_flagged=True),
        _q("won", 5000),
        _q("lost", 7000),
        _q("lost", 100),
    ]
    m = pipeline_metrics(quotes, NOW)
    assert m.pipeline_value == 3000
    assert m.pipeline_count == 2
    assert m.weighted_value == 1000 + 1000
    assert m.won_value == 5000
    assert m.won_count == 1
    assert m.lost_count == 2
    assert m.win_rate == 33
    assert m.stale_count == 1
    assert m.pm_flagged_count == 1
    assert m.total_count == 5


def test_funnel_keeps_stage_order_and_scales_heights():
    quotes = [_q("sent"), _q("sent"), _q("draft"), _q("won")]
    stages = funnel_stages(quotes)
    assert [st.status for st in stages] == ["draft", "sent", "negotiating", "awaiting_po", "po_received", "converted"]
    by_status = {st.status: st for st in stages}
    assert by_status["sent"].count == 2
    assert by_status["sent"].height_pct == 100
    assert by_status["draft"].height_pct == 50
    assert by_status["negotiating"].height_pct == 10


def test_building_type_breakdown_groups_unknown_types_as_other():
    quotes = [
        _q("sent", 3000, building_type="CUSTOM"),
        _q("sent", 1000, building_type="Mystery"),
        _q("won", 9000, building_type="CUSTOM"),
    ]
    slices = {sl.building_type: sl for sl in building_type_breakdown(quotes)}
    assert set(slices) == {"CUSTOM", "Other"}
    assert slices["CUSTOM"].value == 3000
    assert slices["CUSTOM"].share_pct == 75
    assert slices["Other"].count == 1


def test_stale_quotes_oldest_first():
    a, b, c = _q("sent", age=31), _q("sent", age=60), _q("sent", age=2)
    assert stale_quotes([a, b, c], NOW) == [b, a]


def test_attention_items_prioritise_stale_and_include_pm_flags_once():
    stale = _q("sent", age=40)
    aging = _q("sent", age=26)
    flagged = _q("draft", age=1, pm_flagged=True, pm_flagged_reason="Check foundation")
    flagged_and_stale = _q("sent", age=50, pm_flagged=True)
    items = attention_items([aging, stale, flagged, flagged_and_stale], NOW)
    kinds = [(it.quote, it.kind) for it in items]
    assert (stale, "stale") in kinds
    assert (aging, "aging") in kinds
    assert (flagged, "pm_flagged") in kinds
    assert sum(1 for q, _ in kinds if q is flagged_and_stale) == 1
    assert items[-1].kind == "aging"
    assert next(it for it in items if it.quote is flagged).message == "Check foundation"


def test_attention_items_ignore_pm_flags_on_closed_quotes():
    won = _q("won", age=2, pm_flagged=True)
    lost = _q("lost", age=60, pm_flagged=True)
    assert attention_items([won, lost], NOW) == []
    open_flag = _q("negotiating", age=1, pm_flagged=True)
    assert [it.quote for it in attention_items([won, open_flag, lost], NOW)] == [open_flag]


def test_quick_stats_month_windows():
    quotes = [
        _q("draft", age=2),
        _q("won", 4000, age=5),
        _q("draft", age=20),  # Feb 23
        _q("converted", age=1),
    ]
    st = quick_stats(quotes, NOW)
    assert st.new_this_month == 3
    assert st.new_last_month == 1
    assert st.trend == 2
    assert st.won_this_month == 1
    assert st.won_value_this_month == 4000
    assert st.converted_this_month == 1


def test_team_metrics_and_workload():
    alice = SimpleNamespace(id=1, display_name="Alice")
    bob = SimpleNamespace(id=2, display_name="Bob")
    quotes = [
        _q("sent", 5000, age=40, assigned_to_user_id=1),
        _q("draft", 1000, assigned_to_user_id=1),
        _q("won", 8000, assigned_to_user_id=2, won_date=date(2026, 3, 1)),
        _q("lost", 100, assigned_to_user_id=2),
        _q("sent", 999, assigned_to_user_id=None),
    ]
    team = team_metrics([bob, alice], quotes)
    assert [mm.member for mm in team] == [alice, bob]
    assert team[0].pipeline_value == 6000
    assert team[1].win_rate == 50

    workload = team_workload([alice, bob], quotes, NOW, sort_by="winRate")
    assert workload[0].member is bob
    assert workload[0].recent_wins == 1
    a = workload[1]
    assert a.stale_count == 1
    assert a.capacity == capacity_score(2, 1) == 100 - 16 - 15
    assert a.capacity_label == "Available"
    assert len(a.top_quotes) == 2

    totals = team_totals(workload)
    assert totals.pipeline_value == 6000
    assert totals.active_count == 2
    assert totals.stale_count == 1


def test_capacity_bounds_and_labels():
    assert capacity_score(0, 0) == 100
    assert capacity_score(20, 5) == 0
    assert capacity_label(60) == "Available"
    assert capacity_label(30) == "Busy"
    assert capacity_label(29) == "At Capacity"


def test_filter_quotes():
    customer = SimpleNamespace(company_name="Acme Schools")
    a = _q("sent", building_type="CUSTOM", customer=customer, assigned_to_user_id=7)
    b = _q("won", factory="SSI")
    c = _q("draft", pm_flagged=True, project_name="Fire Station")
    quotes = [a, b, c]
    assert filter_quotes(quotes) == [a, c]
    assert filter_quotes(quotes, status="all") == quotes
    assert filter_quotes(quotes, status="won") == [b]
    assert filter_quotes(quotes, status="all", factory="SSI") == [b]
    assert filter_quotes(quotes, building_type="CUSTOM") == [a]
    assert filter_quotes(quotes, pm_flagged_only=True) == [c]
    assert filter_quotes(quotes, search="acme") == [a]
    assert filter_quotes(quotes, search="fire") == [c]
    assert filter_quotes(quotes, assigned_to=7) == [a]


def test_currency_formatting():
    assert format_currency(12500) == "$12,500"
    assert format_currency(None) == "-"
    assert format_compact_currency(1_500_000) == "$1.5M"
    assert format_compact_currency(500_000) == "$500K"
    assert format_compact_currency(950) == "$950"

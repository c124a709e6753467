import pytest

from app.salesops.modules.quotes.pricing import calculate_discount, calculate_total, square_footage
from app.salesops.utils import parse_int, parse_json_object, parse_money


def test_total_is_base_plus_options_minus_discount():
    assert calculate_total(100000, 15000, 5000) == 110000.0


def test_percentage_discount_wins_over_amount():
    assert calculate_total(100000, 0, 5000, 10) == 90000.0
    assert calculate_discount(200.0, 50, 25) == 50.0


def test_blank_parts_count_as_zero():
    assert calculate_total(None) == 0.0
    assert calculate_total(1000, None, None, None) == 1000.0


def test_total_never_goes_negative():
    assert calculate_total(1000, 0, 5000) == 0.0


def test_total_is_rounded_to_cents():
    assert calculate_total(100.005, 0, 0, 33.333) == pytest.approx(66.67, abs=0.01)


def test_square_footage_needs_both_dimensions():
    assert square_footage(24, 60) == 1440
    assert square_footage(None, 60) is None
    assert square_footage(24, 0) is None
    assert square_footage(-5, 60) is None


def test_parse_money_accepts_currency_formatting():
    assert parse_money("$12,500.50") == 12500.5
    assert parse_money("  ") is None
    assert parse_money(None) is None
    with pytest.raises(ValueError):
        parse_money("twelve")


def test_parse_int_accepts_spreadsheet_floats():
    assert parse_int("3") == 3
    assert parse_int("3.0") == 3
    assert parse_int(4.0) == 4
    assert parse_int("") is None
    with pytest.raises(ValueError):
        parse_int("2.5")


def test_parse_json_object():
    assert parse_json_object('{"modules": 4}') == ({"modules": 4}, None)
    assert parse_json_object("") == (None, None)
    value, err = parse_json_object("[1, 2]")
    assert value is None and "JSON object" in err
    value, err = parse_json_object("{oops")
    assert value is None and "invalid" in err

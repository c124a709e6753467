"""
Quote pricing math. Pure functions: callers pass already-parsed numbers
(None means "left blank on the form").
"""
from __future__ import annotations


def _num(v: float | int | None) -> float:
    return float(v) if v is not None else 0.0


def calculate_discount(subtotal: float, discount_amount: float | None, discount_percent: float | None) -> float:
    # A percentage, when given, wins over a flat amount.
    if discount_percent is not None:
        return subtotal * float(discount_percent) / 100
    return _num(discount_amount)


def calculate_total(
    base_price: float | None,
    options_price: float | None = None,
    discount_amount: float | None = None,
    discount_percent: float | None = None,
) -> float:
    """
    total = base + options - discount, never below zero.

    >>> calculate_total(100000, 15000, 5000)
    110000.0
    >>> calculate_total(100000, 0, 5000, 10)
    90000.0
    """
    subtotal = _num(base_price) + _num(options_price)
    total = subtotal - calculate_discount(subtotal, discount_amount, discount_percent)
    return round(max(0.0, total), 2)


def square_footage(width: float | None, length: float | None) -> int | None:
    """Footprint of a building, or None until both dimensions are positive."""
    if width is None or length is None:
        return None
    if width <= 0 or length <= 0:
        return None
    return int(round(float(width) * float(length)))

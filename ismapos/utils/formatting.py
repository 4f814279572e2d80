"""Price formatting for receipts, tables and dashboard cards."""
from __future__ import annotations

CURRENCY = "Rs."

_SCALES = (
    (1_000_000_000_000, "T"),
    (1_000_000_000, "B"),
    (1_000_000, "M"),
    (1_000, "K"),
)


def _scaled(value: float) -> str:
    if value >= 100:
        return f"{value:.0f}"
    if value >= 10:
        return f"{value:.1f}"
    return f"{value:.2f}"


def format_complete_amount(amount: float) -> str:
    """1030 -> ``"1,030.00"``."""

    return f"{amount:,.2f}"


def format_price(amount: float) -> str:
    """Abbreviate large amounts: 1030 -> ``"1.03K"``, 1030000 -> ``"1.03M"``."""

    if amount == 0:
        return "0"
    sign = "-" if amount < 0 else ""
    value = abs(amount)
    for threshold, suffix in _SCALES:
        if value >= threshold:
            return f"{sign}{_scaled(value / threshold)}{suffix}"
    return f"{sign}{value:.2f}"


def format_price_with_currency(amount: float) -> str:
    return f"{CURRENCY} {format_price(amount)}"


def format_price_with_currency_complete(amount: float) -> str:
    """Full amount below a million, ``M`` abbreviation from a million up."""

    sign = "-" if amount < 0 else ""
    value = abs(amount)
    if value >= 1_000_000:
        return f"{sign}{CURRENCY} {_scaled(value / 1_000_000)}M"
    return f"{sign}{CURRENCY} {format_complete_amount(value)}"

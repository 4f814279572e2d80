"""Turn loosely typed backend records into canonical records.

Everything here is pure: no I/O, no logging, and bad input never raises.
Unparseable numbers become ``0`` and malformed JSON sub-fields become empty
lists so that table and receipt code can rely on the shapes in
:mod:`ismapos.models`.
"""
from __future__ import annotations

import json
import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Mapping

from .models import (
    Expense,
    OpeningBalance,
    Product,
    Purchase,
    PurchaseItem,
    RawRecord,
    Sale,
    SaleItem,
)

# Leading numeric prefix, the way a lenient decimal parser reads "12.5 PKR".
_FLOAT_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INT_PREFIX = re.compile(r"^[+-]?\d+")

DEFAULT_STATUS = "completed"
DEFAULT_ADJUSTMENT_TYPE = "percent"


def to_number(value: Any) -> float:
    """Coerce a backend numeric field to ``float`` (``0`` when unparseable)."""

    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            match = _FLOAT_PREFIX.match(text)
            if not match:
                return 0
            number = float(match.group(0))
        return number if math.isfinite(number) else 0
    if isinstance(value, Decimal):
        return float(value) if value.is_finite() else 0
    for attr in ("to_number", "toNumber"):
        converter = getattr(value, attr, None)
        if callable(converter):
            try:
                result = converter()
            except Exception:  # noqa: BLE001
                return 0
            # only plain scalars are re-coerced, so converters cannot chain
            if isinstance(result, (int, float, str, Decimal)):
                return to_number(result)
            return 0
    return 0


def to_count(value: Any) -> int:
    """Coerce stock counts; numeric strings are read as integers."""

    if isinstance(value, str):
        match = _INT_PREFIX.match(value.strip())
        return int(match.group(0)) if match else 0
    if isinstance(value, bool) or not value:
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    if isinstance(value, (int, float)):
        return value
    number = to_number(value)
    return int(number) if math.isfinite(number) else 0


def _optional_number(value: Any) -> float | None:
    return None if value is None else to_number(value)


def parse_json_list(value: Any) -> List[Any]:
    """Return ``value`` as a list, decoding JSON text when needed."""

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except (ValueError, RecursionError):
            return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


parse_payments = parse_json_list


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_date(value: Any, fallback: Any = None) -> Any:
    """Return ``value`` as an ISO-8601 string, or ``fallback`` when absent."""

    if not value:
        return fallback
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return _iso(value)
    if isinstance(value, date):
        return _iso(datetime(value.year, value.month, value.day))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # epoch milliseconds
        try:
            return _iso(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
        except (OverflowError, OSError, ValueError):
            return fallback
    return fallback


def _record(raw: Any) -> dict[str, Any]:
    return dict(raw) if isinstance(raw, Mapping) else {}


def _items(raw_items: Any) -> Iterable[Mapping[str, Any]]:
    if not isinstance(raw_items, (list, tuple)):
        return []
    return [item for item in raw_items if isinstance(item, Mapping)]


# ---------------------------------------------------------------------------
def normalize_product(raw: RawRecord) -> Product:
    product = _record(raw)
    product.update(
        cost=to_number(product.get("cost")),
        salePrice=to_number(product.get("salePrice")),
        quantity=to_count(product.get("quantity")),
        minStockLevel=to_count(product.get("minStockLevel")),
    )
    return product  # type: ignore[return-value]


def normalize_sale_item(raw: RawRecord) -> SaleItem:
    item = _record(raw)
    item.update(
        unitPrice=to_number(item.get("unitPrice")),
        customPrice=_optional_number(item.get("customPrice")),
        discount=to_number(item.get("discount") or 0),
        tax=to_number(item.get("tax") or 0),
        total=to_number(item.get("total")),
        discountType=item.get("discountType") or DEFAULT_ADJUSTMENT_TYPE,
        taxType=item.get("taxType") or DEFAULT_ADJUSTMENT_TYPE,
    )
    return item  # type: ignore[return-value]


def normalize_sale(raw: RawRecord) -> Sale:
    sale = _record(raw)
    sale.update(
        subtotal=to_number(sale.get("subtotal")),
        discount=to_number(sale.get("discount") or 0),
        tax=to_number(sale.get("tax") or 0),
        total=to_number(sale.get("total")),
        remainingBalance=_optional_number(sale.get("remainingBalance")),
        payments=parse_payments(sale.get("payments")),
        date=normalize_date(sale.get("date"), sale.get("createdAt")),
        customerCity=sale.get("customerCity") or None,
        status=sale.get("status") or DEFAULT_STATUS,
        items=[normalize_sale_item(item) for item in _items(sale.get("items"))],
    )
    return sale  # type: ignore[return-value]


def normalize_expense(raw: RawRecord) -> Expense:
    expense = _record(raw)
    expense["amount"] = to_number(expense.get("amount"))
    return expense  # type: ignore[return-value]


def normalize_purchase_item(raw: RawRecord) -> PurchaseItem:
    item = _record(raw)
    item.update(
        cost=to_number(item.get("cost")),
        discount=to_number(item.get("discount") or 0),
        total=to_number(item.get("total")),
    )
    return item  # type: ignore[return-value]


def normalize_purchase(raw: RawRecord) -> Purchase:
    purchase = _record(raw)
    remaining = purchase.get("remainingBalance")
    purchase.update(
        subtotal=to_number(purchase.get("subtotal")),
        tax=to_number(purchase.get("tax") or 0),
        total=to_number(purchase.get("total")),
        remainingBalance=0 if remaining is None else to_number(remaining),
        payments=parse_payments(purchase.get("payments")),
        status=purchase.get("status") or DEFAULT_STATUS,
        date=normalize_date(purchase.get("date"), purchase.get("createdAt")),
        items=[normalize_purchase_item(item) for item in _items(purchase.get("items"))],
    )
    return purchase  # type: ignore[return-value]


def _balances(value: Any) -> List[Any]:
    entries = []
    for entry in _items(parse_json_list(value)):
        entry = dict(entry)
        entry["balance"] = to_number(entry.get("balance"))
        entries.append(entry)
    return entries


def normalize_opening_balance(raw: RawRecord) -> OpeningBalance:
    balance = _record(raw)
    balance.update(
        cashBalance=to_number(balance.get("cashBalance")),
        cardBalances=_balances(balance.get("cardBalances")),
        bankBalances=_balances(balance.get("bankBalances")),
        date=normalize_date(balance.get("date"), balance.get("createdAt")),
    )
    return balance  # type: ignore[return-value]

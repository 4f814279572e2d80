"""CSV export of normalized sales, expenses and products."""
from __future__ import annotations

import csv
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Tuple

Row = List[object]

SALE_HEADERS = ["Bill No.", "Date", "Customer", "Items", "Subtotal", "Discount", "Tax", "Total", "Balance", "Status"]
EXPENSE_HEADERS = ["Date", "Category", "Description", "Amount"]
PRODUCT_HEADERS = ["Name", "Category", "Barcode", "Cost", "Sale Price", "Quantity", "Min Stock"]


def _sale_row(sale: Mapping[str, object]) -> Row:
    items = sale.get("items") or []
    return [
        sale.get("billNumber", ""),
        sale.get("date") or "",
        sale.get("customerName") or "",
        len(items) if isinstance(items, list) else 0,
        sale.get("subtotal", 0),
        sale.get("discount", 0),
        sale.get("tax", 0),
        sale.get("total", 0),
        sale.get("remainingBalance") if sale.get("remainingBalance") is not None else "",
        sale.get("status", ""),
    ]


def _expense_row(expense: Mapping[str, object]) -> Row:
    return [
        expense.get("date") or "",
        expense.get("category") or "",
        expense.get("description") or "",
        expense.get("amount", 0),
    ]


def _product_row(product: Mapping[str, object]) -> Row:
    return [
        product.get("name", ""),
        product.get("category") or "",
        product.get("barcode") or "",
        product.get("cost", 0),
        product.get("salePrice", 0),
        product.get("quantity", 0),
        product.get("minStockLevel", 0),
    ]


LAYOUTS: Dict[str, Tuple[str, List[str], Callable[[Mapping[str, object]], Row]]] = {
    "sales": ("Sales", SALE_HEADERS, _sale_row),
    "expenses": ("Expenses", EXPENSE_HEADERS, _expense_row),
    "products": ("Products", PRODUCT_HEADERS, _product_row),
}


def _write(records: Iterable[Mapping[str, object]], filepath: str | Path, kind: str) -> None:
    _, headers, row = LAYOUTS[kind]
    with open(filepath, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(headers)
        for record in records:
            writer.writerow(row(record))


def export_sales_to_csv(sales: Iterable[Mapping[str, object]], filepath: str | Path) -> None:
    _write(sales, filepath, "sales")


def export_expenses_to_csv(expenses: Iterable[Mapping[str, object]], filepath: str | Path) -> None:
    _write(expenses, filepath, "expenses")


def export_products_to_csv(products: Iterable[Mapping[str, object]], filepath: str | Path) -> None:
    _write(products, filepath, "products")

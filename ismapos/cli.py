#!/usr/bin/env python3
"""Command-line front end for the backend client."""
from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from typing import Any, Callable, Optional, Sequence

from .api_client import REPORT_TYPES, ApiClient
from .config import configure_logging, load_settings
from .errors import PosClientError, UnauthorizedError, error_message
from .utils.dates import date_range_for, local_date, today_string
from .utils.export_csv import export_expenses_to_csv, export_products_to_csv, export_sales_to_csv
from .utils.export_excel import export_records_to_excel, save_pdf, save_workbook
from .utils.formatting import format_complete_amount, format_price_with_currency_complete

logger = logging.getLogger(__name__)

CSV_EXPORTERS: dict[str, Callable[..., None]] = {
    "sales": export_sales_to_csv,
    "expenses": export_expenses_to_csv,
    "products": export_products_to_csv,
}


def _redirect_notice(path: str) -> None:
    print(f"Session expired. Sign in again ({path}).", file=sys.stderr)


def _checked_date(value: Optional[str], option: str) -> Optional[str]:
    if value is None:
        return None
    try:
        local_date(value)
    except ValueError:
        raise SystemExit(f"{option} must be a date in YYYY-MM-DD form, got {value!r}") from None
    return value


def _range(args: argparse.Namespace) -> tuple[Optional[str], Optional[str]]:
    start = _checked_date(args.start, "--from")
    end = _checked_date(args.end, "--to")
    period = getattr(args, "period", None)
    if period:
        rng = date_range_for(period, start or today_string(), end)
        if rng is None:
            raise SystemExit("custom period needs both --from and --to")
        return rng
    return start, end


def _report_workbook_data(client: ApiClient, start: Optional[str], end: Optional[str]) -> dict[str, Any]:
    sales = client.get_sales(start_date=start, end_date=end).items
    expenses = client.get_expenses(start_date=start, end_date=end).items
    total_sales = sum(sale["total"] for sale in sales if sale["status"] != "cancelled")
    total_expenses = sum(expense["amount"] for expense in expenses)
    return {
        "summary": {
            "Total Sales": f"{total_sales:.2f}",
            "Total Expenses": f"{total_expenses:.2f}",
            "Profit/Loss": f"{total_sales - total_expenses:.2f}",
        },
        "sales": sales,
        "expenses": expenses,
        "dateRange": {"start": start, "end": end},
    }


def _fetch(client: ApiClient, kind: str, start: Optional[str], end: Optional[str]) -> list[dict[str, Any]]:
    if kind == "sales":
        return client.get_sales(start_date=start, end_date=end).items
    if kind == "expenses":
        return client.get_expenses(start_date=start, end_date=end).items
    return client.get_products().items


# ----------------------------------------------------------------------
def cmd_login(client: ApiClient, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    if args.superadmin:
        client.super_admin_login(args.username, password)
    else:
        client.login(args.username, password)
    user = client.session.user
    print(f"Signed in as {user.get('name') or user.get('username') or args.username} ({user.get('role', '?')})")
    return 0


def cmd_logout(client: ApiClient, args: argparse.Namespace) -> int:
    client.logout()
    print("Signed out")
    return 0


def cmd_whoami(client: ApiClient, args: argparse.Namespace) -> int:
    if not client.session.is_active:
        print("Not signed in")
        return 1
    print(json.dumps(client.session.user, indent=2))
    return 0


def cmd_products(client: ApiClient, args: argparse.Namespace) -> int:
    page = client.get_products(search=args.search, low_stock=args.low_stock or None)
    for p in page:
        print(f"{p.get('name', ''):<32} {p['quantity']:>6}  {format_complete_amount(p['salePrice']):>14}")
    return 0


def cmd_sales(client: ApiClient, args: argparse.Namespace) -> int:
    start, end = _range(args)
    page = client.get_sales(start_date=start, end_date=end)
    total = 0.0
    for sale in page:
        total += sale["total"]
        print(f"{sale.get('billNumber', ''):<14} {str(sale.get('date') or '')[:10]:<10} "
              f"{sale['status']:<10} {format_complete_amount(sale['total']):>14}")
    print(f"{len(page)} sales, {format_price_with_currency_complete(total)}")
    return 0


def cmd_report(client: ApiClient, args: argparse.Namespace) -> int:
    start, end = _range(args)
    if args.pdf:
        content = client.export_report_pdf(args.report, start_date=start, end_date=end)
        print(f"Saved {save_pdf(content, args.pdf)}")
        return 0
    if args.excel:
        content = client.export_report_to_excel(_report_workbook_data(client, start, end))
        print(f"Saved {save_workbook(content, args.excel)}")
        return 0
    fetch = {
        "sales": client.get_sales_report,
        "expenses": client.get_expenses_report,
        "profit-loss": client.get_profit_loss_report,
    }[args.report]
    print(json.dumps(fetch(start_date=start, end_date=end), indent=2, default=str))
    return 0


def cmd_export(client: ApiClient, args: argparse.Namespace) -> int:
    start, end = _range(args)
    records = _fetch(client, args.kind, start, end)
    if args.excel:
        export_records_to_excel(records, args.path, args.kind)
    else:
        CSV_EXPORTERS[args.kind](records, args.path)
    print(f"Exported {len(records)} {args.kind} to {args.path}")
    return 0


# ----------------------------------------------------------------------
def _add_range(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--from", dest="start", help="Start date YYYY-MM-DD")
    parser.add_argument("--to", dest="end", help="End date YYYY-MM-DD")
    parser.add_argument("--period", choices=["daily", "weekly", "monthly", "custom"], help="Report period")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ismapos", description="Isma Sports Complex backend client")
    parser.add_argument("--config", help="Path to client_config.json")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("login", help="Sign in and store the session")
    p.add_argument("username")
    p.add_argument("--password")
    p.add_argument("--superadmin", action="store_true", help="Use the super admin sign-in")
    p.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="Sign out and clear the stored session").set_defaults(func=cmd_logout)
    sub.add_parser("whoami", help="Show the signed-in user").set_defaults(func=cmd_whoami)

    p = sub.add_parser("products", help="List products")
    p.add_argument("--search")
    p.add_argument("--low-stock", action="store_true")
    p.set_defaults(func=cmd_products)

    p = sub.add_parser("sales", help="List sales")
    _add_range(p)
    p.set_defaults(func=cmd_sales)

    p = sub.add_parser("report", help="Show or download a report")
    p.add_argument("report", choices=REPORT_TYPES)
    p.add_argument("--pdf", help="Download the report as PDF to this path")
    p.add_argument("--excel", help="Render sales and expenses for the range to an xlsx workbook at this path")
    _add_range(p)
    p.set_defaults(func=cmd_report)

    p = sub.add_parser("export", help="Export records to CSV or Excel")
    p.add_argument("kind", choices=sorted(CSV_EXPORTERS))
    p.add_argument("path")
    p.add_argument("--excel", action="store_true", help="Write an .xlsx workbook instead of CSV")
    _add_range(p)
    p.set_defaults(func=cmd_export)
    return parser


def main(argv: Optional[Sequence[str]] = None, client: Optional[ApiClient] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.config) if args.config else load_settings()
    configure_logging(settings.log_level, settings.log_file)
    if client is None:
        client = ApiClient.from_settings(settings, on_unauthorized=_redirect_notice)
    try:
        return args.func(client, args)
    except UnauthorizedError as exc:
        print(error_message(exc, "Your session has expired."), file=sys.stderr)
        return 2
    except PosClientError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(error_message(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(1)

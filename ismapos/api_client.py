"""REST client for the Isma Sports Complex backend.

``ApiClient`` is the single point of HTTP access. It attaches the session's
bearer token, terminates the session when the backend answers 401, and
collapses concurrent identical reads through a :class:`RequestDeduplicator`.
Sales, products, expenses, purchases and opening balances come back
normalized; everything else is returned as the backend sent it.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import DEFAULT_API_URL, DEFAULT_TIMEOUT, ClientSettings
from .dedup import RequestDeduplicator, request_key
from .errors import ApiError, NetworkError, UnauthorizedError
from .models import Expense, OpeningBalance, Page, Product, Purchase, Sale
from .normalize import (
    normalize_expense,
    normalize_opening_balance,
    normalize_product,
    normalize_purchase,
    normalize_sale,
)
from .session import Session, SessionStore

logger = logging.getLogger(__name__)

SIGNIN_PATH = "/signin"
REPORT_TYPES = ("sales", "expenses", "profit-loss")


def _page(data: Any, normalizer: Callable[[Any], Any] | None = None) -> Page:
    """Accept both ``[...]`` and ``{"data": [...], "pagination": {...}}``."""

    pagination = None
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        pagination = data.get("pagination")
        data = data["data"]
    if not isinstance(data, list):
        return Page()
    items = [normalizer(item) for item in data] if normalizer else list(data)
    return Page(items=items, pagination=pagination)


def _optional(normalizer: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def apply(data: Any) -> Any:
        return normalizer(data) if data else None

    return apply


class ApiClient:
    """Backend client bound to one :class:`Session`."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        *,
        session: Session | None = None,
        store: SessionStore | None = None,
        on_unauthorized: Callable[[str], None] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        http: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.store = store
        if session is None:
            session = store.load() if store else Session()
        self.session = session
        self.on_unauthorized = on_unauthorized
        self.timeout = timeout
        self.inflight = RequestDeduplicator()
        if http is None:
            http = requests.Session()
            adapter = HTTPAdapter(max_retries=Retry(total=2, backoff_factor=0.2))
            http.mount("http://", adapter)
            http.mount("https://", adapter)
        self.http = http

    @classmethod
    def from_settings(
        cls, settings: ClientSettings, on_unauthorized: Callable[[str], None] | None = None
    ) -> "ApiClient":
        return cls(
            settings.api_url,
            store=SessionStore(settings.session_file),
            on_unauthorized=on_unauthorized,
            timeout=settings.timeout,
        )

    # ------------------------------------------------------------------
    # Transport
    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"
        return headers

    @staticmethod
    def _payload(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return resp.text or None

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        raw: bool = False,
    ) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            resp = self.http.request(
                method, url, params=params or None, json=json, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError(f"Could not reach backend: {exc}") from exc

        if resp.status_code == 401:
            payload = self._payload(resp)
            self._handle_unauthorized(path)
            raise UnauthorizedError(401, payload)
        if not resp.ok:
            logger.info("%s %s returned %s", method, path, resp.status_code)
            raise ApiError(resp.status_code, self._payload(resp))
        if raw:
            return resp.content
        if resp.status_code == 204 or not resp.content:
            return None
        return self._payload(resp)

    def _handle_unauthorized(self, path: str) -> None:
        logger.warning("Unauthorized response for %s, ending session", path)
        if self.store is not None:
            self.store.clear()
        self.session.terminate()
        if self.on_unauthorized is not None:
            self.on_unauthorized(SIGNIN_PATH)

    def _read(
        self,
        operation: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        transform: Callable[[Any], Any] | None = None,
    ) -> Any:
        """Deduplicated GET; ``transform`` runs once and its result is shared."""

        def call() -> Any:
            data = self._request("GET", path, params=params)
            return transform(data) if transform else data

        return self.inflight.run(request_key(f"{operation} {path}", params), call)

    def _post(self, path: str, data: Any = None) -> Any:
        return self._request("POST", path, json=data)

    def _put(self, path: str, data: Any = None) -> Any:
        return self._request("PUT", path, json=data)

    def _patch(self, path: str, data: Any = None) -> Any:
        return self._request("PATCH", path, json=data)

    def _delete(self, path: str) -> None:
        self._request("DELETE", path)

    # ------------------------------------------------------------------
    # Auth
    def _start_session(self, data: Any) -> None:
        if isinstance(data, dict) and data.get("token"):
            self.session.token = data["token"]
            self.session.user = data.get("user") or {}
            if self.store is not None:
                self.store.save(self.session)
            logger.info("Signed in as %s", self.session.user.get("username"))

    def login(self, username: str, password: str) -> dict[str, Any]:
        data = self._post("/auth/login", {"username": username, "password": password})
        self._start_session(data)
        return data

    def super_admin_login(self, username: str, password: str) -> dict[str, Any]:
        data = self._post("/auth/superadmin/login", {"username": username, "password": password})
        self._start_session(data)
        return data

    def logout(self) -> None:
        try:
            self._post("/auth/logout")
        finally:
            if self.store is not None:
                self.store.clear()
            self.session.terminate()

    # ------------------------------------------------------------------
    # Products
    def get_products(
        self,
        *,
        search: str | None = None,
        category: str | None = None,
        low_stock: bool | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> Page[Product]:
        params = {"search": search, "category": category, "lowStock": low_stock, "page": page, "pageSize": page_size}
        return self._read("get_products", "/products", params, lambda d: _page(d, normalize_product))

    def get_product(self, product_id: str) -> Product:
        return self._read("get_product", f"/products/{product_id}", transform=normalize_product)

    def get_low_stock_products(self) -> List[dict[str, Any]]:
        return self._read("get_low_stock_products", "/products/inventory/low-stock")

    def create_product(self, data: dict[str, Any]) -> Product:
        return normalize_product(self._post("/products", data))

    def update_product(self, product_id: str, data: dict[str, Any]) -> Product:
        return normalize_product(self._put(f"/products/{product_id}", data))

    def delete_product(self, product_id: str) -> None:
        self._delete(f"/products/{product_id}")

    # ------------------------------------------------------------------
    # Sales
    def get_sales(
        self,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        status: str | None = None,
        search: str | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> Page[Sale]:
        params = {
            "startDate": start_date,
            "endDate": end_date,
            "status": status,
            "search": search,
            "page": page,
            "pageSize": page_size,
        }
        return self._read("get_sales", "/sales", params, lambda d: _page(d, normalize_sale))

    def get_sale(self, sale_id: str) -> Sale:
        return self._read("get_sale", f"/sales/{sale_id}", transform=normalize_sale)

    def get_sale_by_bill_number(self, bill_number: str) -> Sale:
        return self._read("get_sale_by_bill_number", f"/sales/bill/{bill_number}", transform=normalize_sale)

    def create_sale(self, data: dict[str, Any]) -> Sale:
        return normalize_sale(self._post("/sales", data))

    def cancel_sale(self, sale_id: str) -> Sale:
        return normalize_sale(self._patch(f"/sales/{sale_id}/cancel"))

    def add_payment_to_sale(self, sale_id: str, payment: dict[str, Any]) -> Sale:
        return normalize_sale(self._post(f"/sales/{sale_id}/payments", payment))

    # ------------------------------------------------------------------
    # Expenses
    def get_expenses(
        self,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        category: str | None = None,
        search: str | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> Page[Expense]:
        params = {
            "startDate": start_date,
            "endDate": end_date,
            "category": category,
            "search": search,
            "page": page,
            "pageSize": page_size,
        }
        return self._read("get_expenses", "/expenses", params, lambda d: _page(d, normalize_expense))

    def get_expense(self, expense_id: str) -> Expense:
        return self._read("get_expense", f"/expenses/{expense_id}", transform=normalize_expense)

    def create_expense(self, data: dict[str, Any]) -> Expense:
        return normalize_expense(self._post("/expenses", data))

    def update_expense(self, expense_id: str, data: dict[str, Any]) -> Expense:
        return normalize_expense(self._put(f"/expenses/{expense_id}", data))

    def delete_expense(self, expense_id: str) -> None:
        self._delete(f"/expenses/{expense_id}")

    def get_expense_categories(self) -> List[dict[str, Any]]:
        return self._read("get_expense_categories", "/expense-categories")

    # ------------------------------------------------------------------
    # Purchases
    def get_purchases(
        self,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        supplier_id: str | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> Page[Purchase]:
        params = {
            "startDate": start_date,
            "endDate": end_date,
            "supplierId": supplier_id,
            "page": page,
            "pageSize": page_size,
        }
        return self._read("get_purchases", "/purchases", params, lambda d: _page(d, normalize_purchase))

    def get_purchase(self, purchase_id: str) -> Purchase:
        return self._read("get_purchase", f"/purchases/{purchase_id}", transform=normalize_purchase)

    def create_purchase(self, data: dict[str, Any]) -> Purchase:
        return normalize_purchase(self._post("/purchases", data))

    def update_purchase(self, purchase_id: str, data: dict[str, Any]) -> Purchase:
        return normalize_purchase(self._put(f"/purchases/{purchase_id}", data))

    def add_payment_to_purchase(self, purchase_id: str, payment: dict[str, Any]) -> Purchase:
        return normalize_purchase(self._post(f"/purchases/{purchase_id}/payments", payment))

    # ------------------------------------------------------------------
    # Opening balances
    def get_opening_balances(
        self, *, start_date: str | None = None, end_date: str | None = None
    ) -> List[OpeningBalance]:
        params = {"startDate": start_date, "endDate": end_date}
        return self._read(
            "get_opening_balances",
            "/opening-balances",
            params,
            lambda d: _page(d, normalize_opening_balance).items,
        )

    def get_opening_balance(self, date: str) -> Optional[OpeningBalance]:
        """Opening balance for ``date`` (YYYY-MM-DD), ``None`` when not recorded."""

        return self._read(
            "get_opening_balance",
            "/opening-balances/date",
            {"date": date},
            _optional(normalize_opening_balance),
        )

    def create_opening_balance(self, data: dict[str, Any]) -> OpeningBalance:
        return normalize_opening_balance(self._post("/opening-balances", data))

    def create_opening_balance_with_banks(
        self,
        date: str,
        *,
        cash_balance: float = 0,
        bank_balances: List[dict[str, Any]] | None = None,
        notes: str | None = None,
    ) -> OpeningBalance:
        """Record a day's opening cash together with per-bank-account balances.

        ``bank_balances`` entries are ``{"bankAccountId": ..., "balance": ...}``.
        """

        data: dict[str, Any] = {"date": date, "cashBalance": cash_balance, "bankBalances": list(bank_balances or [])}
        if notes:
            data["notes"] = notes
        return self.create_opening_balance(data)

    def update_opening_balance_with_banks(
        self,
        balance_id: str,
        *,
        cash_balance: float | None = None,
        bank_balances: List[dict[str, Any]] | None = None,
        notes: str | None = None,
    ) -> OpeningBalance:
        """Change cash and/or bank balances; omitted arguments are left untouched."""

        data = {"cashBalance": cash_balance, "bankBalances": bank_balances, "notes": notes}
        return self.update_opening_balance(balance_id, {k: v for k, v in data.items() if v is not None})

    def update_opening_balance(self, balance_id: str, data: dict[str, Any]) -> OpeningBalance:
        return normalize_opening_balance(self._put(f"/opening-balances/{balance_id}", data))

    def delete_opening_balance(self, balance_id: str) -> None:
        self._delete(f"/opening-balances/{balance_id}")

    # ------------------------------------------------------------------
    # Reports
    def get_sales_report(self, *, start_date: str | None = None, end_date: str | None = None) -> Any:
        return self._read("get_sales_report", "/reports/sales", {"startDate": start_date, "endDate": end_date})

    def get_expenses_report(self, *, start_date: str | None = None, end_date: str | None = None) -> Any:
        return self._read(
            "get_expenses_report", "/reports/expenses", {"startDate": start_date, "endDate": end_date}
        )

    def get_profit_loss_report(self, *, start_date: str | None = None, end_date: str | None = None) -> Any:
        return self._read(
            "get_profit_loss_report", "/reports/profit-loss", {"startDate": start_date, "endDate": end_date}
        )

    def export_report_pdf(
        self, report: str, *, start_date: str | None = None, end_date: str | None = None
    ) -> bytes:
        """Download a report as a PDF document (returned unparsed)."""

        if report not in REPORT_TYPES:
            raise ValueError(f"Unknown report {report!r}; expected one of {', '.join(REPORT_TYPES)}")
        params = {"startDate": start_date, "endDate": end_date, "format": "pdf"}
        return self._request("GET", f"/reports/{report}/export", params=params, raw=True)

    def export_report_to_excel(self, report_data: dict[str, Any]) -> bytes:
        """Render ``report_data`` to an xlsx workbook on the backend.

        ``report_data`` carries ``summary``, ``sales``, ``expenses`` and
        ``dateRange`` (``{"start": ..., "end": ...}``); the range is also sent
        as ``startDate``/``endDate`` so the backend can name the file.
        """

        date_range = report_data.get("dateRange") or {}
        params = {"startDate": date_range.get("start"), "endDate": date_range.get("end")}
        return self._request("POST", "/backup/export-report", params=params, json=report_data, raw=True)

    # ------------------------------------------------------------------
    # Dashboard
    def get_dashboard_stats(self) -> dict[str, Any]:
        return self._read("get_dashboard_stats", "/dashboard/stats")

    # ------------------------------------------------------------------
    # Users
    def get_users(self, *, page: int | None = None, page_size: int | None = None) -> Page[dict[str, Any]]:
        return self._read("get_users", "/users", {"page": page, "pageSize": page_size}, _page)

    def get_user(self, user_id: str) -> dict[str, Any]:
        return self._read("get_user", f"/users/{user_id}")

    def create_user(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._post("/users", data)

    def update_user(self, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        if self.session.user_id is not None and str(user_id) == self.session.user_id:
            updated = self._put("/users/profile", data)
            if isinstance(updated, dict) and updated:
                self.session.user = updated
                if self.store is not None:
                    self.store.save(self.session)
            return updated
        return self._put(f"/users/{user_id}", data)

    def delete_user(self, user_id: str) -> None:
        self._delete(f"/users/{user_id}")

    # ------------------------------------------------------------------
    # Categories
    def get_categories(self) -> List[dict[str, Any]]:
        return self._read("get_categories", "/categories")

    def get_category(self, category_id: str) -> dict[str, Any]:
        return self._read("get_category", f"/categories/{category_id}")

    def create_category(self, name: str, description: str | None = None) -> dict[str, Any]:
        return self._post("/categories", {"name": name, "description": description})

    def update_category(self, category_id: str, name: str, description: str | None = None) -> dict[str, Any]:
        return self._put(f"/categories/{category_id}", {"name": name, "description": description})

    def delete_category(self, category_id: str) -> None:
        self._delete(f"/categories/{category_id}")

    # ------------------------------------------------------------------
    # Brands and suppliers
    def get_brands(self) -> List[dict[str, Any]]:
        return self._read("get_brands", "/brands")

    def get_brand(self, brand_id: str) -> dict[str, Any]:
        return self._read("get_brand", f"/brands/{brand_id}")

    def create_brand(self, name: str, description: str | None = None) -> dict[str, Any]:
        return self._post("/brands", {"name": name, "description": description})

    def update_brand(self, brand_id: str, name: str, description: str | None = None) -> dict[str, Any]:
        return self._put(f"/brands/{brand_id}", {"name": name, "description": description})

    def delete_brand(self, brand_id: str) -> None:
        self._delete(f"/brands/{brand_id}")

    def get_suppliers(self, search: str | None = None) -> List[dict[str, Any]]:
        """Known supplier names for purchase entry, optionally filtered."""

        return self._read("get_suppliers", "/suppliers", {"search": search or None})

    # ------------------------------------------------------------------
    # Roles and settings
    def get_roles(self) -> List[dict[str, Any]]:
        return self._read("get_roles", "/roles")

    def get_settings(self) -> dict[str, Any]:
        return self._read("get_settings", "/settings")

    def update_settings(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._put("/settings", data)

    # ------------------------------------------------------------------
    # Bank accounts
    def get_bank_accounts(self) -> List[dict[str, Any]]:
        return self._read("get_bank_accounts", "/bank-accounts")

    def get_default_bank_account(self) -> Optional[dict[str, Any]]:
        return self._read("get_default_bank_account", "/bank-accounts/default")

    def get_bank_account(self, account_id: str) -> dict[str, Any]:
        return self._read("get_bank_account", f"/bank-accounts/{account_id}")

    def create_bank_account(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._post("/bank-accounts", data)

    def update_bank_account(self, account_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return self._put(f"/bank-accounts/{account_id}", data)

    def delete_bank_account(self, account_id: str) -> None:
        self._delete(f"/bank-accounts/{account_id}")

    # ------------------------------------------------------------------
    # Cards
    def get_cards(self) -> List[dict[str, Any]]:
        return self._read("get_cards", "/cards")

    def get_default_card(self) -> Optional[dict[str, Any]]:
        return self._read("get_default_card", "/cards/default")

    def get_card(self, card_id: str) -> dict[str, Any]:
        return self._read("get_card", f"/cards/{card_id}")

    def create_card(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._post("/cards", data)

    def update_card(self, card_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return self._put(f"/cards/{card_id}", data)

    def delete_card(self, card_id: str) -> None:
        self._delete(f"/cards/{card_id}")

"""
API client tests.

The HTTP layer is a mocked ``requests.Session`` returning real
``requests.Response`` objects, so status handling goes through the same code
paths as against the live backend.
"""
import threading

import pytest
import requests

from ismapos.api_client import ApiClient
from ismapos.dedup import request_key
from ismapos.errors import ApiError, NetworkError, UnauthorizedError, error_message
from ismapos.session import Session

from .helpers import make_response, wait_for


def sent(http, index=-1):
    call = http.request.call_args_list[index]
    method, url = call.args
    return method, url, call.kwargs


class TestTransport:

    def test_bearer_token_is_attached(self, client, http):
        client.get_roles()

        method, url, kwargs = sent(http)
        assert (method, url) == ("GET", "http://pos.test/api/roles")
        assert kwargs["headers"]["Authorization"] == "Bearer tok-123"

    def test_no_token_no_auth_header(self, http):
        anonymous = ApiClient("http://pos.test/api", session=Session(), http=http)
        anonymous.get_settings()

        assert "Authorization" not in sent(http)[2]["headers"]

    def test_none_params_are_not_sent(self, client, http):
        client.get_sales(start_date="2024-01-01", status=None)

        assert sent(http)[2]["params"] == {"startDate": "2024-01-01"}

    def test_timeout_is_passed(self, client, http):
        client.timeout = 4.5
        client.get_cards()

        assert sent(http)[2]["timeout"] == 4.5

    def test_http_error_carries_payload(self, client, http):
        http.request.return_value = make_response(400, {"error": "Insufficient stock for Cricket Bat"})

        with pytest.raises(ApiError) as excinfo:
            client.create_sale({"items": []})

        assert excinfo.value.status_code == 400
        assert error_message(excinfo.value) == "Insufficient stock for Cricket Bat"

    def test_error_message_fallback(self, client, http):
        http.request.return_value = make_response(500, content=b"<html>oops</html>")

        with pytest.raises(ApiError) as excinfo:
            client.get_products()

        assert error_message(excinfo.value, "Failed to load products") == "Failed to load products"

    def test_network_error(self, client, http):
        http.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(NetworkError):
            client.get_users()

    def test_empty_body_is_none(self, client, http):
        http.request.return_value = make_response(204)

        assert client.delete_product("p1") is None
        assert sent(http)[:2] == ("DELETE", "http://pos.test/api/products/p1")


class TestUnauthorized:

    def test_401_ends_session_and_still_raises(self, client, http, store, redirects):
        http.request.return_value = make_response(401, {"error": "Token expired"})

        with pytest.raises(UnauthorizedError):
            client.get_sales()

        assert redirects == ["/signin"]
        assert client.session.token is None
        assert client.session.user == {}
        assert not store.path.exists()

    def test_follow_up_requests_are_anonymous(self, client, http):
        http.request.return_value = make_response(401, {"error": "Token expired"})
        with pytest.raises(UnauthorizedError):
            client.get_settings()

        http.request.return_value = make_response(200, {})
        client.get_settings()

        assert "Authorization" not in sent(http)[2]["headers"]

    def test_403_does_not_end_session(self, client, http, redirects):
        http.request.return_value = make_response(403, {"error": "Forbidden"})

        with pytest.raises(ApiError) as excinfo:
            client.get_users()

        assert not isinstance(excinfo.value, UnauthorizedError)
        assert redirects == []
        assert client.session.is_active


class TestNormalizedResources:

    def test_sales_list_is_normalized(self, client, http):
        http.request.return_value = make_response(200, [
            {"id": "s1", "subtotal": "100.50", "total": "100.50", "payments": '[{"type":"cash","amount":50}]'},
        ])

        page = client.get_sales()

        assert len(page) == 1
        sale = page.items[0]
        assert sale["subtotal"] == 100.5
        assert sale["payments"] == [{"type": "cash", "amount": 50}]
        assert sale["status"] == "completed"

    def test_paginated_shape(self, client, http):
        http.request.return_value = make_response(200, {
            "data": [{"id": "p1", "cost": "10", "salePrice": "15", "quantity": "4"}],
            "pagination": {"page": 2, "pageSize": 10, "total": 11, "totalPages": 2},
        })

        page = client.get_products(page=2, page_size=10)

        assert page.pagination["totalPages"] == 2
        assert page.items[0]["quantity"] == 4
        assert sent(http)[2]["params"] == {"page": 2, "pageSize": 10}

    def test_unexpected_list_payload_is_empty(self, client, http):
        http.request.return_value = make_response(200, {"message": "maintenance"})

        assert client.get_expenses().items == []

    def test_single_purchase(self, client, http):
        http.request.return_value = make_response(200, {"id": "pu1", "total": "900", "items": [{"cost": "450"}]})

        purchase = client.get_purchase("pu1")

        assert purchase["total"] == 900.0
        assert purchase["remainingBalance"] == 0
        assert purchase["items"][0]["cost"] == 450.0

    def test_cancel_sale(self, client, http):
        http.request.return_value = make_response(200, {"id": "s1", "status": "cancelled", "total": "10"})

        sale = client.cancel_sale("s1")

        assert sent(http)[:2] == ("PATCH", "http://pos.test/api/sales/s1/cancel")
        assert sale["status"] == "cancelled"

    def test_add_payment_to_purchase(self, client, http):
        http.request.return_value = make_response(200, {"id": "pu1", "payments": [{"type": "cash", "amount": 10}]})

        purchase = client.add_payment_to_purchase("pu1", {"type": "cash", "amount": 10})

        method, url, kwargs = sent(http)
        assert (method, url) == ("POST", "http://pos.test/api/purchases/pu1/payments")
        assert kwargs["json"] == {"type": "cash", "amount": 10}
        assert purchase["payments"] == [{"type": "cash", "amount": 10}]

    def test_opening_balance_for_date(self, client, http):
        http.request.return_value = make_response(200, {"id": "ob1", "cashBalance": "2500"})

        balance = client.get_opening_balance("2024-06-01")

        assert balance["cashBalance"] == 2500.0
        assert sent(http)[2]["params"] == {"date": "2024-06-01"}

    def test_missing_opening_balance_is_none(self, client, http):
        http.request.return_value = make_response(200, content=b"null")

        assert client.get_opening_balance("2024-06-02") is None


class TestReports:

    def test_export_pdf_returns_bytes(self, client, http):
        http.request.return_value = make_response(200, content=b"%PDF-1.7 ...")

        content = client.export_report_pdf("profit-loss", start_date="2024-06-01", end_date="2024-06-30")

        assert content == b"%PDF-1.7 ..."
        method, url, kwargs = sent(http)
        assert url == "http://pos.test/api/reports/profit-loss/export"
        assert kwargs["params"]["format"] == "pdf"

    def test_unknown_report(self, client):
        with pytest.raises(ValueError):
            client.export_report_pdf("inventory")

    def test_export_to_excel_posts_report_data(self, client, http):
        http.request.return_value = make_response(200, content=b"PK\x03\x04workbook")
        report = {
            "summary": {"Total Sales": "1500.00"},
            "sales": [{"billNumber": "B-1", "total": 1500.0}],
            "expenses": [],
            "dateRange": {"start": "2024-06-01", "end": "2024-06-30"},
        }

        content = client.export_report_to_excel(report)

        assert content.startswith(b"PK")
        method, url, kwargs = sent(http)
        assert (method, url) == ("POST", "http://pos.test/api/backup/export-report")
        assert kwargs["json"] == report
        assert kwargs["params"] == {"startDate": "2024-06-01", "endDate": "2024-06-30"}

    def test_dashboard_stats(self, client, http):
        http.request.return_value = make_response(200, {"todaySales": 1200, "recentSales": []})

        assert client.get_dashboard_stats()["todaySales"] == 1200
        assert sent(http)[:2] == ("GET", "http://pos.test/api/dashboard/stats")


class TestCatalogue:

    def test_brand_crud_paths(self, client, http):
        http.request.return_value = make_response(200, {"id": "b1", "name": "Gray-Nicolls"})

        client.get_brands()
        client.create_brand("Gray-Nicolls")
        client.update_brand("b1", "Gray Nicolls", "Cricket gear")
        client.delete_brand("b1")

        calls = [sent(http, i)[:2] for i in range(4)]
        assert calls == [
            ("GET", "http://pos.test/api/brands"),
            ("POST", "http://pos.test/api/brands"),
            ("PUT", "http://pos.test/api/brands/b1"),
            ("DELETE", "http://pos.test/api/brands/b1"),
        ]
        assert sent(http, 2)[2]["json"] == {"name": "Gray Nicolls", "description": "Cricket gear"}

    def test_supplier_search(self, client, http):
        http.request.return_value = make_response(200, [{"name": "Ali Traders"}])

        assert client.get_suppliers("ali") == [{"name": "Ali Traders"}]
        assert sent(http)[2]["params"] == {"search": "ali"}

    def test_supplier_blank_search_is_not_sent(self, client, http):
        client.get_suppliers("")

        assert sent(http)[2]["params"] is None


class TestOpeningBalancesWithBanks:

    def test_create_sends_bank_balances(self, client, http):
        http.request.return_value = make_response(200, {
            "id": "ob1", "date": "2024-06-01", "cashBalance": "0",
            "bankBalances": [{"bankAccountId": "b1", "balance": "800"}],
        })

        balance = client.create_opening_balance_with_banks(
            "2024-06-01", bank_balances=[{"bankAccountId": "b1", "balance": 800}]
        )

        method, url, kwargs = sent(http)
        assert (method, url) == ("POST", "http://pos.test/api/opening-balances")
        assert kwargs["json"] == {
            "date": "2024-06-01",
            "cashBalance": 0,
            "bankBalances": [{"bankAccountId": "b1", "balance": 800}],
        }
        assert balance["bankBalances"] == [{"bankAccountId": "b1", "balance": 800.0}]

    def test_update_only_sends_given_fields(self, client, http):
        http.request.return_value = make_response(200, {"id": "ob1", "cashBalance": "2500"})

        client.update_opening_balance_with_banks("ob1", cash_balance=2500)

        method, url, kwargs = sent(http)
        assert (method, url) == ("PUT", "http://pos.test/api/opening-balances/ob1")
        assert kwargs["json"] == {"cashBalance": 2500}


class TestAuth:

    def test_login_stores_session(self, http, store):
        http.request.return_value = make_response(200, {
            "token": "new-token",
            "user": {"id": "u9", "username": "admin", "role": "admin"},
        })
        client = ApiClient("http://pos.test/api", store=store, http=http)

        client.login("admin", "secret")

        assert client.session.token == "new-token"
        reloaded = store.load()
        assert reloaded.token == "new-token"
        assert reloaded.role == "admin"

    def test_failed_login_keeps_no_session(self, http, store):
        http.request.return_value = make_response(200, {"error": "Invalid credentials"})
        client = ApiClient("http://pos.test/api", store=store, http=http)

        client.login("admin", "wrong")

        assert not client.session.is_active
        assert not store.path.exists()

    def test_logout_clears_even_when_backend_fails(self, client, http, store):
        http.request.side_effect = requests.ConnectionError("offline")

        with pytest.raises(NetworkError):
            client.logout()

        assert not client.session.is_active
        assert not store.path.exists()

    def test_updating_own_profile(self, client, http, store):
        http.request.return_value = make_response(200, {"id": "u1", "username": "cashier1", "name": "Sara"})

        client.update_user("u1", {"name": "Sara"})

        assert sent(http)[:2] == ("PUT", "http://pos.test/api/users/profile")
        assert store.load().user["name"] == "Sara"

    def test_updating_another_user(self, client, http):
        http.request.return_value = make_response(200, {"id": "u2"})

        client.update_user("u2", {"role": "admin"})

        assert sent(http)[:2] == ("PUT", "http://pos.test/api/users/u2")


class TestDeduplication:

    def _call(self, fn, results, index):
        def run():
            try:
                results[index] = fn()
            except Exception as exc:
                results[index] = exc

        thread = threading.Thread(target=run)
        thread.start()
        return thread

    def test_concurrent_identical_reads_hit_backend_once(self, client, http, blocking_backend):
        results = [None, None]

        t1 = self._call(lambda: client.get_sales(start_date="2024-06-01"), results, 0)
        assert blocking_backend.entered.wait(2)
        t2 = self._call(lambda: client.get_sales(start_date="2024-06-01"), results, 1)
        key = request_key("get_sales /sales", {"startDate": "2024-06-01"})
        assert wait_for(lambda: client.inflight.callers(key) == 2)
        blocking_backend.release.set()
        t1.join(2)
        t2.join(2)

        assert http.request.call_count == 1
        assert results[0] is results[1]
        assert results[0].items[0]["subtotal"] == 10.0

    def test_concurrent_failure_reaches_every_caller(self, client, http, blocking_backend):
        blocking_backend.error = requests.ConnectionError("reset")
        results = [None, None]

        t1 = self._call(client.get_categories, results, 0)
        assert blocking_backend.entered.wait(2)
        t2 = self._call(client.get_categories, results, 1)
        assert wait_for(lambda: client.inflight.callers(request_key("get_categories /categories")) == 2)
        blocking_backend.release.set()
        t1.join(2)
        t2.join(2)

        assert http.request.call_count == 1
        assert isinstance(results[0], NetworkError)
        assert results[1] is results[0]

    def test_concurrent_supplier_lookups_share_one_call(self, client, http, blocking_backend):
        blocking_backend.response = make_response(200, [{"name": "Ali Traders"}])
        results = [None, None]

        t1 = self._call(lambda: client.get_suppliers("ali"), results, 0)
        assert blocking_backend.entered.wait(2)
        t2 = self._call(lambda: client.get_suppliers("ali"), results, 1)
        key = request_key("get_suppliers /suppliers", {"search": "ali"})
        assert wait_for(lambda: client.inflight.callers(key) == 2)
        blocking_backend.release.set()
        t1.join(2)
        t2.join(2)

        assert http.request.call_count == 1
        assert results[0] == [{"name": "Ali Traders"}]
        assert results[1] is results[0]

    def test_reads_after_settlement_go_to_backend(self, client, http):
        client.get_roles()
        client.get_roles()

        assert http.request.call_count == 2

    def test_writes_are_never_deduplicated(self, client, http):
        http.request.return_value = make_response(200, {"id": "e1", "amount": "5"})

        client.create_expense({"amount": 5})
        client.create_expense({"amount": 5})

        assert http.request.call_count == 2

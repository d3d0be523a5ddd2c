from datetime import date
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from aggregation import Entry
from amounts import from_cents
from client import ApiError, FinanceClient, entry_from_row
from models import TransactionType
from periods import Period


class RoutedClient(FinanceClient):
    """FinanceClient whose HTTP calls go to an in-process TestClient."""

    def __init__(self, api: TestClient, broken_paths: tuple[str, ...] = ()) -> None:
        super().__init__("http://testserver")
        self.api = api
        self.broken_paths = broken_paths

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> Any:
        if path in self.broken_paths:
            raise ApiError(f"{method} {path} failed with 500", 500)
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        resp = self.api.request(method, path, json=payload, params=params, headers=headers)
        if resp.status_code >= 400:
            raise ApiError(f"{method} {path} failed with {resp.status_code}", resp.status_code)
        return resp.json() if resp.content else None


SEED = [
    {"description": "Salary", "amount": 2500, "type": "Income", "category": "Salary", "date": "2024-01-01"},
    {"description": "Rent", "amount": 950, "type": "Expense", "category": "Housing", "date": "2024-01-02"},
    {"description": "Groceries", "amount": "123.45", "type": "Expense", "category": "Food", "date": "2024-01-09"},
    {"description": "Dinner", "amount": 40.1, "type": "Expense", "category": "Food", "date": "2024-02-14"},
    {"description": "Bonus", "amount": 300.33, "type": "Income", "category": "Salary", "date": "2024-02-28"},
    {"description": "Refund", "amount": 0.01, "type": "Income", "category": "Refunds", "date": "2024-03-31"},
]


def _seeded(api: TestClient, broken_paths: tuple[str, ...] = ()) -> RoutedClient:
    client = RoutedClient(api, broken_paths)
    client.register("alice", "alice@x.com", "pw123456")
    for body in SEED:
        client.create_transaction(body)
    return client


def test_fallback_matches_server_statistics(api: TestClient) -> None:
    server_side = _seeded(api).dashboard_stats()

    fallback_client = RoutedClient(api, broken_paths=("/transactions/statistics",))
    fallback_client.login("alice@x.com", "pw123456")
    client_side = fallback_client.dashboard_stats()

    assert server_side.source == "server"
    assert client_side.source == "client"
    assert (
        client_side.total_income,
        client_side.total_expenses,
        client_side.balance,
        client_side.transaction_count,
    ) == (
        server_side.total_income,
        server_side.total_expenses,
        server_side.balance,
        server_side.transaction_count,
    )
    assert client_side.balance == 1686.79


def test_fallback_respects_period(api: TestClient) -> None:
    client = _seeded(api, broken_paths=("/transactions/statistics",))
    february = Period("custom", date(2024, 2, 1), date(2024, 2, 29))

    stats = client.dashboard_stats(february)

    assert stats.source == "client"
    assert stats.transaction_count == 2
    assert stats.balance == 260.23


def test_client_breakdowns_match_server(api: TestClient) -> None:
    client = _seeded(api)
    headers = {"Authorization": f"Bearer {client.token}"}

    server_categories = api.get("/transactions/statistics/categories", headers=headers).json()
    server_months = api.get("/transactions/statistics/monthly", headers=headers).json()

    assert [
        {"category": b.category, "total": from_cents(b.total_cents), "percentage": b.percentage}
        for b in client.category_breakdown()
    ] == server_categories
    assert [
        (m.month, from_cents(m.income_cents), from_cents(m.expense_cents), from_cents(m.net_cents))
        for m in client.monthly_breakdown()
    ] == [(m["month"], m["income"], m["expenses"], m["net"]) for m in server_months]


def test_unauthenticated_client_raises() -> None:
    client = FinanceClient("http://127.0.0.1:9", timeout=1.0)
    with pytest.raises(ApiError):
        client.transactions()


def test_entry_from_row_handles_both_amount_shapes() -> None:
    typed = entry_from_row(
        {"amount": 12.5, "type": "Expense", "category": "Food", "date": "2024-01-02T00:00:00"}
    )
    signed = entry_from_row({"amount": -12.5, "category": "Food", "date": "2024-01-02"})
    income = entry_from_row({"amount": "99.90", "category": "Salary", "date": "2024-01-03"})

    assert typed == signed == Entry(TransactionType.expense, 1250, "Food", date(2024, 1, 2))
    assert income == Entry(TransactionType.income, 9990, "Salary", date(2024, 1, 3))

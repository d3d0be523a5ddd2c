from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from aggregation import (
    CategoryBucket,
    Entry,
    MonthBucket,
    bucket_by_category,
    bucket_by_month,
    compute,
)
from amounts import from_cents, from_signed, to_cents
from models import TransactionType
from periods import ALL_TIME, Period

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class DashboardStats:
    total_income: float
    total_expenses: float
    balance: float
    transaction_count: int
    source: str


def entry_from_row(row: dict[str, Any]) -> Entry:
    """Normalise a transaction row returned by the API.

    Rows without a ``type`` come from the signed-amount format, where a
    negative amount is an expense.
    """
    cents = to_cents(row["amount"])
    raw_type = row.get("type")
    if raw_type:
        txn_type = TransactionType(raw_type)
        cents = abs(cents)
    else:
        txn_type, cents = from_signed(cents)
    return Entry(
        type=txn_type,
        amount_cents=cents,
        category=str(row.get("category") or ""),
        date=date.fromisoformat(str(row["date"])[:10]),
    )


def _period_params(period: Period) -> dict[str, str]:
    params: dict[str, str] = {}
    if period.start is not None:
        params["start"] = period.start.isoformat()
    if period.end is not None:
        params["end"] = period.end.isoformat()
    return params


def stats_from_entries(entries: list[Entry], source: str) -> DashboardStats:
    summary = compute(entries)
    return DashboardStats(
        total_income=from_cents(summary.total_income_cents),
        total_expenses=from_cents(summary.total_expenses_cents),
        balance=from_cents(summary.balance_cents),
        transaction_count=summary.transaction_count,
        source=source,
    )


class FinanceClient:
    def __init__(
        self, base_url: str, token: Optional[str] = None, timeout: float = 10.0
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        headers = {"Accept": "application/json"}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        req = Request(url, data=data, headers=headers, method=method)
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                body = resp.read().decode("utf-8")
        except HTTPError as exc:
            raise ApiError(f"{method} {path} failed with {exc.code}", exc.code) from exc
        except (URLError, TimeoutError) as exc:
            raise ApiError(f"{method} {path} failed: {exc}") from exc
        if not body:
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise ApiError(f"{method} {path} returned invalid JSON") from exc

    def login(self, email: str, password: str) -> dict[str, Any]:
        data = self._request("POST", "/auth/login", {"email": email, "password": password})
        self.token = data["token"]
        return data

    def register(self, username: str, email: str, password: str, **names: str) -> dict[str, Any]:
        payload = {"username": username, "email": email, "password": password}
        payload.update(names)
        data = self._request("POST", "/auth/register", payload)
        self.token = data["token"]
        return data

    def transactions(self, **params: str) -> list[dict[str, Any]]:
        return self._request("GET", "/transactions", params=params or None)

    def create_transaction(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/transactions", payload)

    def update_transaction(self, transaction_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/transactions/{transaction_id}", payload)

    def delete_transaction(self, transaction_id: int) -> None:
        self._request("DELETE", f"/transactions/{transaction_id}")

    def statistics(self, period: Period = ALL_TIME) -> dict[str, Any]:
        return self._request(
            "GET", "/transactions/statistics", params=_period_params(period) or None
        )

    def dashboard_stats(self, period: Period = ALL_TIME) -> DashboardStats:
        """Server statistics, recomputed from the transaction list on failure."""
        try:
            data = self.statistics(period)
            return DashboardStats(
                total_income=float(data["totalIncome"]),
                total_expenses=float(data["totalExpenses"]),
                balance=float(data["balance"]),
                transaction_count=int(data["transactionCount"]),
                source="server",
            )
        except (ApiError, KeyError, TypeError, ValueError) as exc:
            logger.warning(f"stats_fallback: reason={exc}")
        return stats_from_entries(self._entries(period), source="client")

    def _entries(self, period: Period) -> list[Entry]:
        rows = self.transactions(**_period_params(period))
        return [e for e in map(entry_from_row, rows) if period.contains(e.date)]

    def category_breakdown(self, period: Period = ALL_TIME) -> list[CategoryBucket]:
        return bucket_by_category(self._entries(period))

    def monthly_breakdown(self, period: Period = ALL_TIME) -> list[MonthBucket]:
        return bucket_by_month(self._entries(period))

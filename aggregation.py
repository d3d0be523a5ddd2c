"""Income/expense rollups shared by the statistics endpoints and the client.

Everything here is a pure function of its input: integer cents in, integer
cents out, no caching.  The server and the client both call into this module
so that the numbers they show for the same transaction set are identical.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol

from models import TransactionType

PERCENT_QUANTUM = Decimal("0.01")


class LedgerEntry(Protocol):
    type: TransactionType
    amount_cents: int
    category: str
    date: date


@dataclass(frozen=True)
class Entry:
    type: TransactionType
    amount_cents: int
    category: str
    date: date


@dataclass(frozen=True)
class Summary:
    total_income_cents: int
    total_expenses_cents: int
    transaction_count: int

    @property
    def balance_cents(self) -> int:
        return self.total_income_cents - self.total_expenses_cents


@dataclass(frozen=True)
class CategoryBucket:
    category: str
    total_cents: int
    percentage: float


@dataclass(frozen=True)
class MonthBucket:
    month: str
    income_cents: int
    expense_cents: int

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expense_cents


def compute(transactions: Iterable[LedgerEntry]) -> Summary:
    income = 0
    expenses = 0
    count = 0
    for txn in transactions:
        count += 1
        if txn.type == TransactionType.income:
            income += abs(txn.amount_cents)
        else:
            expenses += abs(txn.amount_cents)
    return Summary(
        total_income_cents=income,
        total_expenses_cents=expenses,
        transaction_count=count,
    )


def percentage_of(part_cents: int, whole_cents: int) -> float:
    if whole_cents == 0:
        return 0.0
    ratio = Decimal(part_cents) * 100 / Decimal(whole_cents)
    return float(ratio.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP))


def category_buckets(totals: dict[str, int]) -> list[CategoryBucket]:
    """Build sorted buckets from per-category expense totals."""
    expense_total = sum(totals.values())
    buckets = [
        CategoryBucket(
            category=name,
            total_cents=cents,
            percentage=percentage_of(cents, expense_total),
        )
        for name, cents in totals.items()
    ]
    buckets.sort(key=lambda b: (-b.total_cents, b.category))
    return buckets


def bucket_by_category(transactions: Iterable[LedgerEntry]) -> list[CategoryBucket]:
    totals: dict[str, int] = {}
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        totals[txn.category] = totals.get(txn.category, 0) + abs(txn.amount_cents)
    return category_buckets(totals)


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def bucket_by_month(transactions: Iterable[LedgerEntry]) -> list[MonthBucket]:
    sums: dict[str, list[int]] = {}
    for txn in transactions:
        pair = sums.setdefault(month_key(txn.date), [0, 0])
        if txn.type == TransactionType.income:
            pair[0] += abs(txn.amount_cents)
        else:
            pair[1] += abs(txn.amount_cents)
    return [
        MonthBucket(month=key, income_cents=income, expense_cents=expense)
        for key, (income, expense) in sorted(sums.items())
    ]

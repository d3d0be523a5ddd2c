from datetime import date

import pytest

from aggregation import (
    Entry,
    bucket_by_category,
    bucket_by_month,
    compute,
    percentage_of,
)
from amounts import from_cents, from_signed, to_cents, to_signed
from models import TransactionType

INCOME = TransactionType.income
EXPENSE = TransactionType.expense


def _alice_entries() -> list[Entry]:
    return [
        Entry(INCOME, 100000, "Salary", date(2024, 1, 5)),
        Entry(EXPENSE, 30000, "Food", date(2024, 1, 10)),
        Entry(EXPENSE, 15000, "Food", date(2024, 2, 1)),
    ]


def test_compute_totals_for_alice() -> None:
    summary = compute(_alice_entries())

    assert summary.total_income_cents == 100000
    assert summary.total_expenses_cents == 45000
    assert summary.balance_cents == 55000
    assert summary.transaction_count == 3


def test_category_and_month_buckets_for_alice() -> None:
    categories = bucket_by_category(_alice_entries())
    assert [(b.category, b.total_cents, b.percentage) for b in categories] == [
        ("Food", 45000, 100.0)
    ]

    months = bucket_by_month(_alice_entries())
    assert [m.month for m in months] == ["2024-01", "2024-02"]
    assert months[0].net_cents == 70000
    assert months[1].net_cents == -15000


def test_compute_on_empty_input() -> None:
    summary = compute([])

    assert summary.total_income_cents == 0
    assert summary.total_expenses_cents == 0
    assert summary.balance_cents == 0
    assert summary.transaction_count == 0
    assert bucket_by_category([]) == []
    assert bucket_by_month([]) == []


def test_balance_is_exact_in_cents() -> None:
    entries = [Entry(INCOME, 10, "Misc", date(2024, 3, 1)) for _ in range(10)]
    entries.append(Entry(EXPENSE, 20, "Misc", date(2024, 3, 2)))
    entries.append(Entry(EXPENSE, 10, "Misc", date(2024, 3, 3)))
    summary = compute(entries)

    assert summary.balance_cents == summary.total_income_cents - summary.total_expenses_cents
    assert from_cents(summary.balance_cents) == 0.7


def test_category_percentages_sum_to_hundred() -> None:
    entries = [
        Entry(EXPENSE, 100, "Food", date(2024, 1, 1)),
        Entry(EXPENSE, 100, "Rent", date(2024, 1, 1)),
        Entry(EXPENSE, 100, "Travel", date(2024, 1, 1)),
        Entry(INCOME, 999, "Salary", date(2024, 1, 1)),
    ]
    buckets = bucket_by_category(entries)

    assert {b.category for b in buckets} == {"Food", "Rent", "Travel"}
    assert abs(sum(b.percentage for b in buckets) - 100) <= 0.01 * len(buckets)


def test_category_buckets_without_expenses_never_divide_by_zero() -> None:
    entries = [Entry(INCOME, 5000, "Salary", date(2024, 1, 1))]

    assert bucket_by_category(entries) == []
    assert percentage_of(0, 0) == 0.0
    assert percentage_of(150, 0) == 0.0


def test_category_buckets_sorted_by_total_then_name() -> None:
    entries = [
        Entry(EXPENSE, 500, "Books", date(2024, 1, 1)),
        Entry(EXPENSE, 900, "Rent", date(2024, 1, 1)),
        Entry(EXPENSE, 500, "Apps", date(2024, 1, 1)),
    ]

    assert [b.category for b in bucket_by_category(entries)] == ["Rent", "Apps", "Books"]


def test_month_buckets_are_chronological_across_years() -> None:
    entries = [
        Entry(EXPENSE, 100, "Food", date(2024, 2, 1)),
        Entry(INCOME, 300, "Salary", date(2023, 12, 31)),
        Entry(EXPENSE, 50, "Food", date(2024, 1, 15)),
    ]

    assert [m.month for m in bucket_by_month(entries)] == ["2023-12", "2024-01", "2024-02"]


def test_repeated_calls_give_identical_results() -> None:
    entries = _alice_entries()

    assert compute(entries) == compute(entries)
    assert bucket_by_category(entries) == bucket_by_category(entries)
    assert bucket_by_month(entries) == bucket_by_month(entries)


def test_amount_conversion_helpers() -> None:
    assert to_cents("12.50") == 1250
    assert to_cents(" 1234.56 ") == 123456
    for bad in ("1,000", "1.234,56", "1_000", "€ 12", "NaN", "Infinity", ""):
        with pytest.raises(ValueError):
            to_cents(bad)
    assert to_cents(19.99) == 1999
    assert from_cents(123456) == 1234.56
    assert to_signed(EXPENSE, 300) == -300
    assert to_signed(INCOME, 300) == 300
    assert from_signed(-300) == (EXPENSE, 300)
    assert from_signed(300) == (INCOME, 300)

from datetime import date

import pytest

from periods import ALL_TIME, Period, resolve_period


def test_named_periods() -> None:
    today = date(2024, 3, 15)

    assert resolve_period(None, None, None, today=today) == ALL_TIME
    assert resolve_period("all", None, None, today=today) == ALL_TIME
    assert resolve_period("this_month", None, None, today=today) == Period(
        "this_month", date(2024, 3, 1), date(2024, 3, 31)
    )
    assert resolve_period("this_year", None, None, today=today) == Period(
        "this_year", date(2024, 1, 1), date(2024, 12, 31)
    )


def test_last_month_wraps_year_and_handles_leap_february() -> None:
    assert resolve_period("last_month", None, None, today=date(2024, 1, 20)) == Period(
        "last_month", date(2023, 12, 1), date(2023, 12, 31)
    )
    assert resolve_period("last_month", None, None, today=date(2024, 3, 1)) == Period(
        "last_month", date(2024, 2, 1), date(2024, 2, 29)
    )
    assert resolve_period("this_month", None, None, today=date(2024, 12, 5)).end == date(
        2024, 12, 31
    )


def test_custom_and_open_ended_ranges() -> None:
    custom = resolve_period("custom", "2024-01-01", "2024-01-31")
    assert custom == Period("custom", date(2024, 1, 1), date(2024, 1, 31))

    since = resolve_period(None, "2024-02-01", None)
    assert since.start == date(2024, 2, 1)
    assert since.end is None
    assert since.contains(date(2030, 1, 1))
    assert not since.contains(date(2024, 1, 31))


def test_invalid_periods() -> None:
    with pytest.raises(ValueError):
        resolve_period("custom", None, None)
    with pytest.raises(ValueError):
        resolve_period("custom", "2024-02-01", "2024-01-01")
    with pytest.raises(ValueError):
        resolve_period("custom", "not-a-date", None)
    with pytest.raises(ValueError):
        resolve_period("fortnight", None, None)

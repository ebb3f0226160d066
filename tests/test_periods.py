from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from exceptions import InvalidPeriodError
from periods import BudgetPeriod, current_period, parse_month, resolve_period


def test_period_start_string_is_first_of_month() -> None:
    period = BudgetPeriod(2025, 7)
    assert period.start_iso == "2025-07-01"
    assert period.start == date(2025, 7, 1)
    assert period.next_start == date(2025, 8, 1)
    assert period.next_start_iso == "2025-08-01"


def test_december_rolls_into_next_year() -> None:
    period = BudgetPeriod(2024, 12)
    assert period.next_start == date(2025, 1, 1)
    assert period.next() == BudgetPeriod(2025, 1)
    assert BudgetPeriod(2025, 1).previous() == period


def test_contains_is_half_open() -> None:
    period = BudgetPeriod(2025, 2)
    assert period.contains(date(2025, 2, 1))
    assert period.contains(date(2025, 2, 28))
    assert not period.contains(date(2025, 3, 1))
    assert not period.contains(date(2025, 1, 31))


def test_parse_month_accepts_month_and_period_start() -> None:
    assert parse_month("2025-07") == BudgetPeriod(2025, 7)
    assert parse_month("2025-07-01") == BudgetPeriod(2025, 7)


@pytest.mark.parametrize("value", ["", "2025", "2025-13", "July", "2025-07-15"])
def test_parse_month_rejects_bad_values(value: str) -> None:
    with pytest.raises(InvalidPeriodError):
        parse_month(value)


def test_current_period_uses_configured_timezone() -> None:
    # 23:30 UTC on Jan 31 is already February in Berlin.
    now = datetime(2025, 1, 31, 23, 30, tzinfo=timezone.utc).astimezone(
        ZoneInfo("Europe/Berlin")
    )
    assert current_period("Europe/Berlin", now=now) == BudgetPeriod(2025, 2)


def test_resolve_period_prefers_explicit_month() -> None:
    assert resolve_period("2024-03", timezone="UTC") == BudgetPeriod(2024, 3)
    assert resolve_period(None, timezone="UTC", today=date(2025, 5, 20)) == BudgetPeriod(2025, 5)

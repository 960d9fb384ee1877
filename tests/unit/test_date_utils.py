"""Unit tests for calendar month arithmetic"""

from datetime import date
from coop_ledger.utils.date_utils import add_months, complete_months_between, first_of_next_month, months_between


def test_months_between_ignores_day():
    assert months_between(date(2024, 1, 31), date(2024, 2, 1)) == 1
    assert months_between(date(2023, 11, 5), date(2024, 2, 28)) == 3
    assert months_between(date(2024, 5, 1), date(2024, 3, 1)) == -2


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)  # leap year
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)


def test_first_of_next_month_rolls_year():
    assert first_of_next_month(date(2024, 12, 25)) == date(2025, 1, 1)


def test_complete_months_between():
    assert complete_months_between(date(2024, 1, 15), date(2024, 7, 14)) == 5
    assert complete_months_between(date(2024, 1, 15), date(2024, 7, 15)) == 6
    assert complete_months_between(date(2024, 7, 15), date(2024, 7, 1)) == 0


def test_add_months_backwards_and_across_years():
    assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
    assert add_months(date(2024, 1, 31), 13) == date(2025, 2, 28)

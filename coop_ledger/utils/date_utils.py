"""Calendar month arithmetic"""

from datetime import date
from dateutil.relativedelta import relativedelta


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end, ignoring the day of month"""
    return (end.year - start.year) * 12 + (end.month - start.month)


def add_months(from_date: date, months: int) -> date:
    """Shift a date by whole months; the day is clamped to the target month's length"""
    return from_date + relativedelta(months=months)


def first_of_next_month(from_date: date) -> date:
    """First day of the month following from_date"""
    return from_date.replace(day=1) + relativedelta(months=1)


def complete_months_between(start: date, end: date) -> int:
    """Whole months elapsed, not counting a month whose anniversary day hasn't arrived"""
    months = months_between(start, end)
    if end.day < start.day:
        months -= 1
    return max(months, 0)

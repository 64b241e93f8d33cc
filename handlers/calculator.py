from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from errors import InvalidDateRange

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_rental_days(date_from: date, date_to: date) -> int:
    """
    Number of billable days between two calendar dates.

    :param date_from: first day of the rental
    :param date_to: last day of the rental, strictly after date_from
    :return: whole days between the dates
    """
    days = (date_to - date_from).days
    if days <= 0:
        raise InvalidDateRange("End date must be after start date")
    return days


def calculate_rental_price(date_from: date, date_to: date, price_per_day) -> Decimal:
    """Total cost of a rental at a fixed daily rate, rounded to cents."""
    days = calculate_rental_days(date_from, date_to)
    return to_money(to_money(price_per_day) * days)

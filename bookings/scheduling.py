"""
Schedule and price calculator for booking series.

Pure functions only: no database access, no clock, no shared state.
The service layer validates form input, calls these, and persists the result.
"""

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Union

from dateutil.relativedelta import relativedelta

from .exceptions import InvalidArgument
from .types import (
    DEPOSIT_FACTOR,
    GROUP_DISCOUNT_FACTOR,
    RECURRING_DISCOUNT_FACTOR,
    RECURRING_DISCOUNT_MIN_SESSIONS,
    BookingSeriesRequest,
    PricingInput,
    RecurrencePattern,
)


CENTS = Decimal('0.01')

_STEPS = {
    RecurrencePattern.WEEKLY: timedelta(weeks=1),
    RecurrencePattern.BIWEEKLY: timedelta(weeks=2),
    RecurrencePattern.MONTHLY: relativedelta(months=1),
}


def parse_pattern(pattern: Union[RecurrencePattern, str]) -> RecurrencePattern:
    """Return the RecurrencePattern for a pattern or its string value."""
    try:
        return RecurrencePattern(pattern)
    except ValueError:
        raise InvalidArgument(f"Unrecognised recurrence pattern: {pattern!r}") from None


def generate_series_dates(
    start_date: date,
    pattern: Union[RecurrencePattern, str],
    session_count: int
) -> List[date]:
    """
    Generate the dates of every session in a booking series.

    Args:
        start_date: Date of the first session (a datetime keeps its time)
        pattern: weekly, biweekly or monthly
        session_count: Number of sessions, at least 1

    Returns:
        List of session_count dates, the first one equal to start_date

    Raises:
        InvalidArgument: If session_count < 1 or the pattern is unknown
    """
    step = _STEPS[parse_pattern(pattern)]
    if session_count < 1:
        raise InvalidArgument("Session count must be at least 1")

    dates = [start_date]
    current_date = start_date

    # Monthly steps advance the running date, so a clamped day stays clamped
    # (Jan 31 -> Feb 29 -> Mar 29).
    for _ in range(1, session_count):
        current_date = current_date + step
        dates.append(current_date)

    return dates


def generate_series_for_request(request: BookingSeriesRequest) -> List[date]:
    """Generate series dates from a BookingSeriesRequest."""
    return generate_series_dates(request.start_date, request.pattern, request.session_count)


def compute_total_price(pricing: PricingInput) -> Decimal:
    """
    Compute the total price of a booking before rounding.

    Group bookings are charged group_size * 85% of the base price; recurring
    bookings of 6 or more sessions take a further 10% off.

    Raises:
        InvalidArgument: If the price is negative or a count is below 1
    """
    base_price = _to_decimal(pricing.base_price)
    if base_price < 0:
        raise InvalidArgument("Base price cannot be negative")
    if pricing.group_size < 1:
        raise InvalidArgument("Group size must be at least 1")
    if pricing.number_of_sessions < 1:
        raise InvalidArgument("Number of sessions must be at least 1")

    multiplier = Decimal(1)

    if pricing.is_group_booking and pricing.group_size > 0:
        multiplier *= pricing.group_size * GROUP_DISCOUNT_FACTOR

    if pricing.is_recurring and pricing.number_of_sessions >= RECURRING_DISCOUNT_MIN_SESSIONS:
        multiplier *= RECURRING_DISCOUNT_FACTOR

    return base_price * multiplier


def compute_deposit(total_price) -> Decimal:
    """
    Compute the deposit due on a booking total, before rounding.

    Raises:
        InvalidArgument: If the total is negative
    """
    total = _to_decimal(total_price)
    if total < 0:
        raise InvalidArgument("Total price cannot be negative")
    return total * DEPOSIT_FACTOR


def round_currency(amount) -> Decimal:
    """Round an amount to pence, half up."""
    return _to_decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def _to_decimal(value) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidArgument(f"Not a valid amount: {value!r}") from None
    # NaN and Infinity parse without error
    if not amount.is_finite():
        raise InvalidArgument(f"Not a valid amount: {value!r}")
    return amount

"""
Data types and constants for the clinic booking system.

This module contains:
- The recurrence pattern enumeration shared by the calculator and the models
- Immutable request values passed into the schedule/pricing calculator
- DTOs for service layer operations
- Constants used across the application
"""

from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import List, Optional


MAX_SESSIONS = 12
MAX_GROUP_SIZE = 8
MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 480

PAYMENT_METHODS = ('card', 'cash', 'account')

GROUP_DISCOUNT_FACTOR = Decimal('0.85')
RECURRING_DISCOUNT_FACTOR = Decimal('0.9')
RECURRING_DISCOUNT_MIN_SESSIONS = 6
DEPOSIT_FACTOR = Decimal('0.2')


class RecurrencePattern(str, Enum):
    """Repeat interval between the sessions of a recurring booking."""

    WEEKLY = 'weekly'
    BIWEEKLY = 'biweekly'
    MONTHLY = 'monthly'

    @classmethod
    def choices(cls):
        return [(member.value, member.value.capitalize()) for member in cls]


@dataclass(frozen=True)
class BookingSeriesRequest:
    """Start date, repeat interval and number of sessions for a series."""
    start_date: date
    pattern: RecurrencePattern
    session_count: int


@dataclass(frozen=True)
class PricingInput:
    """Everything the price calculation needs for one booking."""
    base_price: Decimal
    is_group_booking: bool = False
    group_size: int = 1
    is_recurring: bool = False
    number_of_sessions: int = 1


@dataclass(frozen=True)
class BookingQuote:
    """Preview of a booking: the session dates, the rounded total and deposit."""
    dates: List[date] = field(default_factory=list)
    total_price: Decimal = Decimal('0.00')
    deposit_amount: Decimal = Decimal('0.00')


@dataclass
class BookingDraft:
    """DTO for booking series creation."""
    scheduled_date: date
    scheduled_time: time
    duration_minutes: Optional[int] = None
    is_group_booking: bool = False
    group_size: int = 1
    recurrence_pattern: Optional[RecurrencePattern] = None
    number_of_sessions: int = 1
    requires_deposit: bool = False
    payment_method: str = ''
    accessibility: str = ''
    allergies: str = ''
    special_instructions: str = ''
    notes: str = ''


@dataclass
class WaitlistRequest:
    """DTO for joining the waitlist."""
    preferred_date: Optional[date] = None
    preferred_time: Optional[time] = None
    alternative_dates: List[date] = field(default_factory=list)
    flexible_timing: bool = False
    priority: int = 0
    notes: str = ''

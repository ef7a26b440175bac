"""
Service layer for booking business logic.
Services are framework-agnostic and handle all business operations.
Date and price arithmetic is delegated to the scheduling module.
"""

import logging
from datetime import datetime, date, time, timedelta
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .exceptions import BookingNotAllowed, BookingStateError, InvalidArgument, SlotUnavailable
from .models import Booking, BookingSeries, Client, Treatment, WaitlistEntry
from .scheduling import (
    compute_deposit,
    compute_total_price,
    generate_series_dates,
    parse_pattern,
    round_currency,
)
from .types import BookingDraft, BookingQuote, PricingInput, RecurrencePattern, WaitlistRequest

logger = logging.getLogger(__name__)


def quote_booking(
    treatment: Treatment,
    start_date: date,
    recurrence_pattern: Optional[str] = None,
    number_of_sessions: int = 1,
    is_group_booking: bool = False,
    group_size: int = 1
) -> BookingQuote:
    """
    Preview the session dates and total price of a booking.

    Args:
        treatment: Treatment being booked
        start_date: Date of the first session
        recurrence_pattern: weekly, biweekly, monthly or None for a single booking
        number_of_sessions: Sessions in a recurring series
        is_group_booking: Whether several people share the slot
        group_size: Number of participants

    Returns:
        BookingQuote with the dates, the rounded total and the rounded deposit

    Raises:
        InvalidArgument: If the pattern, counts or price are out of range
    """
    pattern, sessions = _resolve_recurrence(recurrence_pattern, number_of_sessions)
    dates = generate_series_dates(start_date, pattern or RecurrencePattern.WEEKLY, sessions)
    total = _price_for(treatment, pattern, sessions, is_group_booking, group_size)
    return BookingQuote(
        dates=dates,
        total_price=round_currency(total),
        deposit_amount=round_currency(compute_deposit(total))
    )


@transaction.atomic
def create_booking_series(
    client: Client,
    treatment: Treatment,
    draft: BookingDraft
) -> BookingSeries:
    """
    Create a single, group or recurring booking and all of its sessions.

    Args:
        client: Client making the booking
        treatment: Treatment being booked
        draft: BookingDraft with schedule, group and recurrence options

    Returns:
        Created BookingSeries instance

    Raises:
        InvalidArgument: If the pattern, counts or price are out of range,
            or the sessions would overlap each other
        SlotUnavailable: If any session overlaps an active booking
        BookingNotAllowed: If the treatment cannot be booked by this client
    """
    _validate_bookable(client, treatment)
    _lock_schedule()

    pattern, sessions = _resolve_recurrence(draft.recurrence_pattern, draft.number_of_sessions)
    group_size = draft.group_size if draft.is_group_booking else 1
    duration = draft.duration_minutes or treatment.duration_minutes

    dates = generate_series_dates(
        draft.scheduled_date,
        pattern or RecurrencePattern.WEEKLY,
        sessions
    )
    start_datetimes = [_make_aware_datetime(d, draft.scheduled_time) for d in dates]
    _ensure_slots_free(start_datetimes, duration)

    total = _price_for(treatment, pattern, sessions, draft.is_group_booking, group_size)
    deposit = round_currency(compute_deposit(total)) if draft.requires_deposit else None

    series = BookingSeries.objects.create(
        client=client,
        treatment=treatment,
        recurrence_pattern=pattern.value if pattern else None,
        number_of_sessions=sessions,
        is_group_booking=draft.is_group_booking,
        group_size=group_size,
        total_price=round_currency(total),
        requires_deposit=draft.requires_deposit,
        deposit_amount=deposit,
        payment_method=draft.payment_method or '',
        accessibility=draft.accessibility,
        allergies=draft.allergies,
        special_instructions=draft.special_instructions,
        notes=draft.notes
    )

    Booking.objects.bulk_create([
        Booking(
            series=series,
            sequence=index,
            scheduled_datetime=start,
            duration_minutes=duration,
            status='scheduled',
            notes=draft.notes
        )
        for index, start in enumerate(start_datetimes, start=1)
    ])

    logger.info(
        "Created booking series %s: %s x%d for client %s, total %s",
        series.pk, treatment.name, sessions, client.pk, series.total_price
    )
    return series


@transaction.atomic
def confirm_booking(booking: Booking) -> Booking:
    """
    Confirm a scheduled booking.

    Raises:
        BookingStateError: If the booking is not scheduled
    """
    if booking.status != 'scheduled':
        raise BookingStateError(f"Cannot confirm a {booking.status} booking")

    booking.status = 'confirmed'
    booking.save()
    return booking


@transaction.atomic
def cancel_booking(booking: Booking) -> Booking:
    """
    Cancel a booking.

    Raises:
        BookingStateError: If the booking is already cancelled or completed
    """
    if booking.status == 'cancelled':
        raise BookingStateError("Booking is already cancelled")

    if booking.status == 'completed':
        raise BookingStateError("Cannot cancel a completed booking")

    booking.status = 'cancelled'
    booking.save()

    waiting = WaitlistEntry.objects.waiting().for_treatment(booking.treatment).count()
    logger.info(
        "Cancelled booking %s (%s waitlist entries for %s)",
        booking.pk, waiting, booking.treatment.name
    )
    return booking


@transaction.atomic
def complete_booking(booking: Booking) -> Booking:
    """
    Mark a booking as completed.

    Raises:
        BookingStateError: If the booking is already completed or cancelled
    """
    if booking.status == 'completed':
        raise BookingStateError("Booking is already completed")

    if booking.status == 'cancelled':
        raise BookingStateError("Cannot complete a cancelled booking")

    booking.status = 'completed'
    booking.save()
    return booking


@transaction.atomic
def cancel_series(series: BookingSeries) -> int:
    """
    Cancel every remaining session of a series.

    Past and completed sessions are left as they are.

    Returns:
        Number of bookings cancelled
    """
    cancelled = Booking.objects.for_series(series).upcoming().update(status='cancelled')
    logger.info("Cancelled %d remaining session(s) of series %s", cancelled, series.pk)
    return cancelled


def get_bookings_in_range(
    start_datetime: datetime,
    end_datetime: datetime,
    status: Optional[str] = None
) -> List[Booking]:
    """
    Get bookings within a datetime range.

    Args:
        start_datetime: Range start
        end_datetime: Range end
        status: Optional status filter

    Raises:
        InvalidArgument: If start_datetime >= end_datetime
    """
    if start_datetime >= end_datetime:
        raise InvalidArgument("Start datetime must be before end datetime")

    queryset = Booking.objects.in_range(start_datetime, end_datetime)

    if status:
        queryset = queryset.filter(status=status)

    return list(queryset)


def get_available_slots(day: date, treatment: Treatment) -> List[time]:
    """
    List start times on a day when the treatment fits between existing bookings.

    Slots run from CLINIC_OPENING_TIME at CLINIC_SLOT_MINUTES intervals and
    must finish by CLINIC_CLOSING_TIME. Slots already in the past are skipped.
    """
    duration = timedelta(minutes=treatment.duration_minutes)
    step = timedelta(minutes=settings.CLINIC_SLOT_MINUTES)
    opening = _make_aware_datetime(day, settings.CLINIC_OPENING_TIME)
    closing = _make_aware_datetime(day, settings.CLINIC_CLOSING_TIME)

    taken = Booking.objects.active().overlapping(opening, closing)
    now = timezone.now()

    slots = []
    slot_start = opening
    while slot_start + duration <= closing:
        slot_end = slot_start + duration
        is_free = all(
            booking.end_datetime <= slot_start or booking.scheduled_datetime >= slot_end
            for booking in taken
        )
        if is_free and slot_start >= now:
            slots.append(timezone.localtime(slot_start).time())
        slot_start += step

    return slots


@transaction.atomic
def join_waitlist(
    client: Client,
    treatment: Treatment,
    request: WaitlistRequest
) -> WaitlistEntry:
    """
    Put a client on the waitlist for a treatment.

    The entry expires WAITLIST_EXPIRY_DAYS after the latest date the client
    would accept, preferred or alternative (after today when none was given).
    """
    alternatives = sorted(set(request.alternative_dates))
    candidates = alternatives + ([request.preferred_date] if request.preferred_date else [])
    start = max(candidates) if candidates else timezone.localdate()
    entry = WaitlistEntry.objects.create(
        client=client,
        treatment=treatment,
        preferred_date=request.preferred_date,
        preferred_time=request.preferred_time,
        alternative_dates=[day.isoformat() for day in alternatives],
        flexible_timing=request.flexible_timing,
        priority=request.priority,
        expiry_date=start + timedelta(days=settings.WAITLIST_EXPIRY_DAYS),
        notes=request.notes
    )
    logger.info("Client %s joined the waitlist for %s", client.pk, treatment.name)
    return entry


@transaction.atomic
def mark_waitlist_contacted(entry: WaitlistEntry) -> WaitlistEntry:
    """
    Record that a waiting client has been told about a free slot.

    Raises:
        BookingStateError: If the entry is not waiting
    """
    if entry.status != 'waiting':
        raise BookingStateError(f"Cannot contact a {entry.status} waitlist entry")

    entry.status = 'contacted'
    entry.notified_at = timezone.now()
    entry.save()
    return entry


@transaction.atomic
def expire_waitlist_entries(today: Optional[date] = None) -> int:
    """
    Expire open waitlist entries whose expiry date has passed.

    Returns:
        Number of entries expired
    """
    today = today or timezone.localdate()
    expired = WaitlistEntry.objects.past_expiry(today).update(status='expired')
    if expired:
        logger.info("Expired %d waitlist entr(ies) before %s", expired, today)
    return expired


def _resolve_recurrence(recurrence_pattern, number_of_sessions):
    """Return (pattern or None, session count) for a booking request."""
    if not recurrence_pattern:
        return None, 1
    return parse_pattern(recurrence_pattern), number_of_sessions


def _price_for(treatment, pattern, sessions, is_group_booking, group_size):
    return compute_total_price(PricingInput(
        base_price=treatment.price,
        is_group_booking=is_group_booking,
        group_size=group_size,
        is_recurring=pattern is not None,
        number_of_sessions=sessions
    ))


def _validate_bookable(client: Client, treatment: Treatment) -> None:
    """Validate the treatment is active and the client is old enough."""
    if not treatment.is_active:
        raise BookingNotAllowed(f"{treatment.name} is not available for booking")

    age = client.age
    if age is not None and age < treatment.age_restriction:
        raise BookingNotAllowed(
            f"Client must be at least {treatment.age_restriction} to book {treatment.name}"
        )


def _lock_schedule() -> None:
    """
    Hold row locks on every treatment until the current transaction ends.

    The clinic is one room, so concurrent creations queue here and each
    overlap check sees the bookings committed before it.
    """
    list(Treatment.objects.select_for_update().order_by('pk').only('pk'))


def _ensure_slots_free(start_datetimes: List[datetime], duration_minutes: int) -> None:
    """
    Raise SlotUnavailable if any session overlaps an active booking.

    Raises InvalidArgument if the new sessions overlap each other.
    """
    length = timedelta(minutes=duration_minutes)
    ordered = sorted(start_datetimes)
    for previous, following in zip(ordered, ordered[1:]):
        if previous + length > following:
            raise InvalidArgument(
                f"Sessions of {duration_minutes} minutes overlap each other "
                f"({previous:%Y-%m-%d %H:%M} and {following:%Y-%m-%d %H:%M})"
            )

    conflicts = []
    for start in start_datetimes:
        conflicts.extend(Booking.objects.active().overlapping(start, start + length))

    if conflicts:
        logger.warning(
            "Slot conflict for %d session(s): %s",
            len(conflicts), ", ".join(str(booking.pk) for booking in conflicts)
        )
        raise SlotUnavailable(conflicts=conflicts)


def _make_aware_datetime(date_obj: date, time_obj: time) -> datetime:
    """Combine date and time into timezone-aware datetime."""
    dt = datetime.combine(date_obj, time_obj)
    return timezone.make_aware(dt)

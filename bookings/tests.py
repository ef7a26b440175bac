"""
Tests for the clinic booking system.

Tests cover:
- Schedule and price calculator (pure functions)
- Client, Treatment, BookingSeries and Booking models and managers
- Service layer (booking series, status changes, availability, waitlist)
- API endpoints (quotes, bookings, waitlist, availability)
- Management commands
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from . import services
from .exceptions import BookingNotAllowed, BookingStateError, InvalidArgument, SlotUnavailable
from .handlers import api_exception_handler
from .models import Booking, BookingSeries, Client, Treatment, WaitlistEntry
from .scheduling import (
    compute_deposit,
    compute_total_price,
    generate_series_dates,
    generate_series_for_request,
    round_currency,
)
from .types import (
    BookingDraft,
    BookingSeriesRequest,
    PricingInput,
    RecurrencePattern,
    WaitlistRequest,
)


def future_date(days=14):
    return timezone.localdate() + timedelta(days=days)


def aware(day, hour, minute=0):
    return timezone.make_aware(datetime.combine(day, time(hour, minute)))


class GenerateSeriesDatesTests(SimpleTestCase):
    """Test recurring date generation."""

    def test_single_session_returns_start_date(self):
        start = date(2024, 5, 10)
        self.assertEqual(generate_series_dates(start, RecurrencePattern.WEEKLY, 1), [start])

    def test_weekly_sessions_are_seven_days_apart(self):
        dates = generate_series_dates(date(2024, 3, 1), RecurrencePattern.WEEKLY, 8)

        self.assertEqual(len(dates), 8)
        self.assertEqual(dates[0], date(2024, 3, 1))
        for earlier, later in zip(dates, dates[1:]):
            self.assertEqual(later - earlier, timedelta(days=7))

    def test_biweekly_sessions_are_fourteen_days_apart(self):
        dates = generate_series_dates(date(2024, 12, 20), 'biweekly', 4)

        self.assertEqual(dates[-1], date(2025, 1, 31))
        for earlier, later in zip(dates, dates[1:]):
            self.assertEqual(later - earlier, timedelta(days=14))

    def test_monthly_clamps_to_month_end(self):
        """Jan 31 clamps to Feb 29 in a leap year and the running date stays on the 29th."""
        dates = generate_series_dates(date(2024, 1, 31), RecurrencePattern.MONTHLY, 3)
        self.assertEqual(dates, [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 29)])

    def test_monthly_clamps_in_non_leap_year(self):
        dates = generate_series_dates(date(2023, 1, 31), 'monthly', 3)
        self.assertEqual(dates, [date(2023, 1, 31), date(2023, 2, 28), date(2023, 3, 28)])

    def test_monthly_keeps_day_of_month(self):
        dates = generate_series_dates(date(2024, 11, 15), 'monthly', 3)
        self.assertEqual(dates, [date(2024, 11, 15), date(2024, 12, 15), date(2025, 1, 15)])

    def test_length_and_order_for_every_pattern(self):
        start = date(2024, 1, 31)
        for pattern in RecurrencePattern:
            for count in range(1, 13):
                dates = generate_series_dates(start, pattern, count)
                self.assertEqual(len(dates), count)
                self.assertEqual(dates[0], start)
                self.assertTrue(all(a < b for a, b in zip(dates, dates[1:])))

    def test_same_input_gives_same_output(self):
        first = generate_series_dates(date(2024, 8, 31), 'monthly', 6)
        second = generate_series_dates(date(2024, 8, 31), 'monthly', 6)
        self.assertEqual(first, second)

    def test_datetime_keeps_time_of_day(self):
        dates = generate_series_dates(datetime(2024, 6, 3, 14, 30), 'weekly', 2)
        self.assertEqual(dates[1], datetime(2024, 6, 10, 14, 30))

    def test_request_wrapper(self):
        request = BookingSeriesRequest(
            start_date=date(2024, 6, 3),
            pattern=RecurrencePattern.BIWEEKLY,
            session_count=3
        )
        self.assertEqual(
            generate_series_for_request(request),
            [date(2024, 6, 3), date(2024, 6, 17), date(2024, 7, 1)]
        )

    def test_unknown_pattern_raises(self):
        with self.assertRaises(InvalidArgument):
            generate_series_dates(date(2024, 1, 1), 'yearly', 3)

    def test_zero_sessions_raises(self):
        with self.assertRaises(InvalidArgument):
            generate_series_dates(date(2024, 1, 1), 'weekly', 0)

    def test_invalid_argument_is_value_error(self):
        with self.assertRaises(ValueError):
            generate_series_dates(date(2024, 1, 1), 'weekly', -2)


class ComputeTotalPriceTests(SimpleTestCase):
    """Test group and recurring price calculation."""

    def test_plain_booking_is_base_price(self):
        self.assertEqual(compute_total_price(PricingInput(base_price=Decimal('120.00'))), Decimal('120.00'))

    def test_group_booking(self):
        pricing = PricingInput(base_price=Decimal('100'), is_group_booking=True, group_size=4)
        self.assertEqual(compute_total_price(pricing), Decimal('340.00'))

    def test_recurring_discount_from_six_sessions(self):
        pricing = PricingInput(base_price=Decimal('100'), is_recurring=True, number_of_sessions=6)
        self.assertEqual(compute_total_price(pricing), Decimal('90.00'))

    def test_five_sessions_get_no_discount(self):
        pricing = PricingInput(base_price=Decimal('100'), is_recurring=True, number_of_sessions=5)
        self.assertEqual(compute_total_price(pricing), Decimal('100'))

    def test_group_and_recurring_discounts_stack(self):
        pricing = PricingInput(
            base_price=Decimal('100'),
            is_group_booking=True,
            group_size=2,
            is_recurring=True,
            number_of_sessions=8
        )
        self.assertEqual(compute_total_price(pricing), Decimal('153.00'))

    def test_flags_off_ignore_counts(self):
        pricing = PricingInput(base_price=Decimal('100'), group_size=3, number_of_sessions=10)
        self.assertEqual(compute_total_price(pricing), Decimal('100'))

    def test_result_is_not_rounded(self):
        pricing = PricingInput(base_price=Decimal('33.33'), is_group_booking=True, group_size=1)
        self.assertEqual(compute_total_price(pricing), Decimal('28.3305'))

    def test_accepts_float_and_string_prices(self):
        self.assertEqual(compute_total_price(PricingInput(base_price=49.5)), Decimal('49.5'))
        self.assertEqual(compute_total_price(PricingInput(base_price='80')), Decimal('80'))

    def test_negative_price_raises(self):
        with self.assertRaises(InvalidArgument):
            compute_total_price(PricingInput(base_price=Decimal('-1')))

    def test_group_size_below_one_raises(self):
        with self.assertRaises(InvalidArgument):
            compute_total_price(PricingInput(base_price=Decimal('10'), is_group_booking=True, group_size=0))

    def test_non_numeric_price_raises(self):
        with self.assertRaises(InvalidArgument):
            compute_total_price(PricingInput(base_price='free'))

    def test_nan_and_infinite_prices_raise(self):
        for price in (float('nan'), float('inf'), 'Infinity', Decimal('NaN'), Decimal('-Infinity')):
            with self.subTest(price=price):
                with self.assertRaises(InvalidArgument):
                    compute_total_price(PricingInput(base_price=price))

    def test_deposit_is_twenty_percent(self):
        self.assertEqual(compute_deposit(Decimal('100.00')), Decimal('20.000'))
        self.assertEqual(round_currency(compute_deposit(Decimal('28.3305'))), Decimal('5.67'))

    def test_deposit_rejects_negative_and_nan_totals(self):
        with self.assertRaises(InvalidArgument):
            compute_deposit(Decimal('-5'))
        with self.assertRaises(InvalidArgument):
            compute_deposit(float('nan'))

    def test_round_currency_half_up(self):
        self.assertEqual(round_currency(Decimal('28.3305')), Decimal('28.33'))
        self.assertEqual(round_currency(Decimal('10.005')), Decimal('10.01'))
        self.assertEqual(round_currency(Decimal('10.004')), Decimal('10.00'))


class BookingTestMixin:
    """Shared fixtures for database-backed tests."""

    def make_client(self, email='jane@example.com', **kwargs):
        defaults = {'first_name': 'Jane', 'last_name': 'Doe', 'email': email}
        defaults.update(kwargs)
        return Client.objects.create(**defaults)

    def make_treatment(self, **kwargs):
        defaults = {'name': 'Lip Filler', 'duration_minutes': 60, 'price': Decimal('100.00')}
        defaults.update(kwargs)
        return Treatment.objects.create(**defaults)

    def make_series(self, client, treatment, day, hour=10, **draft_kwargs):
        draft = BookingDraft(scheduled_date=day, scheduled_time=time(hour, 0), **draft_kwargs)
        return services.create_booking_series(client, treatment, draft)


class ModelTests(BookingTestMixin, TestCase):
    """Test model properties and validation."""

    def setUp(self):
        self.client_record = self.make_client()
        self.treatment = self.make_treatment()

    def test_client_age(self):
        today = timezone.localdate()
        client = self.make_client(email='old@example.com', date_of_birth=date(today.year - 30, 1, 1))
        self.assertEqual(client.age, 30)
        self.assertIsNone(self.client_record.age)

    def test_single_series_cannot_have_many_sessions(self):
        with self.assertRaises(ValidationError):
            BookingSeries.objects.create(
                client=self.client_record,
                treatment=self.treatment,
                number_of_sessions=3,
                total_price=Decimal('100.00')
            )

    def test_group_size_requires_group_booking(self):
        with self.assertRaises(ValidationError):
            BookingSeries.objects.create(
                client=self.client_record,
                treatment=self.treatment,
                group_size=3,
                total_price=Decimal('100.00')
            )

    def test_booking_end_datetime_and_recurrence_end(self):
        day = future_date()
        series = self.make_series(
            self.client_record, self.treatment, day,
            recurrence_pattern=RecurrencePattern.WEEKLY, number_of_sessions=3
        )

        first = Booking.objects.for_series(series).first()
        self.assertEqual(first.end_datetime, aware(day, 11))
        self.assertEqual(series.recurrence_end, day + timedelta(days=14))
        self.assertTrue(series.is_recurring)


class BookingManagerTests(BookingTestMixin, TestCase):
    """Test Booking custom manager."""

    def setUp(self):
        self.client_record = self.make_client()
        self.treatment = self.make_treatment()
        self.day = future_date()
        self.series = self.make_series(self.client_record, self.treatment, self.day, hour=10)
        self.booking = self.series.bookings.get()

    def test_active_excludes_cancelled(self):
        self.assertEqual(Booking.objects.active().count(), 1)
        services.cancel_booking(self.booking)
        self.assertEqual(Booking.objects.active().count(), 0)

    def test_overlapping(self):
        self.assertEqual(
            Booking.objects.active().overlapping(aware(self.day, 10, 30), aware(self.day, 11, 30)),
            [self.booking]
        )
        self.assertEqual(
            Booking.objects.active().overlapping(aware(self.day, 11), aware(self.day, 12)),
            []
        )
        self.assertEqual(
            Booking.objects.active().overlapping(aware(self.day, 9), aware(self.day, 10)),
            []
        )

    def test_for_client(self):
        other = self.make_client(email='other@example.com')
        self.assertEqual(Booking.objects.for_client(self.client_record).count(), 1)
        self.assertEqual(Booking.objects.for_client(other).count(), 0)


class BookingSeriesServiceTests(BookingTestMixin, TestCase):
    """Test booking series creation."""

    def setUp(self):
        self.client_record = self.make_client()
        self.treatment = self.make_treatment()
        self.day = future_date()

    def test_create_single_booking(self):
        series = self.make_series(self.client_record, self.treatment, self.day)

        self.assertFalse(series.is_recurring)
        self.assertEqual(series.total_price, Decimal('100.00'))
        bookings = list(Booking.objects.for_series(series))
        self.assertEqual(len(bookings), 1)
        self.assertEqual(bookings[0].scheduled_datetime, aware(self.day, 10))
        self.assertEqual(bookings[0].duration_minutes, 60)

    def test_create_recurring_booking(self):
        series = self.make_series(
            self.client_record, self.treatment, self.day,
            recurrence_pattern=RecurrencePattern.WEEKLY, number_of_sessions=6
        )

        self.assertEqual(series.total_price, Decimal('90.00'))
        bookings = list(Booking.objects.for_series(series))
        self.assertEqual([b.sequence for b in bookings], [1, 2, 3, 4, 5, 6])
        self.assertEqual(bookings[-1].scheduled_datetime, aware(self.day + timedelta(weeks=5), 10))

    def test_create_group_booking(self):
        series = self.make_series(
            self.client_record, self.treatment, self.day,
            is_group_booking=True, group_size=4
        )
        self.assertEqual(series.total_price, Decimal('340.00'))
        self.assertEqual(series.group_size, 4)

    def test_non_recurring_ignores_session_count(self):
        series = self.make_series(self.client_record, self.treatment, self.day, number_of_sessions=8)
        self.assertEqual(series.number_of_sessions, 1)
        self.assertEqual(series.bookings.count(), 1)

    def test_custom_duration(self):
        series = self.make_series(self.client_record, self.treatment, self.day, duration_minutes=90)
        self.assertEqual(series.bookings.get().duration_minutes, 90)

    def test_conflicting_slot_raises(self):
        self.make_series(self.client_record, self.treatment, self.day + timedelta(weeks=2), hour=10)

        with self.assertRaises(SlotUnavailable) as ctx:
            self.make_series(
                self.client_record, self.treatment, self.day, hour=10,
                recurrence_pattern='weekly', number_of_sessions=4
            )

        self.assertEqual(len(ctx.exception.conflicts), 1)
        self.assertEqual(BookingSeries.objects.count(), 1)

    def test_cancelled_booking_frees_slot(self):
        series = self.make_series(self.client_record, self.treatment, self.day)
        services.cancel_booking(series.bookings.get())

        self.make_series(self.client_record, self.treatment, self.day)
        self.assertEqual(Booking.objects.active().count(), 1)

    def test_inactive_treatment_raises(self):
        treatment = self.make_treatment(name='Retired', is_active=False)
        with self.assertRaises(BookingNotAllowed):
            self.make_series(self.client_record, treatment, self.day)

    def test_age_restriction(self):
        today = timezone.localdate()
        minor = self.make_client(email='minor@example.com', date_of_birth=date(today.year - 16, 1, 1))
        with self.assertRaises(BookingNotAllowed):
            self.make_series(minor, self.treatment, self.day)

    def test_sessions_overlapping_each_other_raise(self):
        with self.assertRaises(InvalidArgument):
            self.make_series(
                self.client_record, self.treatment, self.day,
                duration_minutes=20000, recurrence_pattern='weekly', number_of_sessions=3
            )
        self.assertEqual(BookingSeries.objects.count(), 0)
        self.assertEqual(Booking.objects.count(), 0)

    def test_long_sessions_that_do_not_touch_are_allowed(self):
        series = self.make_series(
            self.client_record, self.treatment, self.day,
            duration_minutes=480, recurrence_pattern='weekly', number_of_sessions=3
        )
        self.assertEqual(series.bookings.count(), 3)

    def test_creation_locks_the_schedule(self):
        with patch('bookings.services._lock_schedule') as lock:
            self.make_series(self.client_record, self.treatment, self.day)
        lock.assert_called_once_with()

    def test_schedule_is_locked_before_the_overlap_check(self):
        calls = []
        with patch('bookings.services._lock_schedule', side_effect=lambda: calls.append('lock')), \
                patch('bookings.services._ensure_slots_free', side_effect=lambda *args: calls.append('check')):
            self.make_series(self.client_record, self.treatment, self.day)
        self.assertEqual(calls, ['lock', 'check'])

    def test_deposit_and_client_details_are_stored(self):
        series = self.make_series(
            self.client_record, self.treatment, self.day,
            is_group_booking=True, group_size=2,
            requires_deposit=True,
            payment_method='card',
            accessibility='Wheelchair access',
            allergies='Lidocaine',
            special_instructions='Prefers the window chair'
        )

        series.refresh_from_db()
        self.assertEqual(series.total_price, Decimal('170.00'))
        self.assertTrue(series.requires_deposit)
        self.assertEqual(series.deposit_amount, Decimal('34.00'))
        self.assertEqual(series.payment_method, 'card')
        self.assertEqual(series.accessibility, 'Wheelchair access')
        self.assertEqual(series.allergies, 'Lidocaine')
        self.assertEqual(series.special_instructions, 'Prefers the window chair')

    def test_no_deposit_unless_requested(self):
        series = self.make_series(self.client_record, self.treatment, self.day)
        self.assertFalse(series.requires_deposit)
        self.assertIsNone(series.deposit_amount)

    def test_unknown_payment_method_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.make_series(self.client_record, self.treatment, self.day, payment_method='cheque')

    def test_unknown_pattern_raises(self):
        with self.assertRaises(InvalidArgument):
            self.make_series(
                self.client_record, self.treatment, self.day,
                recurrence_pattern='yearly', number_of_sessions=3
            )

    def test_creation_is_logged(self):
        with self.assertLogs('bookings.services', level='INFO') as logs:
            self.make_series(self.client_record, self.treatment, self.day)
        self.assertIn('Created booking series', logs.output[0])

    def test_quote_booking(self):
        quote = services.quote_booking(
            self.treatment,
            date(2024, 1, 31),
            recurrence_pattern='monthly',
            number_of_sessions=3,
            is_group_booking=True,
            group_size=2
        )
        self.assertEqual(quote.dates, [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 29)])
        self.assertEqual(quote.total_price, Decimal('170.00'))
        self.assertEqual(quote.deposit_amount, Decimal('34.00'))


class BookingStatusServiceTests(BookingTestMixin, TestCase):
    """Test booking status transitions."""

    def setUp(self):
        self.client_record = self.make_client()
        self.treatment = self.make_treatment()
        self.series = self.make_series(
            self.client_record, self.treatment, future_date(),
            recurrence_pattern='weekly', number_of_sessions=3
        )
        self.booking = Booking.objects.for_series(self.series).first()

    def test_confirm_booking(self):
        services.confirm_booking(self.booking)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'confirmed')

        with self.assertRaises(BookingStateError):
            services.confirm_booking(self.booking)

    def test_cancel_booking(self):
        services.cancel_booking(self.booking)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'cancelled')

        with self.assertRaises(BookingStateError):
            services.cancel_booking(self.booking)

    def test_complete_booking(self):
        services.complete_booking(self.booking)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'completed')

        with self.assertRaises(BookingStateError):
            services.cancel_booking(self.booking)

    def test_cannot_complete_cancelled_booking(self):
        services.cancel_booking(self.booking)
        with self.assertRaises(BookingStateError):
            services.complete_booking(self.booking)

    def test_cancel_series_leaves_completed_sessions(self):
        services.complete_booking(self.booking)

        cancelled = services.cancel_series(self.series)

        self.assertEqual(cancelled, 2)
        statuses = list(Booking.objects.for_series(self.series).values_list('status', flat=True))
        self.assertEqual(statuses, ['completed', 'cancelled', 'cancelled'])

    def test_get_bookings_in_range(self):
        start = timezone.now()
        end = start + timedelta(days=60)
        self.assertEqual(len(services.get_bookings_in_range(start, end)), 3)
        self.assertEqual(len(services.get_bookings_in_range(start, end, status='cancelled')), 0)

        with self.assertRaises(InvalidArgument):
            services.get_bookings_in_range(end, start)


@override_settings(
    CLINIC_OPENING_TIME=time(9, 0),
    CLINIC_CLOSING_TIME=time(17, 0),
    CLINIC_SLOT_MINUTES=30
)
class AvailabilityServiceTests(BookingTestMixin, TestCase):
    """Test free slot calculation."""

    def setUp(self):
        self.client_record = self.make_client()
        self.treatment = self.make_treatment()
        self.day = future_date(10)

    def test_empty_day(self):
        slots = services.get_available_slots(self.day, self.treatment)
        self.assertEqual(len(slots), 15)
        self.assertEqual(slots[0], time(9, 0))
        self.assertEqual(slots[-1], time(16, 0))

    def test_booked_slot_is_removed(self):
        self.make_series(self.client_record, self.treatment, self.day, hour=10)

        slots = services.get_available_slots(self.day, self.treatment)

        self.assertNotIn(time(9, 30), slots)
        self.assertNotIn(time(10, 0), slots)
        self.assertNotIn(time(10, 30), slots)
        self.assertIn(time(9, 0), slots)
        self.assertIn(time(11, 0), slots)
        self.assertEqual(len(slots), 12)

    def test_past_day_has_no_slots(self):
        self.assertEqual(services.get_available_slots(date(2020, 1, 6), self.treatment), [])


@override_settings(WAITLIST_EXPIRY_DAYS=30)
class WaitlistServiceTests(BookingTestMixin, TestCase):
    """Test waitlist handling."""

    def setUp(self):
        self.client_record = self.make_client()
        self.treatment = self.make_treatment()

    def test_join_waitlist_sets_expiry(self):
        entry = services.join_waitlist(
            self.client_record,
            self.treatment,
            WaitlistRequest(preferred_date=date(2025, 3, 1), preferred_time=time(14, 0))
        )
        self.assertEqual(entry.status, 'waiting')
        self.assertEqual(entry.expiry_date, date(2025, 3, 31))

    def test_mark_contacted(self):
        entry = services.join_waitlist(self.client_record, self.treatment, WaitlistRequest())

        services.mark_waitlist_contacted(entry)

        entry.refresh_from_db()
        self.assertEqual(entry.status, 'contacted')
        self.assertIsNotNone(entry.notified_at)
        with self.assertRaises(BookingStateError):
            services.mark_waitlist_contacted(entry)

    def test_waiting_is_ordered_by_priority(self):
        other = self.make_client(email='vip@example.com')
        services.join_waitlist(self.client_record, self.treatment, WaitlistRequest(priority=0))
        services.join_waitlist(other, self.treatment, WaitlistRequest(priority=5))

        first = WaitlistEntry.objects.waiting().first()
        self.assertEqual(first.client, other)

    def test_expire_entries(self):
        services.join_waitlist(self.client_record, self.treatment, WaitlistRequest(preferred_date=date(2025, 1, 1)))
        services.join_waitlist(self.client_record, self.treatment, WaitlistRequest(preferred_date=date(2025, 6, 1)))

        expired = services.expire_waitlist_entries(today=date(2025, 3, 1))

        self.assertEqual(expired, 1)
        self.assertEqual(WaitlistEntry.objects.waiting().count(), 1)

    def test_alternative_dates_are_stored_and_extend_expiry(self):
        entry = services.join_waitlist(
            self.client_record,
            self.treatment,
            WaitlistRequest(
                preferred_date=date(2025, 3, 1),
                alternative_dates=[date(2025, 3, 20), date(2025, 3, 8), date(2025, 3, 20)]
            )
        )

        entry.refresh_from_db()
        self.assertEqual(entry.alternative_dates, ['2025-03-08', '2025-03-20'])
        self.assertEqual(entry.expiry_date, date(2025, 4, 19))

    def test_alternative_dates_without_preferred_date(self):
        entry = services.join_waitlist(
            self.client_record,
            self.treatment,
            WaitlistRequest(alternative_dates=[date(2025, 5, 2)])
        )
        self.assertIsNone(entry.preferred_date)
        self.assertEqual(entry.expiry_date, date(2025, 6, 1))


class BookingAPITests(BookingTestMixin, APITestCase):
    """Test booking API endpoints."""

    def setUp(self):
        self.api = APIClient()
        self.client_record = self.make_client()
        self.treatment = self.make_treatment()
        self.day = future_date()

    def booking_payload(self, **overrides):
        payload = {
            'client': self.client_record.id,
            'treatment': self.treatment.id,
            'scheduled_date': self.day.isoformat(),
            'scheduled_time': '10:00:00',
        }
        payload.update(overrides)
        return payload

    def test_quote(self):
        response = self.api.post('/api/bookings/quote/', {
            'treatment': self.treatment.id,
            'scheduled_date': '2024-01-31',
            'is_recurring': True,
            'recurrence_pattern': 'monthly',
            'number_of_sessions': 3,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['dates'], ['2024-01-31', '2024-02-29', '2024-03-29'])
        self.assertEqual(response.data['total_price'], '100.00')
        self.assertEqual(response.data['deposit_amount'], '20.00')

    def test_create_recurring_booking(self):
        response = self.api.post('/api/bookings/', self.booking_payload(
            is_recurring=True,
            recurrence_pattern='biweekly',
            number_of_sessions=6,
            is_group_booking=True,
            group_size=2
        ), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_price'], '153.00')
        self.assertEqual(len(response.data['bookings']), 6)
        self.assertEqual(response.data['recurrence_end'], (self.day + timedelta(weeks=10)).isoformat())

    def test_recurring_requires_pattern(self):
        response = self.api.post('/api/bookings/', self.booking_payload(
            is_recurring=True, number_of_sessions=4
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('recurrence_pattern', response.data)

    def test_rejects_unknown_pattern(self):
        response = self.api.post('/api/bookings/', self.booking_payload(
            is_recurring=True, recurrence_pattern='yearly', number_of_sessions=3
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rejects_too_many_sessions(self):
        response = self.api.post('/api/bookings/', self.booking_payload(
            is_recurring=True, recurrence_pattern='weekly', number_of_sessions=13
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rejects_large_group(self):
        response = self.api.post('/api/bookings/', self.booking_payload(
            is_group_booking=True, group_size=9
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_taken_slot_returns_conflict(self):
        self.api.post('/api/bookings/', self.booking_payload(), format='json')

        response = self.api.post('/api/bookings/', self.booking_payload(scheduled_time='10:30:00'), format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(response.data['suggest_waitlist'])

    def test_underage_client_returns_bad_request(self):
        today = timezone.localdate()
        minor = self.make_client(email='minor@example.com', date_of_birth=date(today.year - 16, 1, 1))
        response = self.api.post('/api/bookings/', self.booking_payload(client=minor.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_bookings_in_range(self):
        self.make_series(self.client_record, self.treatment, self.day, recurrence_pattern='weekly', number_of_sessions=3)

        response = self.api.get('/api/bookings/', {
            'start': aware(self.day, 0).isoformat(),
            'end': aware(self.day + timedelta(days=8), 0).isoformat(),
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['treatment_name'], 'Lip Filler')

    def test_cancel_twice_returns_bad_request(self):
        series = self.make_series(self.client_record, self.treatment, self.day)
        booking = series.bookings.get()

        response = self.api.delete(f'/api/bookings/{booking.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.api.delete(f'/api/bookings/{booking.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_confirm_and_complete(self):
        series = self.make_series(self.client_record, self.treatment, self.day)
        booking = series.bookings.get()

        response = self.api.post(f'/api/bookings/{booking.id}/confirm/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')

        response = self.api.post(f'/api/bookings/{booking.id}/complete/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')

    def test_cancel_series(self):
        series = self.make_series(self.client_record, self.treatment, self.day, recurrence_pattern='weekly', number_of_sessions=4)

        response = self.api.delete(f'/api/bookings/series/{series.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['cancelled'], 4)

    def test_booking_not_found(self):
        response = self.api.get('/api/bookings/9999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_full_group_at_top_list_price(self):
        treatment = self.make_treatment(name='Full Face', price=Decimal('99999999.99'))

        response = self.api.post('/api/bookings/', self.booking_payload(
            treatment=treatment.id,
            is_group_booking=True,
            group_size=8
        ), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_price'], '679999999.93')

    def test_rejects_duration_over_limit(self):
        response = self.api.post('/api/bookings/', self.booking_payload(
            duration_minutes=20000,
            is_recurring=True,
            recurrence_pattern='weekly',
            number_of_sessions=3
        ), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('duration_minutes', response.data)
        self.assertEqual(Booking.objects.count(), 0)

    def test_create_with_deposit_and_client_details(self):
        response = self.api.post('/api/bookings/', self.booking_payload(
            requires_deposit=True,
            payment_method='cash',
            accessibility='Step-free entrance',
            allergies='Latex',
            special_instructions='Call on arrival'
        ), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['requires_deposit'])
        self.assertEqual(response.data['deposit_amount'], '20.00')
        self.assertEqual(response.data['payment_method'], 'cash')
        self.assertEqual(response.data['accessibility'], 'Step-free entrance')
        self.assertEqual(response.data['allergies'], 'Latex')
        self.assertEqual(response.data['special_instructions'], 'Call on arrival')

    def test_rejects_unknown_payment_method(self):
        response = self.api.post('/api/bookings/', self.booking_payload(payment_method='cheque'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('payment_method', response.data)


class WaitlistAndCatalogueAPITests(BookingTestMixin, APITestCase):
    """Test waitlist, availability, client and treatment endpoints."""

    def setUp(self):
        self.api = APIClient()
        self.client_record = self.make_client()
        self.treatment = self.make_treatment()

    def test_join_and_list_waitlist(self):
        response = self.api.post('/api/bookings/waitlist/', {
            'client': self.client_record.id,
            'treatment': self.treatment.id,
            'preferred_date': '2030-05-01',
            'flexible_timing': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'waiting')

        response = self.api.get('/api/bookings/waitlist/', {'treatment': self.treatment.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    @override_settings(WAITLIST_EXPIRY_DAYS=30)
    def test_join_waitlist_with_alternative_dates(self):
        response = self.api.post('/api/bookings/waitlist/', {
            'client': self.client_record.id,
            'treatment': self.treatment.id,
            'preferred_date': '2030-05-01',
            'alternative_dates': ['2030-05-10', '2030-05-03'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['alternative_dates'], ['2030-05-03', '2030-05-10'])
        self.assertEqual(response.data['expiry_date'], '2030-06-09')

    def test_rejects_malformed_alternative_date(self):
        response = self.api.post('/api/bookings/waitlist/', {
            'client': self.client_record.id,
            'treatment': self.treatment.id,
            'alternative_dates': ['next tuesday'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(CLINIC_OPENING_TIME=time(9, 0), CLINIC_CLOSING_TIME=time(12, 0), CLINIC_SLOT_MINUTES=60)
    def test_availability(self):
        day = future_date(5)
        response = self.api.get('/api/availability/', {'date': day.isoformat(), 'treatment': self.treatment.id})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['slots'], ['09:00', '10:00', '11:00'])

    def test_create_and_search_clients(self):
        response = self.api.post('/api/clients/', {
            'first_name': 'Amir',
            'last_name': 'Khan',
            'email': 'amir@example.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.api.get('/api/clients/', {'search': 'khan'})
        self.assertEqual([c['email'] for c in response.data], ['amir@example.com'])

    def test_treatments(self):
        self.make_treatment(name='Retired', is_active=False)

        response = self.api.get('/api/treatments/')
        self.assertEqual([t['name'] for t in response.data], ['Lip Filler'])

        response = self.api.post('/api/treatments/', {
            'name': 'Botox',
            'duration_minutes': 30,
            'price': '180.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.api.get(f"/api/treatments/{response.data['id']}/")
        self.assertEqual(response.data['price'], '180.00')


class ExceptionHandlerTests(SimpleTestCase):
    """Test which errors the API turns into client errors."""

    def test_booking_errors_are_bad_requests(self):
        for exc in (InvalidArgument('bad'), BookingStateError('bad'), BookingNotAllowed('bad')):
            with self.subTest(exc=type(exc).__name__):
                response = api_exception_handler(exc, {})
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.data['detail'], 'bad')

    def test_plain_value_error_is_not_handled(self):
        self.assertIsNone(api_exception_handler(ValueError('bug'), {}))
        self.assertIsNone(api_exception_handler(KeyError('bug'), {}))

    def test_model_validation_error_is_bad_request(self):
        response = api_exception_handler(ValidationError({'total_price': 'Too many digits.'}), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'total_price': ['Too many digits.']})

        response = api_exception_handler(ValidationError('Not allowed.'), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'detail': ['Not allowed.']})

    def test_slot_unavailable_is_conflict(self):
        response = api_exception_handler(SlotUnavailable(), {})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(response.data['suggest_waitlist'])


class ManagementCommandTests(BookingTestMixin, TestCase):
    """Test management commands."""

    def test_expire_waitlist_command(self):
        client = self.make_client()
        treatment = self.make_treatment()
        WaitlistEntry.objects.create(client=client, treatment=treatment, expiry_date=date(2025, 1, 10))

        out = StringIO()
        call_command('expire_waitlist', '--date=2025-02-01', stdout=out)

        self.assertIn('Successfully expired 1', out.getvalue())
        self.assertEqual(WaitlistEntry.objects.get().status, 'expired')

"""
Custom managers and querysets for booking models.

QuerySets define chainable query methods.
Managers use QuerySets to enable method chaining.
No business logic should be here - only query operations.
"""

from datetime import timedelta

from django.db import models
from django.utils import timezone


ACTIVE_BOOKING_STATUSES = ('scheduled', 'confirmed')


class ClientQuerySet(models.QuerySet):
    """Custom queryset for Client model."""

    def search(self, term):
        """Match clients by name or email."""
        return self.filter(
            models.Q(first_name__icontains=term)
            | models.Q(last_name__icontains=term)
            | models.Q(email__icontains=term)
        )


class TreatmentQuerySet(models.QuerySet):
    """Custom queryset for Treatment model."""

    def active(self):
        """Get treatments that can currently be booked."""
        return self.filter(is_active=True)


class BookingQuerySet(models.QuerySet):
    """Custom queryset for Booking model with chainable methods."""

    def active(self):
        """Get bookings that still hold their slot (scheduled or confirmed)."""
        return self.filter(status__in=ACTIVE_BOOKING_STATUSES)

    def upcoming(self):
        """Get active bookings that have not started yet."""
        return self.active().filter(scheduled_datetime__gte=timezone.now())

    def in_range(self, start_datetime, end_datetime):
        """
        Get bookings starting within a datetime range.

        Args:
            start_datetime: datetime object
            end_datetime: datetime object
        """
        return self.filter(
            scheduled_datetime__gte=start_datetime,
            scheduled_datetime__lte=end_datetime
        )

    def overlapping(self, start_datetime, end_datetime):
        """
        Get bookings whose time window intersects [start, end).

        Bookings have no stored end, so candidates are narrowed in the
        database and the duration check is done in Python.
        """
        longest = self.aggregate(longest=models.Max('duration_minutes'))['longest'] or 0
        earliest_start = start_datetime - timedelta(minutes=longest)
        candidates = self.filter(
            scheduled_datetime__lt=end_datetime,
            scheduled_datetime__gt=earliest_start
        )
        return [booking for booking in candidates if booking.end_datetime > start_datetime]

    def for_client(self, client):
        """Get all bookings for a client."""
        return self.filter(series__client=client)

    def for_series(self, series):
        """Get all bookings of a series in session order."""
        return self.filter(series=series).order_by('sequence')


class BookingManager(models.Manager):
    """Custom manager for Booking model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return BookingQuerySet(self.model, using=self._db).select_related(
            'series', 'series__client', 'series__treatment'
        )

    def active(self):
        return self.get_queryset().active()

    def upcoming(self):
        return self.get_queryset().upcoming()

    def in_range(self, start_datetime, end_datetime):
        return self.get_queryset().in_range(start_datetime, end_datetime)

    def for_client(self, client):
        return self.get_queryset().for_client(client)

    def for_series(self, series):
        return self.get_queryset().for_series(series)


class WaitlistEntryQuerySet(models.QuerySet):
    """Custom queryset for WaitlistEntry model with chainable methods."""

    def waiting(self):
        """Get entries still waiting for a slot, highest priority first."""
        return self.filter(status='waiting').order_by('-priority', 'created_at')

    def for_treatment(self, treatment):
        return self.filter(treatment=treatment)

    def past_expiry(self, today):
        """
        Get open entries whose expiry date is before the given date.

        Args:
            today: date object
        """
        return self.filter(
            status__in=('waiting', 'contacted'),
            expiry_date__isnull=False,
            expiry_date__lt=today
        )


class WaitlistEntryManager(models.Manager):
    """Custom manager for WaitlistEntry model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return WaitlistEntryQuerySet(self.model, using=self._db)

    def waiting(self):
        return self.get_queryset().waiting()

    def for_treatment(self, treatment):
        return self.get_queryset().for_treatment(treatment)

    def past_expiry(self, today):
        return self.get_queryset().past_expiry(today)


ClientManager = models.Manager.from_queryset(ClientQuerySet)
TreatmentManager = models.Manager.from_queryset(TreatmentQuerySet)

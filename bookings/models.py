"""
Models for the clinic booking system.

Every booking belongs to a BookingSeries:
- BookingSeries stores what was agreed with the client (treatment, pattern, group, price)
- Booking stores each bookable session generated from the series (one for a single booking)
- WaitlistEntry stores clients waiting for a slot to become free
"""

from datetime import timedelta

from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.utils import timezone

from .managers import (
    BookingManager,
    ClientManager,
    TreatmentManager,
    WaitlistEntryManager,
)
from .types import MAX_GROUP_SIZE, MAX_SESSIONS, PAYMENT_METHODS, RecurrencePattern


PAYMENT_METHOD_CHOICES = [(method, method.capitalize()) for method in PAYMENT_METHODS]


class Client(models.Model):
    """A person receiving treatments."""

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=30, blank=True, default='')
    date_of_birth = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ClientManager()

    class Meta:
        ordering = ['last_name', 'first_name']

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def age(self):
        """Age in whole years today, or None if date of birth is unknown."""
        if not self.date_of_birth:
            return None
        today = timezone.localdate()
        born = self.date_of_birth
        return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


class Treatment(models.Model):
    """A bookable treatment with its list price."""

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    duration_minutes = models.PositiveIntegerField(default=60)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)]
    )
    requires_consent = models.BooleanField(default=True)
    age_restriction = models.PositiveIntegerField(
        default=18,
        help_text="Minimum client age for this treatment"
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TreatmentManager()

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} - £{self.price} ({self.duration_minutes}min)"


class BookingSeries(models.Model):
    """
    One booking request: a single, group or recurring appointment.

    Single bookings have recurrence_pattern = null and one session.
    """

    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        related_name='booking_series'
    )
    treatment = models.ForeignKey(
        Treatment,
        on_delete=models.PROTECT,
        related_name='booking_series'
    )

    recurrence_pattern = models.CharField(
        max_length=20,
        choices=RecurrencePattern.choices(),
        null=True,
        blank=True,
        help_text="Repeat interval (null for a single booking)"
    )
    number_of_sessions = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(MAX_SESSIONS)]
    )

    is_group_booking = models.BooleanField(default=False)
    group_size = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(MAX_GROUP_SIZE)]
    )

    # Wider than Treatment.price: a full group of 8 multiplies the list price
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    requires_deposit = models.BooleanField(default=False)
    deposit_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    payment_method = models.CharField(
        max_length=20,
        choices=PAYMENT_METHOD_CHOICES,
        blank=True,
        default=''
    )

    accessibility = models.TextField(blank=True, default='', help_text="Access needs for the visit")
    allergies = models.TextField(blank=True, default='')
    special_instructions = models.TextField(blank=True, default='')
    notes = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = 'booking series'

    def __str__(self):
        kind = self.recurrence_pattern or 'single'
        return f"{self.treatment.name} for {self.client} ({kind}, {self.number_of_sessions} session(s))"

    @property
    def is_recurring(self):
        return self.recurrence_pattern is not None

    @property
    def recurrence_end(self):
        """Date of the last session in the series."""
        last = self.bookings.order_by('-sequence').first()
        return timezone.localdate(last.scheduled_datetime) if last else None

    def clean(self):
        """Validate series data."""
        super().clean()

        if self.recurrence_pattern is None and self.number_of_sessions != 1:
            raise ValidationError({
                'number_of_sessions': 'A single booking has exactly one session.'
            })

        if not self.is_group_booking and self.group_size != 1:
            raise ValidationError({
                'group_size': 'Only group bookings can have more than one participant.'
            })

        if self.requires_deposit and self.deposit_amount is None:
            raise ValidationError({
                'deposit_amount': 'A deposit amount is required when a deposit is taken.'
            })

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean()
        super().save(*args, **kwargs)


class Booking(models.Model):
    """One appointment; a session of its BookingSeries."""

    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('confirmed', 'Confirmed'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    series = models.ForeignKey(
        BookingSeries,
        on_delete=models.CASCADE,
        related_name='bookings'
    )
    sequence = models.PositiveIntegerField(
        default=1,
        help_text="Position of this session in its series (1-based)"
    )

    scheduled_datetime = models.DateTimeField()
    duration_minutes = models.PositiveIntegerField(default=60)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='scheduled'
    )
    notes = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BookingManager()

    class Meta:
        ordering = ['scheduled_datetime']
        constraints = [
            models.UniqueConstraint(fields=['series', 'sequence'], name='unique_series_sequence'),
        ]
        indexes = [
            models.Index(fields=['scheduled_datetime', 'status']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        status_str = f" [{self.status}]" if self.status != 'scheduled' else ""
        return f"{self.series.treatment.name} - {self.scheduled_datetime.strftime('%Y-%m-%d %H:%M')}{status_str}"

    @property
    def client(self):
        return self.series.client

    @property
    def treatment(self):
        return self.series.treatment

    @property
    def end_datetime(self):
        """Calculate end datetime based on duration."""
        return self.scheduled_datetime + timedelta(minutes=self.duration_minutes)

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean()
        super().save(*args, **kwargs)


class WaitlistEntry(models.Model):
    """A client waiting for a slot for a treatment."""

    STATUS_CHOICES = [
        ('waiting', 'Waiting'),
        ('contacted', 'Contacted'),
        ('booked', 'Booked'),
        ('expired', 'Expired'),
    ]

    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        related_name='waitlist_entries'
    )
    treatment = models.ForeignKey(
        Treatment,
        on_delete=models.CASCADE,
        related_name='waitlist_entries'
    )

    preferred_date = models.DateField(null=True, blank=True)
    preferred_time = models.TimeField(null=True, blank=True)
    alternative_dates = models.JSONField(
        default=list,
        blank=True,
        help_text="Other acceptable dates, ISO formatted"
    )
    flexible_timing = models.BooleanField(default=False)
    priority = models.IntegerField(default=0, help_text="Higher is contacted first")

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='waiting'
    )
    notified_at = models.DateTimeField(null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = WaitlistEntryManager()

    class Meta:
        ordering = ['-priority', 'created_at']
        verbose_name_plural = 'waitlist entries'

    def __str__(self):
        return f"{self.client} waiting for {self.treatment.name} [{self.status}]"

"""
Serializers for the clinic booking system.
"""

from rest_framework import serializers

from .models import Booking, BookingSeries, Client, Treatment, WaitlistEntry
from .types import (
    MAX_DURATION_MINUTES,
    MAX_GROUP_SIZE,
    MAX_SESSIONS,
    MIN_DURATION_MINUTES,
    PAYMENT_METHODS,
    RecurrencePattern,
)


class ClientSerializer(serializers.ModelSerializer):
    """Serializer for reading and creating clients."""

    full_name = serializers.ReadOnlyField()
    age = serializers.ReadOnlyField()

    class Meta:
        model = Client
        fields = [
            'id',
            'first_name',
            'last_name',
            'full_name',
            'email',
            'phone',
            'date_of_birth',
            'age',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']


class TreatmentSerializer(serializers.ModelSerializer):
    """Serializer for reading and creating treatments."""

    class Meta:
        model = Treatment
        fields = [
            'id',
            'name',
            'description',
            'duration_minutes',
            'price',
            'requires_consent',
            'age_restriction',
            'is_active',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']


class BookingReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying Booking (output)."""

    series_id = serializers.IntegerField(source='series.id')
    client_id = serializers.IntegerField(source='series.client_id')
    treatment_id = serializers.IntegerField(source='series.treatment_id')
    treatment_name = serializers.CharField(source='series.treatment.name')
    end_datetime = serializers.DateTimeField()

    class Meta:
        model = Booking
        fields = [
            'id',
            'series_id',
            'sequence',
            'client_id',
            'treatment_id',
            'treatment_name',
            'scheduled_datetime',
            'duration_minutes',
            'end_datetime',
            'status',
            'notes',
            'created_at',
            'updated_at',
        ]


class BookingSeriesReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying BookingSeries with its sessions."""

    is_recurring = serializers.BooleanField()
    recurrence_end = serializers.DateField()
    bookings = serializers.SerializerMethodField()

    class Meta:
        model = BookingSeries
        fields = [
            'id',
            'client',
            'treatment',
            'recurrence_pattern',
            'is_recurring',
            'recurrence_end',
            'number_of_sessions',
            'is_group_booking',
            'group_size',
            'total_price',
            'requires_deposit',
            'deposit_amount',
            'payment_method',
            'accessibility',
            'allergies',
            'special_instructions',
            'notes',
            'bookings',
            'created_at',
            'updated_at',
        ]

    def get_bookings(self, series):
        return BookingReadSerializer(Booking.objects.for_series(series), many=True).data


class BookingOptionsSerializer(serializers.Serializer):
    """Group and recurrence options shared by quotes and bookings."""

    treatment = serializers.PrimaryKeyRelatedField(queryset=Treatment.objects.active())
    scheduled_date = serializers.DateField()
    is_group_booking = serializers.BooleanField(default=False)
    group_size = serializers.IntegerField(min_value=1, max_value=MAX_GROUP_SIZE, default=1)
    is_recurring = serializers.BooleanField(default=False)
    recurrence_pattern = serializers.ChoiceField(
        choices=RecurrencePattern.choices(),
        required=False,
        allow_null=True
    )
    number_of_sessions = serializers.IntegerField(min_value=1, max_value=MAX_SESSIONS, default=1)

    def validate(self, data):
        """Require a pattern for recurring bookings and drop it otherwise."""
        if data.get('is_recurring'):
            if not data.get('recurrence_pattern'):
                raise serializers.ValidationError({
                    'recurrence_pattern': 'A recurrence pattern is required for recurring bookings.'
                })
        else:
            data['recurrence_pattern'] = None
            data['number_of_sessions'] = 1

        if not data.get('is_group_booking'):
            data['group_size'] = 1

        return data


class BookingQuoteSerializer(BookingOptionsSerializer):
    """Serializer for previewing a booking's dates and price."""


class BookingCreateSerializer(BookingOptionsSerializer):
    """Serializer for creating a booking series."""

    client = serializers.PrimaryKeyRelatedField(queryset=Client.objects.all())
    scheduled_time = serializers.TimeField()
    duration_minutes = serializers.IntegerField(
        min_value=MIN_DURATION_MINUTES,
        max_value=MAX_DURATION_MINUTES,
        required=False
    )
    requires_deposit = serializers.BooleanField(default=False)
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False, allow_blank=True, default='')
    accessibility = serializers.CharField(required=False, allow_blank=True, default='')
    allergies = serializers.CharField(required=False, allow_blank=True, default='')
    special_instructions = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class WaitlistEntrySerializer(serializers.ModelSerializer):
    """Serializer for reading waitlist entries and joining the waitlist."""

    treatment = serializers.PrimaryKeyRelatedField(queryset=Treatment.objects.active())
    alternative_dates = serializers.ListField(
        child=serializers.DateField(),
        required=False,
        default=list
    )

    class Meta:
        model = WaitlistEntry
        fields = [
            'id',
            'client',
            'treatment',
            'preferred_date',
            'preferred_time',
            'alternative_dates',
            'flexible_timing',
            'priority',
            'status',
            'notified_at',
            'expiry_date',
            'notes',
            'created_at',
        ]
        read_only_fields = ['status', 'notified_at', 'expiry_date', 'created_at']


class DateRangeQuerySerializer(serializers.Serializer):
    """Serializer for date range query parameters."""

    start = serializers.DateTimeField(required=True)
    end = serializers.DateTimeField(required=True)
    status = serializers.ChoiceField(
        choices=[choice for choice, _ in Booking.STATUS_CHOICES],
        required=False,
        allow_null=True
    )

    def validate(self, data):
        """Ensure start is before end."""
        if data['start'] >= data['end']:
            raise serializers.ValidationError(
                "Start datetime must be before end datetime."
            )
        return data


class AvailabilityQuerySerializer(serializers.Serializer):
    """Serializer for availability query parameters."""

    date = serializers.DateField()
    treatment = serializers.PrimaryKeyRelatedField(queryset=Treatment.objects.active())

"""
Admin configuration for the bookings app.
"""

from django.contrib import admin
from .models import Booking, BookingSeries, Client, Treatment, WaitlistEntry


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'email', 'phone', 'date_of_birth']
    search_fields = ['first_name', 'last_name', 'email']


@admin.register(Treatment)
class TreatmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'price', 'duration_minutes', 'age_restriction', 'is_active']
    list_filter = ['is_active', 'requires_consent']
    search_fields = ['name', 'description']


class BookingInline(admin.TabularInline):
    model = Booking
    extra = 0
    fields = ['sequence', 'scheduled_datetime', 'duration_minutes', 'status']
    readonly_fields = ['sequence']


@admin.register(BookingSeries)
class BookingSeriesAdmin(admin.ModelAdmin):
    """Admin interface for BookingSeries model."""

    list_display = ['treatment', 'client', 'recurrence_pattern', 'number_of_sessions', 'group_size', 'total_price']
    list_filter = ['recurrence_pattern', 'is_group_booking', 'created_at']
    search_fields = ['client__first_name', 'client__last_name', 'treatment__name']
    inlines = [BookingInline]

    fieldsets = (
        ('Booking', {
            'fields': ('client', 'treatment', 'notes')
        }),
        ('Group & Recurrence', {
            'fields': ('is_group_booking', 'group_size', 'recurrence_pattern', 'number_of_sessions')
        }),
        ('Pricing', {
            'fields': ('total_price', 'requires_deposit', 'deposit_amount', 'payment_method')
        }),
        ('Client Needs', {
            'fields': ('accessibility', 'allergies', 'special_instructions')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at', 'updated_at']


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Admin interface for Booking model."""

    list_display = ['__str__', 'scheduled_datetime', 'duration_minutes', 'status', 'series']
    list_filter = ['status', 'created_at']
    date_hierarchy = 'scheduled_datetime'
    readonly_fields = ['created_at', 'updated_at']


@admin.register(WaitlistEntry)
class WaitlistEntryAdmin(admin.ModelAdmin):
    list_display = ['client', 'treatment', 'preferred_date', 'priority', 'status', 'expiry_date']
    list_filter = ['status', 'flexible_timing']
    readonly_fields = ['notified_at', 'created_at', 'updated_at']

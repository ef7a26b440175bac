"""
URL routing for the bookings API.
"""

from django.urls import path
from .views import (
    AvailabilityView,
    BookingCompleteView,
    BookingConfirmView,
    BookingDetailView,
    BookingListCreateView,
    BookingQuoteView,
    BookingSeriesDetailView,
    ClientListCreateView,
    TreatmentDetailView,
    TreatmentListCreateView,
    WaitlistListCreateView,
)

urlpatterns = [
    path('clients/', ClientListCreateView.as_view(), name='client-list-create'),
    path('treatments/', TreatmentListCreateView.as_view(), name='treatment-list-create'),
    path('treatments/<int:pk>/', TreatmentDetailView.as_view(), name='treatment-detail'),
    path('bookings/', BookingListCreateView.as_view(), name='booking-list-create'),
    path('bookings/quote/', BookingQuoteView.as_view(), name='booking-quote'),
    path('bookings/waitlist/', WaitlistListCreateView.as_view(), name='waitlist-list-create'),
    path('bookings/series/<int:pk>/', BookingSeriesDetailView.as_view(), name='booking-series-detail'),
    path('bookings/<int:pk>/', BookingDetailView.as_view(), name='booking-detail'),
    path('bookings/<int:pk>/confirm/', BookingConfirmView.as_view(), name='booking-confirm'),
    path('bookings/<int:pk>/complete/', BookingCompleteView.as_view(), name='booking-complete'),
    path('availability/', AvailabilityView.as_view(), name='availability'),
]

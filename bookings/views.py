"""Views for the clinic booking system."""

from django.shortcuts import get_object_or_404

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Booking, BookingSeries, Client, Treatment, WaitlistEntry
from .serializers import (
    AvailabilityQuerySerializer,
    BookingCreateSerializer,
    BookingQuoteSerializer,
    BookingReadSerializer,
    BookingSeriesReadSerializer,
    ClientSerializer,
    DateRangeQuerySerializer,
    TreatmentSerializer,
    WaitlistEntrySerializer,
)
from . import services
from .types import BookingDraft, WaitlistRequest


class ClientListCreateView(APIView):
    """
    List clients or register a new one.

    GET /api/clients/?search=X - List clients, optionally filtered
    POST /api/clients/ - Create a client
    """

    def get(self, request):
        clients = Client.objects.all()
        search = request.query_params.get('search')
        if search:
            clients = clients.search(search)
        return Response(ClientSerializer(clients, many=True).data)

    def post(self, request):
        serializer = ClientSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class TreatmentListCreateView(APIView):
    """
    List bookable treatments or add a new one.

    GET /api/treatments/ - List active treatments
    POST /api/treatments/ - Create a treatment
    """

    def get(self, request):
        treatments = Treatment.objects.active()
        return Response(TreatmentSerializer(treatments, many=True).data)

    def post(self, request):
        serializer = TreatmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class TreatmentDetailView(APIView):
    """GET /api/treatments/{id}/ - Retrieve a treatment."""

    def get(self, request, pk):
        treatment = get_object_or_404(Treatment, pk=pk)
        return Response(TreatmentSerializer(treatment).data)


class BookingQuoteView(APIView):
    """
    Preview the session dates and total price of a booking.

    POST /api/bookings/quote/
    """

    def post(self, request):
        serializer = BookingQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        quote = services.quote_booking(
            treatment=data['treatment'],
            start_date=data['scheduled_date'],
            recurrence_pattern=data['recurrence_pattern'],
            number_of_sessions=data['number_of_sessions'],
            is_group_booking=data['is_group_booking'],
            group_size=data['group_size']
        )

        return Response({
            'dates': [d.isoformat() for d in quote.dates],
            'total_price': str(quote.total_price),
            'deposit_amount': str(quote.deposit_amount),
        })


class BookingListCreateView(APIView):
    """
    List bookings within a date range or create a booking series.

    GET /api/bookings/?start=X&end=Y - List bookings in range
    POST /api/bookings/ - Create a single, group or recurring booking
    """

    def get(self, request):
        """List bookings within a date range."""
        query_serializer = DateRangeQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        bookings = services.get_bookings_in_range(
            query_serializer.validated_data['start'],
            query_serializer.validated_data['end'],
            query_serializer.validated_data.get('status')
        )

        serializer = BookingReadSerializer(bookings, many=True)
        return Response(serializer.data)

    def post(self, request):
        """Create a booking series; 409 if a slot is already taken."""
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        draft = BookingDraft(
            scheduled_date=data['scheduled_date'],
            scheduled_time=data['scheduled_time'],
            duration_minutes=data.get('duration_minutes'),
            is_group_booking=data['is_group_booking'],
            group_size=data['group_size'],
            recurrence_pattern=data['recurrence_pattern'],
            number_of_sessions=data['number_of_sessions'],
            requires_deposit=data['requires_deposit'],
            payment_method=data['payment_method'],
            accessibility=data['accessibility'],
            allergies=data['allergies'],
            special_instructions=data['special_instructions'],
            notes=data.get('notes', '')
        )
        series = services.create_booking_series(
            client=data['client'],
            treatment=data['treatment'],
            draft=draft
        )

        response_serializer = BookingSeriesReadSerializer(series)
        return Response(response_serializer.data, status=status.HTTP_201_CREATED)


class BookingDetailView(APIView):
    """
    Retrieve or cancel a booking.

    GET /api/bookings/{id}/ - Retrieve booking
    DELETE /api/bookings/{id}/ - Cancel booking
    """

    def get(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)
        return Response(BookingReadSerializer(booking).data)

    def delete(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)

        services.cancel_booking(booking)

        return Response({
            'message': f'Booking for {booking.treatment.name} on {booking.scheduled_datetime.date()} has been cancelled.'
        }, status=status.HTTP_200_OK)


class BookingConfirmView(APIView):
    """POST /api/bookings/{id}/confirm/"""

    def post(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)
        services.confirm_booking(booking)
        return Response(BookingReadSerializer(booking).data)


class BookingCompleteView(APIView):
    """POST /api/bookings/{id}/complete/"""

    def post(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)
        services.complete_booking(booking)
        return Response(BookingReadSerializer(booking).data)


class BookingSeriesDetailView(APIView):
    """
    Retrieve a booking series or cancel its remaining sessions.

    GET /api/bookings/series/{id}/
    DELETE /api/bookings/series/{id}/
    """

    def get(self, request, pk):
        series = get_object_or_404(BookingSeries, pk=pk)
        return Response(BookingSeriesReadSerializer(series).data)

    def delete(self, request, pk):
        series = get_object_or_404(BookingSeries, pk=pk)
        cancelled = services.cancel_series(series)
        return Response({
            'message': f'{cancelled} remaining session(s) have been cancelled.',
            'cancelled': cancelled,
        }, status=status.HTTP_200_OK)


class WaitlistListCreateView(APIView):
    """
    List waiting clients or join the waitlist.

    GET /api/bookings/waitlist/?treatment=X - List waiting entries
    POST /api/bookings/waitlist/ - Join the waitlist
    """

    def get(self, request):
        entries = WaitlistEntry.objects.waiting()
        treatment_id = request.query_params.get('treatment')
        if treatment_id:
            entries = entries.filter(treatment_id=treatment_id)
        return Response(WaitlistEntrySerializer(entries, many=True).data)

    def post(self, request):
        serializer = WaitlistEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        entry = services.join_waitlist(
            client=data['client'],
            treatment=data['treatment'],
            request=WaitlistRequest(
                preferred_date=data.get('preferred_date'),
                preferred_time=data.get('preferred_time'),
                alternative_dates=data.get('alternative_dates', []),
                flexible_timing=data.get('flexible_timing', False),
                priority=data.get('priority', 0),
                notes=data.get('notes', '')
            )
        )

        return Response(WaitlistEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


class AvailabilityView(APIView):
    """
    List free start times for a treatment on a day.

    GET /api/availability/?date=YYYY-MM-DD&treatment=X
    """

    def get(self, request):
        query_serializer = AvailabilityQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        day = query_serializer.validated_data['date']
        slots = services.get_available_slots(day, query_serializer.validated_data['treatment'])

        return Response({
            'date': day.isoformat(),
            'slots': [slot.strftime('%H:%M') for slot in slots],
        })

"""
REST framework exception handler for booking errors.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .exceptions import BookingNotAllowed, BookingStateError, InvalidArgument, SlotUnavailable

logger = logging.getLogger(__name__)

BAD_REQUEST_ERRORS = (InvalidArgument, BookingStateError, BookingNotAllowed)


def api_exception_handler(exc, context):
    """Map booking errors to 400/409 responses, defer the rest to DRF."""
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, SlotUnavailable):
        logger.info("Slot conflict: %s", exc)
        return Response({
            'detail': str(exc),
            'suggest_waitlist': True,
            'conflicting_bookings': [booking.pk for booking in exc.conflicts],
        }, status=status.HTTP_409_CONFLICT)

    if isinstance(exc, BAD_REQUEST_ERRORS):
        return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    # Model full_clean() failures that slipped past the serializers
    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, 'error_dict'):
            return Response(exc.message_dict, status=status.HTTP_400_BAD_REQUEST)
        return Response({'detail': exc.messages}, status=status.HTTP_400_BAD_REQUEST)

    return None

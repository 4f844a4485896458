"""
Booking engine errors.

Every error carries a stable machine-readable ``code`` and a human
message.  They subclass DRF's ``APIException`` so that views can let
them propagate and :func:`bookings.exceptions.api_exception_handler`
renders them in the usual error envelope.
"""
from typing import Optional

from rest_framework import status
from rest_framework.exceptions import APIException


class BookingError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'booking_error'
    default_detail = 'Booking request failed.'

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or self.default_detail
        super().__init__(detail=self.message, code=code)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(BookingError):
    """Malformed or unacceptable request; never retried."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'validation_error'


class CapacityError(BookingError):
    """Slot or day is full; the caller may retry with another slot."""
    status_code = status.HTTP_409_CONFLICT
    default_code = 'capacity_error'


class TransitionError(BookingError):
    """Status change not allowed by the lifecycle table."""
    status_code = status.HTTP_409_CONFLICT
    default_code = 'illegal_transition'

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__('ILLEGAL_TRANSITION', f'Cannot change status from {from_status} to {to_status}')


class GatewayError(BookingError):
    """Payment gateway order, verification or refund failure."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = 'gateway_error'


class BookingNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'not_found'

    def __init__(self, message: str = 'Booking not found'):
        super().__init__('BOOKING_NOT_FOUND', message)

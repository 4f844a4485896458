"""
Patient booking endpoints.

Booking engine errors are not caught here: they propagate as
:class:`bookings.errors.BookingError` and are rendered by the project
exception handler as ``{'ok': False, 'error': {'code', 'message'}}``.
"""
from __future__ import annotations

from django.core.paginator import Paginator
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status
from rest_framework.throttling import UserRateThrottle

from ..errors import BookingNotFound
from ..models import Booking, User
from ..permissions import IsPatientOrAdmin, IsPatientRole
from ..serializers.booking import (
    BookingCreateSerializer,
    BookingListQuerySerializer,
    CancelBookingSerializer,
    VerifyPaymentSerializer,
)
from ..services import lifecycle
from ..services.booking import create_booking, find_booking, format_booking
from ..services.validation import parse_date


class BookingCreateThrottle(UserRateThrottle):
    scope = 'booking_create'


def _owned_booking(user: User, booking_id) -> Booking:
    booking = find_booking(booking_id)
    if booking is None:
        raise BookingNotFound()
    if user.role != User.ROLE_ADMIN and booking.user_id != user.id:
        # other patients' bookings are reported as missing
        raise BookingNotFound()
    return booking


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
@throttle_classes([BookingCreateThrottle])
def booking_create(request):
    """Create an OP booking.

    Responds with the booking, its token and fee breakdown.  For online
    payment the gateway ``orderId`` is included so the client can open
    the checkout; the booking stays ``pending`` until
    ``/api/bookings/verify-payment`` succeeds.
    """
    s = BookingCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    patient = d['patientDetails']
    booking = create_booking(
        request.user,
        hospital_id=d['hospitalId'],
        appointment_date=d['appointmentDate'],
        time_slot=d['timeSlot'],
        payment_method=d['paymentMethod'],
        is_emergency=d.get('isEmergency', False),
        patient_name=patient['name'],
        patient_age=patient.get('age'),
        patient_gender=patient.get('gender', ''),
        patient_mobile=patient.get('mobile', ''),
        patient_address=patient.get('address', ''),
        health_issue=patient.get('healthIssue', ''),
        symptoms=patient.get('symptoms', ''),
        specialization=d.get('specialization', ''),
        doctor_name=d.get('doctorName', ''),
    )
    return Response({'ok': True, 'data': format_booking(booking)}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def booking_verify_payment(request):
    s = VerifyPaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    booking = _owned_booking(request.user, d['bookingId'])
    lifecycle.confirm_online_payment(booking, d['orderId'], d['paymentId'], d['signature'])
    return Response({'ok': True, 'data': format_booking(find_booking(booking.id))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientOrAdmin])
def booking_cancel(request):
    """Cancel a pending or confirmed booking; completed online payments are refunded."""
    s = CancelBookingSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    booking = _owned_booking(request.user, s.validated_data['bookingId'])
    lifecycle.cancel_booking(booking, actor=request.user, reason=s.validated_data.get('reason'))
    return Response({'ok': True, 'data': format_booking(find_booking(booking.id))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_bookings(request):
    q = BookingListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = Booking.objects.filter(user=request.user).select_related('hospital', 'payment')
    if q.validated_data.get('status'):
        qs = qs.filter(status=q.validated_data['status'])
    if q.validated_data.get('date'):
        qs = qs.filter(appointment_day=parse_date(q.validated_data['date']))
    page = q.validated_data.get('page', 1)
    page_size = q.validated_data.get('pageSize', 20)
    paginator = Paginator(qs.order_by('-appointment_date', '-id'), page_size)
    items = paginator.get_page(page)
    return Response({
        'ok': True,
        'data': [format_booking(b) for b in items],
        'pagination': {'total': paginator.count, 'page': items.number, 'pageSize': page_size},
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def booking_detail(request):
    """Booking with transition history, for its patient, its hospital's operators or an admin."""
    booking_id = request.query_params.get('id') or request.query_params.get('bookingId')
    booking = find_booking(booking_id)
    if booking is None:
        raise BookingNotFound()
    user: User = request.user  # type: ignore[assignment]
    allowed = (
        user.role == User.ROLE_ADMIN
        or booking.user_id == user.id
        or (user.role == User.ROLE_HOSPITAL and user.hospital_id == booking.hospital_id)
    )
    if not allowed:
        raise BookingNotFound()
    return Response({'ok': True, 'data': format_booking(booking, with_history=True)})

"""
Hospital operator and administrator booking endpoints.

Operators act on bookings of the hospital they are bound to; bookings of
other hospitals are reported as not found.  Every status change goes
through :mod:`bookings.services.lifecycle`, which locks the row and
records the transition.
"""
from __future__ import annotations

from django.core.paginator import Paginator
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..errors import BookingNotFound
from ..models import Booking, Payment, User
from ..permissions import IsAdminRole, IsHospitalRole
from ..serializers.booking import (
    AssignDoctorSerializer,
    BookingListQuerySerializer,
    CodPaymentSerializer,
    TokenCorrectionSerializer,
    UpdateStatusSerializer,
)
from ..services import lifecycle
from ..services.booking import find_booking, format_booking
from ..services.tokens import correct_token
from ..services.validation import parse_date


def _hospital_booking(user: User, booking_id) -> Booking:
    booking = find_booking(booking_id)
    if booking is None or booking.hospital_id != user.hospital_id:
        raise BookingNotFound()
    return booking


def _paginated(qs, query: BookingListQuerySerializer) -> dict:
    page = query.validated_data.get('page', 1)
    page_size = query.validated_data.get('pageSize', 20)
    paginator = Paginator(qs, page_size)
    items = paginator.get_page(page)
    return {
        'ok': True,
        'data': [format_booking(b) for b in items],
        'pagination': {'total': paginator.count, 'page': items.number, 'pageSize': page_size},
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def hospital_bookings(request):
    """Bookings of the operator's hospital, optionally filtered by ``status`` and ``date`` (DD-MM-YYYY)."""
    q = BookingListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = Booking.objects.filter(hospital_id=request.user.hospital_id).select_related('hospital', 'payment')
    if q.validated_data.get('status'):
        qs = qs.filter(status=q.validated_data['status'])
    if q.validated_data.get('date'):
        qs = qs.filter(appointment_day=parse_date(q.validated_data['date']))
    return Response(_paginated(qs.order_by('appointment_day', 'slot_start', 'sequence'), q))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def hospital_update_status(request):
    """Confirm, reject (``rejectionReason`` required) or complete a booking."""
    s = UpdateStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    booking = _hospital_booking(request.user, d['bookingId'])
    new_status = d['status']
    if new_status == Booking.STATUS_CONFIRMED:
        lifecycle.confirm_booking(booking, actor=request.user)
    elif new_status == Booking.STATUS_REJECTED:
        lifecycle.reject_booking(booking, d.get('rejectionReason'), actor=request.user)
    else:
        lifecycle.complete_booking(booking, actor=request.user, notes=d.get('notes'))
    return Response({'ok': True, 'data': format_booking(find_booking(booking.id))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def hospital_cod_payment(request):
    s = CodPaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    booking = _hospital_booking(request.user, d['bookingId'])
    lifecycle.record_cod_payment(booking, d['paymentStatus'], remarks=d.get('remarks'), actor=request.user)
    return Response({'ok': True, 'data': format_booking(find_booking(booking.id))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def hospital_assign_doctor(request):
    s = AssignDoctorSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    booking = _hospital_booking(request.user, d['bookingId'])
    lifecycle.assign_doctor(booking, d['doctorName'], d.get('doctorId'), actor=request.user)
    return Response({'ok': True, 'data': format_booking(find_booking(booking.id))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_correct_token(request):
    s = TokenCorrectionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    booking = find_booking(s.validated_data['bookingId'])
    if booking is None:
        raise BookingNotFound()
    correct_token(booking, s.validated_data['tokenNumber'], actor=request.user)
    return Response({'ok': True, 'data': format_booking(find_booking(booking.id))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_pending_payments(request):
    """Non-terminal bookings whose payment has not been completed."""
    q = BookingListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = (
        Booking.objects.filter(status__in=Booking.NON_TERMINAL_STATUSES, payment__status=Payment.STATUS_PENDING)
        .select_related('hospital', 'payment')
    )
    hospital_id = request.query_params.get('hospitalId')
    if hospital_id and str(hospital_id).isdigit():
        qs = qs.filter(hospital_id=int(hospital_id))
    return Response(_paginated(qs.order_by('created_at'), q))

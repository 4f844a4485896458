"""
Booking orchestrator.

:func:`create_booking` is the only place bookings are inserted.  The
request is validated against a hospital snapshot first.  Capacity
admission, fee calculation, token allocation and the insert of the
booking with its pending payment then happen in one transaction, under
the (hospital, day) counter lock.  Online bookings get a gateway order
afterwards; if that fails the booking is removed again so it neither
holds capacity nor shows up to the patient.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import bleach
from django.db import transaction

from bookings.errors import GatewayError, ValidationError
from bookings.models import Booking, Payment, User
from bookings.services import notifications, payments
from bookings.services.fees import breakdown_from_payment, compute_fee
from bookings.services.hospitals import find_approved_open_hospital
from bookings.services.slots import ensure_capacity, slot_bucket
from bookings.services.tokens import allocate_token, lock_day_counter
from bookings.services.validation import validate_booking_request

logger = logging.getLogger(__name__)

PAYMENT_METHODS = (Payment.METHOD_ONLINE, Payment.METHOD_COD)


def _clean(value, max_length: Optional[int] = None) -> str:
    text = bleach.clean(str(value or '').strip(), strip=True)
    return text[:max_length] if max_length else text


def create_booking(user: User, *, hospital_id, appointment_date: str, time_slot: str, payment_method: str,
                   is_emergency: bool = False, patient_name: str = '', patient_age: Optional[int] = None,
                   patient_gender: str = '', patient_mobile: str = '', patient_address: str = '',
                   health_issue: str = '', symptoms: str = '', specialization: str = '',
                   doctor_name: str = '', now: Optional[datetime] = None) -> Booking:
    is_emergency = bool(is_emergency)
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError('INVALID_PAYMENT_METHOD', 'Payment method must be online or cod')
    hospital = find_approved_open_hospital(hospital_id)
    appointment = validate_booking_request(appointment_date, time_slot, hospital, is_emergency, now=now)
    if not _clean(patient_name):
        raise ValidationError('MISSING_PATIENT_DETAILS', 'Patient name is required')

    with transaction.atomic():
        counter = lock_day_counter(hospital, appointment.day)
        slot_start = slot_bucket(hospital, appointment.day, appointment.time_of_day)
        ensure_capacity(hospital, appointment.day, slot_start)
        fee = compute_fee(hospital, is_emergency)
        token_number, sequence = allocate_token(counter, hospital, is_emergency)
        booking = Booking.objects.create(
            user=user,
            hospital=hospital,
            appointment_date=appointment.instant,
            appointment_day=appointment.day,
            slot_start=slot_start,
            time_slot=appointment.time_slot,
            token_number=token_number,
            sequence=sequence,
            is_emergency=is_emergency,
            status=Booking.STATUS_PENDING,
            patient_name=_clean(patient_name, 128),
            patient_age=patient_age,
            patient_gender=_clean(patient_gender, 10),
            patient_mobile=_clean(patient_mobile, 20),
            patient_address=_clean(patient_address, 255),
            health_issue=_clean(health_issue),
            symptoms=_clean(symptoms),
            specialization=_clean(specialization, 64),
            doctor_name=_clean(doctor_name, 128),
        )
        Payment.objects.create(
            booking=booking,
            method=payment_method,
            amount=fee.total,
            status=Payment.STATUS_PENDING,
            fee_strategy=fee.strategy,
            platform_fee=fee.platform_fee,
            emergency_fee=fee.emergency_fee,
            tax=fee.tax,
            total=fee.total,
        )
    logger.info('booking %s created: hospital=%s token=%s slot=%s method=%s',
                booking.id, hospital.id, token_number, slot_start.isoformat(), payment_method)

    if payment_method == Payment.METHOD_ONLINE:
        try:
            order = payments.create_order(booking.id, fee.total)
        except GatewayError:
            logger.warning('removing booking %s after gateway order failure', booking.id)
            booking.delete()
            raise
        Payment.objects.filter(booking=booking).update(order_id=order.order_id)

    booking = Booking.objects.select_related('hospital', 'user', 'payment').get(pk=booking.pk)
    notifications.emit('BOOKING_CREATED', booking)
    return booking


def find_booking(booking_id) -> Optional[Booking]:
    try:
        return Booking.objects.select_related('hospital', 'user', 'payment').get(pk=booking_id)
    except (Booking.DoesNotExist, ValueError, TypeError):
        return None


def format_payment(payment: Optional[Payment]) -> Optional[dict]:
    if payment is None:
        return None
    return {
        'method': payment.method,
        'amount': payment.amount,
        'status': payment.status,
        'orderId': payment.order_id or None,
        'paymentId': payment.payment_id or None,
        'paidAt': payment.paid_at.isoformat() if payment.paid_at else None,
        'remarks': payment.remarks,
        'feeBreakdown': breakdown_from_payment(payment).as_dict(),
        'refund': {
            'refundId': payment.refund_id,
            'amount': payment.refund_amount,
            'status': payment.refund_status,
            'refundedAt': payment.refunded_at.isoformat() if payment.refunded_at else None,
        } if payment.refund_id else None,
    }


def format_booking(booking: Booking, with_history: bool = False) -> dict:
    payment = getattr(booking, 'payment', None)
    data = {
        'id': booking.id,
        'hospitalId': booking.hospital_id,
        'hospitalName': booking.hospital.name,
        'appointmentDate': booking.appointment_date.isoformat(),
        'appointmentDay': booking.appointment_day.strftime('%d-%m-%Y'),
        'timeSlot': booking.time_slot,
        'slotStart': booking.slot_start.isoformat(),
        'tokenNumber': booking.token_number,
        'isEmergency': booking.is_emergency,
        'status': booking.status,
        'patientDetails': {
            'name': booking.patient_name,
            'age': booking.patient_age,
            'gender': booking.patient_gender,
            'mobile': booking.patient_mobile,
            'address': booking.patient_address,
            'healthIssue': booking.health_issue,
            'symptoms': booking.symptoms,
        },
        'specialization': booking.specialization,
        'doctorName': booking.doctor_name,
        'doctorId': booking.doctor_ref,
        'doctorAssignedAt': booking.doctor_assigned_at.isoformat() if booking.doctor_assigned_at else None,
        'rejectionReason': booking.rejection_reason or None,
        'completionNotes': booking.completion_notes or None,
        'payment': format_payment(payment),
        'createdAt': booking.created_at.isoformat(),
        'statusUpdatedAt': booking.status_updated_at.isoformat() if booking.status_updated_at else None,
    }
    if with_history:
        data['transitionHistory'] = [
            {
                'from': t.from_status,
                'to': t.to_status,
                'operator': t.operator.username if t.operator else '',
                'timestamp': t.timestamp.isoformat(),
                'reason': t.reason,
            }
            for t in booking.transitions.select_related('operator').order_by('timestamp', 'id')
        ]
    return data

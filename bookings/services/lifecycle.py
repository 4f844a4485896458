"""
Booking lifecycle.

All status changes go through :func:`transition`, which checks the
transition table, locks the booking row, applies the change, records a
:class:`BookingTransition` and an audit event.  Notifications are sent
after the transaction has been left so that a delivery problem cannot
undo the change.

    pending   -> confirmed | rejected | cancelled
    confirmed -> completed | cancelled
    rejected, cancelled, completed: terminal
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import bleach
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from bookings.errors import GatewayError, TransitionError, ValidationError
from bookings.models import Booking, BookingTransition, Payment, User
from bookings.services import notifications, payments
from bookings.services.audit import log_action

logger = logging.getLogger(__name__)

TRANSITIONS = {
    Booking.STATUS_PENDING: {Booking.STATUS_CONFIRMED, Booking.STATUS_REJECTED, Booking.STATUS_CANCELLED},
    Booking.STATUS_CONFIRMED: {Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED},
    Booking.STATUS_REJECTED: set(),
    Booking.STATUS_CANCELLED: set(),
    Booking.STATUS_COMPLETED: set(),
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, set())


def check_transition(current: str, new: str) -> None:
    if not can_transition(current, new):
        logger.error('illegal booking transition %s -> %s', current, new)
        raise TransitionError(current, new)


def _clean_text(value: Optional[str]) -> str:
    return bleach.clean((value or '').strip(), strip=True)


def transition(booking: Booking, new_status: str, *, actor: Optional[User] = None, reason: str = '',
               apply: Optional[Callable[[Booking], None]] = None) -> Booking:
    """Move ``booking`` to ``new_status`` under a row lock.

    ``apply`` runs on the locked row before it is saved and may set extra
    fields or raise to abort; in that case nothing is written.  The
    caller's instance is refreshed with the stored state.
    """
    with transaction.atomic():
        locked = Booking.objects.select_for_update().select_related('hospital', 'user').get(pk=booking.pk)
        old_status = locked.status
        check_transition(old_status, new_status)
        now = timezone.now()
        locked.status = new_status
        locked.status_updated_at = now
        if new_status == Booking.STATUS_CANCELLED:
            locked.cancelled_at = now
        elif new_status == Booking.STATUS_COMPLETED:
            locked.completed_at = now
        if apply is not None:
            apply(locked)
        locked.save()
        BookingTransition.objects.create(
            booking=locked,
            from_status=old_status,
            to_status=new_status,
            operator=actor if isinstance(actor, User) else None,
            reason=reason[:255],
        )
        log_action(user=actor, action=f'booking_{new_status}', object_type='booking', object_id=locked.id,
                   detail={'from': old_status, 'to': new_status, 'reason': reason})
    logger.info('booking %s %s -> %s', locked.id, old_status, new_status)
    booking.refresh_from_db()
    return booking


def confirm_booking(booking: Booking, actor: Optional[User] = None) -> Booking:
    """Hospital accepts a pending booking."""
    transition(booking, Booking.STATUS_CONFIRMED, actor=actor, reason='accepted by hospital')
    notifications.emit('BOOKING_CONFIRMED', booking)
    return booking


def reject_booking(booking: Booking, reason: Optional[str], actor: Optional[User] = None) -> Booking:
    reason = _clean_text(reason)
    if not reason:
        raise ValidationError('MISSING_REJECTION_REASON', 'Rejection reason is required')

    def apply(b: Booking) -> None:
        b.rejection_reason = reason

    transition(booking, Booking.STATUS_REJECTED, actor=actor, reason=reason, apply=apply)
    notifications.emit('BOOKING_REJECTED', booking)
    return booking


def complete_booking(booking: Booking, actor: Optional[User] = None, notes: Optional[str] = None) -> Booking:
    notes = _clean_text(notes)

    def apply(b: Booking) -> None:
        b.completion_notes = notes

    transition(booking, Booking.STATUS_COMPLETED, actor=actor, reason='completed', apply=apply)
    notifications.emit('BOOKING_COMPLETED', booking)
    return booking


def cancel_booking(booking: Booking, actor: Optional[User] = None, reason: Optional[str] = None) -> Booking:
    """Cancel a pending or confirmed booking.

    A completed online payment is refunded first, on the locked row.  If
    the gateway refuses, :class:`GatewayError` propagates, the
    transaction rolls back and the booking keeps its previous status and
    payment state.
    """
    reason = _clean_text(reason) or 'cancelled'
    refunded = {}

    def apply(b: Booking) -> None:
        payment = Payment.objects.select_for_update().filter(booking=b).first()
        if payment is None:
            return
        if payment.method == Payment.METHOD_ONLINE and payment.status == Payment.STATUS_COMPLETED:
            refund = payments.refund_payment(payment.payment_id, payment.amount)
            payment.status = Payment.STATUS_REFUNDED
            payment.refund_id = refund.refund_id
            payment.refund_amount = refund.amount
            payment.refund_status = refund.status
            payment.refunded_at = timezone.now()
            payment.save(update_fields=['status', 'refund_id', 'refund_amount', 'refund_status', 'refunded_at', 'updated_at'])
            refunded['refundAmount'] = refund.amount

    try:
        transition(booking, Booking.STATUS_CANCELLED, actor=actor, reason=reason, apply=apply)
    except GatewayError as e:
        logger.warning('cancellation of booking %s aborted, refund failed: %s', booking.pk, e)
        raise
    notifications.emit('BOOKING_CANCELLED', booking)
    if refunded:
        notifications.emit('PAYMENT_REFUNDED', booking, refunded)
    return booking


def confirm_online_payment(booking: Booking, order_id: str, payment_id: str, signature: str) -> Booking:
    """Verify a gateway payment and confirm the pending booking it pays for."""
    payment = Payment.objects.filter(booking=booking).first()
    if payment is None or payment.method != Payment.METHOD_ONLINE:
        raise ValidationError('NOT_ONLINE_BOOKING', 'This booking is not paid online')
    if payment.order_id and order_id != payment.order_id:
        raise ValidationError('ORDER_MISMATCH', 'Payment order does not belong to this booking')
    check_transition(booking.status, Booking.STATUS_CONFIRMED)
    try:
        verification = payments.verify_payment(order_id, payment_id, signature)
    except GatewayError:
        with transaction.atomic():
            Payment.objects.filter(pk=payment.pk, status=Payment.STATUS_PENDING).update(
                status=Payment.STATUS_FAILED, updated_at=timezone.now())
        notifications.emit('PAYMENT_FAILED', booking)
        raise

    def apply(b: Booking) -> None:
        locked_payment = Payment.objects.select_for_update().get(booking=b)
        locked_payment.payment_id = verification.payment_id
        locked_payment.status = Payment.STATUS_COMPLETED
        locked_payment.paid_at = timezone.now()
        locked_payment.save(update_fields=['payment_id', 'status', 'paid_at', 'updated_at'])

    transition(booking, Booking.STATUS_CONFIRMED, reason='payment verified', apply=apply)
    notifications.emit('PAYMENT_RECEIVED', booking)
    notifications.emit('BOOKING_CONFIRMED', booking)
    return booking


def record_cod_payment(booking: Booking, payment_status: str, remarks: Optional[str] = None,
                       actor: Optional[User] = None) -> Booking:
    """Hospital records the outcome of a pay-at-hospital booking.

    ``completed`` also confirms a pending booking; ``failed`` only marks
    the payment.
    """
    if payment_status not in (Payment.STATUS_COMPLETED, Payment.STATUS_FAILED):
        raise ValidationError('INVALID_PAYMENT_STATUS', 'Invalid payment status. Must be either completed or failed')
    payment = Payment.objects.filter(booking=booking).first()
    if payment is None or payment.method != Payment.METHOD_COD:
        raise ValidationError('NOT_COD_BOOKING', 'This booking is not a COD payment')
    if booking.is_terminal:
        raise TransitionError(booking.status, booking.status)
    remarks = _clean_text(remarks)[:255]

    def apply_payment(b: Booking) -> None:
        locked_payment = Payment.objects.select_for_update().get(booking=b)
        locked_payment.status = payment_status
        locked_payment.remarks = remarks
        if payment_status == Payment.STATUS_COMPLETED:
            locked_payment.paid_at = timezone.now()
        locked_payment.save(update_fields=['status', 'remarks', 'paid_at', 'updated_at'])

    if payment_status == Payment.STATUS_COMPLETED and booking.status == Booking.STATUS_PENDING:
        transition(booking, Booking.STATUS_CONFIRMED, actor=actor, reason='cash payment received', apply=apply_payment)
        notifications.emit('PAYMENT_RECEIVED', booking)
        notifications.emit('BOOKING_CONFIRMED', booking)
        return booking

    with transaction.atomic():
        locked = Booking.objects.select_for_update().get(pk=booking.pk)
        if locked.is_terminal:
            raise TransitionError(locked.status, locked.status)
        apply_payment(locked)
        log_action(user=actor, action='booking_cod_payment', object_type='booking', object_id=locked.id,
                   detail={'paymentStatus': payment_status})
    booking.refresh_from_db()
    notifications.emit('PAYMENT_RECEIVED' if payment_status == Payment.STATUS_COMPLETED else 'PAYMENT_FAILED', booking)
    return booking


def assign_doctor(booking: Booking, doctor_name: Optional[str], doctor_ref: Optional[str] = None,
                  actor: Optional[User] = None) -> Booking:
    """Hospital assigns the doctor who will see an open booking; the status is unchanged."""
    doctor_name = _clean_text(doctor_name)[:128]
    if not doctor_name:
        raise ValidationError('MISSING_DOCTOR_NAME', 'Doctor name is required')
    doctor_ref = _clean_text(doctor_ref)[:64]

    with transaction.atomic():
        locked = Booking.objects.select_for_update().get(pk=booking.pk)
        if locked.is_terminal:
            raise TransitionError(locked.status, locked.status)
        previous = locked.doctor_name
        locked.doctor_name = doctor_name
        locked.doctor_ref = doctor_ref
        locked.doctor_assigned_at = timezone.now()
        locked.save(update_fields=['doctor_name', 'doctor_ref', 'doctor_assigned_at', 'updated_at'])
        log_action(user=actor, action='booking_doctor_assigned', object_type='booking', object_id=locked.id,
                   detail={'from': previous, 'to': doctor_name, 'doctorRef': doctor_ref})
    booking.refresh_from_db()
    notifications.emit('DOCTOR_ASSIGNED', booking, {'doctorName': doctor_name})
    return booking


def expire_unpaid_bookings(now: Optional[datetime] = None) -> list[int]:
    """Cancel pending online bookings whose payment never arrived."""
    now = now or timezone.now()
    cutoff = now - timedelta(minutes=settings.BOOKING_PAYMENT_EXPIRY_MINUTES)
    stale = Booking.objects.filter(
        status=Booking.STATUS_PENDING,
        payment__method=Payment.METHOD_ONLINE,
        payment__status__in=[Payment.STATUS_PENDING, Payment.STATUS_FAILED],
        created_at__lt=cutoff,
    ).select_related('hospital', 'user')
    expired = []
    for booking in stale:
        try:
            cancel_booking(booking, reason='payment window expired')
        except TransitionError:
            # changed state since the query ran
            continue
        expired.append(booking.id)
    return expired

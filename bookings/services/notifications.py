"""
Booking notifications.

``emit`` renders the templates for an event, stores one
:class:`Notification` per recipient and pushes it to the recipient's
channel group.  It is fire-and-forget for callers: a failure is logged
and never undoes the booking change that triggered it.
"""
from __future__ import annotations

import logging
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

from bookings.models import Booking, Notification, User

logger = logging.getLogger(__name__)


def _when(booking: Booking) -> str:
    return f"{booking.appointment_day:%d-%m-%Y} {booking.time_slot}"


def _templates(booking: Booking, extra: dict) -> dict:
    hospital = booking.hospital.name
    amount = booking.payment.amount if hasattr(booking, 'payment') else 0
    return {
        'BOOKING_CREATED': {
            'user': ('Booking Created', f"Your booking with {hospital} has been created for {_when(booking)}. Token: {booking.token_number}"),
            'hospital': ('New Booking', f"New booking {booking.token_number} for {_when(booking)} from {booking.patient_name}"),
        },
        'BOOKING_CONFIRMED': {
            'user': ('Booking Confirmed', f"Your appointment at {hospital} is confirmed for {_when(booking)}. Token: {booking.token_number}"),
            'hospital': ('Booking Confirmed', f"Booking {booking.token_number} for {_when(booking)} is confirmed"),
        },
        'BOOKING_REJECTED': {
            'user': ('Booking Rejected', f"Your booking with {hospital} has been rejected. Reason: {booking.rejection_reason or 'Not specified'}"),
        },
        'BOOKING_CANCELLED': {
            'user': ('Booking Cancelled', f"Your booking at {hospital} for {_when(booking)} has been cancelled."),
            'hospital': ('Booking Cancelled', f"Booking for {booking.patient_name} on {_when(booking)} has been cancelled."),
        },
        'BOOKING_COMPLETED': {
            'user': ('Appointment Completed', f"Your appointment at {hospital} has been marked as completed"),
        },
        'PAYMENT_RECEIVED': {
            'user': ('Payment Successful', f"Payment of {amount} received for booking {booking.token_number}"),
            'hospital': ('Payment Received', f"Payment of {amount} received for booking {booking.token_number}"),
        },
        'PAYMENT_FAILED': {
            'user': ('Payment Failed', f"Payment failed for booking {booking.token_number}. Please try again."),
        },
        'PAYMENT_REFUNDED': {
            'user': ('Payment Refunded', f"Refund of {extra.get('refundAmount', amount)} initiated for booking {booking.token_number}"),
        },
        'PAYMENT_REMINDER': {
            'user': ('Payment Pending', f"Payment for booking {booking.token_number} at {hospital} is still pending"),
        },
        'APPOINTMENT_REMINDER': {
            'user': ('Appointment Reminder', f"Reminder: Your appointment at {hospital} is tomorrow at {booking.time_slot}"),
        },
        'TOKEN_UPDATED': {
            'user': ('Token Number Updated', f"Your token number for {hospital} has been updated to {booking.token_number}"),
        },
        'DOCTOR_ASSIGNED': {
            'user': ('Doctor Assigned', f"Dr. {extra.get('doctorName', booking.doctor_name)} has been assigned to your appointment at {hospital} on {_when(booking)}"),
        },
    }


def _recipients(booking: Booking, side: str) -> list[User]:
    if side == 'user':
        return [booking.user]
    return list(User.objects.filter(hospital_id=booking.hospital_id, role=User.ROLE_HOSPITAL, is_active=True))


def _push(notification: Notification) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    async_to_sync(channel_layer.group_send)(f"notifications.{notification.recipient_id}", {
        "type": "notification.message",
        "id": notification.id,
        "notificationType": notification.type,
        "title": notification.title,
        "message": notification.message,
        "bookingId": notification.booking_id,
        "createdAt": notification.created_at.isoformat(),
    })


def emit(event_type: str, booking: Booking, extra: Optional[dict] = None) -> list[Notification]:
    template = _templates(booking, extra or {}).get(event_type)
    if template is None:
        logger.warning('no notification template for %s', event_type)
        return []
    created: list[Notification] = []
    try:
        with transaction.atomic():
            for side, (title, message) in template.items():
                for recipient in _recipients(booking, side):
                    created.append(Notification.objects.create(
                        recipient=recipient,
                        hospital_id=booking.hospital_id,
                        booking=booking,
                        type=event_type,
                        title=title,
                        message=message,
                    ))
        for n in created:
            _push(n)
    except Exception:
        logger.exception('failed to deliver %s notification for booking %s', event_type, booking.pk)
    return created


def format_notification(n: Notification) -> dict:
    return {
        'id': n.id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'bookingId': n.booking_id,
        'isRead': n.is_read,
        'createdAt': n.created_at.isoformat(),
    }

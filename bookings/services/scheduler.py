"""
Periodic booking housekeeping, driven by ``manage.py booking_sweep``.

Every job is idempotent: reminders are sent at most once per booking
and expiry goes through the lifecycle, so a booking that already left
``pending`` is skipped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.utils import timezone

from bookings.models import Booking, Notification, Payment
from bookings.services import lifecycle, notifications
from bookings.services.validation import region_now

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    reminded: list[int] = field(default_factory=list)
    expired: list[int] = field(default_factory=list)
    payment_reminded: list[int] = field(default_factory=list)


def _already_sent(booking: Booking, event_type: str) -> bool:
    return Notification.objects.filter(booking=booking, type=event_type, recipient_id=booking.user_id).exists()


def send_appointment_reminders(now: Optional[datetime] = None) -> list[int]:
    """Remind patients of confirmed appointments on the next civil day."""
    tomorrow = region_now(now).date() + timedelta(days=1)
    sent = []
    qs = Booking.objects.filter(status=Booking.STATUS_CONFIRMED, appointment_day=tomorrow).select_related('hospital', 'user')
    for booking in qs:
        if _already_sent(booking, 'APPOINTMENT_REMINDER'):
            continue
        if notifications.emit('APPOINTMENT_REMINDER', booking):
            sent.append(booking.id)
    return sent


def send_payment_reminders(now: Optional[datetime] = None) -> list[int]:
    now = now or timezone.now()
    cutoff = now - timedelta(hours=settings.BOOKING_PAYMENT_REMINDER_HOURS)
    sent = []
    qs = Booking.objects.filter(
        status__in=Booking.NON_TERMINAL_STATUSES,
        payment__status=Payment.STATUS_PENDING,
        created_at__lt=cutoff,
    ).select_related('hospital', 'user', 'payment')
    for booking in qs:
        if _already_sent(booking, 'PAYMENT_REMINDER'):
            continue
        if notifications.emit('PAYMENT_REMINDER', booking):
            sent.append(booking.id)
    return sent


def run_sweep(now: Optional[datetime] = None) -> SweepResult:
    result = SweepResult()
    result.reminded = send_appointment_reminders(now)
    result.expired = lifecycle.expire_unpaid_bookings(now)
    result.payment_reminded = send_payment_reminders(now)
    logger.info('booking sweep: %d reminders, %d expired, %d payment reminders',
                len(result.reminded), len(result.expired), len(result.payment_reminded))
    return result

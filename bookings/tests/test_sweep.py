from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from bookings.models import Booking, Notification
from bookings.services import lifecycle
from bookings.services.scheduler import run_sweep, send_appointment_reminders, send_payment_reminders

from .helpers import NOW

pytestmark = pytest.mark.django_db


def test_appointment_reminders_sent_once(book):
    confirmed = book()
    lifecycle.confirm_booking(confirmed)
    pending = book(time_slot='10:00 AM')
    later = book(date='23-12-2024')
    lifecycle.confirm_booking(later)

    assert send_appointment_reminders(NOW) == [confirmed.id]
    assert send_appointment_reminders(NOW) == []
    reminders = Notification.objects.filter(type='APPOINTMENT_REMINDER')
    assert [n.booking_id for n in reminders] == [confirmed.id]
    assert pending.id not in [n.booking_id for n in reminders]


def test_payment_reminders(book):
    cod = book()
    assert send_payment_reminders(timezone.now()) == []
    assert send_payment_reminders(timezone.now() + timedelta(hours=25)) == [cod.id]
    assert send_payment_reminders(timezone.now() + timedelta(hours=25)) == []


def test_sweep_expires_unpaid_online_bookings(book, fake_order):
    online = book(payment_method='online')
    result = run_sweep(timezone.now() + timedelta(minutes=45))
    assert result.expired == [online.id]
    online.refresh_from_db()
    assert online.status == Booking.STATUS_CANCELLED
    again = run_sweep(timezone.now() + timedelta(minutes=45))
    assert again.expired == []


def test_booking_sweep_command(book):
    out = StringIO()
    call_command('booking_sweep', stdout=out)
    assert 'appointment reminders' in out.getvalue()

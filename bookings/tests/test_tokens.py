from datetime import date
from io import StringIO

import pytest
from django.core.management import call_command

from bookings.errors import ValidationError
from bookings.models import AuditEvent, Booking, DailyTokenCounter, Notification
from bookings.services import lifecycle, tokens
from bookings.services.tokens import backfill_tokens, correct_token, format_token, hospital_prefix

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize('name,prefix', [
    ('City General', 'CIT'),
    ('apollo', 'APO'),
    ('St. Mary', 'STM'),
    ('K2', 'KXX'),
    ('', 'XXX'),
])
def test_hospital_prefix(name, prefix):
    assert hospital_prefix(name) == prefix


def test_format_token():
    assert format_token('CIT', 1, False) == 'CIT001'
    assert format_token('CIT', 12, True) == 'CITE012'


def test_first_and_second_booking_of_day(book):
    first = book(time_slot='9:30 AM')
    second = book(time_slot='10:00 AM')
    assert first.token_number == 'CIT001'
    assert second.token_number == 'CIT002'


def test_emergency_token_carries_marker(book, make_hospital):
    er = make_hospital(name='Citadel Care', emergency_services=True, emergency_fee=100)
    regular = book(hospital_obj=er)
    emergency = book(hospital_obj=er, is_emergency=True, time_slot='10:00 AM')
    assert regular.token_number == 'CIT001'
    assert emergency.token_number == 'CITE002'


def test_sequence_restarts_per_day_and_hospital(book, make_hospital):
    other = make_hospital(name='Apollo Clinic')
    a = book(date='21-12-2024')
    b = book(date='22-12-2024')
    c = book(hospital_obj=other, date='21-12-2024')
    assert (a.token_number, b.token_number, c.token_number) == ('CIT001', 'CIT001', 'APO001')


def test_cancelled_booking_number_is_not_reused(book):
    first = book()
    lifecycle.cancel_booking(first)
    second = book()
    assert second.token_number == 'CIT002'


def test_counter_starts_after_existing_sequences(book, hospital):
    book()
    DailyTokenCounter.objects.all().delete()
    assert book(time_slot='10:00 AM').token_number == 'CIT002'


def test_correct_token(book, admin_user):
    booking = book()
    correct_token(booking, 'cit007', actor=admin_user)
    booking.refresh_from_db()
    assert booking.token_number == 'CIT007'
    assert booking.sequence == 7
    assert DailyTokenCounter.objects.get(hospital=booking.hospital, day=date(2024, 12, 21)).last_sequence == 7
    assert AuditEvent.objects.filter(action='booking_token_corrected', object_id=booking.id).exists()
    assert Notification.objects.filter(booking=booking, type='TOKEN_UPDATED', recipient=booking.user).exists()
    # the next booking continues after the corrected number
    assert book(time_slot='10:00 AM').token_number == 'CIT008'


def test_correct_token_locks_counter_before_booking(book, admin_user, monkeypatch):
    booking = book()
    order = []
    real_lock = tokens.lock_day_counter
    real_select_for_update = Booking.objects.select_for_update

    def lock_counter(hospital, day):
        order.append('counter')
        return real_lock(hospital, day)

    def select_for_update(*args, **kwargs):
        order.append('booking')
        return real_select_for_update(*args, **kwargs)

    monkeypatch.setattr(tokens, 'lock_day_counter', lock_counter)
    monkeypatch.setattr(Booking.objects, 'select_for_update', select_for_update)
    correct_token(booking, 'CIT004', actor=admin_user)
    assert order == ['counter', 'booking']


@pytest.mark.parametrize('token', ['CIT01', 'CI001', 'CIT000', 'APO002', 'CITE002', '42'])
def test_correct_token_rejects_malformed(book, token):
    booking = book()
    with pytest.raises(ValidationError) as exc:
        correct_token(booking, token)
    assert exc.value.code == 'INVALID_TOKEN_FORMAT'
    booking.refresh_from_db()
    assert booking.token_number == 'CIT001'


def test_correct_token_rejects_duplicate(book):
    first = book()
    book(time_slot='10:00 AM')
    with pytest.raises(ValidationError) as exc:
        correct_token(first, 'CIT002')
    assert exc.value.code == 'DUPLICATE_TOKEN'


def _legacy(booking, token, sequence=None):
    Booking.objects.filter(pk=booking.pk).update(token_number=token, sequence=sequence)


def test_backfill_is_idempotent(book):
    a = book(time_slot='9:00 AM')
    b = book(time_slot='9:30 AM')
    c = book(time_slot='10:00 AM')
    _legacy(a, '1')
    _legacy(b, '')
    _legacy(c, 'CIT003', None)

    changes = backfill_tokens()
    assert {booking_id for booking_id, _, _ in changes} == {a.id, b.id, c.id}
    numbers = dict(Booking.objects.values_list('id', 'token_number'))
    assert numbers[c.id] == 'CIT003'
    assert sorted([numbers[a.id], numbers[b.id]]) == ['CIT004', 'CIT005']
    assert len(set(numbers.values())) == 3

    assert backfill_tokens() == []
    assert dict(Booking.objects.values_list('id', 'token_number')) == numbers


def test_backfill_dry_run_changes_nothing(book):
    a = book()
    _legacy(a, '7')
    out = StringIO()
    call_command('backfill_tokens', '--dry-run', stdout=out)
    assert 'Would update 1 bookings' in out.getvalue()
    a.refresh_from_db()
    assert a.token_number == '7'

    call_command('backfill_tokens', stdout=StringIO())
    a.refresh_from_db()
    assert a.token_number == 'CIT002'

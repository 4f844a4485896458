"""
Token numbers.

A token is the hospital prefix (first three letters of its name,
upper-cased), an ``E`` for emergency bookings and a three digit
sequence, e.g. ``CIT001`` or ``CITE002``.  Sequences come from
:class:`DailyTokenCounter`, one row per hospital and civil day, so they
follow creation order and are never reused within that day.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from bookings.errors import ValidationError
from bookings.models import Booking, DailyTokenCounter, Hospital, User
from bookings.services import notifications
from bookings.services.audit import log_action

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r'^([A-Z]{3})(E?)(\d{3})$')
EMERGENCY_MARKER = 'E'


def hospital_prefix(name: str) -> str:
    letters = [c for c in (name or '') if c.isascii() and c.isalpha()]
    return ''.join(letters[:3]).upper().ljust(3, 'X')


def format_token(prefix: str, sequence: int, is_emergency: bool) -> str:
    marker = EMERGENCY_MARKER if is_emergency else ''
    return f"{prefix}{marker}{sequence:03d}"


def lock_day_counter(hospital: Hospital, day: date) -> DailyTokenCounter:
    """Fetch and row-lock the counter for ``hospital`` on ``day``.

    Must run inside ``transaction.atomic()``.  Concurrent first bookings
    of a day may both try to create the row; the loser of the unique
    constraint simply reads the winner's row.  A new row starts after the
    highest sequence already stored for that day.
    """
    if not DailyTokenCounter.objects.filter(hospital=hospital, day=day).exists():
        issued = (
            Booking.objects.filter(hospital=hospital, appointment_day=day)
            .aggregate(m=Max('sequence'))['m']
        )
        try:
            with transaction.atomic():
                DailyTokenCounter.objects.create(hospital=hospital, day=day, last_sequence=issued or 0)
        except IntegrityError:
            pass
    return DailyTokenCounter.objects.select_for_update().get(hospital=hospital, day=day)


def allocate_token(counter: DailyTokenCounter, hospital: Hospital, is_emergency: bool) -> tuple[str, int]:
    """Issue the next token from a counter locked by :func:`lock_day_counter`."""
    counter.last_sequence += 1
    counter.save(update_fields=['last_sequence'])
    sequence = counter.last_sequence
    return format_token(hospital_prefix(hospital.name), sequence, is_emergency), sequence


def correct_token(booking: Booking, token_number: str, actor: Optional[User] = None) -> Booking:
    """Administrative override of a booking's token.

    The new token must use the hospital's prefix and keep the booking's
    emergency marker, and its sequence must not be taken by another
    booking of the same hospital and day.
    """
    token_number = (token_number or '').strip().upper()
    m = TOKEN_RE.match(token_number)
    if not m:
        raise ValidationError('INVALID_TOKEN_FORMAT', 'Token must look like ABC001 or ABCE001')
    prefix, marker, digits = m.groups()
    sequence = int(digits)
    if sequence == 0:
        raise ValidationError('INVALID_TOKEN_FORMAT', 'Token sequence starts at 001')

    with transaction.atomic():
        # counter before booking row, the same order as backfill_tokens
        current = Booking.objects.select_related('hospital').get(pk=booking.pk)
        counter = lock_day_counter(current.hospital, current.appointment_day)
        locked = Booking.objects.select_for_update().select_related('hospital').get(pk=booking.pk)
        if prefix != hospital_prefix(locked.hospital.name):
            raise ValidationError('INVALID_TOKEN_FORMAT', f'Token prefix must be {hospital_prefix(locked.hospital.name)}')
        if bool(marker) != locked.is_emergency:
            raise ValidationError('INVALID_TOKEN_FORMAT', 'Emergency marker must match the booking')
        clash = (
            Booking.objects.filter(hospital=locked.hospital, appointment_day=locked.appointment_day, sequence=sequence)
            .exclude(pk=locked.pk)
            .exists()
        )
        if clash:
            raise ValidationError('DUPLICATE_TOKEN', f'Token {token_number} is already used on this day')
        old_token = locked.token_number
        locked.token_number = token_number
        locked.sequence = sequence
        locked.save(update_fields=['token_number', 'sequence', 'updated_at'])
        if sequence > counter.last_sequence:
            counter.last_sequence = sequence
            counter.save(update_fields=['last_sequence'])
        log_action(user=actor, action='booking_token_corrected', object_type='booking', object_id=locked.id,
                   detail={'from': old_token, 'to': token_number, 'at': timezone.now().isoformat()})

    logger.info('booking %s token corrected %s -> %s', locked.id, old_token, token_number)
    notifications.emit('TOKEN_UPDATED', locked)
    return locked


def needs_backfill(booking: Booking) -> bool:
    m = TOKEN_RE.match(booking.token_number or '')
    return m is None or booking.sequence != int(m.group(3))


def _reusable_sequence(booking: Booking, prefix: str, used: set) -> Optional[int]:
    m = TOKEN_RE.match(booking.token_number or '')
    if not m or m.group(1) != prefix or bool(m.group(2)) != booking.is_emergency:
        return None
    sequence = int(m.group(3))
    if not sequence or sequence in used:
        return None
    return sequence


def backfill_tokens(dry_run: bool = False) -> list[tuple[int, str, str]]:
    """Assign well-formed tokens to bookings stored with empty or legacy tokens.

    Bookings are processed per hospital and day in creation order.  A
    booking whose token is already well formed keeps it and only gets its
    ``sequence`` filled in; the others get the next free sequence of
    their day.  Counters are raised to the highest sequence in use.
    Returns ``(booking_id, old_token, new_token)`` for every booking
    changed, so a second run returns an empty list.
    """
    changes: list[tuple[int, str, str]] = []
    days = list(Booking.objects.order_by().values_list('hospital_id', 'appointment_day').distinct())
    for hospital_id, day in days:
        with transaction.atomic():
            hospital = Hospital.objects.get(pk=hospital_id)
            prefix = hospital_prefix(hospital.name)
            counter = lock_day_counter(hospital, day)
            bookings = list(
                Booking.objects.select_for_update()
                .filter(hospital=hospital, appointment_day=day)
                .order_by('created_at', 'id')
            )
            pending = [b for b in bookings if needs_backfill(b)]
            if not pending:
                continue
            used = {b.sequence for b in bookings if not needs_backfill(b)}
            # free stale sequences so reassignment cannot hit the per-day unique constraint
            Booking.objects.filter(pk__in=[b.pk for b in pending]).update(sequence=None)

            renumber = []
            for b in pending:
                old = b.token_number
                sequence = _reusable_sequence(b, prefix, used)
                if sequence is None:
                    renumber.append(b)
                    continue
                b.sequence = sequence
                used.add(sequence)
                changes.append((b.id, old, b.token_number))
            next_seq = max(used | {counter.last_sequence})
            for b in renumber:
                old = b.token_number
                next_seq += 1
                b.sequence = next_seq
                b.token_number = format_token(prefix, next_seq, b.is_emergency)
                used.add(next_seq)
                changes.append((b.id, old, b.token_number))
            for b in pending:
                b.save(update_fields=['sequence', 'token_number'])
            if max(used) > counter.last_sequence:
                counter.last_sequence = max(used)
                counter.save(update_fields=['last_sequence'])
            if dry_run:
                transaction.set_rollback(True)
    for booking_id, old, new in changes:
        logger.info('booking %s token backfilled %r -> %r%s', booking_id, old, new, ' (dry run)' if dry_run else '')
    return changes

"""
Slot capacity model.

A hospital's day is cut into slot buckets of ``slot_duration`` minutes
starting at the weekday's opening time.  Each bucket admits
``patients_per_slot`` non-terminal bookings; the whole day admits the
smaller of ``total_daily_slots * patients_per_slot`` and
``max_op_bookings_per_day``.

:func:`ensure_capacity` only reads counts.  It is race free because the
orchestrator calls it while holding the (hospital, day) token counter
row lock, in the same transaction that inserts the booking.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional

from bookings.errors import CapacityError, ValidationError
from bookings.models import Booking, Hospital, HospitalTiming, WEEKDAYS
from bookings.services.validation import region_tz

WEEKDAY_NAMES = [code for code, _ in WEEKDAYS]


def timing_for_day(hospital: Hospital, day: date) -> Optional[HospitalTiming]:
    name = WEEKDAY_NAMES[day.weekday()]
    # iterate so a prefetch_related('timings') cache is honoured
    for timing in hospital.timings.all():
        if timing.day == name:
            return timing
    return None


def total_daily_slots(timing: Optional[HospitalTiming], slot_duration: int) -> int:
    if timing is None:
        return 0
    return timing.window_minutes() // slot_duration


def daily_capacity(hospital: Hospital, day: date) -> int:
    slots = total_daily_slots(timing_for_day(hospital, day), hospital.slot_duration)
    return min(slots * hospital.patients_per_slot, hospital.max_op_bookings_per_day)


def count_non_terminal(hospital: Hospital, day: date, slot_start: Optional[datetime] = None) -> int:
    qs = Booking.objects.filter(
        hospital=hospital,
        appointment_day=day,
        status__in=Booking.NON_TERMINAL_STATUSES,
    )
    if slot_start is not None:
        qs = qs.filter(slot_start=slot_start)
    return qs.count()


def remaining_capacity(hospital: Hospital, day: date) -> int:
    return max(0, daily_capacity(hospital, day) - count_non_terminal(hospital, day))


def slot_bucket(hospital: Hospital, day: date, time_of_day: time) -> datetime:
    """Return the aware start of the slot bucket containing ``time_of_day``."""
    timing = timing_for_day(hospital, day)
    slots = total_daily_slots(timing, hospital.slot_duration)
    if not slots:
        raise ValidationError('OUTSIDE_OPERATING_HOURS', 'The hospital is closed on the selected day.')
    opens = timing.open_time.hour * 60 + timing.open_time.minute
    offset = time_of_day.hour * 60 + time_of_day.minute - opens
    index = offset // hospital.slot_duration
    if offset < 0 or index >= slots:
        raise ValidationError(
            'OUTSIDE_OPERATING_HOURS',
            f'Please choose a time between {timing.open_time:%H:%M} and {timing.close_time:%H:%M}.',
        )
    start = datetime.combine(day, timing.open_time, tzinfo=region_tz())
    return start + timedelta(minutes=index * hospital.slot_duration)


def ensure_capacity(hospital: Hospital, day: date, slot_start: datetime) -> None:
    """Raise :class:`CapacityError` unless one more booking fits the slot and the day."""
    in_slot = count_non_terminal(hospital, day, slot_start)
    if in_slot >= hospital.patients_per_slot:
        raise CapacityError('SLOT_FULL', 'This time slot is fully booked. Please choose another slot.')
    if count_non_terminal(hospital, day) >= daily_capacity(hospital, day):
        raise CapacityError('DAILY_LIMIT_REACHED', 'No more bookings are available for this day.')

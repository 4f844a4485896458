"""
Booking request validation.

Dates arrive as ``DD-MM-YYYY`` and times as ``H:MM AM|PM``.  The
combined instant is interpreted at the fixed civil offset of the
operating region (``settings.BOOKING_TZ_OFFSET_MINUTES``), never in the
server's local time, and must lie strictly in the future.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Optional

from django.conf import settings
from django.utils import timezone

from bookings.errors import ValidationError
from bookings.models import Hospital

DATE_RE = re.compile(r'^(0[1-9]|[12][0-9]|3[01])-(0[1-9]|1[0-2])-\d{4}$')
TIME_RE = re.compile(r'^(0?[1-9]|1[0-2]):([0-5][0-9]) (AM|PM)$')


@dataclass(frozen=True)
class AppointmentRequest:
    instant: datetime
    day: date
    time_of_day: time
    time_slot: str


def region_tz() -> dt_timezone:
    return dt_timezone(timedelta(minutes=settings.BOOKING_TZ_OFFSET_MINUTES))


def region_now(now: Optional[datetime] = None) -> datetime:
    return (now or timezone.now()).astimezone(region_tz())


def region_day(instant: datetime) -> date:
    return instant.astimezone(region_tz()).date()


def parse_date(value: str) -> date:
    value = (value or '').strip()
    if not DATE_RE.match(value):
        raise ValidationError('INVALID_DATE_FORMAT', 'Please enter date in DD-MM-YYYY format (e.g., 25-12-2024)')
    day, month, year = (int(p) for p in value.split('-'))
    try:
        return date(year, month, day)
    except ValueError:
        raise ValidationError('INVALID_DATE_FORMAT', f'{value} is not a valid calendar date')


def parse_time_slot(value: str) -> time:
    m = TIME_RE.match((value or '').strip())
    if not m:
        raise ValidationError('INVALID_TIME_FORMAT', 'Please enter time in HH:MM AM/PM format (e.g., 09:30 AM)')
    hours, minutes, period = int(m.group(1)), int(m.group(2)), m.group(3)
    if period == 'PM' and hours != 12:
        hours += 12
    elif period == 'AM' and hours == 12:
        hours = 0
    return time(hours, minutes)


def format_time_slot(value: time) -> str:
    hours = value.hour % 12 or 12
    period = 'PM' if value.hour >= 12 else 'AM'
    return f"{hours}:{value.minute:02d} {period}"


def build_appointment(date_str: str, time_str: str, now: Optional[datetime] = None) -> AppointmentRequest:
    """Parse and combine date and time; reject anything not strictly in the future."""
    day = parse_date(date_str)
    tod = parse_time_slot(time_str)
    instant = datetime.combine(day, tod, tzinfo=region_tz())
    if instant <= region_now(now):
        raise ValidationError(
            'PAST_APPOINTMENT',
            'Cannot book appointments for past date and time. Please select a future time slot.',
        )
    return AppointmentRequest(instant=instant, day=day, time_of_day=tod, time_slot=time_str.strip())


def validate_hospital(hospital: Optional[Hospital], is_emergency: bool) -> Hospital:
    if hospital is None or hospital.status != Hospital.STATUS_APPROVED or not hospital.is_open:
        raise ValidationError(
            'HOSPITAL_UNAVAILABLE',
            'This hospital is currently not accepting bookings. Please try another hospital.',
        )
    if is_emergency and not hospital.emergency_services:
        raise ValidationError(
            'NO_EMERGENCY_SERVICE',
            'This hospital does not provide emergency services. Please select a hospital that offers emergency care.',
        )
    return hospital


def validate_booking_request(date_str: str, time_str: str, hospital: Optional[Hospital], is_emergency: bool,
                             now: Optional[datetime] = None) -> AppointmentRequest:
    """Check a booking request against a hospital snapshot.

    Format errors are reported before the time check, and the time check
    before hospital availability.  No database access happens here.
    """
    appointment = build_appointment(date_str, time_str, now=now)
    validate_hospital(hospital, bool(is_emergency))
    return appointment

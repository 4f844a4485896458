from datetime import datetime, time, timedelta, timezone as dt_timezone

from rest_framework.test import APIClient

from bookings.services.validation import region_now

# 20-12-2024 10:00 AM at +05:30
NOW = datetime(2024, 12, 20, 4, 30, tzinfo=dt_timezone.utc)
TOMORROW = '21-12-2024'


def future_date(days=2) -> str:
    return (region_now() + timedelta(days=days)).strftime('%d-%m-%Y')


def slot_times(count, start=time(9, 0), minutes=30) -> list[str]:
    base = datetime.combine(datetime(2024, 1, 1).date(), start)
    out = []
    for i in range(count):
        t = (base + timedelta(minutes=minutes * i)).time()
        hours = t.hour % 12 or 12
        out.append(f"{hours}:{t.minute:02d} {'PM' if t.hour >= 12 else 'AM'}")
    return out


def client_for(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client

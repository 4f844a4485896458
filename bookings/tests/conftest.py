from datetime import time

import pytest
from django.core.cache import cache

from bookings.models import Hospital, HospitalTiming, User, WEEKDAYS
from bookings.services import booking as booking_service
from bookings.services import payments
from bookings.services.payments import PaymentOrder

from .helpers import NOW, TOMORROW


@pytest.fixture(autouse=True)
def _clear_throttle_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_hospital(db):
    def make(name='City General', open_time=time(9, 0), close_time=time(18, 0), **kwargs):
        defaults = dict(
            registration_number=f'REG-{Hospital.objects.count() + 1}-{name[:3]}',
            status=Hospital.STATUS_APPROVED,
            is_open=True,
            emergency_services=False,
            platform_fee=30,
            tax_rate='0.18',
            slot_duration=30,
            patients_per_slot=2,
            max_op_bookings_per_day=50,
        )
        defaults.update(kwargs)
        hospital = Hospital.objects.create(name=name, **defaults)
        for day, _ in WEEKDAYS:
            HospitalTiming.objects.create(hospital=hospital, day=day, open_time=open_time, close_time=close_time)
        return hospital
    return make


@pytest.fixture
def hospital(make_hospital):
    return make_hospital()


@pytest.fixture
def patient(db):
    return User.objects.create_user(username='patient1', password='P@ssw0rd1', role=User.ROLE_PATIENT)


@pytest.fixture
def operator(db, hospital):
    return User.objects.create_user(username='operator1', password='P@ssw0rd1', role=User.ROLE_HOSPITAL,
                                    hospital=hospital)


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='admin1', password='P@ssw0rd1', role=User.ROLE_ADMIN)


@pytest.fixture
def fake_order(monkeypatch):
    """Gateway order creation that always succeeds; returns the list of calls."""
    calls = []

    def create_order(booking_id, amount):
        calls.append((booking_id, amount))
        return PaymentOrder(order_id=f'order_{booking_id}', amount=amount, currency='INR')

    monkeypatch.setattr(payments, 'create_order', create_order)
    return calls


@pytest.fixture
def book(patient, hospital):
    """Create a booking through the orchestrator with sensible defaults."""
    def make(user=None, hospital_obj=None, date=TOMORROW, time_slot='9:30 AM', payment_method='cod', now=NOW, **kwargs):
        kwargs.setdefault('patient_name', 'Asha Rao')
        return booking_service.create_booking(
            user or patient,
            hospital_id=(hospital_obj or hospital).id,
            appointment_date=date,
            time_slot=time_slot,
            payment_method=payment_method,
            now=now,
            **kwargs,
        )
    return make


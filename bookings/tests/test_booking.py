from datetime import date, datetime, timezone as dt_timezone

import pytest

from bookings.errors import GatewayError, ValidationError
from bookings.models import Booking, DailyTokenCounter, Notification, Payment, User
from bookings.services import payments
from bookings.services.booking import format_booking

pytestmark = pytest.mark.django_db


def test_cod_booking_is_created_pending(book, operator):
    booking = book(patient_age=34, patient_gender='female', health_issue='<b>fever</b>')
    assert booking.status == Booking.STATUS_PENDING
    assert booking.appointment_day == date(2024, 12, 21)
    assert booking.appointment_date == datetime(2024, 12, 21, 4, 0, tzinfo=dt_timezone.utc)
    assert booking.slot_start == datetime(2024, 12, 21, 4, 0, tzinfo=dt_timezone.utc)
    assert booking.time_slot == '9:30 AM'
    payment = booking.payment
    assert payment.method == Payment.METHOD_COD
    assert payment.status == Payment.STATUS_PENDING
    assert (payment.platform_fee, payment.emergency_fee, payment.tax, payment.total) == (30, 0, 5, 35)
    assert payment.amount == 35
    assert payment.order_id == ''
    recipients = set(Notification.objects.filter(booking=booking, type='BOOKING_CREATED').values_list('recipient', flat=True))
    assert recipients == {booking.user_id, operator.id}


def test_online_booking_gets_gateway_order(book, fake_order):
    booking = book(payment_method='online')
    assert fake_order == [(booking.id, 35)]
    assert booking.payment.order_id == f'order_{booking.id}'
    assert booking.status == Booking.STATUS_PENDING


def test_gateway_order_failure_removes_booking(book, hospital, monkeypatch):
    def create_order(booking_id, amount):
        raise GatewayError('GATEWAY_ORDER_FAILED', 'Failed to create payment order')

    monkeypatch.setattr(payments, 'create_order', create_order)
    with pytest.raises(GatewayError) as exc:
        book(payment_method='online')
    assert exc.value.code == 'GATEWAY_ORDER_FAILED'
    assert not Booking.objects.exists()
    assert not Payment.objects.exists()
    assert not Notification.objects.exists()
    # the removed booking's number is left as a gap
    assert DailyTokenCounter.objects.get(hospital=hospital).last_sequence == 1
    assert book().token_number == 'CIT002'


def test_malformed_gateway_reply_removes_booking(book, settings, monkeypatch):
    settings.RAZORPAY_KEY_ID = 'rzp_test_key'
    settings.RAZORPAY_KEY_SECRET = 'secret'

    class ListReply:
        status_code = 200

        def raise_for_status(self):
            pass

        def json(self):
            return [{'id': 'order_1'}]

    monkeypatch.setattr(payments.requests, 'request', lambda method, url, **kwargs: ListReply())
    with pytest.raises(GatewayError) as exc:
        book(payment_method='online')
    assert exc.value.code == 'GATEWAY_ORDER_FAILED'
    assert not Booking.objects.exists()
    assert not Payment.objects.exists()


def test_emergency_booking_fee(book, make_hospital):
    er = make_hospital(name='Apollo Emergency', emergency_services=True, emergency_fee=100)
    booking = book(hospital_obj=er, is_emergency=True)
    assert booking.is_emergency
    assert booking.token_number == 'APOE001'
    assert booking.payment.total == 30 + 100 + 23


def test_no_emergency_service(book):
    with pytest.raises(ValidationError) as exc:
        book(is_emergency=True)
    assert exc.value.code == 'NO_EMERGENCY_SERVICE'
    assert not Booking.objects.exists()


@pytest.mark.parametrize('hospital_kwargs', [
    {'status': 'pending'},
    {'is_open': False},
])
def test_unavailable_hospital(book, make_hospital, hospital_kwargs):
    h = make_hospital(name='Closed Clinic', **hospital_kwargs)
    with pytest.raises(ValidationError) as exc:
        book(hospital_obj=h)
    assert exc.value.code == 'HOSPITAL_UNAVAILABLE'


def test_invalid_payment_method(book):
    with pytest.raises(ValidationError) as exc:
        book(payment_method='card')
    assert exc.value.code == 'INVALID_PAYMENT_METHOD'


def test_past_appointment_is_rejected(book):
    with pytest.raises(ValidationError) as exc:
        book(date='19-12-2024')
    assert exc.value.code == 'PAST_APPOINTMENT'


def test_patient_name_required(book):
    with pytest.raises(ValidationError) as exc:
        book(patient_name='  ')
    assert exc.value.code == 'MISSING_PATIENT_DETAILS'


def test_format_booking(book):
    booking = book(patient_name='Asha <span>Rao</span>')
    data = format_booking(booking, with_history=True)
    assert data['tokenNumber'] == 'CIT001'
    assert data['appointmentDay'] == '21-12-2024'
    assert data['timeSlot'] == '9:30 AM'
    assert data['patientDetails']['name'] == 'Asha Rao'
    assert data['payment']['feeBreakdown'] == {'platformFee': 30, 'emergencyFee': 0, 'tax': 5, 'total': 35, 'strategy': 'flat_v1'}
    assert data['payment']['refund'] is None
    assert data['transitionHistory'] == []


def test_other_patients_bookings_are_independent(book, patient):
    other = User.objects.create_user(username='patient2', password='P@ssw0rd1', role=User.ROLE_PATIENT)
    mine = book()
    theirs = book(user=other)
    assert mine.user == patient
    assert theirs.user == other
    assert theirs.token_number == 'CIT002'

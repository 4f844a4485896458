"""
Integration tests for the booking API.

These tests exercise the HTTP surface end to end: role based access,
the error envelope, booking creation, hospital status updates, COD
payments, token correction and notifications.
"""
from datetime import time

import pytest
from rest_framework import status
from rest_framework.test import APITestCase

from ..errors import GatewayError
from ..models import Booking, Hospital, HospitalTiming, Notification, Payment, User, WEEKDAYS
from ..services import payments
from ..services.payments import PaymentOrder, PaymentVerification
from .helpers import client_for, future_date


def create_hospital(name='City General', **kwargs):
    defaults = dict(
        registration_number=f'REG-{name}',
        status=Hospital.STATUS_APPROVED,
        platform_fee=30,
        patients_per_slot=2,
        slot_duration=30,
    )
    defaults.update(kwargs)
    hospital = Hospital.objects.create(name=name, **defaults)
    for day, _ in WEEKDAYS:
        HospitalTiming.objects.create(hospital=hospital, day=day, open_time=time(9, 0), close_time=time(18, 0))
    return hospital


def booking_payload(hospital, **kwargs):
    payload = {
        'hospitalId': hospital.id,
        'appointmentDate': future_date(),
        'timeSlot': '10:30 AM',
        'paymentMethod': 'cod',
        'patientDetails': {'name': 'Ravi Kumar', 'age': 41, 'gender': 'male', 'mobile': '9876543210'},
    }
    payload.update(kwargs)
    return payload


class BookingAPITests(APITestCase):
    def setUp(self) -> None:
        self.hospital = create_hospital()
        self.other_hospital = create_hospital(name='Apollo Clinic')
        self.patient = User.objects.create_user(username='patient1', password='P@ssw0rd1', role='patient')
        self.other_patient = User.objects.create_user(username='patient2', password='P@ssw0rd1', role='patient')
        self.operator = User.objects.create_user(username='op1', password='P@ssw0rd1', role='hospital', hospital=self.hospital)
        self.other_operator = User.objects.create_user(username='op2', password='P@ssw0rd1', role='hospital',
                                                       hospital=self.other_hospital)
        self.admin = User.objects.create_user(username='admin1', password='P@ssw0rd1', role='admin')

    def create_booking(self, user=None, **kwargs):
        response = client_for(user or self.patient).post(
            '/api/bookings/create', booking_payload(self.hospital, **kwargs), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data['data']

    def test_healthz(self):
        response = self.client.get('/healthz')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['ok'])

    def test_hospital_list_shows_fee_preview_and_capacity(self):
        Hospital.objects.filter(pk=self.other_hospital.pk).update(status=Hospital.STATUS_PENDING)
        response = self.client.get('/api/hospitals')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([h['id'] for h in response.data['data']], [self.hospital.id])
        data = response.data['data'][0]
        self.assertEqual(data['feePreview']['total'], 35)
        self.assertEqual(data['today']['capacity'], 36)

    def test_hospital_detail_not_found(self):
        response = self.client.get('/api/hospitals/detail', {'id': 999})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['code'], 'HOSPITAL_NOT_FOUND')

    def test_patient_creates_cod_booking(self):
        data = self.create_booking()
        self.assertEqual(data['tokenNumber'], 'CIT001')
        self.assertEqual(data['status'], 'pending')
        self.assertEqual(data['payment']['method'], 'cod')
        self.assertEqual(data['payment']['feeBreakdown']['total'], 35)
        self.assertEqual(data['patientDetails']['name'], 'Ravi Kumar')

    def test_create_requires_patient_role(self):
        response = client_for(self.operator).post('/api/bookings/create', booking_payload(self.hospital), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.data['ok'])
        self.assertEqual(self.client.post('/api/bookings/create', booking_payload(self.hospital), format='json').status_code,
                         status.HTTP_401_UNAUTHORIZED)

    def test_validation_error_envelope(self):
        response = client_for(self.patient).post(
            '/api/bookings/create', booking_payload(self.hospital, appointmentDate='2030/01/01'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'ok': False, 'error': {
            'code': 'INVALID_DATE_FORMAT',
            'message': 'Please enter date in DD-MM-YYYY format (e.g., 25-12-2024)',
        }})

    def test_no_emergency_service(self):
        response = client_for(self.patient).post(
            '/api/bookings/create', booking_payload(self.hospital, isEmergency=True), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'NO_EMERGENCY_SERVICE')

    def test_slot_full_is_conflict(self):
        self.create_booking()
        self.create_booking()
        response = client_for(self.patient).post('/api/bookings/create', booking_payload(self.hospital), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'SLOT_FULL')

    def test_my_bookings_only_lists_own(self):
        self.create_booking()
        self.create_booking(user=self.other_patient)
        response = client_for(self.patient).get('/api/bookings/my')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['data'][0]['tokenNumber'], 'CIT001')

    def test_booking_detail_visibility(self):
        booking = self.create_booking()
        self.assertEqual(client_for(self.patient).get('/api/bookings/detail', {'id': booking['id']}).status_code, 200)
        self.assertEqual(client_for(self.operator).get('/api/bookings/detail', {'id': booking['id']}).status_code, 200)
        self.assertEqual(client_for(self.admin).get('/api/bookings/detail', {'id': booking['id']}).status_code, 200)
        for user in (self.other_patient, self.other_operator):
            response = client_for(user).get('/api/bookings/detail', {'id': booking['id']})
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
            self.assertEqual(response.data['error']['code'], 'BOOKING_NOT_FOUND')

    def test_operator_lists_and_confirms(self):
        booking = self.create_booking()
        client = client_for(self.operator)
        response = client.get('/api/hospital/bookings', {'status': 'pending'})
        self.assertEqual([b['id'] for b in response.data['data']], [booking['id']])
        response = client.post('/api/hospital/bookings/update-status',
                               {'bookingId': booking['id'], 'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'confirmed')
        detail = client.get('/api/bookings/detail', {'id': booking['id']}).data['data']
        self.assertEqual(detail['transitionHistory'][0]['operator'], 'op1')

    def test_operator_cannot_touch_other_hospital(self):
        booking = self.create_booking()
        response = client_for(self.other_operator).post(
            '/api/hospital/bookings/update-status', {'bookingId': booking['id'], 'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(Booking.objects.get(pk=booking['id']).status, 'pending')

    def test_reject_without_reason(self):
        booking = self.create_booking()
        response = client_for(self.operator).post(
            '/api/hospital/bookings/update-status', {'bookingId': booking['id'], 'status': 'rejected'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'MISSING_REJECTION_REASON')

    def test_reject_then_confirm_is_illegal(self):
        booking = self.create_booking()
        client = client_for(self.operator)
        response = client.post('/api/hospital/bookings/update-status',
                               {'bookingId': booking['id'], 'status': 'rejected', 'rejectionReason': 'Doctor unavailable'},
                               format='json')
        self.assertEqual(response.data['data']['rejectionReason'], 'Doctor unavailable')
        response = client.post('/api/hospital/bookings/update-status',
                               {'bookingId': booking['id'], 'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'ILLEGAL_TRANSITION')

    def test_cod_payment_confirms(self):
        booking = self.create_booking()
        response = client_for(self.operator).post(
            '/api/hospital/bookings/cod-payment',
            {'bookingId': booking['id'], 'paymentStatus': 'completed', 'remarks': 'paid cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'confirmed')
        self.assertEqual(response.data['data']['payment']['status'], 'completed')

    def test_operator_assigns_doctor(self):
        booking = self.create_booking()
        payload = {'bookingId': booking['id'], 'doctorName': 'Meera Iyer', 'doctorId': 'DOC-17'}
        response = client_for(self.other_operator).post('/api/hospital/bookings/assign-doctor', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = client_for(self.patient).post('/api/hospital/bookings/assign-doctor', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = client_for(self.operator).post('/api/hospital/bookings/assign-doctor', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['doctorName'], 'Meera Iyer')
        self.assertEqual(response.data['data']['doctorId'], 'DOC-17')
        self.assertEqual(response.data['data']['status'], 'pending')
        self.assertTrue(Notification.objects.filter(booking_id=booking['id'], type='DOCTOR_ASSIGNED',
                                                    recipient=self.patient).exists())

    def test_patient_cancels_own_booking_only(self):
        booking = self.create_booking()
        response = client_for(self.other_patient).post('/api/bookings/cancel', {'bookingId': booking['id']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = client_for(self.patient).post('/api/bookings/cancel', {'bookingId': booking['id']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'cancelled')

    def test_admin_token_correction(self):
        booking = self.create_booking()
        response = client_for(self.patient).post('/api/admin/bookings/token',
                                                  {'bookingId': booking['id'], 'tokenNumber': 'CIT005'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = client_for(self.admin).post('/api/admin/bookings/token',
                                               {'bookingId': booking['id'], 'tokenNumber': 'CIT005'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['tokenNumber'], 'CIT005')

    def test_admin_pending_payments(self):
        booking = self.create_booking()
        response = client_for(self.admin).get('/api/admin/bookings/pending-payments')
        self.assertEqual([b['id'] for b in response.data['data']], [booking['id']])

    def test_notifications_list_and_read(self):
        self.create_booking()
        client = client_for(self.patient)
        response = client.get('/api/notifications')
        self.assertEqual(response.data['unread'], 1)
        self.assertEqual(response.data['data'][0]['type'], 'BOOKING_CREATED')
        response = client.post('/api/notifications/read', {'all': True}, format='json')
        self.assertEqual(response.data['updated'], 1)
        self.assertEqual(Notification.objects.filter(recipient=self.patient, is_read=False).count(), 0)
        # operators got their own copy
        self.assertEqual(Notification.objects.filter(recipient=self.operator).count(), 1)


@pytest.fixture
def api_setup(db):
    hospital = create_hospital()
    patient = User.objects.create_user(username='patient1', password='P@ssw0rd1', role='patient')
    return hospital, patient


def test_online_booking_and_payment_flow(api_setup, monkeypatch):
    hospital, patient = api_setup
    monkeypatch.setattr(payments, 'create_order', lambda booking_id, amount: PaymentOrder(
        order_id='order_abc', amount=amount, currency='INR'))
    monkeypatch.setattr(payments, 'verify_payment', lambda o, p, s: PaymentVerification(
        payment_id=p, order_id=o, amount=35, status='captured'))
    client = client_for(patient)
    r = client.post('/api/bookings/create', booking_payload(hospital, paymentMethod='online'), format='json')
    assert r.status_code == 201
    assert r.data['data']['payment']['orderId'] == 'order_abc'
    booking_id = r.data['data']['id']
    r = client.post('/api/bookings/verify-payment',
                    {'bookingId': booking_id, 'orderId': 'order_abc', 'paymentId': 'pay_1', 'signature': 'sig'},
                    format='json')
    assert r.status_code == 200
    assert r.data['data']['status'] == 'confirmed'
    assert r.data['data']['payment']['status'] == 'completed'


def test_gateway_failure_returns_502_and_no_booking(api_setup, monkeypatch):
    hospital, patient = api_setup

    def create_order(booking_id, amount):
        raise GatewayError('GATEWAY_ORDER_FAILED', 'Failed to create payment order')

    monkeypatch.setattr(payments, 'create_order', create_order)
    r = client_for(patient).post('/api/bookings/create', booking_payload(hospital, paymentMethod='online'), format='json')
    assert r.status_code == 502
    assert r.data['error']['code'] == 'GATEWAY_ORDER_FAILED'
    assert not Booking.objects.exists()
    assert not Payment.objects.exists()


def test_refund_failure_returns_502_and_keeps_confirmed(api_setup, monkeypatch):
    hospital, patient = api_setup
    monkeypatch.setattr(payments, 'create_order', lambda booking_id, amount: PaymentOrder(
        order_id='order_abc', amount=amount, currency='INR'))
    client = client_for(patient)
    booking_id = client.post('/api/bookings/create', booking_payload(hospital, paymentMethod='online'),
                             format='json').data['data']['id']
    Payment.objects.filter(booking_id=booking_id).update(status='completed', payment_id='pay_1')
    Booking.objects.filter(pk=booking_id).update(status='confirmed')

    def refund(payment_id, amount):
        raise GatewayError('REFUND_FAILED', 'Failed to initiate refund')

    monkeypatch.setattr(payments, 'refund_payment', refund)
    r = client.post('/api/bookings/cancel', {'bookingId': booking_id}, format='json')
    assert r.status_code == 502
    assert Booking.objects.get(pk=booking_id).status == 'confirmed'
    assert Payment.objects.get(booking_id=booking_id).refund_id == ''

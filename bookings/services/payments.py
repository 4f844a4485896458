"""
Payment gateway client (Razorpay REST API).

Only the three calls the booking engine needs are implemented: order
creation, payment verification and refund.  Amounts are passed in the
smallest currency unit, which is also what the gateway expects.  Every
failure is raised as :class:`GatewayError`.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings

from bookings.errors import GatewayError

logger = logging.getLogger(__name__)


@dataclass
class PaymentOrder:
    order_id: str
    amount: int
    currency: str
    receipt: Optional[str] = None


@dataclass
class PaymentVerification:
    payment_id: str
    order_id: str
    amount: int
    status: str
    method: Optional[str] = None


@dataclass
class PaymentRefund:
    refund_id: str
    amount: int
    status: str


def _request(method: str, path: str, code: str, message: str, **kwargs) -> dict:
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        raise GatewayError(code, 'Payment gateway is not configured')
    url = f"{settings.PAYMENT_GATEWAY_URL.rstrip('/')}/{path.lstrip('/')}"
    try:
        r = requests.request(
            method, url,
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET),
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
            **kwargs,
        )
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning('gateway %s %s failed: %s', method, path, e)
        raise GatewayError(code, message) from e
    if not isinstance(data, dict):
        logger.warning('gateway %s %s returned %s instead of an object', method, path, type(data).__name__)
        raise GatewayError(code, message)
    return data


def create_order(booking_id, amount: int) -> PaymentOrder:
    data = _request('POST', '/orders', 'GATEWAY_ORDER_FAILED', 'Failed to create payment order', json={
        'amount': int(amount),
        'currency': settings.BOOKING_CURRENCY,
        'receipt': str(booking_id),
        'payment_capture': 1,
        'notes': {'bookingId': str(booking_id)},
    })
    if not data.get('id'):
        raise GatewayError('GATEWAY_ORDER_FAILED', 'Invalid response from payment gateway: missing order id')
    return PaymentOrder(order_id=data['id'], amount=data.get('amount', amount),
                        currency=data.get('currency', settings.BOOKING_CURRENCY), receipt=data.get('receipt'))


def signature_for(order_id: str, payment_id: str) -> str:
    return hmac.new(
        settings.RAZORPAY_KEY_SECRET.encode(),
        f"{order_id}|{payment_id}".encode(),
        hashlib.sha256,
    ).hexdigest()


def verify_payment(order_id: str, payment_id: str, signature: str) -> PaymentVerification:
    if not order_id or not payment_id or not signature:
        raise GatewayError('INVALID_SIGNATURE', 'Payment verification failed. Missing payment details.')
    if not hmac.compare_digest(signature_for(order_id, payment_id), signature):
        raise GatewayError('INVALID_SIGNATURE', 'Payment verification failed. Invalid signature.')
    data = _request('GET', f'/payments/{payment_id}', 'VERIFICATION_FAILED', 'Payment verification failed')
    if data.get('status') != 'captured':
        raise GatewayError('PAYMENT_NOT_CAPTURED', 'Payment was not captured successfully.')
    if data.get('order_id') and data['order_id'] != order_id:
        raise GatewayError('VERIFICATION_FAILED', 'Payment does not belong to this order.')
    return PaymentVerification(payment_id=data.get('id', payment_id), order_id=order_id,
                               amount=data.get('amount', 0), status=data['status'], method=data.get('method'))


def refund_payment(payment_id: str, amount: int) -> PaymentRefund:
    if not payment_id:
        raise GatewayError('REFUND_FAILED', 'No gateway payment to refund')
    data = _request('POST', f'/payments/{payment_id}/refund', 'REFUND_FAILED', 'Failed to initiate refund', json={
        'amount': int(amount),
        'speed': 'normal',
        'notes': {'reason': 'Booking cancellation'},
    })
    if not data.get('id'):
        raise GatewayError('REFUND_FAILED', 'Invalid response from payment gateway: missing refund id')
    return PaymentRefund(refund_id=data['id'], amount=data.get('amount', amount), status=data.get('status', 'pending'))

"""
Platform fee calculation.

Amounts are integers in the smallest currency unit.  The formula is a
versioned strategy chosen by ``Hospital.fee_strategy``; every strategy
produces the same breakdown shape and rounds half-up.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable

from bookings.errors import ValidationError
from bookings.models import Hospital, Payment


@dataclass(frozen=True)
class FeeBreakdown:
    platform_fee: int
    emergency_fee: int
    tax: int
    total: int
    strategy: str

    def as_dict(self) -> dict:
        data = asdict(self)
        return {
            'platformFee': data['platform_fee'],
            'emergencyFee': data['emergency_fee'],
            'tax': data['tax'],
            'total': data['total'],
            'strategy': data['strategy'],
        }


def round_half_up(value) -> int:
    return int(Decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _flat_platform_fee(hospital: Hospital) -> int:
    return int(hospital.platform_fee)


def _percentage_platform_fee(hospital: Hospital) -> int:
    percent = Decimal(str(hospital.platform_fee_percent or 0))
    return round_half_up(Decimal(hospital.op_booking_price) * percent / Decimal(100))


STRATEGIES: dict[str, Callable[[Hospital], int]] = {
    Hospital.FEE_FLAT_V1: _flat_platform_fee,
    Hospital.FEE_PERCENTAGE_V1: _percentage_platform_fee,
}


def compute_fee(hospital: Hospital, is_emergency: bool) -> FeeBreakdown:
    try:
        platform_fee_for = STRATEGIES[hospital.fee_strategy]
    except KeyError:
        raise ValidationError('UNKNOWN_FEE_STRATEGY', f'Unknown fee strategy {hospital.fee_strategy!r}')
    platform_fee = platform_fee_for(hospital)
    emergency_fee = int(hospital.emergency_fee) if is_emergency else 0
    tax = round_half_up(Decimal(str(hospital.tax_rate)) * (platform_fee + emergency_fee))
    return FeeBreakdown(
        platform_fee=platform_fee,
        emergency_fee=emergency_fee,
        tax=tax,
        total=platform_fee + emergency_fee + tax,
        strategy=hospital.fee_strategy,
    )


def breakdown_from_payment(payment: Payment) -> FeeBreakdown:
    return FeeBreakdown(
        platform_fee=payment.platform_fee,
        emergency_fee=payment.emergency_fee,
        tax=payment.tax,
        total=payment.total,
        strategy=payment.fee_strategy,
    )

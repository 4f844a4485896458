from typing import Optional

from bookings.models import Hospital


def find_approved_open_hospital(hospital_id) -> Optional[Hospital]:
    if not hospital_id:
        return None
    try:
        return (
            Hospital.objects.prefetch_related('timings')
            .filter(status=Hospital.STATUS_APPROVED, is_open=True)
            .get(pk=hospital_id)
        )
    except (Hospital.DoesNotExist, ValueError, TypeError):
        return None


def find_hospital(hospital_id) -> Optional[Hospital]:
    try:
        return Hospital.objects.prefetch_related('timings').get(pk=hospital_id)
    except (Hospital.DoesNotExist, ValueError, TypeError):
        return None


def format_timings(hospital: Hospital) -> list[dict]:
    return [
        {
            'day': t.day,
            'isOpen': t.is_open,
            'openTime': t.open_time.strftime('%H:%M') if t.open_time else None,
            'closeTime': t.close_time.strftime('%H:%M') if t.close_time else None,
        }
        for t in hospital.timings.all()
    ]


def format_hospital(hospital: Hospital) -> dict:
    return {
        'id': hospital.id,
        'name': hospital.name,
        'city': hospital.city,
        'status': hospital.status,
        'isOpen': hospital.is_open,
        'emergencyServices': hospital.emergency_services,
        'opBookingPrice': hospital.op_booking_price,
        'maxOpBookingsPerDay': hospital.max_op_bookings_per_day,
        'slotSettings': {
            'patientsPerSlot': hospital.patients_per_slot,
            'slotDuration': hospital.slot_duration,
        },
        'timings': format_timings(hospital),
    }

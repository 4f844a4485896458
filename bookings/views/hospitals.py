from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework import status

from ..models import Hospital
from ..services.fees import compute_fee
from ..services.hospitals import find_approved_open_hospital, format_hospital
from ..services.slots import daily_capacity, remaining_capacity
from ..services.validation import region_now


def _with_availability(hospital: Hospital) -> dict:
    today = region_now().date()
    data = format_hospital(hospital)
    data['feePreview'] = compute_fee(hospital, False).as_dict()
    if hospital.emergency_services:
        data['emergencyFeePreview'] = compute_fee(hospital, True).as_dict()
    data['today'] = {
        'date': today.strftime('%d-%m-%Y'),
        'capacity': daily_capacity(hospital, today),
        'remaining': remaining_capacity(hospital, today),
    }
    return data


@api_view(['GET'])
@permission_classes([AllowAny])
def hospital_list(request):
    """Approved hospitals currently accepting bookings."""
    qs = Hospital.objects.filter(status=Hospital.STATUS_APPROVED, is_open=True).prefetch_related('timings')
    city = (request.query_params.get('city') or '').strip()
    if city:
        qs = qs.filter(city__iexact=city)
    if request.query_params.get('emergency') in ('1', 'true'):
        qs = qs.filter(emergency_services=True)
    return Response({'ok': True, 'data': [_with_availability(h) for h in qs.order_by('name')]})


@api_view(['GET'])
@permission_classes([AllowAny])
def hospital_detail(request):
    hospital = find_approved_open_hospital(request.query_params.get('id'))
    if hospital is None:
        return Response({'ok': False, 'error': {'code': 'HOSPITAL_NOT_FOUND', 'message': 'Hospital not found'}},
                        status=status.HTTP_404_NOT_FOUND)
    return Response({'ok': True, 'data': _with_availability(hospital)})

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Notification
from ..serializers.booking import NotificationReadSerializer
from ..services.notifications import format_notification


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_list(request):
    qs = Notification.objects.filter(recipient=request.user)
    if request.query_params.get('unread') in ('1', 'true'):
        qs = qs.filter(is_read=False)
    items = list(qs.order_by('-created_at', '-id')[:100])
    unread = Notification.objects.filter(recipient=request.user, is_read=False).count()
    return Response({'ok': True, 'data': [format_notification(n) for n in items], 'unread': unread})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_mark_read(request):
    """Mark the given ``ids`` (or ``all``) of the caller's notifications as read."""
    s = NotificationReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    qs = Notification.objects.filter(recipient=request.user, is_read=False)
    if not s.validated_data.get('all'):
        qs = qs.filter(id__in=s.validated_data.get('ids') or [])
    n = qs.update(is_read=True)
    return Response({'ok': True, 'updated': n})

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import Notification
from .serializers import NotificationSerializer
from .services import inbox_for, mark_all_as_read, mark_as_read, unread_count


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_list(request):
    """Newest notifications for the caller; ?unread=true for unread only."""
    unread_only = request.query_params.get('unread', '').lower() in ('1', 'true', 'yes')
    notifications = inbox_for(request.user, unread_only=unread_only)

    return Response({
        'unread_count': unread_count(request.user),
        'notifications': NotificationSerializer(notifications, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_unread_count(request):
    return Response({'unread_count': unread_count(request.user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_notification_read(request, notification_id):
    try:
        notification = mark_as_read(request.user, notification_id)
    except Notification.DoesNotExist:
        return Response({'error': 'Notification not found'}, status=status.HTTP_404_NOT_FOUND)

    return Response({
        'ok': True,
        'notification': NotificationSerializer(notification).data,
        'unread_count': unread_count(request.user),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_all_notifications_read(request):
    updated = mark_all_as_read(request.user)
    return Response({'ok': True, 'marked_read': updated, 'unread_count': 0})

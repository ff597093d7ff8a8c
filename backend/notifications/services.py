import logging

from .models import Notification

logger = logging.getLogger(__name__)

INBOX_LIMIT = 50


def inbox_for(user, unread_only=False):
    """A user's own notifications, newest first."""
    notifications = Notification.objects.filter(recipient=user)
    if unread_only:
        notifications = notifications.filter(read=False)
    return notifications.order_by("-created_at", "-id")[:INBOX_LIMIT]


def unread_count(user) -> int:
    return Notification.objects.filter(recipient=user, read=False).count()


def mark_as_read(user, notification_id: int) -> Notification:
    """
    Mark one notification read. Only the recipient can do this.

    Raises:
        Notification.DoesNotExist: Unknown id or someone else's notification
    """
    notification = Notification.objects.get(pk=notification_id, recipient=user)
    if not notification.read:
        notification.read = True
        notification.save(update_fields=["read"])
    return notification


def mark_all_as_read(user) -> int:
    updated = Notification.objects.filter(recipient=user, read=False).update(read=True)
    logger.info("Marked %d notifications read for user %s", updated, user.id)
    return updated

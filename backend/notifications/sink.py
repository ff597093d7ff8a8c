"""
Notification sink for dispatch events.

The dispatch engine calls into a sink after its transactions commit and never
waits on delivery beyond logging the outcome. Sinks:

- ChannelLayerNotificationSink: persists the alert and pushes it to the
  recipient's personal channel group (user_<id>) or the "admins" group.

The active sink is chosen through settings.NOTIFICATION_SINK.

Event types: donation_offered, donation_accepted, task_offered, offer_expired,
delivery_accepted, delivery_rejected, delivery_completed, no_volunteers.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.utils.module_loading import import_string

from .models import Notification

logger = logging.getLogger(__name__)

ADMIN_GROUP = "admins"


class NotificationSink:
    """Interface: best-effort delivery of user and administrator alerts."""

    def send(
        self,
        recipient_id: int,
        event_type: str,
        title: str,
        message: str = "",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        raise NotImplementedError

    def alert_admins(
        self,
        event_type: str,
        title: str,
        message: str = "",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        raise NotImplementedError


class ChannelLayerNotificationSink(NotificationSink):
    """Persist to the notifications table, then push over the channel layer."""

    def send(self, recipient_id, event_type, title, message="", data=None):
        data = data or {}
        Notification.objects.create(
            recipient_id=recipient_id,
            audience=Notification.Audience.USER,
            event_type=event_type,
            title=title,
            message=message,
            data=data,
            donation_id=data.get("donation_id"),
        )
        self._push(f"user_{recipient_id}", event_type, title, message, data)

    def alert_admins(self, event_type, title, message="", data=None):
        data = data or {}
        Notification.objects.create(
            recipient=None,
            audience=Notification.Audience.ADMINS,
            event_type=event_type,
            title=title,
            message=message,
            data=data,
            donation_id=data.get("donation_id"),
        )
        self._push(ADMIN_GROUP, event_type, title, message, data)

    def _push(self, group, event_type, title, message, data):
        channel_layer = get_channel_layer()
        if channel_layer is None:
            logger.debug("No channel layer configured, skipping push to %s", group)
            return

        payload = {
            # consumers dispatch on "type"; dots are not valid in handler names
            "type": "notification_event",
            "event": event_type,
            "title": title,
            "message": message,
            "data": data,
        }
        logger.debug("WS -> %s: %s", group, payload)
        async_to_sync(channel_layer.group_send)(group, payload)


def get_notification_sink() -> NotificationSink:
    """Instantiate the sink configured in settings.NOTIFICATION_SINK."""
    path = getattr(
        settings, "NOTIFICATION_SINK", "notifications.sink.ChannelLayerNotificationSink"
    )
    return import_string(path)()


# ---------------------- Fire-and-forget helpers ----------------------

def notify_user(
    sink: NotificationSink,
    recipient_id: Optional[int],
    event_type: str,
    title: str,
    message: str = "",
    data: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Deliver one alert to one actor. Failures are logged and swallowed.

    Returns:
        True if the sink accepted the alert, False otherwise
    """
    if not recipient_id:
        return False
    try:
        sink.send(recipient_id, event_type, title, message, data)
        return True
    except Exception:
        logger.exception("Failed to deliver %s notification to user %s", event_type, recipient_id)
        return False


def notify_admins(
    sink: NotificationSink,
    event_type: str,
    title: str,
    message: str = "",
    data: Optional[Dict[str, Any]] = None,
) -> bool:
    """Deliver an administrator alert. Failures are logged and swallowed."""
    try:
        sink.alert_admins(event_type, title, message, data)
        return True
    except Exception:
        logger.exception("Failed to deliver %s admin alert", event_type)
        return False

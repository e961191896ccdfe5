"""Push notifications for task updates.

This module provides:
- Push notification config models
- Webhook delivery with bounded exponential backoff
- The sender that watches tasks and fans snapshots out to webhooks
"""

from a2a_runtime.push.delivery import NOTIFICATION_TOKEN_HEADER, WebhookDelivery
from a2a_runtime.push.models import (
    PushNotificationAuthentication,
    PushNotificationConfig,
    TaskPushNotificationConfig,
)
from a2a_runtime.push.sender import PushNotificationSender

__all__ = [
    "NOTIFICATION_TOKEN_HEADER",
    "PushNotificationAuthentication",
    "PushNotificationConfig",
    "PushNotificationSender",
    "TaskPushNotificationConfig",
    "WebhookDelivery",
]

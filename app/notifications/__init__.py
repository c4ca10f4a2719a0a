"""Web push notifications"""

from app.notifications.transport import (
    BasePushTransport,
    WebPushTransport,
    EndpointGone,
    PushDeliveryError,
    get_push_transport,
)
from app.notifications.notifier import PushNotifier

__all__ = [
    "BasePushTransport",
    "WebPushTransport",
    "EndpointGone",
    "PushDeliveryError",
    "get_push_transport",
    "PushNotifier",
]

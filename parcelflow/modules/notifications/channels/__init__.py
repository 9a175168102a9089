from parcelflow.modules.notifications.channels.base import (
    ChannelResult,
    NotificationChannel,
    NotificationEvent,
)
from parcelflow.modules.notifications.channels.live_socket import LiveSocketChannel
from parcelflow.modules.notifications.channels.push import PushChannel

__all__ = [
    "ChannelResult",
    "LiveSocketChannel",
    "NotificationChannel",
    "NotificationEvent",
    "PushChannel",
]

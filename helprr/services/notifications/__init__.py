"""
Push notification delivery.

Overview
--------
PushDispatcher is the entry point used by the poller. For every detected
event it:

1. Renders a {title, body, tag, url} payload (payload.py)
2. Asks the PreferenceResolver which devices want this event kind
3. Sends the payload to each device through WebPushTransport
4. Deletes subscriptions whose endpoint the push service reports gone
5. Records the event in notification_history and each attempt in
   delivery_attempts

Configuration
-------------
VAPID keys come from the environment:

- VAPID_SUBJECT (mailto: or https: URL)
- VAPID_PUBLIC_KEY
- VAPID_PRIVATE_KEY

Without all three, push delivery is disabled and events are only recorded.
"""

from helprr.services.notifications.dispatcher import DispatchReport, PushDispatcher
from helprr.services.notifications.payload import render_payload
from helprr.services.notifications.transport import VapidConfig, WebPushTransport

__all__ = [
    "DispatchReport",
    "PushDispatcher",
    "VapidConfig",
    "WebPushTransport",
    "render_payload",
]

from sqlalchemy.orm import declarative_base

Base = declarative_base()

from helprr.models.notification import (  # noqa: E402
    DeliveryAttempt,
    DeliveryOutcome,
    NotificationHistory,
)
from helprr.models.polling_state import PollingState  # noqa: E402
from helprr.models.push_subscription import (  # noqa: E402
    NotificationPreference,
    PushSubscription,
)
from helprr.models.service_connection import ServiceConnection  # noqa: E402
from helprr.models.settings import Settings  # noqa: E402

__all__ = [
    "Base",
    "DeliveryAttempt",
    "DeliveryOutcome",
    "NotificationHistory",
    "NotificationPreference",
    "PollingState",
    "PushSubscription",
    "ServiceConnection",
    "Settings",
]

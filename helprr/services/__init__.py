from helprr.services.fetcher import SnapshotFetcher
from helprr.services.polling_state import PollingStateStore
from helprr.services.subscriptions import (
    PreferenceResolver,
    SubscriptionPruner,
    SubscriptionStore,
    SubscriptionTarget,
)

__all__ = [
    "PollingStateStore",
    "PreferenceResolver",
    "SnapshotFetcher",
    "SubscriptionPruner",
    "SubscriptionStore",
    "SubscriptionTarget",
]

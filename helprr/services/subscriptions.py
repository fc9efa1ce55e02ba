"""
Push subscription store and preference resolver.

SubscriptionStore is the writer for push_subscriptions and
notification_preferences. The dispatcher never gets the store itself: it
gets a SubscriptionPruner, which can only delete a subscription by endpoint.

Preferences are opt-out. A device with no row for an event type receives
it, so new event types never need rows seeded for existing devices.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import selectinload

from helprr.core.exceptions import NotFoundError, ValidationError
from helprr.core.logging import get_logger
from helprr.models import NotificationPreference, PushSubscription
from helprr.schemas.subscriptions import PreferenceUpdate, SubscriptionCreate

logger = get_logger("subscriptions")


@dataclass(frozen=True)
class SubscriptionTarget:
    """Everything the transport needs to reach one device."""

    endpoint: str
    p256dh: str
    auth: str
    device_name: str | None = None


class SubscriptionStore:
    """Durable registry of device endpoints and their preferences."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory
        self._lock = threading.Lock()

    def register(self, data: SubscriptionCreate | dict) -> dict:
        """
        Create or refresh a subscription.

        Re-registering an endpoint updates its keys and label and keeps its
        preferences.

        Raises:
            ValidationError: If the subscription data is incomplete.
        """
        if isinstance(data, dict):
            try:
                data = SubscriptionCreate.model_validate(data)
            except PydanticValidationError as e:
                raise ValidationError(
                    "Missing subscription data", details=e.errors()
                ) from e

        with self._lock, self.session_factory() as db:
            sub = db.query(PushSubscription).filter_by(endpoint=data.endpoint).first()
            if sub:
                sub.p256dh = data.keys.p256dh
                sub.auth = data.keys.auth
                sub.device_name = data.device_name
            else:
                sub = PushSubscription(
                    endpoint=data.endpoint,
                    p256dh=data.keys.p256dh,
                    auth=data.keys.auth,
                    device_name=data.device_name,
                )
                db.add(sub)
            db.commit()
            logger.info("Registered push subscription for %s", data.device_name or "device")
            return sub.to_dict()

    def unsubscribe(self, endpoint: str) -> bool:
        """Explicit unsubscribe. Returns False if the endpoint was unknown."""
        removed = self._delete(endpoint)
        if removed:
            logger.info("Unsubscribed push endpoint")
        return removed

    def set_preference(self, endpoint: str, update: PreferenceUpdate | dict) -> dict:
        """
        Enable or disable one event type for a device.

        Raises:
            NotFoundError: If the endpoint is not registered.
        """
        if isinstance(update, dict):
            try:
                update = PreferenceUpdate.model_validate(update)
            except PydanticValidationError as e:
                raise ValidationError("Invalid preference", details=e.errors()) from e

        with self._lock, self.session_factory() as db:
            sub = db.query(PushSubscription).filter_by(endpoint=endpoint).first()
            if not sub:
                raise NotFoundError("PushSubscription", endpoint)

            pref = (
                db.query(NotificationPreference)
                .filter_by(subscription_id=sub.id, event_type=update.event_type)
                .first()
            )
            if pref:
                pref.enabled = update.enabled
            else:
                db.add(
                    NotificationPreference(
                        subscription_id=sub.id,
                        event_type=update.event_type,
                        enabled=update.enabled,
                    )
                )
            db.commit()
            db.refresh(sub)
            return sub.to_dict()

    def get_preferences(self, endpoint: str, event_types: list[str]) -> dict[str, bool]:
        """Effective preference for each event type, defaults included."""
        with self.session_factory() as db:
            sub = (
                db.query(PushSubscription)
                .options(selectinload(PushSubscription.preferences))
                .filter_by(endpoint=endpoint)
                .first()
            )
            if not sub:
                raise NotFoundError("PushSubscription", endpoint)
            return {event_type: sub.preference_for(event_type) for event_type in event_types}

    def get(self, endpoint: str) -> dict | None:
        with self.session_factory() as db:
            sub = (
                db.query(PushSubscription)
                .options(selectinload(PushSubscription.preferences))
                .filter_by(endpoint=endpoint)
                .first()
            )
            return sub.to_dict() if sub else None

    def get_all(self) -> list[dict]:
        with self.session_factory() as db:
            subs = (
                db.query(PushSubscription)
                .options(selectinload(PushSubscription.preferences))
                .order_by(PushSubscription.created_at.asc())
                .all()
            )
            return [sub.to_dict() for sub in subs]

    def pruner(self) -> SubscriptionPruner:
        """The narrow delete-by-endpoint capability handed to the dispatcher."""
        return SubscriptionPruner(self._delete)

    def _delete(self, endpoint: str) -> bool:
        with self._lock, self.session_factory() as db:
            sub = db.query(PushSubscription).filter_by(endpoint=endpoint).first()
            if not sub:
                return False
            db.delete(sub)
            db.commit()
            return True


class SubscriptionPruner:
    """Deletes subscriptions whose endpoint the push service reports gone."""

    def __init__(self, delete_fn) -> None:
        self._delete_fn = delete_fn

    def delete(self, endpoint: str) -> bool:
        removed = self._delete_fn(endpoint)
        if removed:
            logger.info("Pruned dead push endpoint")
        return removed


class PreferenceResolver:
    """Selects the devices that want a given event type. Read only."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def resolve(self, event_kind: str) -> list[SubscriptionTarget]:
        """
        Return every subscription whose preference for ``event_kind`` is
        enabled or unset.
        """
        event_type = getattr(event_kind, "value", event_kind)
        with self.session_factory() as db:
            subs = (
                db.query(PushSubscription)
                .options(selectinload(PushSubscription.preferences))
                .order_by(PushSubscription.id.asc())
                .all()
            )
            return [
                SubscriptionTarget(
                    endpoint=sub.endpoint,
                    p256dh=sub.p256dh,
                    auth=sub.auth,
                    device_name=sub.device_name,
                )
                for sub in subs
                if sub.preference_for(event_type)
            ]

    def endpoints(self, event_kind: str) -> list[str]:
        return [target.endpoint for target in self.resolve(event_kind)]

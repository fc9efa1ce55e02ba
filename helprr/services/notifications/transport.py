"""
Web Push transport.

Sends one encrypted payload to one endpoint with pywebpush, signed with the
VAPID key pair from the environment. The push service's answer is mapped to
the dispatcher's two failure types:

    404 / 410                 EndpointGoneError (subscription is dead)
    anything else that fails  TransientDeliveryError (not retried)
"""

from __future__ import annotations

from dataclasses import dataclass

import requests
from pywebpush import WebPushException, webpush

from helprr.core.exceptions import EndpointGoneError, TransientDeliveryError
from helprr.core.logging import get_logger
from helprr.schemas.events import PushPayload
from helprr.services.subscriptions import SubscriptionTarget

logger = get_logger("push")

GONE_STATUS_CODES = (404, 410)


@dataclass(frozen=True)
class VapidConfig:
    subject: str
    public_key: str
    private_key: str

    @classmethod
    def from_config(cls, config: dict) -> VapidConfig | None:
        """Build from app config; None when any of the three values is missing."""
        subject = config.get("VAPID_SUBJECT")
        public_key = config.get("VAPID_PUBLIC_KEY")
        private_key = config.get("VAPID_PRIVATE_KEY")
        if not subject or not public_key or not private_key:
            return None
        return cls(subject=subject, public_key=public_key, private_key=private_key)


class WebPushTransport:
    """Delivers payloads to push service endpoints."""

    def __init__(
        self,
        vapid: VapidConfig | None,
        timeout: float = 10.0,
        ttl: int = 86400,
    ) -> None:
        self.vapid = vapid
        self.timeout = timeout
        self.ttl = ttl
        if vapid is None:
            logger.warning("VAPID keys not configured - push notifications disabled")

    @property
    def enabled(self) -> bool:
        return self.vapid is not None

    def send(self, target: SubscriptionTarget, payload: PushPayload) -> None:
        """
        Deliver a payload to one endpoint.

        Raises:
            EndpointGoneError: The endpoint no longer exists.
            TransientDeliveryError: Any other failure.
        """
        if self.vapid is None:
            raise TransientDeliveryError(target.endpoint, "Push is not configured")

        try:
            webpush(
                subscription_info={
                    "endpoint": target.endpoint,
                    "keys": {"p256dh": target.p256dh, "auth": target.auth},
                },
                data=payload.model_dump_json(),
                vapid_private_key=self.vapid.private_key,
                # pywebpush adds aud/exp to the claims dict; never share it.
                vapid_claims={"sub": self.vapid.subject},
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            if status in GONE_STATUS_CODES:
                raise EndpointGoneError(target.endpoint, status_code=status) from e
            raise TransientDeliveryError(
                target.endpoint,
                f"Push service rejected delivery (HTTP {status}): {e.message}",
                status_code=status or 502,
            ) from e
        except requests.Timeout as e:
            raise TransientDeliveryError(
                target.endpoint, "Push service timed out", status_code=504
            ) from e
        except requests.RequestException as e:
            raise TransientDeliveryError(target.endpoint, str(e)) from e

"""
Push dispatcher.

Fans each detected event out to every device that wants it. Delivery is
independent per endpoint and per event: one failure never stops the rest.

    delivered        nothing else to do
    endpoint gone    subscription deleted through the pruner
    transient error  logged and dropped; the event is not queued for retry

Every event also gets a notification_history row, and every attempt a
delivery_attempts row, whether or not push is configured.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from helprr.core.exceptions import EndpointGoneError, TransientDeliveryError
from helprr.core.logging import get_logger
from helprr.metrics import push_deliveries_total, subscriptions_pruned_total
from helprr.models import DeliveryAttempt, DeliveryOutcome, NotificationHistory
from helprr.schemas.events import DetectedEvent
from helprr.services.notifications.payload import render_payload
from helprr.services.notifications.transport import WebPushTransport
from helprr.services.subscriptions import PreferenceResolver, SubscriptionPruner

logger = get_logger("dispatcher")


@dataclass
class DispatchReport:
    """Per-endpoint outcomes for one event."""

    tag: str
    outcomes: dict[str, DeliveryOutcome] = field(default_factory=dict)

    @property
    def delivered(self) -> int:
        return sum(1 for o in self.outcomes.values() if o == DeliveryOutcome.DELIVERED)

    @property
    def pruned(self) -> list[str]:
        return [
            endpoint
            for endpoint, outcome in self.outcomes.items()
            if outcome == DeliveryOutcome.ENDPOINT_GONE
        ]


class PushDispatcher:
    """Delivers events to eligible subscriptions."""

    def __init__(
        self,
        resolver: PreferenceResolver,
        transport: WebPushTransport,
        pruner: SubscriptionPruner,
        session_factory,
        record_attempts: bool = True,
    ) -> None:
        self.resolver = resolver
        self.transport = transport
        self.pruner = pruner
        self.session_factory = session_factory
        self.record_attempts = record_attempts

    def dispatch(self, events: list[DetectedEvent]) -> list[DispatchReport]:
        """Dispatch events in order. A failing event is logged and skipped."""
        reports = []
        for event in events:
            try:
                reports.append(self.dispatch_event(event))
            except Exception:
                logger.exception("Failed to dispatch event %s", event.tag)
        return reports

    def dispatch_event(self, event: DetectedEvent) -> DispatchReport:
        payload = render_payload(event)
        report = DispatchReport(tag=payload.tag)
        errors: dict[str, str] = {}

        if self.transport.enabled:
            for target in self.resolver.resolve(event.event_kind):
                outcome, error = self._deliver(target, payload)
                report.outcomes[target.endpoint] = outcome
                if error:
                    errors[target.endpoint] = error
                push_deliveries_total.labels(outcome=outcome.value).inc()

        self._record(event, payload, report, errors)

        logger.info(
            "Dispatched %s to %d/%d endpoint(s)",
            payload.tag,
            report.delivered,
            len(report.outcomes),
        )
        return report

    def _deliver(self, target, payload) -> tuple[DeliveryOutcome, str | None]:
        try:
            self.transport.send(target, payload)
            return DeliveryOutcome.DELIVERED, None
        except EndpointGoneError as e:
            if self.pruner.delete(target.endpoint):
                subscriptions_pruned_total.inc()
            return DeliveryOutcome.ENDPOINT_GONE, e.message
        except TransientDeliveryError as e:
            logger.warning(
                "Push to %s failed: %s", target.device_name or "device", e.message
            )
            return DeliveryOutcome.TRANSIENT_ERROR, e.message
        except Exception as e:
            logger.exception("Unexpected push failure for %s", target.device_name or "device")
            return DeliveryOutcome.TRANSIENT_ERROR, str(e)

    def _record(self, event, payload, report, errors) -> None:
        with self.session_factory() as db:
            db.add(
                NotificationHistory(
                    event_type=event.event_kind.value,
                    title=payload.title,
                    body=payload.body,
                    tag=payload.tag,
                    details={
                        "source": event.source_service.value,
                        "subject_id": event.subject_id,
                        **{
                            k: v
                            for k, v in event.metadata.items()
                            if isinstance(v, (str, int, float, bool, list))
                        },
                    },
                )
            )
            if self.record_attempts:
                for endpoint, outcome in report.outcomes.items():
                    db.add(
                        DeliveryAttempt(
                            endpoint=endpoint,
                            event_kind=event.event_kind.value,
                            tag=payload.tag,
                            outcome=outcome.value,
                            error=errors.get(endpoint),
                        )
                    )
            db.commit()

"""
Polling scheduler.

Runs one poll cycle per service on a fixed interval. Every service has its
own APScheduler interval job, so a slow or failing service never delays the
others. Within a service cycles never overlap: a tick that fires while the
previous cycle is still running is skipped, not queued.

One cycle:
    resolve client -> load cursor -> fetch snapshot -> detect events
    -> dispatch -> advance cursor

The cursor is only advanced once detection has completed and the cycle has
not been abandoned by shutdown. A failed fetch leaves it untouched and the
next tick simply tries again.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from apscheduler.executors.pool import ThreadPoolExecutor as JobExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from helprr.core.exceptions import FetchError
from helprr.core.helpers import utc_now
from helprr.core.logging import get_logger
from helprr.metrics import (
    events_detected_total,
    poll_cycle_duration_seconds,
    poll_cycles_total,
    poll_last_success_timestamp,
    poll_ticks_skipped_total,
    records_skipped_total,
)
from helprr.models import Settings
from helprr.schemas.events import ServiceKind
from helprr.services.clients import build_client
from helprr.services.connections import get_connection
from helprr.services.detection import detect

logger = get_logger("poller")


class CyclePhase(str, Enum):
    IDLE = "idle"
    POLLING = "polling"


class CycleOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    NOT_CONFIGURED = "not_configured"
    ABANDONED = "abandoned"


def _set_event() -> threading.Event:
    event = threading.Event()
    event.set()
    return event


@dataclass
class ServicePollState:
    """
    Scheduler-owned state for one service.

    Tracks whether a cycle is in flight so overlapping ticks can be skipped,
    and whether shutdown has abandoned the running cycle.
    """

    service: ServiceKind
    phase: CyclePhase = CyclePhase.IDLE
    last_outcome: CycleOutcome | None = None
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    skipped_ticks: int = 0
    abandoned: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _idle: threading.Event = field(default_factory=_set_event, repr=False)

    def try_begin(self, now: datetime) -> bool:
        """Move Idle -> Polling. Returns False (and counts a skip) if busy."""
        with self._lock:
            if self.phase == CyclePhase.POLLING:
                self.skipped_ticks += 1
                return False
            self.phase = CyclePhase.POLLING
            self.abandoned = False
            self.last_started_at = now
            self._idle.clear()
            return True

    def finish(
        self, outcome: CycleOutcome, now: datetime, error: str | None = None
    ) -> None:
        """Move Polling -> Idle, recording how the cycle ended."""
        with self._lock:
            self.phase = CyclePhase.IDLE
            self.last_outcome = outcome
            self.last_finished_at = now
            self.last_error = error
            if outcome == CycleOutcome.FAILED:
                self.consecutive_failures += 1
            elif outcome == CycleOutcome.SUCCEEDED:
                self.consecutive_failures = 0
            self._idle.set()

    def abandon(self) -> None:
        with self._lock:
            if self.phase == CyclePhase.POLLING:
                self.abandoned = True

    def commit_if_active(self, commit) -> bool:
        """Run ``commit`` unless the cycle was abandoned. Serialised with abandon()."""
        with self._lock:
            if self.abandoned:
                return False
            commit()
            return True

    def wait_idle(self, timeout: float | None = None) -> bool:
        return self._idle.wait(timeout)

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "service": self.service.value,
                "phase": self.phase.value,
                "last_outcome": self.last_outcome.value if self.last_outcome else None,
                "last_started_at": self.last_started_at.isoformat()
                if self.last_started_at
                else None,
                "last_finished_at": self.last_finished_at.isoformat()
                if self.last_finished_at
                else None,
                "last_error": self.last_error,
                "consecutive_failures": self.consecutive_failures,
                "skipped_ticks": self.skipped_ticks,
            }


class PollingScheduler:
    """Drives poll cycles for every monitored service."""

    def __init__(
        self,
        session_factory,
        fetcher,
        dispatcher,
        state_store,
        services: tuple[ServiceKind, ...] = tuple(ServiceKind),
        client_factory=build_client,
        fetch_timeout: float = 10.0,
        cycle_timeout: float = 60.0,
        shutdown_grace: float = 10.0,
        prime_new_cursors: bool = False,
        scheduler=None,
    ) -> None:
        self.session_factory = session_factory
        self.fetcher = fetcher
        self.dispatcher = dispatcher
        self.state_store = state_store
        self.client_factory = client_factory
        self.fetch_timeout = fetch_timeout
        self.cycle_timeout = cycle_timeout
        self.shutdown_grace = shutdown_grace
        self.prime_new_cursors = prime_new_cursors

        self._states = {service: ServicePollState(service) for service in services}
        workers = max(2, len(self._states) * 2)
        self._scheduler = scheduler or BackgroundScheduler(
            executors={"default": JobExecutor(max_workers=workers)},
            job_defaults={"coalesce": True, "max_instances": 2},
        )
        self._fetch_executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="fetch"
        )

        self._interval: int | None = None
        self._interval_lock = threading.Lock()
        self._started = False
        self._stopping = threading.Event()

        logger.info(
            "PollingScheduler initialised for %s",
            ", ".join(s.value for s in self._states),
        )

    @staticmethod
    def _job_id(service: ServiceKind) -> str:
        return f"poll_{service.value}"

    def state(self, service: ServiceKind) -> ServicePollState:
        return self._states[service]

    @property
    def interval(self) -> int | None:
        return self._interval

    def start(self) -> None:
        """Schedule every service and start the scheduler."""
        self._stopping.clear()
        interval = self._read_interval() or 30
        with self._interval_lock:
            self._interval = interval

        for service in self._states:
            self._scheduler.add_job(
                func=self.run_cycle,
                trigger="interval",
                seconds=interval,
                args=[service],
                id=self._job_id(service),
                replace_existing=True,
                next_run_time=utc_now(),
            )

        if not self._scheduler.running:
            self._scheduler.start()
        self._started = True
        logger.info("Polling started with interval %ds", interval)

    def add_job(self, func, job_id: str, **trigger_args) -> None:
        """Schedule an auxiliary interval job on the same scheduler."""
        self._scheduler.add_job(
            func=func,
            trigger="interval",
            id=job_id,
            replace_existing=True,
            **trigger_args,
        )

    def stop(self, wait: bool = True) -> None:
        """
        Stop issuing cycles.

        In-flight cycles get up to shutdown_grace seconds to finish. Cycles
        still running after that are abandoned and will not write their
        cursor.
        """
        logger.info("Polling stopping")
        self._stopping.set()
        if self._started and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._started = False

        deadline = time.monotonic() + (self.shutdown_grace if wait else 0)
        for state in self._states.values():
            remaining = max(0.0, deadline - time.monotonic())
            if not state.wait_idle(remaining):
                state.abandon()
                logger.warning(
                    "%s cycle still running after shutdown grace, abandoned",
                    state.service.value,
                )

        self._fetch_executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Polling stopped")

    def run_once(self) -> dict[ServiceKind, CycleOutcome]:
        """Run one cycle for every service concurrently and wait for all."""
        services = list(self._states)
        with ThreadPoolExecutor(
            max_workers=len(services), thread_name_prefix="poll"
        ) as pool:
            outcomes = list(pool.map(self.run_cycle, services))
        return dict(zip(services, outcomes))

    def run_cycle(self, service: ServiceKind) -> CycleOutcome:
        """Execute one cycle for a service, or skip if one is already running."""
        if self._stopping.is_set():
            return CycleOutcome.SKIPPED

        self._refresh_interval()

        state = self._states[service]
        if not state.try_begin(utc_now()):
            logger.warning(
                "%s poll still running, skipping tick", service.value
            )
            poll_ticks_skipped_total.labels(service=service.value).inc()
            return CycleOutcome.SKIPPED

        started = time.monotonic()
        outcome = CycleOutcome.FAILED
        error = None
        try:
            outcome = self._execute_cycle(service, state)
        except FetchError as e:
            error = e.message
            logger.warning("Poll failed: %s", e.message)
        except FuturesTimeoutError:
            error = f"Fetch exceeded {self.cycle_timeout}s"
            logger.warning("%s poll timed out after %ss", service.value, self.cycle_timeout)
        except Exception as e:
            error = str(e)
            logger.exception("Unhandled error polling %s", service.value)
        finally:
            state.finish(outcome, utc_now(), error)
            poll_cycles_total.labels(service=service.value, outcome=outcome.value).inc()
            poll_cycle_duration_seconds.labels(service=service.value).observe(
                time.monotonic() - started
            )

        return outcome

    def _execute_cycle(
        self, service: ServiceKind, state: ServicePollState
    ) -> CycleOutcome:
        with self.session_factory() as db:
            connection = get_connection(db, service)
            lookahead_hours = Settings.upcoming_alert_hours(db)
            upcoming = Settings.upcoming_policy(db)

        if connection is None:
            logger.debug("%s is not configured, nothing to poll", service.value)
            return CycleOutcome.NOT_CONFIGURED

        cursor = self.state_store.load(service)

        client = self.client_factory(connection, timeout=self.fetch_timeout)
        try:
            future = self._fetch_executor.submit(
                self.fetcher.fetch, service, client, lookahead_hours, upcoming
            )
            snapshot = future.result(timeout=self.cycle_timeout)
        finally:
            client.close()

        result = detect(snapshot, cursor)
        if result.skipped:
            records_skipped_total.labels(service=service.value).inc(result.skipped)

        events = result.events
        if cursor is None and self.prime_new_cursors:
            logger.info(
                "%s: first poll, recording baseline without notifying (%d event(s))",
                service.value,
                len(events),
            )
            events = []

        for event in events:
            events_detected_total.labels(
                service=service.value, event_kind=event.event_kind.value
            ).inc()

        if events:
            self.dispatcher.dispatch(events)

        committed = state.commit_if_active(
            lambda: self.state_store.advance(
                service, result.cursor, snapshot.fetched_at
            )
        )
        if not committed:
            logger.warning("%s cycle abandoned, cursor not advanced", service.value)
            return CycleOutcome.ABANDONED

        poll_last_success_timestamp.labels(service=service.value).set_to_current_time()
        logger.debug("%s cycle complete, %d event(s)", service.value, len(events))
        return CycleOutcome.SUCCEEDED

    def _read_interval(self) -> int | None:
        try:
            with self.session_factory() as db:
                return Settings.polling_interval(db)
        except Exception:
            logger.exception("Could not read polling interval")
            return None

    def _refresh_interval(self) -> None:
        """
        Pick up a changed polling interval.

        Takes effect from the next tick; the cycle about to run is unaffected.
        """
        interval = self._read_interval()
        if interval is None:
            return

        with self._interval_lock:
            if not self._started or interval == self._interval:
                return
            previous, self._interval = self._interval, interval

        for service in self._states:
            try:
                self._scheduler.reschedule_job(
                    self._job_id(service), trigger="interval", seconds=interval
                )
            except JobLookupError:
                logger.warning("No scheduled job for %s", service.value)
        logger.info("Polling interval changed from %ss to %ss", previous, interval)

    def get_stats(self) -> dict:
        """Current interval and per-service cycle state."""
        return {
            "interval": self._interval,
            "running": self._started,
            "services": {
                service.value: state.to_dict()
                for service, state in self._states.items()
            },
        }

import logging
import os

from helprr.core.helpers import parse_bool
from helprr.core.logging import get_logger, setup_logging
from helprr.extensions import SessionLocal, init_engine
from helprr.metrics import init_metrics

logger = get_logger("app")

PRUNE_JOB_ID = "prune_old_data"


class Helprr:
    """Wired application: stores, dispatcher and polling scheduler."""

    def __init__(self, config: dict, engine, poller, subscriptions, state_store):
        self.config = config
        self.engine = engine
        self.poller = poller
        self.subscriptions = subscriptions
        self.state_store = state_store

    def start(self) -> None:
        from helprr.tasks import prune_old_data

        self.poller.add_job(prune_old_data, PRUNE_JOB_ID, hours=24)
        self.poller.start()

    def run_once(self) -> dict:
        return self.poller.run_once()

    def stop(self) -> None:
        self.poller.stop()


def create_app(config: dict | None = None) -> Helprr:
    """Create and configure the application."""
    app_config = _configure_app(config)
    setup_logging(level=getattr(logging, app_config["LOG_LEVEL"].upper(), logging.INFO))

    engine = _init_database(app_config)
    app = _init_services(app_config, engine)

    if not app_config.get("TESTING"):
        init_metrics(app_config["METRICS_PORT"])

    logger.info("Application initialised")
    return app


def _configure_app(config: dict | None) -> dict:
    """Build application config from the environment and overrides."""
    app_config = {
        "DATABASE_URI": os.getenv("DATABASE_URI", "sqlite:////data/helprr.db"),
        "FETCH_TIMEOUT": float(os.getenv("FETCH_TIMEOUT", "10")),
        "CYCLE_TIMEOUT": float(os.getenv("CYCLE_TIMEOUT", "60")),
        "SHUTDOWN_GRACE": float(os.getenv("SHUTDOWN_GRACE", "10")),
        "PRIME_NEW_CURSORS": parse_bool(os.getenv("PRIME_NEW_CURSORS"), False),
        "PUSH_TIMEOUT": float(os.getenv("PUSH_TIMEOUT", "10")),
        "PUSH_TTL": int(os.getenv("PUSH_TTL", "86400")),
        "VAPID_SUBJECT": os.getenv("VAPID_SUBJECT", ""),
        "VAPID_PUBLIC_KEY": os.getenv("VAPID_PUBLIC_KEY", ""),
        "VAPID_PRIVATE_KEY": os.getenv("VAPID_PRIVATE_KEY", ""),
        "METRICS_PORT": int(os.getenv("METRICS_PORT", "0")),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    }

    if config:
        app_config.update(config)

    return app_config


def _init_database(config: dict):
    """Bind the session factory and create any missing tables."""
    from helprr.models import Base

    engine = init_engine(config["DATABASE_URI"])
    Base.metadata.create_all(engine)
    return engine


def _init_services(config: dict, engine) -> Helprr:
    from helprr.poller import PollingScheduler
    from helprr.services.fetcher import SnapshotFetcher
    from helprr.services.notifications import (
        PushDispatcher,
        VapidConfig,
        WebPushTransport,
    )
    from helprr.services.polling_state import PollingStateStore
    from helprr.services.subscriptions import PreferenceResolver, SubscriptionStore

    state_store = PollingStateStore(SessionLocal)
    subscriptions = SubscriptionStore(SessionLocal)

    transport = WebPushTransport(
        VapidConfig.from_config(config),
        timeout=config["PUSH_TIMEOUT"],
        ttl=config["PUSH_TTL"],
    )
    dispatcher = PushDispatcher(
        resolver=PreferenceResolver(SessionLocal),
        transport=transport,
        pruner=subscriptions.pruner(),
        session_factory=SessionLocal,
    )

    poller = PollingScheduler(
        session_factory=SessionLocal,
        fetcher=SnapshotFetcher(),
        dispatcher=dispatcher,
        state_store=state_store,
        fetch_timeout=config["FETCH_TIMEOUT"],
        cycle_timeout=config["CYCLE_TIMEOUT"],
        shutdown_grace=config["SHUTDOWN_GRACE"],
        prime_new_cursors=config["PRIME_NEW_CURSORS"],
        scheduler=config.get("SCHEDULER"),
    )

    return Helprr(
        config=config,
        engine=engine,
        poller=poller,
        subscriptions=subscriptions,
        state_store=state_store,
    )

"""Scheduled maintenance jobs."""

from datetime import datetime, timedelta

from helprr.core.logging import get_logger
from helprr.extensions import SessionLocal
from helprr.models import DeliveryAttempt, NotificationHistory
from helprr.models.settings import (
    DEFAULT_DATA_RETENTION_DAYS,
    SETTING_DATA_RETENTION_DAYS,
    Settings,
)

logger = get_logger("tasks")


def prune_old_data(session_factory=None) -> dict:
    """
    Delete notification history and delivery attempts past the retention window.

    Called by the scheduler daily.

    Args:
        session_factory: Session factory to use. Defaults to SessionLocal.

    Returns:
        Dictionary with deleted_history and deleted_attempts counts.
    """
    session_factory = session_factory or SessionLocal

    with session_factory() as db:
        retention_days = Settings.get_int(
            db, SETTING_DATA_RETENTION_DAYS, DEFAULT_DATA_RETENTION_DAYS
        )

        if retention_days <= 0:
            logger.info(
                "Data retention disabled (set to %d days), skipping prune",
                retention_days,
            )
            return {
                "deleted_history": 0,
                "deleted_attempts": 0,
                "retention_days": retention_days,
            }

        cutoff_date = datetime.utcnow() - timedelta(days=retention_days)

        deleted_history = (
            db.query(NotificationHistory)
            .filter(NotificationHistory.created_at < cutoff_date)
            .delete(synchronize_session=False)
        )

        deleted_attempts = (
            db.query(DeliveryAttempt)
            .filter(DeliveryAttempt.sent_at < cutoff_date)
            .delete(synchronize_session=False)
        )

        db.commit()

        logger.info(
            "Pruned %d history entries and %d delivery attempts older than %d days",
            deleted_history,
            deleted_attempts,
            retention_days,
        )

        return {
            "deleted_history": deleted_history,
            "deleted_attempts": deleted_attempts,
            "retention_days": retention_days,
        }

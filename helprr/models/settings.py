"""Settings model"""

from sqlalchemy import Column, String, Text

from helprr.models import Base
from helprr.schemas.events import UpcomingNotifyMode, UpcomingPolicy

# Setting keys
SETTING_POLLING_INTERVAL_SECS = "polling_interval_secs"
DEFAULT_POLLING_INTERVAL_SECS = 30
SETTING_UPCOMING_ALERT_HOURS = "upcoming_alert_hours"
DEFAULT_UPCOMING_ALERT_HOURS = 24
SETTING_UPCOMING_NOTIFY_MODE = "upcoming_notify_mode"
DEFAULT_UPCOMING_NOTIFY_MODE = UpcomingNotifyMode.BEFORE_AIR.value
SETTING_UPCOMING_NOTIFY_BEFORE_MINS = "upcoming_notify_before_mins"
DEFAULT_UPCOMING_NOTIFY_BEFORE_MINS = 60
SETTING_UPCOMING_DAILY_NOTIFY_HOUR = "upcoming_daily_notify_hour"
DEFAULT_UPCOMING_DAILY_NOTIFY_HOUR = 9
SETTING_DATA_RETENTION_DAYS = "data_retention_days"
DEFAULT_DATA_RETENTION_DAYS = 90

MIN_POLLING_INTERVAL_SECS = 5


class Settings(Base):
    """
    Key-value settings store.

    Used for runtime configuration that can change while the poller is
    running, such as the polling interval.
    """

    __tablename__ = "settings"

    key = Column(String(50), primary_key=True)
    value = Column(Text, nullable=False, default="")

    @classmethod
    def get(cls, db, key: str, default: str = "") -> str:
        """
        Get a setting value.

        Args:
            db: Database session.
            key: The setting key.
            default: Default value if not found.

        Returns:
            The setting value or default.
        """
        setting = db.get(cls, key)
        return setting.value if setting else default

    @classmethod
    def set(cls, db, key: str, value: str, commit: bool = True) -> None:
        """
        Set a setting value.

        Args:
            db: Database session.
            key: The setting key.
            value: The value to store.
            commit: Whether to commit the transaction.
        """
        setting = db.get(cls, key)
        if setting:
            setting.value = value
        else:
            setting = cls(key=key, value=value)
            db.add(setting)
        if commit:
            db.commit()

    @classmethod
    def get_int(cls, db, key: str, default: int = 0) -> int:
        """
        Get an integer setting value.

        Args:
            db: Database session.
            key: The setting key.
            default: Default value if not found.

        Returns:
            The integer value.
        """
        value = cls.get(db, key, str(default))
        try:
            return int(value)
        except ValueError:
            return default

    @classmethod
    def set_int(cls, db, key: str, value: int, commit: bool = True) -> None:
        cls.set(db, key, str(value), commit=commit)

    @classmethod
    def polling_interval(cls, db) -> int:
        """Polling interval in seconds, clamped to a sane minimum."""
        value = cls.get_int(
            db, SETTING_POLLING_INTERVAL_SECS, DEFAULT_POLLING_INTERVAL_SECS
        )
        if value <= 0:
            return DEFAULT_POLLING_INTERVAL_SECS
        return max(MIN_POLLING_INTERVAL_SECS, value)

    @classmethod
    def upcoming_alert_hours(cls, db) -> int:
        value = cls.get_int(
            db, SETTING_UPCOMING_ALERT_HOURS, DEFAULT_UPCOMING_ALERT_HOURS
        )
        return value if value > 0 else DEFAULT_UPCOMING_ALERT_HOURS

    @classmethod
    def upcoming_policy(cls, db) -> UpcomingPolicy:
        """
        Upcoming premiere alert settings.

        Unknown modes and out-of-range values fall back to their defaults.
        """
        try:
            mode = UpcomingNotifyMode(
                cls.get(db, SETTING_UPCOMING_NOTIFY_MODE, DEFAULT_UPCOMING_NOTIFY_MODE)
            )
        except ValueError:
            mode = UpcomingNotifyMode(DEFAULT_UPCOMING_NOTIFY_MODE)

        before_mins = cls.get_int(
            db, SETTING_UPCOMING_NOTIFY_BEFORE_MINS, DEFAULT_UPCOMING_NOTIFY_BEFORE_MINS
        )
        if before_mins <= 0:
            before_mins = DEFAULT_UPCOMING_NOTIFY_BEFORE_MINS

        hour = cls.get_int(
            db, SETTING_UPCOMING_DAILY_NOTIFY_HOUR, DEFAULT_UPCOMING_DAILY_NOTIFY_HOUR
        )
        if not 0 <= hour <= 23:
            hour = DEFAULT_UPCOMING_DAILY_NOTIFY_HOUR

        return UpcomingPolicy(
            mode=mode, notify_before_mins=before_mins, daily_notify_hour=hour
        )

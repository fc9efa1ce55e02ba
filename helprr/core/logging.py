import logging
import logging.config

LOG_FORMAT = "[%(asctime)s +0000] [%(threadName)s] [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO while polling every few seconds
NOISY_LOGGERS = ("apscheduler", "urllib3", "requests")


def build_logging_config(level: int | str = logging.INFO) -> dict:
    """Return a dictConfig mapping with every noisy library held at WARNING."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "poller": {"format": LOG_FORMAT, "datefmt": LOG_DATEFMT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "poller",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
    }


LOGGING_CONFIG = build_logging_config()


def setup_logging(level: int = logging.INFO) -> None:
    logging.config.dictConfig(build_logging_config(level))


def get_logger(name: str) -> logging.Logger:
    """Logger under the helprr namespace, e.g. get_logger("poller") -> helprr.poller."""
    return logging.getLogger(f"helprr.{name}")

# notify_relay/logger.py
import logging, sys

from notify_relay.middleware.correlation import RequestIdFilter
from notify_relay.settings import settings

ROOT_LOGGER = "notify_relay"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [rid=%(request_id)s] %(message)s"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(logging.Formatter(LOG_FORMAT))
    h.addFilter(RequestIdFilter())
    root.addHandler(h)
    return root


def get_logger(name: str = ROOT_LOGGER):
    # only the package root owns a handler; module loggers propagate to it
    _configure_root()
    return logging.getLogger(name)

# Module-level logger so `from notify_relay.logger import logger` works
logger = get_logger(ROOT_LOGGER)

__all__ = ["get_logger", "logger"]

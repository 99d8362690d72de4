import logging
import sys

from nebresult.config.settings import settings

PACKAGE_LOGGER = "nebresult"
LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


def _level(name: str) -> int:
    level = getattr(logging, str(name).upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str = settings.log_level) -> logging.Logger:
    """Attach the stdout handler once and apply ``level`` to the package logger."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(_level(level))
    if not any(h.get_name() == PACKAGE_LOGGER for h in package_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(PACKAGE_LOGGER)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        package_logger.addHandler(handler)
    return package_logger


_package_logger = configure_logging()


def get_logger(name: str | None = None) -> logging.Logger:
    if name:
        return _package_logger.getChild(name)
    return _package_logger

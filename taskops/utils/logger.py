"""
Logging setup shared by the API, the lifecycle engine and the schedulers
"""
import logging
import sys
from taskops.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_level() -> int:
    """DEBUG flag wins; otherwise LOG_LEVEL by name, INFO when unrecognised"""
    settings = get_settings()
    if settings.DEBUG:
        return logging.DEBUG
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Logger writing to stdout; calling it again for a name reuses the handler"""
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    logger.setLevel(resolve_level())
    return logger

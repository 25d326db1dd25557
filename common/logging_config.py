import logging
import os
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Module loggers live under these roots; setup_logging attaches handlers there.
PACKAGE_LOGGERS = ('common', 'chunkstore', 'catalog', 'uploader', 'cli')


def _resolve_level(log_level: Optional[str]) -> int:
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')
    return getattr(logging, log_level.upper(), logging.INFO)


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration for a component.

    The component logger and the package loggers share one stdout handler,
    so module loggers obtained with get_logger(__name__) are emitted too.

    Args:
        component_name: Name of the component (e.g., 'uploader', 'cli')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger for the component
    """
    level = _resolve_level(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    for name in dict.fromkeys((component_name,) + PACKAGE_LOGGERS):
        logger = logging.getLogger(name)
        logger.setLevel(level)
        if not any(getattr(h, '_uploader_handler', False) for h in logger.handlers):
            handler._uploader_handler = True
            logger.addHandler(handler)
        logger.propagate = False

    return logging.getLogger(component_name)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)

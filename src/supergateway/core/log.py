"""
Configuration du logging.

Tous les diagnostics partent sur stderr: en mode SSE -> stdio, stdout est
réservé au flux JSON-RPC.
"""
import logging
import sys

from .constants import LOG_PREFIX, SERVER_NAME

LOG_LEVELS = ("debug", "info", "warning", "error")


def configure_logging(level: str = "info", stream=None) -> logging.Logger:
    """
    Installe un handler unique sur le logger racine du package.

    Args:
        level: Niveau de log (debug, info, warning, error)
        stream: Flux de sortie (défaut: sys.stderr)

    Returns:
        Logger du package
    """
    logger = logging.getLogger(SERVER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(f"{LOG_PREFIX} %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False

    return logger

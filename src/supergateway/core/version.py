"""
Version du package installé.
"""
import logging
from importlib.metadata import PackageNotFoundError, version

from .constants import SERVER_NAME

logger = logging.getLogger(__name__)


def get_version() -> str:
    """Retourne la version installée, "unknown" si le package n'est pas installé."""
    try:
        return version(SERVER_NAME) or "1.0.0"
    except PackageNotFoundError as e:
        logger.error(f"Unable to retrieve version: {e}")
        return "unknown"

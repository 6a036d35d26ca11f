"""
Cœur du gateway: exceptions, constantes, framing et helpers JSON-RPC.
Modules indépendants, sans I/O réseau.
"""

from .exceptions import (
    SupergatewayError,
    ConfigurationError,
    MissingSessionIdError,
    NoActiveSessionError,
    ChannelClosedError,
    ChildProcessUnavailableError,
    RemoteConnectionError,
    JsonRpcError,
)
from .framing import LineFramer, JsonLineDecoder
from .log import configure_logging
from .version import get_version

__all__ = [
    # Exceptions
    "SupergatewayError",
    "ConfigurationError",
    "MissingSessionIdError",
    "NoActiveSessionError",
    "ChannelClosedError",
    "ChildProcessUnavailableError",
    "RemoteConnectionError",
    "JsonRpcError",
    # Framing
    "LineFramer",
    "JsonLineDecoder",
    # Divers
    "configure_logging",
    "get_version",
]

"""
Mode SSE -> stdio.
"""

from .gateway import GatewayState, ServerIdentity, SseToStdioGateway
from .remote import RemoteClient

__all__ = [
    "GatewayState",
    "ServerIdentity",
    "SseToStdioGateway",
    "RemoteClient",
]

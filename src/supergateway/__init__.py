"""
supergateway - pont JSON-RPC stdio <-> SSE.
"""

from .features.stdio_to_sse import StdioToSseGateway
from .features.sse_to_stdio import SseToStdioGateway, RemoteClient
from .services import SessionRegistry

__all__ = [
    "StdioToSseGateway",
    "SseToStdioGateway",
    "RemoteClient",
    "SessionRegistry",
]

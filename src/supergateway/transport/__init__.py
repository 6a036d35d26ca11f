"""
Couche transport: SSE côté serveur et source stdin du mode SSE -> stdio.

Le client SSE distant et le framing stdio sont ceux du SDK `mcp`
(`mcp.client.sse.sse_client`, `mcp.server.stdio.stdio_server`).
"""

from .sse_server import SseServerTransport, format_sse_event
from .stdio import StdinLines, connect_stdin_reader

__all__ = [
    "SseServerTransport",
    "format_sse_event",
    "StdinLines",
    "connect_stdin_reader",
]

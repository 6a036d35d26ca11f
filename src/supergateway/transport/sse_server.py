"""supergateway.transport.sse_server

Transport SSE côté serveur: une instance par abonné.

Protocole (compatible clients MCP SSE):
- GET  <ssePath>      -> `event: endpoint` (URL de POST incluant `sessionId`),
                         puis un `event: message` par message JSON-RPC
- POST <endpoint>     -> message JSON-RPC de l'abonné, réponse `202 Accepted`

Le canal sortant est une `asyncio.Queue`; `send()` est synchrone pour que le
broadcast du registre reste une simple boucle sur l'event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import uuid
from typing import AsyncIterator, Awaitable, Callable
from urllib.parse import quote

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response, StreamingResponse

from ..core.constants import MAXIMUM_MESSAGE_SIZE, SSE_KEEPALIVE_INTERVAL
from ..core.exceptions import ChannelClosedError
from ..core.jsonrpc import dumps

logger = logging.getLogger(__name__)

MessageHandler = Callable[[object], "Awaitable[None] | None"]

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse_event(event: str, data: str) -> str:
    """Formate un événement SSE (data sur une ou plusieurs lignes)."""
    lines = [f"event: {event}"]
    lines.extend(f"data: {part}" for part in data.split("\n"))
    return "\n".join(lines) + "\n\n"


class SseServerTransport:
    """Canal SSE vers un abonné + réception de ses messages POST."""

    def __init__(
        self,
        endpoint: str,
        *,
        session_id: str | None = None,
        keepalive_interval: float | None = SSE_KEEPALIVE_INTERVAL,
    ) -> None:
        self.endpoint = endpoint
        self.session_id = session_id or str(uuid.uuid4())
        self.keepalive_interval = keepalive_interval

        self.on_message: MessageHandler | None = None
        self.on_close: Callable[[], None] | None = None
        self.on_error: Callable[[Exception], None] | None = None

        self._queue: asyncio.Queue[object | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def endpoint_url(self) -> str:
        """URL annoncée dans l'événement `endpoint`."""
        separator = "&" if "?" in self.endpoint else "?"
        encoded = quote(self.endpoint, safe=":/?#[]@!$&'()*+,;=%")
        return f"{encoded}{separator}sessionId={self.session_id}"

    def send(self, message: object) -> None:
        """Met un message en file pour l'abonné.

        Raises:
            ChannelClosedError: si le canal est fermé
        """
        if self._closed:
            raise ChannelClosedError(self.session_id)
        self._queue.put_nowait(message)

    def close(self) -> None:
        """Ferme le canal (idempotent). Les messages déjà en file sont encore émis."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        if self.on_close is not None:
            self.on_close()

    async def events(self) -> AsyncIterator[str]:
        """Flux d'événements SSE de la session (se termine à la fermeture)."""
        yield format_sse_event("endpoint", self.endpoint_url)

        while True:
            try:
                message = await asyncio.wait_for(self._queue.get(), timeout=self.keepalive_interval)
            except asyncio.TimeoutError:
                yield ": ping\n\n"
                continue

            if message is None:
                return
            yield format_sse_event("message", dumps(message))

    def response(self) -> StreamingResponse:
        """Réponse HTTP longue durée portant le flux SSE."""

        async def _stream() -> AsyncIterator[str]:
            completed = False
            try:
                async for chunk in self.events():
                    yield chunk
                completed = True
            finally:
                if not completed and not self._closed:
                    logger.info(f"Client disconnected (session {self.session_id})")
                self.close()

        return StreamingResponse(_stream(), media_type="text/event-stream", headers=SSE_HEADERS)

    async def handle_post_message(self, request: Request) -> Response:
        """Reçoit un message JSON-RPC posté par l'abonné."""
        if self._closed:
            return PlainTextResponse("SSE connection not established", status_code=500)

        content_type = request.headers.get("content-type", "")
        media_type = content_type.split(";")[0].strip().lower()
        if media_type and media_type != "application/json":
            return PlainTextResponse(f"Unsupported content-type: {content_type}", status_code=400)

        body = await self._read_body(request)
        if body is None:
            return PlainTextResponse(f"Message too large (max {MAXIMUM_MESSAGE_SIZE} bytes)", status_code=400)

        try:
            message = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Invalid message from session {self.session_id}: {e}")
            return PlainTextResponse(f"Invalid message: {e}", status_code=400)

        try:
            if self.on_message is not None:
                result = self.on_message(message)
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            logger.error(f"SSE error (session {self.session_id}): {e}")
            if self.on_error is not None:
                self.on_error(e)
            return PlainTextResponse(f"Error handling message: {e}", status_code=400)

        return PlainTextResponse("Accepted", status_code=202)

    @staticmethod
    async def _read_body(request: Request) -> bytes | None:
        """Lit le corps sans dépasser MAXIMUM_MESSAGE_SIZE (None si trop gros)."""
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > MAXIMUM_MESSAGE_SIZE:
            return None

        body = bytearray()
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > MAXIMUM_MESSAGE_SIZE:
                return None
        return bytes(body)

"""supergateway.features.sse_to_stdio.remote

Connexion au serveur JSON-RPC distant, au-dessus du SDK `mcp`.

- `mcp.client.sse.sse_client` fournit les streams (GET SSE + POST endpoint)
- `mcp.ClientSession` fait le handshake `initialize`, corrèle requêtes et
  réponses, répond aux `ping` du serveur et ignore les réponses orphelines
- les notifications poussées par le serveur sont interceptées avant la
  session et remises telles quelles à `on_unsolicited`

La fin du stream SSE distant est signalée par `wait_closed()`.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, Awaitable, Callable

import anyio
import httpx
from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.shared.exceptions import McpError
from mcp.types import Implementation, JSONRPCNotification, Request
from pydantic import RootModel

from ...core.constants import (
    DEFAULT_REQUEST_TIMEOUT,
    ERROR_REQUEST_TIMEOUT,
    REMOTE_CONNECT_TIMEOUT,
    SERVER_NAME,
)
from ...core.exceptions import JsonRpcError, RemoteConnectionError
from ...core.jsonrpc import from_session_message
from ...core.version import get_version

logger = logging.getLogger(__name__)


class ForwardedRequest(Request[dict[str, Any] | None, str]):
    """Requête relayée sans typage de méthode (toute méthode est acceptée)."""


class RawResult(RootModel[dict[str, Any]]):
    """Résultat distant conservé tel quel."""


class RemoteClient:
    """Session MCP vers le serveur SSE distant."""

    def __init__(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT,
        connect_timeout: float = REMOTE_CONNECT_TIMEOUT,
        client_info: Implementation | None = None,
        connect=sse_client,
    ) -> None:
        self.url = url
        self.headers = dict(headers or {})
        self.request_timeout = request_timeout
        self.connect_timeout = connect_timeout
        self.client_info = client_info or Implementation(name=SERVER_NAME, version=get_version())
        self._connect = connect

        self.session: ClientSession | None = None
        self.server_info: dict[str, Any] | None = None
        self.server_capabilities: dict[str, Any] | None = None
        self.protocol_version: str | None = None

        self.on_unsolicited: Callable[[dict[str, Any]], Awaitable[None]] | None = None

        self._stack: AsyncExitStack | None = None
        self._closed: asyncio.Event | None = None

    @property
    def closed(self) -> bool:
        return self._closed is not None and self._closed.is_set()

    async def connect(self) -> None:
        """Ouvre les streams SSE puis effectue le handshake d'initialisation.

        `connect()` et `close()` doivent être appelés depuis la même tâche
        (scopes anyio des streams et de la session).
        """
        if self._stack is not None:
            raise RemoteConnectionError("Remote client already connected", url=self.url)

        self._closed = asyncio.Event()
        self._stack = stack = AsyncExitStack()

        read_stream, write_stream = await stack.enter_async_context(
            self._connect(self.url, headers=self.headers or None, timeout=self.connect_timeout)
        )

        session_send, session_read = anyio.create_memory_object_stream(0)
        pump = await stack.enter_async_context(anyio.create_task_group())
        stack.callback(pump.cancel_scope.cancel)
        pump.start_soon(self._pump, read_stream, session_send)

        read_timeout = timedelta(seconds=self.request_timeout) if self.request_timeout else None
        self.session = await stack.enter_async_context(
            ClientSession(
                session_read,
                write_stream,
                read_timeout_seconds=read_timeout,
                message_handler=self._on_session_message,
                client_info=self.client_info,
            )
        )

        result = await self.session.initialize()
        self.server_info = result.serverInfo.model_dump(mode="json", exclude_none=True)
        self.server_capabilities = result.capabilities.model_dump(by_alias=True, mode="json", exclude_none=True)
        self.protocol_version = str(result.protocolVersion)

    async def request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Envoie une requête et attend la réponse corrélée.

        Returns:
            Le champ `result` de la réponse, tel quel

        Raises:
            JsonRpcError: réponse d'erreur distante, timeout (-32001) ou connexion fermée
            RemoteConnectionError: session non ouverte
        """
        if self.session is None:
            raise RemoteConnectionError("Not connected", url=self.url)

        try:
            result = await self.session.send_request(ForwardedRequest(method=method, params=params), RawResult)
        except McpError as e:
            if e.error.code == httpx.codes.REQUEST_TIMEOUT:
                raise JsonRpcError(
                    code=ERROR_REQUEST_TIMEOUT,
                    message="Request timed out",
                    data={"timeout": self.request_timeout},
                ) from e
            raise JsonRpcError.from_error_object(e.error.model_dump(mode="json", exclude_none=True)) from e
        return result.root

    async def wait_closed(self) -> None:
        """Retourne quand le stream SSE distant est terminé."""
        if self._closed is None:
            raise RemoteConnectionError("Not connected", url=self.url)
        await self._closed.wait()

    async def close(self) -> None:
        """Ferme la session puis les streams (idempotent)."""
        stack, self._stack = self._stack, None
        self.session = None
        if stack is not None:
            await stack.aclose()
        if self._closed is not None:
            self._closed.set()

    async def _pump(self, read_stream, session_send) -> None:
        """Stream SSE -> session MCP; les notifications partent vers `on_unsolicited`."""
        try:
            async with session_send:
                async for item in read_stream:
                    if isinstance(item, Exception):
                        logger.error(f"SSE error: {item}")
                        continue
                    if isinstance(item.message.root, JSONRPCNotification) and self.on_unsolicited is not None:
                        try:
                            await self.on_unsolicited(from_session_message(item))
                        except Exception as e:
                            logger.error(f"Failed to relay remote notification: {e}")
                        continue
                    try:
                        await session_send.send(item)
                    except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                        break
        finally:
            self._closed.set()

    async def _on_session_message(self, message) -> None:
        # Réponses à un id inconnu (ex: après timeout): jamais relayées.
        if isinstance(message, Exception):
            logger.warning(f"Ignoring remote message: {message}")

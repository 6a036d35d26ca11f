"""supergateway.features.sse_to_stdio.gateway

Présente un serveur JSON-RPC SSE distant comme un serveur stdio local.

Machine d'état:
    CONNECTING -> CONNECTED -> (requête stdio) FORWARDING -> CONNECTED ...
    CLOSED (terminal) sur déconnexion ou erreur distante -> code de sortie 1

Règles:
- Requête stdio (method + id): forwardée, exactement une réponse écrite avec
  l'id d'origine (`result` xor `error`)
- Tout autre message stdio: écrit tel quel sur stdout
- Notification poussée par le distant: écrite telle quelle sur stdout
- Aucune reconnexion: la perte du lien distant est fatale

Les streams stdio sont ceux de `mcp.server.stdio.stdio_server` (ou tout couple
de memory streams de `SessionMessage`).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from ...core.constants import SERVER_NAME
from ...core.jsonrpc import (
    dumps,
    error_response_from_exception,
    from_session_message,
    is_request,
    response_from_result,
    to_session_message,
)
from ...core.version import get_version
from .remote import RemoteClient

logger = logging.getLogger(__name__)


class GatewayState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FORWARDING = "forwarding"
    CLOSED = "closed"


@dataclass(frozen=True)
class ServerIdentity:
    """Identité annoncée par le serveur stdio local."""

    name: str
    version: str
    capabilities: dict[str, object] = field(default_factory=dict)

    @classmethod
    def resolve(
        cls,
        server_info: dict[str, object] | None,
        capabilities: dict[str, object] | None,
    ) -> ServerIdentity:
        """Reprend l'identité distante si disponible, sinon celle du gateway."""
        if isinstance(server_info, dict) and server_info.get("name"):
            return cls(
                name=str(server_info["name"]),
                version=str(server_info.get("version") or get_version()),
                capabilities=dict(capabilities or {}),
            )
        return cls(name=SERVER_NAME, version=get_version(), capabilities=dict(capabilities or {}))


class SseToStdioGateway:
    """Pont SSE distant -> stdio local."""

    def __init__(self, remote: RemoteClient, stdio_read, stdio_write) -> None:
        self.remote = remote
        self.stdio_read = stdio_read
        self.stdio_write = stdio_write
        self.identity: ServerIdentity | None = None

        self._state = GatewayState.CONNECTING
        self._inflight: set[asyncio.Task] = set()

    @property
    def state(self) -> GatewayState:
        return self._state

    async def run(self) -> int:
        """Connecte le distant, sert stdio, retourne le code de sortie du process.

        Le stream d'écriture stdio est fermé en sortie (fin du writer stdout).
        """
        self.remote.on_unsolicited = self.relay

        logger.info("Connecting to SSE...")
        try:
            await self.remote.connect()
        except Exception as e:
            logger.error(f"SSE connection failed: {e}")
            self._state = GatewayState.CLOSED
            await self._shutdown()
            return 1

        self._state = GatewayState.CONNECTED
        logger.info("SSE connected")

        self.identity = ServerIdentity.resolve(self.remote.server_info, self.remote.server_capabilities)
        logger.info(f"Stdio server listening (as {self.identity.name} {self.identity.version})")

        stdio_task = asyncio.create_task(self.serve_stdio())
        closed_task = asyncio.create_task(self.remote.wait_closed())
        try:
            done, _pending = await asyncio.wait({stdio_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)

            if stdio_task not in done:
                logger.error("SSE connection closed")
                return 1

            stdio_task.result()

            # Stdin fermé: on laisse les requêtes en vol se terminer.
            if self._inflight:
                await asyncio.gather(*self._inflight, return_exceptions=True)

            if self.remote.closed:
                logger.error("SSE connection closed")
                return 1

            logger.info("Stdin closed, shutting down")
            return 0
        finally:
            for task in (stdio_task, closed_task, *self._inflight):
                task.cancel()
            await asyncio.gather(stdio_task, closed_task, *self._inflight, return_exceptions=True)
            self._state = GatewayState.CLOSED
            await self._shutdown()

    async def serve_stdio(self) -> None:
        """Lit les messages stdio jusqu'à EOF et les dispatch, dans l'ordre."""
        async for item in self.stdio_read:
            if isinstance(item, Exception):
                logger.warning(f"Stdio non-JSON: {item}")
                continue
            await self.handle_stdio_message(from_session_message(item))

    async def handle_stdio_message(self, message: dict[str, object]) -> asyncio.Task | None:
        """Dispatch d'un message lu sur stdin."""
        if not is_request(message):
            logger.info(f"SSE → Stdio: {dumps(message)}")
            await self._write(message)
            return None

        task = asyncio.get_running_loop().create_task(self.forward_request(message))
        self._inflight.add(task)
        self._state = GatewayState.FORWARDING
        task.add_done_callback(self._on_forward_done)
        return task

    async def forward_request(self, request: dict[str, object]) -> dict[str, object]:
        """Forwarde une requête et écrit exactement une réponse sur stdout."""
        logger.info(f"Stdio → SSE: {dumps(request)}")
        try:
            result = await self.remote.request(str(request["method"]), request.get("params"))
        except Exception as e:
            logger.error(f"Request error: {e}")
            response = error_response_from_exception(request, e)
        else:
            response = response_from_result(request, result)
            logger.info(f"Response: {dumps(response)}")

        await self._write(response)
        return response

    async def relay(self, message: dict[str, object]) -> None:
        """Notification distante: écrite telle quelle sur stdout."""
        logger.info(f"SSE → Stdio: {dumps(message)}")
        await self._write(message)

    async def _write(self, message: dict[str, object]) -> None:
        await self.stdio_write.send(to_session_message(message))

    async def _shutdown(self) -> None:
        try:
            await self.remote.close()
        except Exception as e:
            logger.error(f"Error closing SSE connection: {e}")
        await self.stdio_write.aclose()

    def _on_forward_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not self._inflight and self._state is GatewayState.FORWARDING:
            self._state = GatewayState.CONNECTED

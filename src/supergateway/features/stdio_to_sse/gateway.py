"""supergateway.features.stdio_to_sse.gateway

Expose un serveur JSON-RPC stdio (processus enfant) à N abonnés SSE.

Flux:
- child.stdout -> JsonLineDecoder -> broadcast à toutes les sessions
- POST d'un abonné -> 1 ligne JSON sur child.stdin
- child.stderr -> logs uniquement (jamais vers les abonnés)

La fin du processus enfant est terminale: `wait()` retourne le code de sortie
que le runner propage au process entier.
"""

from __future__ import annotations

import asyncio
import logging

from ...core.constants import (
    DEFAULT_MESSAGE_PATH,
    ERROR_INTERNAL,
    SSE_KEEPALIVE_INTERVAL,
    STREAM_READ_CHUNK_SIZE,
)
from ...core.exceptions import ChildProcessUnavailableError, NoActiveSessionError
from ...core.framing import JsonLineDecoder
from ...core.jsonrpc import build_error_response, dumps, is_request
from ...services.session_registry import SessionRegistry, get_session_registry
from ...transport.sse_server import SseServerTransport

logger = logging.getLogger(__name__)


def exit_code_from_returncode(returncode: int | None) -> int:
    """Code de sortie du gateway: celui de l'enfant, 1 s'il a été tué par un signal."""
    if returncode is None or returncode < 0:
        return 1
    return returncode


class StdioToSseGateway:
    """Un processus enfant partagé entre tous les abonnés SSE."""

    def __init__(
        self,
        command: str,
        *,
        registry: SessionRegistry | None = None,
        message_endpoint: str = DEFAULT_MESSAGE_PATH,
        keepalive_interval: float | None = SSE_KEEPALIVE_INTERVAL,
    ) -> None:
        self.command = command
        self.registry = registry if registry is not None else get_session_registry()
        self.message_endpoint = message_endpoint
        self.keepalive_interval = keepalive_interval

        self._decoder = JsonLineDecoder(label="Child")
        self._process: asyncio.subprocess.Process | None = None
        self._pumps: list[asyncio.Task[None]] = []

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        return self._process

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def start(self) -> None:
        """Lance la commande (interprétée par le shell) et les pompes stdout/stderr."""
        if self._process is not None:
            raise ChildProcessUnavailableError("Child process already started")

        self._process = await asyncio.create_subprocess_shell(
            self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        logger.debug(f"Child started (pid {self._process.pid})")

        self._pumps = [
            asyncio.create_task(self._pump_stdout()),
            asyncio.create_task(self._pump_stderr()),
        ]

    async def wait(self) -> int:
        """Attend la fin de l'enfant et retourne le code de sortie à propager."""
        if self._process is None:
            raise ChildProcessUnavailableError("Child process not started")

        returncode = await self._process.wait()

        # Laisse stdout/stderr se vider (EOF). Ne cancel qu'en dernier recours.
        for task in self._pumps:
            try:
                await asyncio.wait_for(task, timeout=1.0)
            except asyncio.TimeoutError:
                pass

        signal = -returncode if returncode is not None and returncode < 0 else None
        code = returncode if signal is None else None
        logger.error(f"Child exited: code={code}, signal={signal}")
        return exit_code_from_returncode(returncode)

    async def stop(self) -> None:
        """Ferme toutes les sessions et termine l'enfant s'il tourne encore."""
        self.registry.close_all()

        if self.running:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(self._process.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                self._process.kill()
                await self._process.wait()

        for task in self._pumps:
            if not task.done():
                task.cancel()

    def open_session(self, peer: str | None = None) -> SseServerTransport:
        """Crée le transport SSE d'un nouvel abonné et l'enregistre."""
        transport = SseServerTransport(self.message_endpoint, keepalive_interval=self.keepalive_interval)
        session_id = transport.session_id

        async def _on_message(message: object) -> None:
            logger.info(f"SSE → Child (session {session_id}): {dumps(message)}")
            await self.write_to_child(message, session_id=session_id)

        def _on_close() -> None:
            logger.info(f"SSE connection closed (session {session_id})")
            self.registry.unregister(session_id)

        def _on_error(error: Exception) -> None:
            logger.error(f"SSE error (session {session_id}): {error}")
            self.registry.unregister(session_id)

        transport.on_message = _on_message
        transport.on_close = _on_close
        transport.on_error = _on_error

        self.registry.register(session_id, transport, peer=peer)
        return transport

    async def write_to_child(self, message: object, session_id: str | None = None) -> None:
        """Écrit un message (1 ligne) sur stdin de l'enfant.

        Si stdin est inutilisable, l'erreur est loggée et, pour une requête,
        une réponse d'erreur JSON-RPC est renvoyée à la session émettrice.
        """
        try:
            await self._write_line(dumps(message))
        except ChildProcessUnavailableError as e:
            logger.error(f"Cannot write to child (session {session_id}): {e.message}")
            if session_id is not None and is_request(message):
                error = build_error_response(message.get("id"), code=ERROR_INTERNAL, message=e.message)
                try:
                    self.registry.route(session_id, error)
                except NoActiveSessionError:
                    pass

    def handle_stdout_chunk(self, chunk: bytes | str) -> int:
        """Décode un chunk de stdout et diffuse chaque message complet, dans l'ordre."""
        return self._broadcast_all(self._decoder.feed(chunk))

    def _broadcast_all(self, messages: list[object]) -> int:
        for message in messages:
            logger.info(f"Child → SSE: {dumps(message)}")
            self.registry.broadcast(message)
        return len(messages)

    async def _write_line(self, line: str) -> None:
        process = self._process
        if process is None or process.stdin is None:
            raise ChildProcessUnavailableError("Child process not started")
        if process.returncode is not None or process.stdin.is_closing():
            raise ChildProcessUnavailableError("Child process stdin is closed", returncode=process.returncode)

        try:
            process.stdin.write((line + "\n").encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise ChildProcessUnavailableError(f"Child process stdin is closed: {e}", returncode=process.returncode)

    async def _pump_stdout(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stream = self._process.stdout

        while True:
            chunk = await stream.read(STREAM_READ_CHUNK_SIZE)
            if not chunk:
                break
            self.handle_stdout_chunk(chunk)

        self._broadcast_all(self._decoder.flush())

    async def _pump_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        stream = self._process.stderr

        while True:
            chunk = await stream.read(STREAM_READ_CHUNK_SIZE)
            if not chunk:
                return
            logger.error(f"Child stderr: {chunk.decode('utf-8', errors='replace').rstrip()}")

"""supergateway.transport.stdio

Source de lignes stdin pour `mcp.server.stdio.stdio_server`.

`stdio_server` lit stdin via `anyio.wrap_file` (lecture bloquante dans un
thread, non annulable). Le gateway doit pouvoir quitter dès que la connexion
distante tombe, sans attendre la prochaine ligne: on lui fournit donc un
itérateur asynchrone adossé à un `asyncio.StreamReader` non bloquant, que
`close()` termine immédiatement.

Important:
- Ne jamais écrire de logs sur stdout (corruption du flux JSON-RPC).
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import AsyncIterator

from ..core.constants import STDIN_LINE_LIMIT

logger = logging.getLogger(__name__)


async def connect_stdin_reader(limit: int = STDIN_LINE_LIMIT) -> tuple[asyncio.StreamReader, asyncio.ReadTransport]:
    """Retourne un StreamReader non-bloquant connecté à stdin (binaire) et son transport."""

    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)
    protocol = asyncio.StreamReaderProtocol(reader)
    pipe, _ = await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)
    return reader, pipe


class StdinLines:
    """Itérateur asynchrone des lignes de stdin (texte UTF-8, terminateur inclus)."""

    def __init__(self, reader: asyncio.StreamReader | None = None) -> None:
        self._reader = reader
        self._pipe: asyncio.ReadTransport | None = None
        self._closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self._lines()

    async def _lines(self) -> AsyncIterator[str]:
        if self._reader is None and not self._closed:
            self._reader, self._pipe = await connect_stdin_reader()

        while not self._closed:
            line = await self._reader.readline()
            if not line:
                break
            yield line.decode("utf-8", errors="replace")
        logger.debug("Stdin closed")

    def close(self) -> None:
        """Termine l'itération en cours (EOF simulé)."""
        if self._closed:
            return
        self._closed = True
        if self._pipe is not None:
            # connection_lost -> feed_eof: le readline en cours retourne b"".
            self._pipe.close()
        elif self._reader is not None:
            self._reader.feed_eof()

"""supergateway.core.framing

Découpage d'un flux d'octets arbitrairement fragmenté en messages JSON
(1 message par ligne).

- `LineFramer` reconstruit les lignes complètes (`\\n` ou `\\r\\n`), même si une
  ligne (ou un caractère UTF-8 multi-octets) est coupée entre deux chunks.
- `JsonLineDecoder` parse chaque ligne non vide; une ligne non JSON est loggée
  puis ignorée, elle ne fait jamais tomber le flux.

Ce module est **sans I/O**.
"""

from __future__ import annotations

import codecs
import json
import logging

logger = logging.getLogger(__name__)


class LineFramer:
    """Accumulateur incrémental de lignes."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Segment non terminé en attente."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        """Ajoute un chunk et retourne les lignes complètes, dans l'ordre.

        Les terminateurs sont retirés. Le dernier segment (éventuellement vide)
        reste dans le buffer.
        """
        if isinstance(chunk, (bytes, bytearray)):
            text = self._decoder.decode(bytes(chunk))
        else:
            text = chunk

        self._buffer += text
        if "\n" not in self._buffer:
            return []

        *lines, self._buffer = self._buffer.split("\n")
        return [line[:-1] if line.endswith("\r") else line for line in lines]

    def flush(self) -> list[str]:
        """Fin de flux: retourne le segment non terminé (s'il existe)."""
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if tail.endswith("\r"):
            tail = tail[:-1]
        return [tail] if tail else []


class JsonLineDecoder:
    """Décode des lignes JSON depuis un flux fragmenté."""

    def __init__(self, label: str = "Stream", encoding: str = "utf-8") -> None:
        self.label = label
        self._framer = LineFramer(encoding)
        self.invalid_lines = 0

    def feed(self, chunk: bytes | str) -> list[object]:
        return self._parse(self._framer.feed(chunk))

    def flush(self) -> list[object]:
        return self._parse(self._framer.flush())

    def _parse(self, lines: list[str]) -> list[object]:
        messages: list[object] = []
        for line in lines:
            if not line.strip():
                continue
            try:
                messages.append(json.loads(line))
            except json.JSONDecodeError:
                self.invalid_lines += 1
                logger.warning(f"{self.label} non-JSON: {line}")
        return messages

"""
Dataclasses pour la configuration.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..core.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_BASE_URL,
    DEFAULT_SSE_PATH,
    DEFAULT_MESSAGE_PATH,
    SSE_KEEPALIVE_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
)

MODE_STDIO_TO_SSE = "stdio-to-sse"
MODE_SSE_TO_STDIO = "sse-to-stdio"


@dataclass
class StdioToSseSettings:
    """Configuration du mode stdio -> SSE."""
    command: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    base_url: str = DEFAULT_BASE_URL
    sse_path: str = DEFAULT_SSE_PATH
    message_path: str = DEFAULT_MESSAGE_PATH
    keepalive_interval: float = SSE_KEEPALIVE_INTERVAL

    @property
    def message_endpoint(self) -> str:
        """URL annoncée aux abonnés pour leurs POST."""
        return f"{self.base_url}{self.message_path}"


@dataclass
class SseToStdioSettings:
    """Configuration du mode SSE -> stdio."""
    sse_url: str
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    # En-têtes HTTP ajoutés au GET SSE et aux POST (--header "Name: Value")
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class GatewaySettings:
    """Configuration globale: exactement un des deux modes."""
    mode: str
    stdio_to_sse: Optional[StdioToSseSettings] = None
    sse_to_stdio: Optional[SseToStdioSettings] = None
    log_level: str = "info"

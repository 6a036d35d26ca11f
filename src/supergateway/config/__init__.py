"""
Configuration de supergateway.
"""

from .loader import build_settings, env_defaults
from .settings import (
    GatewaySettings,
    StdioToSseSettings,
    SseToStdioSettings,
    MODE_STDIO_TO_SSE,
    MODE_SSE_TO_STDIO,
)

__all__ = [
    "build_settings",
    "env_defaults",
    "GatewaySettings",
    "StdioToSseSettings",
    "SseToStdioSettings",
    "MODE_STDIO_TO_SSE",
    "MODE_SSE_TO_STDIO",
]

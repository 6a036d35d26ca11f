"""supergateway.config.loader

Construction et validation de la configuration.

Sources (par priorité décroissante):
- arguments CLI explicites
- variables d'environnement `SUPERGATEWAY_*`
- valeurs par défaut (`core.constants`)

Toute incohérence lève `ConfigurationError` avant la moindre I/O.
"""
import os
from typing import Dict, Iterable, Optional

from ..core.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_BASE_URL,
    DEFAULT_SSE_PATH,
    DEFAULT_MESSAGE_PATH,
)
from ..core.exceptions import ConfigurationError
from ..core.log import LOG_LEVELS
from .settings import (
    GatewaySettings,
    StdioToSseSettings,
    SseToStdioSettings,
    MODE_STDIO_TO_SSE,
    MODE_SSE_TO_STDIO,
)


def _env_str(name: str, *, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip()


def _env_int(name: str, *, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def env_defaults() -> dict:
    """Valeurs par défaut des options CLI, surchargées par l'environnement."""
    return {
        "host": _env_str("SUPERGATEWAY_HOST", default=DEFAULT_HOST),
        "port": _env_int("SUPERGATEWAY_PORT", default=DEFAULT_PORT),
        "base_url": _env_str("SUPERGATEWAY_BASE_URL", default=DEFAULT_BASE_URL),
        "sse_path": _env_str("SUPERGATEWAY_SSE_PATH", default=DEFAULT_SSE_PATH),
        "message_path": _env_str("SUPERGATEWAY_MESSAGE_PATH", default=DEFAULT_MESSAGE_PATH),
        "log_level": _env_str("SUPERGATEWAY_LOG_LEVEL", default="info").lower(),
    }


def parse_headers(raw_headers: Optional[Iterable[str]]) -> Dict[str, str]:
    """Convertit des entrées `Name: Value` en dictionnaire (la dernière gagne)."""
    headers: Dict[str, str] = {}
    for raw in raw_headers or ():
        name, sep, value = raw.partition(":")
        name = name.strip()
        if not sep or not name:
            raise ConfigurationError(
                message=f"Error: invalid --header '{raw}' (expected 'Name: Value')",
                config_key="header"
            )
        headers[name] = value.strip()
    return headers


def _normalize_path(path: str, *, key: str) -> str:
    path = (path or "").strip()
    if not path:
        raise ConfigurationError(message=f"Error: --{key} must not be empty", config_key=key)
    if not path.startswith("/"):
        path = "/" + path
    return path


def build_settings(
    *,
    stdio: Optional[str] = None,
    sse: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    base_url: Optional[str] = None,
    sse_path: Optional[str] = None,
    message_path: Optional[str] = None,
    log_level: Optional[str] = None,
    headers: Optional[Iterable[str]] = None,
) -> GatewaySettings:
    """
    Valide les options et construit la configuration du gateway.

    Args:
        stdio: Commande shell du serveur stdio (mode stdio -> SSE)
        sse: URL SSE distante (mode SSE -> stdio)
        host, port, base_url, sse_path, message_path: options stdio -> SSE
        log_level: Niveau de log
        headers: En-têtes `Name: Value` envoyés au serveur SSE distant

    Returns:
        GatewaySettings validée

    Raises:
        ConfigurationError: flags manquants/contradictoires ou valeur invalide
    """
    defaults = env_defaults()
    has_stdio = bool(stdio)
    has_sse = bool(sse)

    if has_stdio and has_sse:
        raise ConfigurationError(
            message="Error: Specify only one of --stdio or --sse, not both",
            config_key="mode"
        )
    if not has_stdio and not has_sse:
        raise ConfigurationError(
            message="Error: You must specify one of --stdio or --sse",
            config_key="mode"
        )

    level = (log_level or defaults["log_level"]).lower()
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            message=f"Error: invalid --logLevel '{level}' (expected one of {', '.join(LOG_LEVELS)})",
            config_key="logLevel"
        )

    if has_sse:
        return GatewaySettings(
            mode=MODE_SSE_TO_STDIO,
            sse_to_stdio=SseToStdioSettings(sse_url=sse.strip(), headers=parse_headers(headers)),
            log_level=level,
        )

    port = defaults["port"] if port is None else port
    if not 0 < int(port) < 65536:
        raise ConfigurationError(message=f"Error: invalid --port {port}", config_key="port")

    settings = StdioToSseSettings(
        command=stdio,
        host=host or defaults["host"],
        port=int(port),
        base_url=(defaults["base_url"] if base_url is None else base_url).rstrip("/"),
        sse_path=_normalize_path(defaults["sse_path"] if sse_path is None else sse_path, key="ssePath"),
        message_path=_normalize_path(
            defaults["message_path"] if message_path is None else message_path, key="messagePath"
        ),
    )
    if settings.sse_path == settings.message_path:
        raise ConfigurationError(
            message="Error: --ssePath and --messagePath must differ",
            config_key="messagePath"
        )

    return GatewaySettings(mode=MODE_STDIO_TO_SSE, stdio_to_sse=settings, log_level=level)

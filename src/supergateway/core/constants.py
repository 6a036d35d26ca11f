"""
Constantes globales du gateway.
"""

# ============================================================================
# IDENTITÉ
# ============================================================================
SERVER_NAME = "supergateway"
LOG_PREFIX = "[supergateway]"

# ============================================================================
# STDIO -> SSE
# ============================================================================
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000
DEFAULT_BASE_URL = ""
DEFAULT_SSE_PATH = "/sse"
DEFAULT_MESSAGE_PATH = "/message"
HEALTH_PATH = "/health"

# Commentaire SSE envoyé aux abonnés inactifs (secondes)
SSE_KEEPALIVE_INTERVAL = 25.0

# Taille max d'un message POST vers un abonné
MAXIMUM_MESSAGE_SIZE = 4 * 1024 * 1024  # 4 MiB

# Taille des lectures sur stdout/stderr de l'enfant
STREAM_READ_CHUNK_SIZE = 64 * 1024

# ============================================================================
# JSON-RPC
# ============================================================================
JSONRPC_VERSION = "2.0"

ERROR_PARSE = -32700
ERROR_INVALID_REQUEST = -32600
ERROR_METHOD_NOT_FOUND = -32601
ERROR_INTERNAL = -32603
# Code par défaut pour les échecs transport/réseau (et connexion fermée)
ERROR_CONNECTION_CLOSED = -32000
DEFAULT_ERROR_CODE = ERROR_CONNECTION_CLOSED
ERROR_REQUEST_TIMEOUT = -32001
DEFAULT_ERROR_MESSAGE = "Internal error"

# ============================================================================
# SSE -> STDIO
# ============================================================================
# Timeout de lecture appliqué par la session MCP distante (pas par le gateway)
DEFAULT_REQUEST_TIMEOUT = 60.0
REMOTE_CONNECT_TIMEOUT = 10.0

# Longueur max d'une ligne lue sur stdin
STDIN_LINE_LIMIT = 32 * 1024 * 1024  # 32 MiB

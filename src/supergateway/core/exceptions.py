"""
Exceptions personnalisées pour supergateway.
"""
from __future__ import annotations

from dataclasses import dataclass

from .constants import DEFAULT_ERROR_CODE, DEFAULT_ERROR_MESSAGE


class SupergatewayError(Exception):
    """Exception de base pour toutes les erreurs du gateway."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(SupergatewayError):
    """Erreur de configuration (flags manquants ou contradictoires, valeur invalide)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class MissingSessionIdError(SupergatewayError):
    """Requête POST sans paramètre sessionId."""

    def __init__(self, message: str = "Missing sessionId parameter"):
        super().__init__(message=message, code="missing_session_id")


class NoActiveSessionError(SupergatewayError):
    """Aucune session SSE active pour l'identifiant demandé."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"No active SSE connection for session {session_id}",
            code="no_active_session",
            details={"session_id": session_id}
        )
        self.session_id = session_id


class ChannelClosedError(SupergatewayError):
    """Envoi vers un canal SSE déjà fermé."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"SSE channel closed (session {session_id})",
            code="channel_closed",
            details={"session_id": session_id}
        )
        self.session_id = session_id


class ChildProcessUnavailableError(SupergatewayError):
    """Le processus enfant n'accepte plus de messages (non démarré, stdin fermé)."""

    def __init__(self, message: str, returncode: int = None):
        super().__init__(
            message=message,
            code="child_unavailable",
            details={"returncode": returncode} if returncode is not None else {}
        )


class RemoteConnectionError(SupergatewayError):
    """Erreur de la connexion SSE distante (stream, POST, fermeture)."""

    def __init__(self, message: str, url: str = None, status_code: int = None):
        details = {}
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=message,
            code="remote_connection_error",
            details=details
        )
        self.status_code = status_code


@dataclass(eq=False)
class JsonRpcError(Exception):
    """Erreur JSON-RPC renvoyée par le serveur distant (objet `error`)."""

    code: int
    message: str
    data: object | None = None

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    @classmethod
    def from_error_object(cls, error: object) -> JsonRpcError:
        """Construit l'exception depuis un objet `error` JSON-RPC (best-effort).

        Code absent ou non entier: -32000. Message absent: "Internal error".
        """
        if not isinstance(error, dict):
            return cls(code=DEFAULT_ERROR_CODE, message=str(error) if error else DEFAULT_ERROR_MESSAGE)

        code = error.get("code")
        if not isinstance(code, int) or isinstance(code, bool):
            code = DEFAULT_ERROR_CODE
        message = error.get("message")
        if not isinstance(message, str) or not message:
            message = DEFAULT_ERROR_MESSAGE
        return cls(code=code, message=message, data=error.get("data"))

    def to_error_object(self) -> dict[str, object]:
        """Objet `error` JSON-RPC (`data` omis s'il est absent)."""
        error: dict[str, object] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

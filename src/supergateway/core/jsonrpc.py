"""supergateway.core.jsonrpc

Helpers JSON-RPC 2.0: classification des messages, enveloppes de réponse,
normalisation des erreurs et sérialisation (1 objet compact par ligne).

Module sans I/O. Les messages circulent en `dict`; la conversion vers les
types du SDK `mcp` (`SessionMessage`) se fait aux bords des streams.
"""

from __future__ import annotations

import json

from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage

from .constants import DEFAULT_ERROR_CODE, DEFAULT_ERROR_MESSAGE, JSONRPC_VERSION
from .exceptions import JsonRpcError

Message = dict[str, object]


def is_request(message: object) -> bool:
    """Requête = `method` + `id`."""
    return isinstance(message, dict) and "method" in message and "id" in message


def is_notification(message: object) -> bool:
    return isinstance(message, dict) and "method" in message and "id" not in message


def is_response(message: object) -> bool:
    return (
        isinstance(message, dict)
        and "method" not in message
        and "id" in message
        and ("result" in message or "error" in message)
    )


def dumps(message: object) -> str:
    """Sérialise un message sur une seule ligne (JSON compact, sans `\\n`)."""
    return json.dumps(message, ensure_ascii=False, separators=(",", ":"))


def wrap_response(request: Message, payload: Message) -> Message:
    """Enveloppe de réponse: version de la requête (ou "2.0") + `id` d'origine."""
    response: Message = {
        "jsonrpc": request.get("jsonrpc") or JSONRPC_VERSION,
        "id": request.get("id"),
    }
    response.update(payload)
    return response


def response_from_result(request: Message, result: object) -> Message:
    """Construit la réponse à partir du résultat distant.

    Si le résultat porte lui-même un champ `error`, la réponse est une erreur
    (jamais `result` et `error` ensemble).
    """
    if isinstance(result, dict) and "error" in result:
        error = JsonRpcError.from_error_object(result["error"])
        return wrap_response(request, {"error": error.to_error_object()})
    if isinstance(result, dict):
        result = dict(result)
    return wrap_response(request, {"result": result})


def strip_error_prefix(message: str, code: object) -> str:
    """Retire une seule fois le préfixe `MCP error <code>:` d'un message."""
    prefix = f"MCP error {code}:"
    if message.startswith(prefix):
        return message[len(prefix):].strip()
    return message


def error_code_of(exc: BaseException) -> int:
    code = getattr(exc, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    return DEFAULT_ERROR_CODE


def error_message_of(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if not isinstance(message, str) or not message:
        message = str(exc.args[0]) if exc.args else ""
    return message or DEFAULT_ERROR_MESSAGE


def error_response_from_exception(request: Message, exc: BaseException) -> Message:
    """Enveloppe d'erreur pour une requête dont le forwarding a échoué."""
    code = error_code_of(exc)
    message = strip_error_prefix(error_message_of(exc), code)
    return wrap_response(request, {"error": {"code": code, "message": message}})


def build_error_response(req_id: object, *, code: int, message: str, data: object | None = None) -> Message:
    error: dict[str, object] = {"code": int(code), "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": req_id, "error": error}


def to_session_message(message: JSONRPCMessage | Message) -> SessionMessage:
    """Enveloppe un message `dict` pour les streams du SDK (validation JSON-RPC)."""
    if not isinstance(message, JSONRPCMessage):
        message = JSONRPCMessage.model_validate(message)
    return SessionMessage(message=message)


def from_session_message(item: SessionMessage) -> Message:
    """Message `dict` tel qu'il circule sur le fil (alias, sans champs `None`)."""
    return item.message.model_dump(by_alias=True, mode="json", exclude_none=True)

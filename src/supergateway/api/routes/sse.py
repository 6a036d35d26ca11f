"""Routes API: abonnements SSE et messages entrants.

Les chemins sont configurables (`--ssePath`, `--messagePath`): le router est
donc construit par une factory plutôt que déclaré au niveau module.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response

from ...core.exceptions import MissingSessionIdError, NoActiveSessionError
from ...features.stdio_to_sse.gateway import StdioToSseGateway

logger = logging.getLogger(__name__)


def build_router(gateway: StdioToSseGateway, *, sse_path: str, message_path: str) -> APIRouter:
    """Crée les routes GET <sse_path> et POST <message_path> liées au gateway."""

    router = APIRouter()

    async def subscribe(request: Request) -> Response:
        """Ouvre un flux SSE pour un nouvel abonné."""
        peer = request.client.host if request.client else None
        logger.info(f"New SSE connection from {peer}")
        transport = gateway.open_session(peer=peer)
        return transport.response()

    async def post_message(request: Request) -> Response:
        """Délègue un message JSON-RPC posté à la session désignée par `sessionId`."""
        session_id = request.query_params.get("sessionId")
        try:
            if not session_id:
                raise MissingSessionIdError()
            session = gateway.registry.lookup(session_id)
        except MissingSessionIdError as e:
            return PlainTextResponse(e.message, status_code=400)
        except NoActiveSessionError as e:
            logger.warning(e.message)
            return PlainTextResponse(e.message, status_code=503)

        logger.info(f"POST to SSE transport (session {session_id})")
        return await session.channel.handle_post_message(request)

    router.add_api_route(sse_path, subscribe, methods=["GET"])
    router.add_api_route(message_path, post_message, methods=["POST"])
    return router

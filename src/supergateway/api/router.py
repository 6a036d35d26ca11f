"""
Router principal de l'API.
"""
from fastapi import APIRouter

from ..features.stdio_to_sse.gateway import StdioToSseGateway
from .routes import health, sse


def build_api_router(gateway: StdioToSseGateway, *, sse_path: str, message_path: str) -> APIRouter:
    """
    Assemble les sous-routers.

    Args:
        gateway: Gateway stdio -> SSE
        sse_path: Chemin des abonnements SSE
        message_path: Chemin des messages POST

    Returns:
        Router principal
    """
    api_router = APIRouter()

    api_router.include_router(health.router, prefix="", tags=["health"])
    api_router.include_router(
        sse.build_router(gateway, sse_path=sse_path, message_path=message_path),
        prefix="",
        tags=["sse"],
    )

    return api_router

"""
supergateway - Application FastAPI Factory et runners des deux modes.

- stdio -> SSE: processus enfant + serveur HTTP (uvicorn) côte à côte; la fin
  de l'enfant arrête le serveur et fixe le code de sortie.
- SSE -> stdio: connexion distante + transport stdio; la perte du lien distant
  termine le process avec le code 1.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mcp.server.stdio import stdio_server

from .api.router import build_api_router
from .config.settings import SseToStdioSettings, StdioToSseSettings
from .core.version import get_version
from .features.sse_to_stdio.gateway import SseToStdioGateway
from .features.sse_to_stdio.remote import RemoteClient
from .features.stdio_to_sse.gateway import StdioToSseGateway
from .transport.stdio import StdinLines

logger = logging.getLogger(__name__)


def create_app(gateway: StdioToSseGateway, settings: StdioToSseSettings) -> FastAPI:
    """
    Factory pour créer l'application FastAPI du mode stdio -> SSE.

    Args:
        gateway: Gateway possédant le processus enfant et le registre
        settings: Configuration du mode

    Returns:
        Instance configurée de FastAPI
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gestion du cycle de vie de l'application."""
        logger.info(f"Listening on port {settings.port}")
        logger.info(f"SSE endpoint: http://localhost:{settings.port}{settings.sse_path}")
        logger.info(f"POST messages: http://localhost:{settings.port}{settings.message_path}")
        yield
        # Shutdown: termine les flux SSE pour laisser uvicorn s'arrêter
        gateway.registry.close_all()

    app = FastAPI(
        title="supergateway",
        description="Stdio JSON-RPC server exposed over SSE",
        version=get_version(),
        lifespan=lifespan
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        build_api_router(gateway, sse_path=settings.sse_path, message_path=settings.message_path)
    )
    app.state.gateway = gateway
    app.state.settings = settings

    return app


async def serve_stdio_to_sse(settings: StdioToSseSettings) -> int:
    """Lance l'enfant et le serveur HTTP; retourne le code de sortie du process."""
    logger.info("Starting...")
    logger.info(f"  - port: {settings.port}")
    logger.info(f"  - stdio: {settings.command}")
    if settings.base_url:
        logger.info(f"  - baseUrl: {settings.base_url}")
    logger.info(f"  - ssePath: {settings.sse_path}")
    logger.info(f"  - messagePath: {settings.message_path}")

    gateway = StdioToSseGateway(
        settings.command,
        message_endpoint=settings.message_endpoint,
        keepalive_interval=settings.keepalive_interval,
    )
    await gateway.start()

    app = create_app(gateway, settings)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            log_level="warning",
            timeout_graceful_shutdown=2,
        )
    )

    serve_task = asyncio.create_task(server.serve())
    child_task = asyncio.create_task(gateway.wait())

    try:
        done, _pending = await asyncio.wait({serve_task, child_task}, return_when=asyncio.FIRST_COMPLETED)

        if child_task in done:
            exit_code = child_task.result()
            gateway.registry.close_all()
            server.should_exit = True
            await serve_task
            return exit_code

        # Serveur HTTP arrêté (signal opérateur): l'enfant ne sert plus à rien.
        serve_task.result()
        logger.info("HTTP server stopped")
        return 0 if server.started else 1
    finally:
        await gateway.stop()
        if not child_task.done():
            child_task.cancel()


async def serve_sse_to_stdio(
    settings: SseToStdioSettings,
    *,
    remote: RemoteClient | None = None,
    stdin: StdinLines | None = None,
) -> int:
    """Connecte le serveur SSE distant et sert stdio; retourne le code de sortie.

    `remote` et `stdin` sont injectables (tests); stdout est écrit en UTF-8 par
    `stdio_server`.
    """
    logger.info("Starting...")
    logger.info(f"  - sse: {settings.sse_url}")

    if remote is None:
        remote = RemoteClient(
            settings.sse_url,
            headers=settings.headers,
            request_timeout=settings.request_timeout,
        )
    if stdin is None:
        stdin = StdinLines()

    async with stdio_server(stdin=stdin) as (stdio_read, stdio_write):
        try:
            return await SseToStdioGateway(remote, stdio_read, stdio_write).run()
        finally:
            stdin.close()
            # Débloque le lecteur stdin de stdio_server s'il attend un consommateur.
            async for _ in stdio_read:
                pass

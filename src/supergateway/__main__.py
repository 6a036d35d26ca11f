"""
Point d'entrée pour `python -m supergateway`.

Usage:
    # stdio -> SSE
    supergateway --stdio "npx -y @modelcontextprotocol/server-filesystem /some/folder" \\
                 --port 8000 --baseUrl http://localhost:8000 --ssePath /sse --messagePath /message

    # SSE -> stdio
    supergateway --sse "https://mcp-server.example.com/sse" --header "Authorization: Bearer xyz"
"""
import argparse
import asyncio
import logging
import sys

from .config.loader import build_settings, env_defaults
from .config.settings import MODE_STDIO_TO_SSE
from .core.exceptions import ConfigurationError
from .core.log import LOG_LEVELS, configure_logging
from .main import serve_sse_to_stdio, serve_stdio_to_sse

logger = logging.getLogger("supergateway")


def build_parser() -> argparse.ArgumentParser:
    """Parser CLI (défauts surchargeables par l'environnement)."""
    defaults = env_defaults()

    parser = argparse.ArgumentParser(
        prog="supergateway",
        description="Run stdio JSON-RPC servers over SSE or vice versa"
    )
    parser.add_argument("--stdio", help="Command to run a JSON-RPC server over stdio")
    parser.add_argument("--sse", help="SSE URL to connect to")
    parser.add_argument("--host", default=defaults["host"], help="(stdio to SSE) Host to bind")
    parser.add_argument("--port", type=int, default=defaults["port"], help="(stdio to SSE) Port to run on")
    parser.add_argument(
        "--baseUrl", dest="base_url", default=defaults["base_url"],
        help="(stdio to SSE) Base URL for SSE clients"
    )
    parser.add_argument(
        "--ssePath", dest="sse_path", default=defaults["sse_path"],
        help="(stdio to SSE) Path for SSE subscriptions"
    )
    parser.add_argument(
        "--messagePath", dest="message_path", default=defaults["message_path"],
        help="(stdio to SSE) Path for SSE messages"
    )
    parser.add_argument(
        "--header", dest="headers", action="append", default=[], metavar="NAME: VALUE",
        help="(SSE to stdio) HTTP header sent to the SSE server, repeatable"
    )
    parser.add_argument(
        "--logLevel", dest="log_level", default=defaults["log_level"], choices=LOG_LEVELS,
        help="Diagnostics level (written to stderr)"
    )
    return parser


def main(argv=None) -> int:
    """Fonction principale. Retourne le code de sortie du process."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        settings = build_settings(
            stdio=args.stdio,
            sse=args.sse,
            host=args.host,
            port=args.port,
            base_url=args.base_url,
            sse_path=args.sse_path,
            message_path=args.message_path,
            log_level=args.log_level,
            headers=args.headers,
        )
    except ConfigurationError as e:
        logger.error(e.message)
        return 1

    try:
        if settings.mode == MODE_STDIO_TO_SSE:
            return asyncio.run(serve_stdio_to_sse(settings.stdio_to_sse))
        return asyncio.run(serve_sse_to_stdio(settings.sse_to_stdio))
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

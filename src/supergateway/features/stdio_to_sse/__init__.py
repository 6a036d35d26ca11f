"""
Mode stdio -> SSE.
"""

from .gateway import StdioToSseGateway, exit_code_from_returncode

__all__ = [
    "StdioToSseGateway",
    "exit_code_from_returncode",
]

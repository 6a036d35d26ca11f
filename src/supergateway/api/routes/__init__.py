"""
Routes API du mode stdio -> SSE.
"""

from . import health, sse

__all__ = ["health", "sse"]

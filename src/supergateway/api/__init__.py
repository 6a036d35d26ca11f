"""
API HTTP du mode stdio -> SSE.
"""

from .router import build_api_router

__all__ = ["build_api_router"]

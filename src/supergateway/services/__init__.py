"""
Services partagés du gateway.
"""

from .session_registry import (
    Session,
    SessionRegistry,
    MessageChannel,
    get_session_registry,
)

__all__ = [
    "Session",
    "SessionRegistry",
    "MessageChannel",
    "get_session_registry",
]

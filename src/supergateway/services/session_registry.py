"""
Registre des sessions SSE actives (mode stdio -> SSE).

Toutes les mutations ont lieu sur l'unique event loop asyncio: pas de verrou.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from ..core.exceptions import NoActiveSessionError

logger = logging.getLogger(__name__)


class MessageChannel(Protocol):
    """Canal sortant vers un abonné."""

    def send(self, message: object) -> None: ...

    def close(self) -> None: ...


@dataclass
class Session:
    """Un abonné SSE connecté."""
    session_id: str
    channel: MessageChannel
    peer: Optional[str] = None


class SessionRegistry:
    """Associe un identifiant de session à son canal sortant."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def register(self, session_id: str, channel: MessageChannel, peer: Optional[str] = None) -> Session:
        """
        Enregistre une session. Un identifiant déjà présent est écrasé.

        Args:
            session_id: Identifiant attribué par le transport
            channel: Canal sortant de l'abonné
            peer: Adresse du client (logs)

        Returns:
            Session enregistrée
        """
        if session_id in self._sessions:
            logger.warning(f"Session {session_id} already registered, replacing it")
        session = Session(session_id=session_id, channel=channel, peer=peer)
        self._sessions[session_id] = session
        return session

    def unregister(self, session_id: str) -> bool:
        """Retire une session. Retourne False si elle était déjà absente."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.debug(f"Session {session_id} removed (peer: {session.peer or 'unknown'})")
        return True

    def lookup(self, session_id: str) -> Session:
        """
        Retourne la session active.

        Raises:
            NoActiveSessionError: Si l'identifiant n'est pas enregistré
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise NoActiveSessionError(session_id)
        return session

    def broadcast(self, message: object) -> int:
        """
        Diffuse un message à toutes les sessions.

        Une session dont l'envoi échoue est retirée; les autres reçoivent
        quand même le message.

        Returns:
            Nombre de sessions ayant reçu le message
        """
        delivered = 0
        for session_id, session in list(self._sessions.items()):
            try:
                session.channel.send(message)
                delivered += 1
            except Exception as e:
                logger.error(f"Failed to send to session {session_id}: {e}")
                self.unregister(session_id)
        return delivered

    def route(self, session_id: str, message: object) -> None:
        """
        Envoie un message à une seule session.

        Raises:
            NoActiveSessionError: Si aucune session ne correspond
        """
        self.lookup(session_id).channel.send(message)

    def close_all(self) -> None:
        """Ferme tous les canaux et vide le registre."""
        for session_id, session in list(self._sessions.items()):
            try:
                session.channel.close()
            except Exception as e:
                logger.error(f"Failed to close session {session_id}: {e}")
        self._sessions.clear()

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


# Instance globale du registre
_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """
    Crée ou retourne l'instance globale du registre de sessions.

    Returns:
        Instance de SessionRegistry
    """
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry

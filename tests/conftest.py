"""
Configuration des tests pytest.
"""
import os
import sys
from pathlib import Path

import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from supergateway.services.session_registry import SessionRegistry  # noqa: E402


def pytest_configure(config):
    """Enregistre les markers utilisés par la suite."""
    config.addinivalue_line(
        "markers", "asyncio: marque un test comme asynchrone"
    )
    config.addinivalue_line(
        "markers", "unit: test unitaire (sans réseau externe)"
    )


class RecordingChannel:
    """Canal factice: mémorise les messages reçus."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages = []
        self.closed = False

    def send(self, message):
        if self.fail:
            raise RuntimeError("send failed")
        self.messages.append(message)

    def close(self):
        self.closed = True


@pytest.fixture
def registry():
    """Registre isolé (pas l'instance globale)."""
    return SessionRegistry()


@pytest.fixture
def recording_channel_factory():
    return RecordingChannel


@pytest.fixture
def fake_server_command():
    """Commande shell lançant le serveur JSON-RPC stdio factice."""
    script = Path(__file__).resolve().parent / "fixtures" / "fake_mcp_server_stdio.py"
    return f'exec "{sys.executable}" -u "{script}"'

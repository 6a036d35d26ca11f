"""Doublures partagées pour les tests des deux modes du gateway."""

from contextlib import asynccontextmanager

import anyio
import httpx
import pytest
import pytest_asyncio

from supergateway.core.jsonrpc import from_session_message, to_session_message
from supergateway.features.sse_to_stdio import RemoteClient


INITIALIZE_RESULT = {
    "protocolVersion": "2024-11-05",
    "capabilities": {"tools": {}},
    "serverInfo": {"name": "remote-server", "version": "2.3.4"},
}


class FakeRemoteServer:
    """Remplace `sse_client`: serveur JSON-RPC en mémoire.

    Un responder reçoit la requête reçue et retourne la réponse à livrer
    (ou None pour ne rien répondre).
    """

    def __init__(self, *, fail_connect=False, initialize_result=INITIALIZE_RESULT):
        self.fail_connect = fail_connect
        self.sent = []
        self.connect_kwargs = None
        self.disconnected = False
        self.responders = {
            "initialize": lambda request: {
                "jsonrpc": "2.0",
                "id": request["id"],
                "result": initialize_result,
            },
        }
        self._to_client = None

    @asynccontextmanager
    async def connect(self, url, **kwargs):
        self.connect_kwargs = dict(kwargs, url=url)
        if self.fail_connect:
            raise httpx.ConnectError("All connection attempts failed")

        to_client_send, to_client_recv = anyio.create_memory_object_stream(100)
        to_server_send, to_server_recv = anyio.create_memory_object_stream(100)
        self._to_client = to_client_send
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._serve, to_server_recv)
                try:
                    yield to_client_recv, to_server_send
                finally:
                    tg.cancel_scope.cancel()
        finally:
            self.disconnected = True

    async def _serve(self, to_server_recv):
        async with to_server_recv:
            async for item in to_server_recv:
                message = from_session_message(item)
                self.sent.append(message)
                responder = self.responders.get(message.get("method"))
                if responder is not None:
                    reply = responder(message)
                    if reply is not None:
                        await self.deliver(reply)

    async def deliver(self, message):
        await self._to_client.send(to_session_message(message))

    async def drop(self):
        """Simule une coupure côté serveur distant (fin du flux SSE)."""
        await self._to_client.aclose()

    def requests(self, method):
        return [m for m in self.sent if m.get("method") == method]


@pytest.fixture
def remote_server():
    return FakeRemoteServer()


@pytest.fixture
def remote_client(remote_server):
    return RemoteClient("http://remote.test/sse", request_timeout=2, connect=remote_server.connect)


@pytest.fixture
def remote_server_factory():
    return FakeRemoteServer


@pytest_asyncio.fixture
async def stdio_streams():
    """(entrée stdio côté test, entrée côté gateway, sortie côté gateway, sortie côté test)."""
    in_send, in_recv = anyio.create_memory_object_stream(100)
    out_send, out_recv = anyio.create_memory_object_stream(100)
    yield in_send, in_recv, out_send, out_recv
    for stream in (in_send, in_recv, out_send, out_recv):
        await stream.aclose()


@asynccontextmanager
async def _connected(client):
    await client.connect()
    try:
        yield client
    finally:
        await client.close()


@pytest.fixture
def connected():
    """`async with connected(client)`: ouvre puis ferme le client dans la tâche du test."""
    return _connected

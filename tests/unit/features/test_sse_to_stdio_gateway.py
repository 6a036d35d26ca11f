"""Tests unitaires: SseToStdioGateway et runner `serve_sse_to_stdio`.

Le RemoteClient réel tourne au-dessus d'un serveur distant en mémoire; les
streams stdio sont des memory streams anyio de `SessionMessage`, comme ceux
fournis par `stdio_server`.
"""

import asyncio
import io
import json
import sys

import anyio
import pytest

from supergateway.config.settings import SseToStdioSettings
from supergateway.core.jsonrpc import to_session_message
from supergateway.core.version import get_version
from supergateway.features.sse_to_stdio import RemoteClient, SseToStdioGateway
from supergateway.features.sse_to_stdio.gateway import GatewayState, ServerIdentity
from supergateway.main import serve_sse_to_stdio
from supergateway.transport.stdio import StdinLines


def _line(item):
    """Ligne telle qu'écrite sur stdout par `stdio_server`."""
    return item.message.model_dump_json(by_alias=True, exclude_none=True)


async def _next_line(out_recv, timeout=2.0):
    return _line(await asyncio.wait_for(out_recv.receive(), timeout))


def _drain(out_recv):
    lines = []
    while True:
        try:
            lines.append(_line(out_recv.receive_nowait()))
        except (anyio.WouldBlock, anyio.EndOfStream):
            return lines


def _echo(request):
    return {"jsonrpc": "2.0", "id": request["id"], "result": request.get("params")}


async def _until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


@pytest.fixture
def gateway(remote_client, stdio_streams):
    _in_send, in_recv, out_send, _out_recv = stdio_streams
    return SseToStdioGateway(remote_client, in_recv, out_send)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_forward_request_preserves_original_id(gateway, remote_client, remote_server, stdio_streams, connected):
    out_recv = stdio_streams[3]
    remote_server.responders["tools/list"] = lambda request: {
        "jsonrpc": "2.0", "id": request["id"], "result": {"tools": []},
    }

    async with connected(remote_client):
        response = await gateway.forward_request({"jsonrpc": "2.0", "id": 42, "method": "tools/list"})

    assert response == {"jsonrpc": "2.0", "id": 42, "result": {"tools": []}}
    assert await _next_line(out_recv) == '{"jsonrpc":"2.0","id":42,"result":{"tools":[]}}'
    assert remote_server.requests("tools/list")[0]["id"] != 42


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remote_error_is_written_with_prefix_stripped(
    gateway, remote_client, remote_server, stdio_streams, connected
):
    out_recv = stdio_streams[3]
    remote_server.responders["nope"] = lambda request: {
        "jsonrpc": "2.0", "id": request["id"],
        "error": {"code": -32601, "message": "MCP error -32601: Method not found"},
    }

    async with connected(remote_client):
        await gateway.forward_request({"jsonrpc": "2.0", "id": 5, "method": "nope"})

    assert await _next_line(out_recv) == '{"jsonrpc":"2.0","id":5,"error":{"code":-32601,"message":"Method not found"}}'


@pytest.mark.unit
@pytest.mark.asyncio
async def test_forward_without_connection_defaults_to_32000(gateway, stdio_streams):
    out_recv = stdio_streams[3]

    response = await gateway.forward_request({"id": "x", "method": "tools/call", "params": {}})

    assert response == {"jsonrpc": "2.0", "id": "x", "error": {"code": -32000, "message": "Not connected"}}
    assert _drain(out_recv) == ['{"jsonrpc":"2.0","id":"x","error":{"code":-32000,"message":"Not connected"}}']


@pytest.mark.unit
@pytest.mark.asyncio
async def test_result_carrying_error_becomes_error_response(gateway, remote_client, remote_server, connected):
    remote_server.responders["odd"] = lambda request: {
        "jsonrpc": "2.0", "id": request["id"],
        "result": {"error": {"code": -32602, "message": "Invalid params"}},
    }

    async with connected(remote_client):
        response = await gateway.forward_request({"jsonrpc": "2.0", "id": 9, "method": "odd"})

    assert response == {"jsonrpc": "2.0", "id": 9, "error": {"code": -32602, "message": "Invalid params"}}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_request_messages_are_written_verbatim(gateway, stdio_streams, remote_server):
    out_recv = stdio_streams[3]
    notification = {"jsonrpc": "2.0", "method": "notifications/cancelled", "params": {"requestId": 1}}

    assert await gateway.handle_stdio_message(notification) is None

    assert [json.loads(line) for line in _drain(out_recv)] == [notification]
    assert remote_server.sent == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remote_notifications_are_relayed(gateway, stdio_streams):
    out_recv = stdio_streams[3]

    await gateway.relay({"jsonrpc": "2.0", "method": "notifications/progress", "params": {"progress": 1}})

    assert _drain(out_recv) == [
        '{"jsonrpc":"2.0","method":"notifications/progress","params":{"progress":1}}'
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_requests_complete_out_of_order(
    gateway, remote_client, remote_server, stdio_streams, connected
):
    out_recv = stdio_streams[3]
    held = []
    remote_server.responders["slow"] = held.append

    async with connected(remote_client):
        first = await gateway.handle_stdio_message({"jsonrpc": "2.0", "id": "a", "method": "slow"})
        second = await gateway.handle_stdio_message({"jsonrpc": "2.0", "id": "b", "method": "slow"})
        await _until(lambda: len(held) == 2)
        assert gateway.state is GatewayState.FORWARDING

        for request in reversed(held):
            await remote_server.deliver({"jsonrpc": "2.0", "id": request["id"], "result": {"local": request["id"]}})
        await asyncio.gather(first, second)

    written = [json.loads(line) for line in _drain(out_recv)]
    assert [m["id"] for m in written] == ["b", "a"]
    assert gateway.state is GatewayState.CONNECTED


@pytest.mark.unit
def test_identity_falls_back_to_gateway_name():
    identity = ServerIdentity.resolve(None, None)
    assert identity.name == "supergateway"
    assert identity.version == get_version()

    remote = ServerIdentity.resolve({"name": "remote-server", "version": "2.3.4"}, {"tools": {}})
    assert remote == ServerIdentity(name="remote-server", version="2.3.4", capabilities={"tools": {}})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_exits_zero_after_stdin_eof_and_drains_requests(gateway, remote_server, stdio_streams):
    in_send, _in_recv, _out_send, out_recv = stdio_streams
    remote_server.responders["echo"] = _echo

    await in_send.send(to_session_message({"jsonrpc": "2.0", "id": 1, "method": "echo", "params": {"v": 1}}))
    await in_send.send(ValueError("not json"))
    await in_send.send(to_session_message({"jsonrpc": "2.0", "id": 2, "method": "echo", "params": {"v": 2}}))
    await in_send.aclose()

    code = await asyncio.wait_for(gateway.run(), timeout=2)

    assert code == 0
    assert gateway.identity.name == "remote-server"
    written = sorted((json.loads(line) for line in _drain(out_recv)), key=lambda m: m["id"])
    assert written == [
        {"jsonrpc": "2.0", "id": 1, "result": {"v": 1}},
        {"jsonrpc": "2.0", "id": 2, "result": {"v": 2}},
    ]
    assert gateway.state is GatewayState.CLOSED
    assert remote_server.disconnected


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_exits_one_and_closes_remote_when_remote_closes(gateway, remote_server, stdio_streams):
    out_recv = stdio_streams[3]

    async def _drop_later():
        await asyncio.sleep(0.05)
        await remote_server.drop()

    dropper = asyncio.create_task(_drop_later())
    code = await asyncio.wait_for(gateway.run(), timeout=2)
    await dropper

    assert code == 1
    assert gateway.state is GatewayState.CLOSED
    assert remote_server.disconnected
    assert gateway.remote.session is None
    with pytest.raises(anyio.EndOfStream):
        out_recv.receive_nowait()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_exits_one_when_connection_fails(remote_server_factory, stdio_streams):
    _in_send, in_recv, out_send, _out_recv = stdio_streams
    server = remote_server_factory(fail_connect=True)
    gateway = SseToStdioGateway(RemoteClient("http://remote.test/sse", connect=server.connect), in_recv, out_send)

    assert await gateway.run() == 1
    assert gateway.state is GatewayState.CLOSED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_late_response_after_timeout_writes_a_single_line(remote_server, stdio_streams):
    in_send, in_recv, out_send, out_recv = stdio_streams
    remote = RemoteClient("http://remote.test/sse", request_timeout=0.05, connect=remote_server.connect)
    gateway = SseToStdioGateway(remote, in_recv, out_send)
    run_task = asyncio.create_task(gateway.run())

    await in_send.send(to_session_message({"jsonrpc": "2.0", "id": "x", "method": "slow"}))
    timeout_line = await _next_line(out_recv)
    assert timeout_line == '{"jsonrpc":"2.0","id":"x","error":{"code":-32001,"message":"Request timed out"}}'

    late_id = remote_server.requests("slow")[0]["id"]
    await remote_server.deliver({"jsonrpc": "2.0", "id": late_id, "result": {"late": True}})
    await asyncio.sleep(0.1)
    await in_send.aclose()

    assert await asyncio.wait_for(run_task, timeout=2) == 0
    assert _drain(out_recv) == []


class KeepOpenBytesIO(io.BytesIO):
    """Buffer stdout qui survit à la fermeture de ses wrappers texte."""

    def close(self):
        pass


@pytest.mark.unit
@pytest.mark.asyncio
async def test_serve_sse_to_stdio_writes_utf8_lines(monkeypatch, remote_server):
    raw_stdout = KeepOpenBytesIO()
    # Un stdout texte non UTF-8 ne doit pas influer sur l'encodage du flux.
    monkeypatch.setattr(sys, "stdout", io.TextIOWrapper(raw_stdout, encoding="ascii"))
    remote_server.responders["echo"] = _echo

    reader = asyncio.StreamReader()
    reader.feed_data('{"jsonrpc":"2.0","id":1,"method":"echo","params":{"text":"é"}}\n'.encode("utf-8"))
    reader.feed_eof()
    remote = RemoteClient("http://remote.test/sse", connect=remote_server.connect)

    code = await asyncio.wait_for(
        serve_sse_to_stdio(SseToStdioSettings(sse_url="http://remote.test/sse"), remote=remote, stdin=StdinLines(reader)),
        timeout=5,
    )

    assert code == 0
    assert raw_stdout.getvalue().decode("utf-8") == '{"jsonrpc":"2.0","id":1,"result":{"text":"é"}}\n'


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stdin_lines_close_ends_pending_iteration():
    reader = asyncio.StreamReader()
    reader.feed_data(b'{"a":1}\n')
    lines = StdinLines(reader)
    iterator = lines.__aiter__()

    assert await iterator.__anext__() == '{"a":1}\n'
    pending = asyncio.create_task(iterator.__anext__())
    await asyncio.sleep(0.01)
    lines.close()

    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(pending, timeout=1)

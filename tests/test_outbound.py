import asyncio
import socket

import pytest

from rapidnet.config import RapidClientConfig
from rapidnet.io_core import read_frame
from rapidnet.outbound import OutboundClient


def free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _hold(reader, writer):
    await reader.read()
    writer.close()


async def _echo(reader, writer):
    frame = await read_frame(reader)
    writer.write(frame)
    await writer.drain()
    await reader.read()
    writer.close()


async def _hang_up(reader, writer):
    writer.close()


@pytest.mark.asyncio
async def test_connect_fails_then_succeeds_when_server_runs():
    port = free_port()
    cfg = RapidClientConfig(f"127.0.0.1:{port}", True)

    with pytest.raises(OSError):
        await OutboundClient.connect(cfg)

    server = await asyncio.start_server(_hold, "127.0.0.1", port)
    try:
        client = await OutboundClient.connect(cfg)
        try:
            assert client.is_alive()
            assert client.addr == ("127.0.0.1", port)
        finally:
            await client.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_connect_to_unreachable_address_fails():
    cfg = RapidClientConfig("192.0.2.1:65000", True)
    with pytest.raises((OSError, asyncio.TimeoutError)):
        await asyncio.wait_for(OutboundClient.connect(cfg), 3)


@pytest.mark.asyncio
@pytest.mark.parametrize("address", ["localhost:80", "127.0.0.1", "127.0.0.1:port", "::1:80"])
async def test_invalid_address_rejected(address):
    with pytest.raises(ValueError):
        await OutboundClient.connect(RapidClientConfig(address, True))


@pytest.mark.asyncio
async def test_send_and_recv_round_trip():
    server = await asyncio.start_server(_echo, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        client = await OutboundClient.connect(RapidClientConfig(f"127.0.0.1:{port}", True))
        try:
            await client.send(b"TestVal")
            answer = await asyncio.wait_for(client.recv(), 2)
            assert answer == b"TestVal"
        finally:
            await client.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_recv_returns_none_after_server_hangs_up():
    server = await asyncio.start_server(_hang_up, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        client = await OutboundClient.connect(RapidClientConfig(f"127.0.0.1:{port}", False))
        try:
            assert await asyncio.wait_for(client.recv(), 2) is None
            assert await asyncio.wait_for(client.recv(), 2) is None
            assert not client.is_alive()
        finally:
            await client.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_reconnect_succeeds_immediately_when_server_is_up():
    server = await asyncio.start_server(_hold, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        client = await OutboundClient.connect(RapidClientConfig(f"127.0.0.1:{port}", True))
        old_id = client.id
        try:
            await asyncio.wait_for(client.reconnect(), 2)
            assert client.is_alive()
            assert client.id != old_id
        finally:
            await client.close()
    finally:
        server.close()


@pytest.mark.asyncio
async def test_reconnect_retries_until_server_is_back():
    port = free_port()
    cfg = RapidClientConfig(f"127.0.0.1:{port}", True)
    first = await asyncio.start_server(_hold, "127.0.0.1", port)
    client = await OutboundClient.connect(cfg)
    old_id = client.id
    first.close()
    await asyncio.sleep(0.01)

    client.retry_delay = 0.05
    client.max_retry_delay = 0.1
    reconnecting = asyncio.create_task(client.reconnect())
    second = None
    try:
        await asyncio.sleep(0.2)
        assert not reconnecting.done()
        second = await asyncio.start_server(_hold, "127.0.0.1", port)
        await asyncio.wait_for(reconnecting, 3)
        assert client.is_alive()
        assert client.id != old_id
    finally:
        reconnecting.cancel()
        await asyncio.gather(reconnecting, return_exceptions=True)
        await client.close()
        if second is not None:
            second.close()
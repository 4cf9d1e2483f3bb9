# rapidnet

An asyncio library for TCP services that exchange framed messages. A
`RapidServer` accepts many connections and puts what happens on each of them
as events on a queue; an `OutboundClient` connects to such a server, sends
messages and receives replies.

It has no dependencies outside the standard library.

## Wire format

Every frame starts with a 4-byte big-endian length that counts the whole
frame, the length field included. A frame announcing more than 10 MiB, or
fewer bytes than its own header, ends the connection. Once the length has
arrived, the rest of the frame must follow within 5 seconds or the connection
ends. Outgoing messages are written in batches of up to 10, with a 5-second
limit on each write.

What goes inside a frame is decided by a codec, an instance of
`rapidnet.io_core.MessageCodec` or a subclass of it. `encode(message)` returns
the complete frame as bytes and `decode(data)` turns a complete frame back into
a message; both raise `rapidnet.errors.CodecError` on bad input. The base
class carries raw bytes: it encodes `bytes`, `bytearray` or `memoryview` and
decodes to the body `bytes`. Incoming frames that fail to decode are logged and
skipped; the connection stays open. Outgoing messages that fail to encode are
logged and dropped.

`rapidnet.io_core.read_frame(reader)` reads one whole frame, header included,
from an `asyncio.StreamReader`.

## Configuration

```python
from rapidnet.config import RapidServerConfig, RapidClientConfig

server_config = RapidServerConfig(address="127.0.0.1:19876", no_delay=True)
client_config = RapidClientConfig(address="127.0.0.1:19876", no_delay=True)
```

Both are dataclasses; `address` defaults to `""` and `no_delay` to `False`.

## Running a server

```python
import asyncio

from rapidnet.events import EventKind
from rapidnet.server import RapidServer

async def serve(codec):
    events = asyncio.Queue()
    server = RapidServer(server_config, codec)
    asyncio.create_task(server.run(events))

    while True:
        event = await events.get()
        if event.kind is EventKind.MESSAGE:
            await server.send_to_client(event.client_id, event.message)
```

`run(events)` listens on the configured `host:port` (an IPv6 host may be
written in brackets) and serves until cancelled; it raises `ValueError` for an
address without a valid port. Accepted sockets always get `TCP_NODELAY`. On
cancellation every open connection is closed.

Each accepted connection gets a fresh UUID. The queue receives a
`rapidnet.events.ServerEvent` of kind `EventKind.CONNECTED` as soon as a client
is accepted, then one of kind `EventKind.MESSAGE` for every message it sends.
When the connection ends, the client is removed from the server without a
further event.

`send_to_client(client_id, message)` raises `ClientNotFoundError` for an
unknown id and `SendFailedError` when the client's writing task has stopped.
`broadcast(message, exclude=None)` encodes the message once, then sends it to
every connected client whose id is not in `exclude`. It raises
`EncodingFailedError` if the message cannot be encoded. Clients that fail are
dropped, and `BroadcastFailedError` (whose `errors` lists the failing ids and
their exceptions) is raised when the number of failures equals the number of
clients left afterwards. All of these derive from
`rapidnet.server.ServerError`.

## Connecting as a client

```python
from rapidnet.config import RapidClientConfig
from rapidnet.outbound import OutboundClient

async def talk(codec, message):
    client = await OutboundClient.connect(client_config, codec)
    await client.send(message)
    reply = await client.recv()
    await client.close()
    return reply
```

`connect(config, codec=None)` takes an address of the form `ip:port` (IPv6 in
brackets); it raises `ValueError` for anything else and `OSError` when the
connection fails. `recv()` returns the next message from the server, or `None`
once the connection has ended. `reconnect()` keeps trying to connect again,
waiting `retry_delay` (one second) after the first failure and doubling the
wait up to `max_retry_delay` (one minute); the old connection is closed once a
new one is up. `is_alive()` tells whether the connection is still being read
and written, and `id` and `addr` give the connection's UUID and the server's
address.

`rapidnet.inbound.InboundClient` is the server side of one connection; it
offers the same `send`, `is_alive`, `close`, `id` and `addr`.

## Errors

Connection errors derive from `rapidnet.errors.ClientError`. `send` raises
`ChannelClosedError` when the writing task has stopped. Failures while reading
(`ConnectionClosedError`, `ReadTimeoutError`, `MessageTooLargeError`,
`CodecError` for a bad length, `ClientIOError`) or writing
(`WriteTimeoutError`, `ClientIOError`) end the task concerned and are logged
rather than raised to the caller. The module also defines
`FlushTimeoutError`, `ChannelSendTimeoutError` and `RemoteError` for
applications to use.

## What it does not do

The package defines no message format with typed fields: beyond the raw-bytes
`MessageCodec`, the contents of a frame are up to the codec you supply. It has
no command-line program.

## Logging

Everything is logged through the standard `logging` module under the
`rapidnet` logger names; configure it as usual to see connection and message
activity.
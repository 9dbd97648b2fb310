import asyncio
import socket

from stageline.env import Env
from stageline.lifecycle.dispatcher import LifecycleDispatcher
from stageline.lifecycle.errors import RespondError
from stageline.lifecycle.models import Address, LifecycleContext
from stageline.logging import Logger
from stageline.logging.stageline_logging_models import (
    ServerDebug,
    ServerError,
    ServerInfo,
)
from stageline.server.event_pump import EventPump
from stageline.server.protocol import ServerState, StreamProtocol

from .transport_adapter import TransportAdapter


class StreamAdapter(TransportAdapter):
    """
    Accepts stream connections and runs each through connect, per-chunk
    message stages and disconnect. Responses are written straight back to
    the still-open connection.
    """

    kind = 'stream'

    def __init__(
        self,
        dispatcher: LifecycleDispatcher,
        env: Env,
        logger: Logger | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._env = env
        self._logger = logger or Logger()

        self._host = env.STAGELINE_HOST
        self._port = env.STAGELINE_STREAM_PORT
        self._encoding = env.STAGELINE_ENCODING

        self._socket: socket.socket | None = None
        self._server: asyncio.Server | None = None
        self._address: Address | None = None

        self.state = ServerState[StreamProtocol]()
        self._pump = EventPump(
            self._logger,
            self._host,
            self._port,
            self.kind,
        )

        self._bound = False
        self._closing = False

    @property
    def address(self) -> Address | None:
        return self._address

    @property
    def closed(self) -> bool:
        return self._closing

    async def bind(
        self,
        host: str,
        port: int,
    ) -> Address | None:
        if self._bound or self._closing:
            return self._address

        self._bound = True
        self._host = host
        self._port = port

        loop = asyncio.get_running_loop()

        try:
            self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

            if self._env.STAGELINE_STREAM_REUSE_ADDRESS:
                self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

            self._socket.bind((host, port))
            self._socket.setblocking(False)

            self._server = await loop.create_server(
                lambda: StreamProtocol(self),
                sock=self._socket,
                backlog=self._env.STAGELINE_STREAM_BACKLOG,
            )

        except OSError as err:
            await self._bind_failed(err, host, port)
            return None

        self._address = Address.from_tuple(self._socket.getsockname())

        self._pump.start(
            self._finish_close,
            host=self._address.host,
            port=self._address.port,
        )

        await self._logger.log(
            ServerInfo(
                message=f'Stream server listening on {self._address}',
                node_host=self._address.host,
                node_port=self._address.port,
                transport=self.kind,
            )
        )

        await self._dispatcher.listening(self._address)

        return self._address

    def connection_made(self, protocol: StreamProtocol):
        if self._closing:
            protocol.transport.close()
            return

        self.state.protocols.add(protocol)
        self._pump.submit(lambda: self._opened(protocol))

    def data_received(
        self,
        protocol: StreamProtocol,
        data: bytes,
    ):
        self.state.total_requests += 1

        context = protocol.context.with_payload(bytes(data))
        self._pump.submit(lambda: self._received(protocol, context))

    def connection_lost(
        self,
        protocol: StreamProtocol,
        exc: Exception | None,
    ):
        self.state.protocols.discard(protocol)

        if exc is not None:
            self._pump.submit(
                lambda: self._transport_failed(protocol, exc),
                critical=True,
            )

        self._pump.submit(lambda: self._closed(protocol))

    async def respond(
        self,
        context: LifecycleContext,
        data: bytes | str,
    ) -> bool:
        if isinstance(data, str):
            data = data.encode(self._encoding)

        protocol: StreamProtocol | None = context.channel

        try:
            if protocol is None or protocol.writable is False:
                raise RespondError(f'Connection to {context.peer} is closed')

            protocol.transport.write(data)

        except (OSError, RuntimeError, RespondError) as err:
            await self._dispatcher.fail(err, 'respond', context, data)
            return False

        self.state.total_responses += 1
        return True

    async def close(self):
        if self._bound is False:
            self._closing = True
            await self._dispatcher.teardown(self.kind)
            return

        self._begin_close()

        if self._pump.in_pump:
            # Closed from inside a handler, teardown runs once it returns.
            return

        await self._pump.wait_stopped()

        if self._server is not None:
            await self._server.wait_closed()

    def _begin_close(self):
        if self._closing:
            return

        self._closing = True

        if self._server is not None:
            self._server.close()

        self._pump.stop()

    async def _opened(self, protocol: StreamProtocol):
        if protocol.context is None:
            return

        self.state.connections.add(protocol)
        await self._dispatcher.stream_opened(protocol.context)

    async def _received(
        self,
        protocol: StreamProtocol,
        context: LifecycleContext,
    ):
        if protocol not in self.state.connections:
            return

        await self._dispatcher.stream_data(context)

    async def _closed(self, protocol: StreamProtocol):
        if protocol not in self.state.connections:
            return

        self.state.connections.discard(protocol)
        await self._dispatcher.stream_closed(protocol.context)

    async def _finish_close(self):
        for protocol in list(self.state.connections):
            self.state.connections.discard(protocol)
            await self._dispatcher.stream_closed(protocol.context)

            if protocol.transport is not None:
                protocol.transport.close()

        for protocol in list(self.state.protocols):
            if protocol.transport is not None:
                protocol.transport.close()

        self.state.protocols.clear()

        await self._dispatcher.teardown(self.kind)

        await self._logger.log(
            ServerInfo(
                message=(
                    f'Stream server {self._address} closed after '
                    f'{self.state.total_requests} chunks, {self.state.total_responses} responses'
                ),
                node_host=self._host,
                node_port=self._port,
                transport=self.kind,
            )
        )

    async def _transport_failed(
        self,
        protocol: StreamProtocol,
        exc: Exception,
    ):
        await self._logger.log(
            ServerDebug(
                message=f'Connection error from {protocol.context.peer} - {exc!r}',
                node_host=self._host,
                node_port=self._port,
                transport=self.kind,
            )
        )

        await self._dispatcher.fail(exc, 'socket', protocol.context)

    async def _bind_failed(
        self,
        err: OSError,
        host: str,
        port: int,
    ):
        self._closing = True

        if self._socket is not None:
            self._socket.close()

        await self._logger.log(
            ServerError(
                message=f'Could not bind stream server to {host}:{port} - {err}',
                node_host=host,
                node_port=port,
                transport=self.kind,
            )
        )

        await self._dispatcher.fail(err, 'bind', host, port)
        await self._dispatcher.teardown(self.kind)

import asyncio
import socket
from typing import Awaitable, Callable, Tuple

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
from stageline.server.protocol import DatagramProtocol, ServerState

from .transport_adapter import TransportAdapter


Route = Callable[[LifecycleContext], Awaitable[None]]


class DatagramAdapter(TransportAdapter):
    """
    One shared datagram socket for every peer. Responses are addressed
    explicitly since the socket has no notion of a current peer.
    """

    kind = 'datagram'

    def __init__(
        self,
        dispatcher: LifecycleDispatcher,
        env: Env,
        logger: Logger | None = None,
        route: Route | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._env = env
        self._logger = logger or Logger()
        self._route = route or dispatcher.datagram_received

        self._host = env.STAGELINE_HOST
        self._port = env.STAGELINE_DATAGRAM_PORT
        self._encoding = env.STAGELINE_ENCODING

        self._socket: socket.socket | None = None
        self._transport: asyncio.DatagramTransport | None = None
        self._protocol: DatagramProtocol | None = None
        self._address: Address | None = None

        self.state = ServerState[Address]()
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
            self._socket = socket.socket(
                socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP
            )

            if self._env.STAGELINE_DATAGRAM_REUSE_ADDRESS:
                self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

            self._socket.bind((host, port))
            self._socket.setblocking(False)

            transport, protocol = await loop.create_datagram_endpoint(
                lambda: DatagramProtocol(self),
                sock=self._socket,
            )

        except OSError as err:
            await self._bind_failed(err, host, port)
            return None

        self._transport = transport
        self._protocol = protocol
        self._address = Address.from_tuple(protocol.server or (host, port))

        self._pump.start(
            self._finish_close,
            host=self._address.host,
            port=self._address.port,
        )

        await self._logger.log(
            ServerInfo(
                message=f'Datagram socket bound to {self._address}',
                node_host=self._address.host,
                node_port=self._address.port,
                transport=self.kind,
            )
        )

        await self._dispatcher.listening(self._address)

        return self._address

    def datagram_received(
        self,
        data: bytes,
        addr: Tuple[str, int],
    ):
        if self._closing:
            return

        self.state.total_requests += 1

        peer = Address.from_tuple(addr)
        context = LifecycleContext(
            transport=self.kind,
            peer=peer,
            payload=bytes(data),
            target=peer,
            responder=self.respond,
        )

        self._pump.submit(lambda: self._route(context))

    def transport_error(self, exc: Exception):
        self._pump.submit(
            lambda: self._transport_failed(exc),
            critical=True,
        )

    def connection_lost(self, exc: Exception | None):
        if exc is not None:
            self._pump.submit(
                lambda: self._transport_failed(exc),
                critical=True,
            )

        self._begin_close()

    async def respond(
        self,
        context: LifecycleContext,
        data: bytes | str,
    ) -> bool:
        if isinstance(data, str):
            data = data.encode(self._encoding)

        target = context.target or context.peer

        try:
            if self._transport is None or self._transport.is_closing():
                raise RespondError(f'Datagram socket closed, cannot send to {target}')

            self._transport.sendto(data, target.to_tuple())

        except (OSError, RespondError) as err:
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
        await self._pump.wait_stopped()

    def _begin_close(self):
        if self._closing:
            return

        self._closing = True

        if self._transport is not None:
            self._transport.close()

        self._pump.stop()

    async def _finish_close(self):
        await self._dispatcher.teardown(self.kind)

        await self._logger.log(
            ServerInfo(
                message=(
                    f'Datagram socket {self._address} closed after '
                    f'{self.state.total_requests} datagrams, {self.state.total_responses} responses'
                ),
                node_host=self._host,
                node_port=self._port,
                transport=self.kind,
            )
        )

    async def _transport_failed(self, exc: Exception):
        await self._logger.log(
            ServerDebug(
                message=f'Datagram socket error - {exc!r}',
                node_host=self._host,
                node_port=self._port,
                transport=self.kind,
            )
        )

        await self._dispatcher.fail(exc, 'socket')

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
                message=f'Could not bind datagram socket to {host}:{port} - {err}',
                node_host=host,
                node_port=port,
                transport=self.kind,
            )
        )

        await self._dispatcher.fail(err, 'bind', host, port)
        await self._dispatcher.teardown(self.kind)

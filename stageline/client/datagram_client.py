from __future__ import annotations

from typing import Any

from stageline.env import Env
from stageline.lifecycle.dispatcher import LifecycleDispatcher
from stageline.lifecycle.models import Address, LifecycleContext
from stageline.lifecycle.registry import Handler, HandlerConfig, StageHandlers, StageName
from stageline.logging import Logger, LoggingConfig
from stageline.server.adapters import DatagramAdapter


class DatagramClient:
    """
    Datagram client with the same connection-shaped lifecycle as the
    server: ``handshake`` before the first send, ``connect`` once that send
    goes out, ``disconnect`` and ``shutdown`` on close.

    Inbound datagrams run receiveMessage -> processMessage ->
    respondMessage. Nothing is sent back automatically, respondMessage only
    marks that the reply was handled.
    """

    def __init__(
        self,
        handlers: StageHandlers | HandlerConfig | None = None,
        env: Env | None = None,
        host: str | None = None,
        port: int | None = None,
        local_host: str = '0.0.0.0',
        name: str = 'stageline.client',
    ) -> None:
        if env is None:
            env = Env()

        self.env = env
        self.name = name
        self.target = Address(
            host or env.STAGELINE_HOST,
            port if port is not None else env.STAGELINE_DATAGRAM_PORT,
        )

        self._local_host = local_host
        self._encoding = env.STAGELINE_ENCODING

        self._logger = Logger()
        self.dispatcher = LifecycleDispatcher(
            handlers,
            name=name,
            encoding=env.STAGELINE_ENCODING,
            logger=self._logger,
        )
        self.adapter = DatagramAdapter(
            self.dispatcher,
            env,
            logger=self._logger,
            route=self.dispatcher.datagram_reply_received,
        )

        self._started = False
        self._handshaken = False

    @property
    def address(self) -> Address | None:
        return self.adapter.address

    @property
    def connected(self) -> bool:
        return self.target in self.dispatcher.sessions

    def on(self, stage: StageName, handler: Handler):
        self.dispatcher.on(stage, handler)

    def on_error(self, handler: Handler):
        self.dispatcher.on_error(handler)

    async def start(self, config: Any = None) -> bool:
        if self._started:
            return self.adapter.address is not None and self.adapter.closed is False

        self._started = True

        LoggingConfig().update(**self.env.get_logging_config())

        await self.dispatcher.initialize(
            config if config is not None else self.env
        )

        address = await self.adapter.bind(self._local_host, 0)
        return address is not None

    async def send(self, message: bytes | str) -> bool:
        if isinstance(message, str):
            message = message.encode(self._encoding)

        handshake_pending = self._handshaken is False
        self._handshaken = True

        return await self.dispatcher.datagram_send(
            LifecycleContext(
                transport='datagram',
                peer=self.target,
                payload=message,
                target=self.target,
                responder=self.adapter.respond,
            ),
            handshake_pending,
        )

    async def close(self):
        await self.adapter.close()
        await self._logger.close()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

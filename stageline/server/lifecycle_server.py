from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from stageline.env import Env
from stageline.lifecycle.dispatcher import LifecycleDispatcher
from stageline.lifecycle.models import Address
from stageline.lifecycle.registry import Handler, HandlerConfig, StageHandlers, StageName
from stageline.logging import Logger, LoggingConfig

from .adapters import DatagramAdapter, StreamAdapter, TransportAdapter


class LifecycleServer(ABC):
    """
    Owns a dispatcher and one transport adapter. ``start()`` fires
    ``init``, binds and fires ``listening``; ``close()`` runs teardown.
    Neither ever raises a lifecycle failure, those go to ``error``.
    """

    adapter_type: type[TransportAdapter]

    def __init__(
        self,
        handlers: StageHandlers | HandlerConfig | None = None,
        env: Env | None = None,
        host: str | None = None,
        port: int | None = None,
        name: str | None = None,
    ) -> None:
        if env is None:
            env = Env()

        self.env = env
        self.name = name or f'stageline.{self.adapter_type.kind}'

        self._host = host or env.STAGELINE_HOST
        self._port = port if port is not None else self._default_port(env)

        self._logger = Logger()
        self.dispatcher = LifecycleDispatcher(
            handlers,
            name=self.name,
            encoding=env.STAGELINE_ENCODING,
            logger=self._logger,
            stream_acknowledge=env.STAGELINE_STREAM_ACKNOWLEDGE,
        )
        self.adapter = self._create_adapter()

        self._started = False

    @property
    def address(self) -> Address | None:
        return self.adapter.address

    @property
    def listening(self) -> bool:
        return self.adapter.address is not None and self.adapter.closed is False

    def on(self, stage: StageName, handler: Handler):
        self.dispatcher.on(stage, handler)

    def on_error(self, handler: Handler):
        self.dispatcher.on_error(handler)

    async def start(self, config: Any = None) -> bool:
        if self._started:
            return self.listening

        self._started = True

        LoggingConfig().update(**self.env.get_logging_config())

        await self.dispatcher.initialize(
            config if config is not None else self.env
        )

        address = await self.adapter.bind(self._host, self._port)
        return address is not None

    async def close(self):
        await self.adapter.close()
        await self._logger.close()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @abstractmethod
    def _default_port(self, env: Env) -> int:
        pass

    @abstractmethod
    def _create_adapter(self) -> TransportAdapter:
        pass


class StreamServer(LifecycleServer):
    adapter_type = StreamAdapter

    def _default_port(self, env: Env) -> int:
        return env.STAGELINE_STREAM_PORT

    def _create_adapter(self) -> StreamAdapter:
        return StreamAdapter(
            self.dispatcher,
            self.env,
            logger=self._logger,
        )


class DatagramServer(LifecycleServer):
    adapter_type = DatagramAdapter

    def _default_port(self, env: Env) -> int:
        return env.STAGELINE_DATAGRAM_PORT

    def _create_adapter(self) -> DatagramAdapter:
        return DatagramAdapter(
            self.dispatcher,
            self.env,
            logger=self._logger,
        )

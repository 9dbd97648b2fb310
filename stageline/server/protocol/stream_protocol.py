from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from stageline.lifecycle.models import Address, LifecycleContext

from .utils import get_local_addr, get_remote_addr

if TYPE_CHECKING:
    from stageline.server.adapters.stream_adapter import StreamAdapter


class StreamProtocol(asyncio.Protocol):
    def __init__(self, adapter: StreamAdapter):
        super().__init__()
        self.adapter = adapter
        self.transport: asyncio.Transport | None = None

        self.server: tuple[str, int] | None = None
        self.client: tuple[str, int] | None = None
        self.context: LifecycleContext | None = None

    def connection_made(self, transport: asyncio.Transport):
        self.transport = transport
        self.server = get_local_addr(transport)
        self.client = get_remote_addr(transport) or ('', 0)

        self.context = LifecycleContext(
            transport='stream',
            peer=Address.from_tuple(self.client),
            channel=self,
            responder=self.adapter.respond,
        )

        self.adapter.connection_made(self)

    def data_received(self, data: bytes) -> None:
        self.adapter.data_received(self, data)

    def eof_received(self) -> bool | None:
        # Returning a falsy value lets the transport close itself.
        return None

    def connection_lost(self, exc: Exception | None) -> None:
        self.adapter.connection_lost(self, exc)

    @property
    def writable(self) -> bool:
        return self.transport is not None and self.transport.is_closing() is False

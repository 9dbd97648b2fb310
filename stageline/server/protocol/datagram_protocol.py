from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Tuple

from .utils import get_local_addr

if TYPE_CHECKING:
    from stageline.server.adapters.datagram_adapter import DatagramAdapter


class DatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, adapter: DatagramAdapter):
        super().__init__()
        self.adapter = adapter
        self.transport: asyncio.DatagramTransport | None = None
        self.server: tuple[str, int] | None = None

    def connection_made(self, transport: asyncio.DatagramTransport):
        self.transport = transport
        self.server = get_local_addr(transport)

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self.adapter.datagram_received(data, addr)

    def error_received(self, exc: Exception) -> None:
        self.adapter.transport_error(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        self.adapter.connection_lost(exc)

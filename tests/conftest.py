"""
Shared pytest fixtures.

Async tests are marked with ``@pytest.mark.asyncio`` (pytest-asyncio).
"""

import asyncio
import socket
from typing import Any, Callable

import pytest
import pytest_asyncio

from stageline.env import Env
from stageline.lifecycle import ErrorEvent, Stage
from stageline.logging import LoggingConfig


class StageRecorder:
    """Collects every handler call in the order the dispatcher made it."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._waiters: dict[str, list[tuple[int, asyncio.Future]]] = {}

    def handler(self, stage: str) -> Callable[..., None]:
        def record(*args: Any) -> None:
            self.calls.append((stage, args))
            self._wake(stage)

        return record

    def handlers(self, *stages: str) -> dict[str, list[Callable[..., None]]]:
        if len(stages) < 1:
            stages = tuple(stage.value for stage in Stage)

        return {
            stage: [self.handler(stage)] for stage in stages
        }

    def stages(self) -> list[str]:
        return [stage for stage, _ in self.calls]

    def count(self, stage: str) -> int:
        return self.stages().count(stage)

    def args(self, stage: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == stage]

    def errors(self) -> list[ErrorEvent]:
        return [args[0] for args in self.args('error')]

    async def wait_for(
        self,
        stage: str,
        count: int = 1,
        timeout: float = 2.0,
    ):
        if self.count(stage) >= count:
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(stage, []).append((count, waiter))

        await asyncio.wait_for(waiter, timeout)

    def _wake(self, stage: str):
        pending = []
        for count, waiter in self._waiters.get(stage, []):
            if waiter.done():
                continue

            if self.count(stage) >= count:
                waiter.set_result(True)

            else:
                pending.append((count, waiter))

        self._waiters[stage] = pending


class DatagramPeer(asyncio.DatagramProtocol):
    """A bare datagram socket standing in for a remote client."""

    def __init__(self) -> None:
        self.received: asyncio.Queue[tuple[bytes, tuple[str, int]]] = asyncio.Queue()
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.received.put_nowait((data, addr))

    @property
    def address(self) -> tuple[str, int]:
        return self.transport.get_extra_info('sockname')[:2]

    def send(self, data: bytes, addr: tuple[str, int]):
        self.transport.sendto(data, addr)

    async def receive(self, timeout: float = 2.0) -> bytes:
        data, _ = await asyncio.wait_for(self.received.get(), timeout)
        return data

    def close(self):
        self.transport.close()


@pytest.fixture
def recorder() -> StageRecorder:
    return StageRecorder()


@pytest_asyncio.fixture
async def open_datagram_peer():
    peers: list[DatagramPeer] = []

    async def open_peer() -> DatagramPeer:
        _, peer = await asyncio.get_running_loop().create_datagram_endpoint(
            DatagramPeer,
            local_addr=('127.0.0.1', 0),
        )
        peers.append(peer)
        return peer

    yield open_peer

    for peer in peers:
        if peer.transport is not None and peer.transport.is_closing() is False:
            peer.close()


def _free_port(kind: socket.SocketKind) -> int:
    with socket.socket(socket.AF_INET, kind) as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


@pytest.fixture
def free_udp_port() -> int:
    return _free_port(socket.SOCK_DGRAM)


@pytest.fixture
def free_tcp_port() -> int:
    return _free_port(socket.SOCK_STREAM)


@pytest.fixture
def env() -> Env:
    return Env(
        STAGELINE_HOST='127.0.0.1',
        STAGELINE_LOG_LEVEL='error',
    )


@pytest.fixture(autouse=True)
def quiet_logging():
    config = LoggingConfig()
    config.update(log_level='error')
    yield
    config.update(log_level='info')


@pytest.fixture
def make_recorder() -> Callable[[], StageRecorder]:
    return StageRecorder

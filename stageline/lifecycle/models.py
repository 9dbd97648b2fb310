from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Literal,
)

import msgspec

from .stage import ErrorTag, Stage


TransportKind = Literal['stream', 'datagram']


class Address(msgspec.Struct, frozen=True):
    """
    A structured (host, port) pair. Hashable, so it doubles as the
    identity of a datagram session.
    """
    host: str
    port: int

    @classmethod
    def from_tuple(cls, address: tuple[Any, ...]) -> Address:
        # IPv6 socket addresses carry flowinfo and scope id as well.
        host, port = address[:2]
        return cls(str(host), int(port))

    def to_tuple(self) -> tuple[str, int]:
        return (self.host, self.port)

    def __str__(self) -> str:
        return f'{self.host}:{self.port}'


class Session(msgspec.Struct, kw_only=True):
    identity: Address
    created_via: tuple[Stage, ...] = (Stage.HANDSHAKE, Stage.CONNECT)
    connected_at: float = msgspec.field(default_factory=time.monotonic)


Responder = Callable[['LifecycleContext', bytes], Awaitable[bool]]


@dataclass(slots=True)
class LifecycleContext:
    """
    What a handler gets to see for one transport event.

    Datagram contexts carry a ``target`` since the shared socket has no
    reply channel of its own. Stream contexts carry the open ``channel``
    instead.
    """

    transport: TransportKind
    peer: Address
    payload: bytes = b""
    target: Address | None = None
    channel: Any = field(default=None, repr=False)
    responder: Responder | None = field(default=None, repr=False)

    def with_payload(self, payload: bytes) -> LifecycleContext:
        return LifecycleContext(
            transport=self.transport,
            peer=self.peer,
            payload=payload,
            target=self.target,
            channel=self.channel,
            responder=self.responder,
        )

    async def respond(self, data: bytes) -> bool:
        if self.responder is None:
            return False

        return await self.responder(self, data)


@dataclass(slots=True)
class ErrorEvent:
    error: BaseException
    stage: Stage | ErrorTag
    args: tuple[Any, ...] = ()

    @property
    def stage_name(self) -> str:
        if isinstance(self.stage, Stage):
            return self.stage.value

        return self.stage

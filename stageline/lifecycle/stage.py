from __future__ import annotations

from enum import Enum
from typing import Literal


ErrorTag = Literal[
    'bind',
    'respond',
    'socket',
    'register',
]


class Stage(Enum):
    INIT = "init"
    LISTENING = "listening"
    HANDSHAKE = "handshake"
    CONNECT = "connect"
    RECEIVE_MESSAGE = "receiveMessage"
    PROCESS_MESSAGE = "processMessage"
    RESPOND_MESSAGE = "respondMessage"
    DISCONNECT = "disconnect"
    SHUTDOWN = "shutdown"
    ERROR = "error"

    @classmethod
    def from_name(cls, name: str | Stage) -> Stage | None:
        if isinstance(name, Stage):
            return name

        try:
            return cls(name)

        except ValueError:
            return None

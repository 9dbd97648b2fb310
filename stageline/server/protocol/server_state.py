from typing import TypeVar, Generic


T = TypeVar("T")


class ServerState(Generic[T]):
    """
    Per-socket bookkeeping shared between a transport adapter and the
    protocol instances it creates.
    """

    def __init__(self) -> None:
        self.total_requests = 0
        self.total_responses = 0
        self.protocols: set[T] = set()
        self.connections: set[T] = set()

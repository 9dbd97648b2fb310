from typing import Iterator

from .models import Address, Session


class SessionMap:
    """
    Remote endpoints that completed the synthetic handshake/connect on a
    datagram transport, in the order they first appeared.

    Entries are only added from the dispatch path and only cleared at
    teardown. Dispatch is serialized per socket, so there is no lock here.
    Anything that runs dispatch concurrently has to serialize access itself.
    """

    __slots__ = ("_sessions",)

    def __init__(self) -> None:
        self._sessions: dict[Address, Session] = {}

    def contains(self, identity: Address) -> bool:
        return identity in self._sessions

    __contains__ = contains

    def add(self, identity: Address) -> Session:
        session = self._sessions.get(identity)
        if session is None:
            session = Session(identity=identity)
            self._sessions[identity] = session

        return session

    def get(self, identity: Address) -> Session | None:
        return self._sessions.get(identity)

    def identities(self) -> list[Address]:
        return list(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()

    def __iter__(self) -> Iterator[Address]:
        return iter(self.identities())

    def __len__(self) -> int:
        return len(self._sessions)

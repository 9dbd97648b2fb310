from abc import ABC, abstractmethod

from stageline.lifecycle.models import Address, LifecycleContext, TransportKind


class TransportAdapter(ABC):
    """
    Turns raw socket callbacks into dispatcher calls and owns the one
    Respond operation that fits its transport.
    """

    kind: TransportKind

    @property
    @abstractmethod
    def address(self) -> Address | None:
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass

    @abstractmethod
    async def bind(
        self,
        host: str,
        port: int,
    ) -> Address | None:
        """
        Bind and start delivering events. Returns the bound local address,
        or ``None`` when binding failed and the socket was torn down.
        """
        pass

    @abstractmethod
    async def respond(
        self,
        context: LifecycleContext,
        data: bytes,
    ) -> bool:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

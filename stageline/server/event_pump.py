import asyncio
from typing import Awaitable, Callable, Tuple

from stageline.logging import Logger
from stageline.logging.stageline_logging_models import ServerError


Event = Callable[[], Awaitable[None]]


class EventPump:
    """
    Runs transport events one at a time, each to completion, in the order
    the transport delivered them.

    ``stop()`` drops events that have not started yet, lets the running one
    finish, then awaits ``on_stop`` from inside the pump task. Events
    submitted as ``critical`` are never dropped: they still run before
    ``on_stop``, even when submitted after ``stop()``.
    """

    def __init__(
        self,
        logger: Logger,
        host: str,
        port: int,
        transport: str,
    ) -> None:
        self._logger = logger
        self._host = host
        self._port = port
        self._transport = transport

        self._queue: asyncio.Queue[Tuple[Event, bool] | None] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._stopping = False
        self._stopped = False
        self._on_stop: Callable[[], Awaitable[None]] | None = None

    @property
    def in_pump(self) -> bool:
        return self._task is not None and asyncio.current_task() is self._task

    def start(
        self,
        on_stop: Callable[[], Awaitable[None]],
        host: str | None = None,
        port: int | None = None,
    ):
        if self._task is not None:
            return

        self._host = host or self._host
        self._port = port if port is not None else self._port

        self._on_stop = on_stop
        self._task = asyncio.get_running_loop().create_task(self._run())

    def submit(
        self,
        event: Event,
        critical: bool = False,
    ) -> bool:
        if self._task is None or self._stopped:
            return False

        if self._stopping and critical is False:
            return False

        self._queue.put_nowait((event, critical))
        return True

    def stop(self):
        if self._stopping:
            return

        self._stopping = True

        kept: list[Tuple[Event, bool]] = []
        while self._queue.empty() is False:
            item = self._queue.get_nowait()
            if item is not None and item[1]:
                kept.append(item)

        for item in kept:
            self._queue.put_nowait(item)

        self._queue.put_nowait(None)

    async def wait_stopped(self):
        if self._task is None or self.in_pump:
            return

        await asyncio.shield(self._task)

    async def _run(self):
        try:
            while True:
                item = await self._queue.get()
                if item is None:
                    break

                event, _ = item
                await self._dispatch(event)

            # Critical events submitted after the stop marker.
            while self._queue.empty() is False:
                item = self._queue.get_nowait()
                if item is not None:
                    await self._dispatch(item[0])

        finally:
            self._stopped = True

            if self._on_stop:
                await self._on_stop()

    async def _dispatch(self, event: Event):
        try:
            await event()

        except Exception as err:
            await self._logger.log(
                ServerError(
                    message=f'Unhandled error while dispatching event - {err!r}',
                    node_host=self._host,
                    node_port=self._port,
                    transport=self._transport,
                )
            )

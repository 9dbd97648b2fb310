from __future__ import annotations

import asyncio
import datetime
import sys
import threading
from typing import (
    Callable,
    Dict,
    TypeVar,
)

from stageline.logging.models import Entry, Log

from .logger_stream import LoggerStream

T = TypeVar('T', bound=Entry)


class Logger:
    """
    One ``LoggerStream`` per logger name, created on first use and kept
    open until ``close()``. Records are stamped with the calling frame.
    """

    def __init__(self) -> None:
        self._streams: Dict[str, LoggerStream] = {}

    def stream(self, name: str | None = None) -> LoggerStream:
        if name is None:
            name = 'default'

        if self._streams.get(name) is None:
            self._streams[name] = LoggerStream(name=name)

        return self._streams[name]

    async def log(
        self,
        entry: T,
        name: str | None = None,
        template: str | None = None,
        path: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        if name is None:
            name = 'default'

        frame = sys._getframe(1)
        code = frame.f_code

        stream = self.stream(name)
        await stream.initialize()

        await stream.log(
            Log(
                entry=entry,
                logger=name,
                filename=code.co_filename,
                function_name=code.co_name,
                line_number=frame.f_lineno,
                thread_id=threading.get_native_id(),
                timestamp=datetime.datetime.now(datetime.UTC).isoformat()
            ),
            template=template,
            path=path,
            filter=filter,
        )

    async def close(self):
        if len(self._streams) > 0:
            await asyncio.gather(*[
                stream.close() for stream in self._streams.values()
            ])

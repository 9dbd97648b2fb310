import asyncio
import datetime
import io
import os
import pathlib
import sys
import threading
from collections import defaultdict
from typing import (
    Callable,
    Dict,
    TypeVar,
)

import msgspec

from stageline.logging.config.logging_config import LoggingConfig
from stageline.logging.config.stream_type import StreamType
from stageline.logging.models import Entry, Log


T = TypeVar('T', bound=Entry)

DEFAULT_TEMPLATE = "{timestamp} - {level} - {logger} - {thread_id} - {filename}:{function_name}.{line_number} - {message}"


class LoggerStream:
    def __init__(
        self,
        name: str | None = None,
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
    ) -> None:
        if name is None:
            name = "default"

        self._name = name
        self._default_template = template
        self._default_logfile = filename
        self._default_log_directory = directory

        self._init_lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

        self._files: Dict[str, io.BufferedWriter] = {}
        self._file_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._cwd: str | None = None

        self._config = LoggingConfig()
        self._initialized: bool = False
        self._closed = False

    async def initialize(self):
        async with self._init_lock:
            if self._initialized:
                return

            self._loop = asyncio.get_running_loop()
            self._initialized = True
            self._closed = False

    async def open_file(
        self,
        filename: str,
        directory: str | None = None,
    ):
        if self._cwd is None:
            self._cwd = await self._loop.run_in_executor(
                None,
                os.getcwd,
            )

        logfile_path = self._to_logfile_path(
            filename,
            directory=directory,
        )

        await self._loop.run_in_executor(
            None,
            self._open_file,
            logfile_path,
        )

        return logfile_path

    def _open_file(self, logfile_path: str):
        resolved_path = pathlib.Path(logfile_path).absolute().resolve()
        resolved_path.parent.mkdir(parents=True, exist_ok=True)

        if self._files.get(logfile_path) is None or self._files[logfile_path].closed:
            self._files[logfile_path] = open(resolved_path, 'ab+')

    def _to_logfile_path(
        self,
        filename: str,
        directory: str | None = None,
    ):
        if directory is None:
            directory = os.path.join(self._cwd, "logs")

        return os.path.join(directory, filename)

    async def log(
        self,
        entry: T | Log[T],
        template: str | None = None,
        path: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        filename: str | None = None
        directory: str | None = None

        if path:
            logfile_path = pathlib.Path(path)
            is_logfile = len(logfile_path.suffix) > 0

            filename = logfile_path.name if is_logfile else None
            directory = str(logfile_path.parent.absolute()) if is_logfile else str(logfile_path.absolute())

        if template is None:
            template = self._default_template

        if filename is None:
            filename = self._default_logfile

        if directory is None:
            directory = self._default_log_directory

        if filename or directory:
            await self._log_to_file(
                entry,
                filename=filename or "logs.json",
                directory=directory,
                filter=filter,
            )

        else:
            await self._log(
                entry,
                template=template,
                filter=filter,
            )

    async def _log(
        self,
        entry_or_log: T | Log[T],
        template: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        entry: Entry = None
        if isinstance(entry_or_log, Log):
            entry = entry_or_log.entry

        else:
            entry = entry_or_log

        if self._config.enabled(self._name, entry.level) is False:
            return

        if filter and filter(entry) is False:
            return

        if self._initialized is False:
            await self.initialize()

        if template is None:
            template = DEFAULT_TEMPLATE

        if isinstance(entry_or_log, Log):
            log_file = entry_or_log.filename
            line_number = entry_or_log.line_number
            function_name = entry_or_log.function_name

        else:
            log_file, line_number, function_name = self._find_caller()

        stream = sys.stdout if self._config.output == StreamType.STDOUT else sys.stderr

        try:
            stream.write(
                entry.to_template(
                    template,
                    context={
                        "filename": log_file,
                        "function_name": function_name,
                        "logger": self._name,
                        "line_number": line_number,
                        "thread_id": threading.get_native_id(),
                        "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                    },
                )
                + "\n"
            )
            stream.flush()

        except (OSError, ValueError, KeyError) as err:
            error_template = "{timestamp} - {level} - {thread_id}.{filename}:{function_name}.{line_number} - {error}"

            if sys.stderr.closed is False:
                sys.stderr.write(
                    entry.to_template(
                        error_template,
                        context={
                            "filename": log_file,
                            "function_name": function_name,
                            "line_number": line_number,
                            "error": str(err),
                            "thread_id": threading.get_native_id(),
                            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                        },
                    )
                    + "\n"
                )

    async def _log_to_file(
        self,
        entry_or_log: T | Log[T],
        filename: str,
        directory: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        entry: Entry = None
        if isinstance(entry_or_log, Log):
            entry = entry_or_log.entry

        else:
            entry = entry_or_log

        if self._config.enabled(self._name, entry.level) is False:
            return

        if filter and filter(entry) is False:
            return

        if self._initialized is False:
            await self.initialize()

        logfile_path = await self.open_file(
            filename,
            directory=directory,
        )

        if isinstance(entry_or_log, Log):
            log = entry_or_log

        else:
            log_file, line_number, function_name = self._find_caller()

            log = Log(
                entry=entry,
                logger=self._name,
                filename=log_file,
                function_name=function_name,
                line_number=line_number
            )

        async with self._file_locks[logfile_path]:
            await self._loop.run_in_executor(
                None,
                self._write_to_file,
                log,
                logfile_path,
            )

    def _write_to_file(
        self,
        log: Log,
        logfile_path: str,
    ):
        if (
            logfile := self._files.get(logfile_path)
        ) and (
            logfile.closed is False
        ):
            logfile.write(msgspec.json.encode(log) + b"\n")
            logfile.flush()

    def _find_caller(self):
        """
        Find the stack frame of the caller so that we can note the source
        file name, line number and function name.
        """
        frame = sys._getframe(3)
        code = frame.f_code

        return (
            code.co_filename,
            frame.f_lineno,
            code.co_name,
        )

    async def close(self):
        if self._closed:
            return

        self._closed = True

        for logfile_path in list(self._files):
            async with self._file_locks[logfile_path]:
                logfile = self._files.pop(logfile_path)
                if logfile.closed is False:
                    await self._loop.run_in_executor(None, logfile.close)

        self._initialized = False

import contextvars
from typing import List, Literal

from stageline.logging.models import LogLevel, LogLevelName
from .stream_type import StreamType


LogOutput = Literal['stdout', 'stderr']

_global_log_level = contextvars.ContextVar("_global_log_level", default=LogLevel.INFO)
_global_logging_disabled = contextvars.ContextVar("_global_logging_disabled", default=False)
_global_disabled_loggers = contextvars.ContextVar("_global_disabled_loggers", default=[])
_global_log_output_type = contextvars.ContextVar("_global_log_level_type", default=StreamType.STDERR)


class LoggingConfig:
    def __init__(self) -> None:
        self._log_level: contextvars.ContextVar[LogLevel] = _global_log_level
        self._log_output_type: contextvars.ContextVar[StreamType] = _global_log_output_type
        self._logging_disabled: contextvars.ContextVar[bool] = _global_logging_disabled

        self._disabled_loggers: contextvars.ContextVar[List[str]] = (
            _global_disabled_loggers
        )

    def update(
        self,
        log_level: LogLevelName | None = None,
        log_output: LogOutput | None = None,
    ):
        level = LogLevel.to_level(log_level) if log_level else None
        if level is not None:
            self._log_level.set(level)

        if log_output:
            self._log_output_type.set(
                StreamType.STDOUT if log_output == 'stdout' else StreamType.STDERR
            )

    def disable(self, logger_name: str | None = None):
        if logger_name is None:
            self._logging_disabled.set(True)
            return

        disabled_loggers = self._disabled_loggers.get()
        if logger_name not in disabled_loggers:
            self._disabled_loggers.set([*disabled_loggers, logger_name])

    def enable(self, logger_name: str | None = None):
        if logger_name is None:
            self._logging_disabled.set(False)
            return

        self._disabled_loggers.set([
            name for name in self._disabled_loggers.get() if name != logger_name
        ])

    def enabled(self, logger_name: str, log_level: LogLevel) -> bool:
        if self._logging_disabled.get():
            return False

        disabled_loggers = self._disabled_loggers.get()
        current_log_level = self._log_level.get()
        return logger_name not in disabled_loggers and (
            log_level.rank >= current_log_level.rank
        )

    @property
    def disabled(self) -> bool:
        return self._logging_disabled.get()

    @property
    def level(self):
        return self._log_level.get()

    @property
    def output(self):
        return self._log_output_type.get()

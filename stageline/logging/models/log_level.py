from __future__ import annotations
from enum import Enum
from typing import Literal

LogLevelName = Literal[
    'trace',
    'debug',
    'info',
    'warn',
    'warning',
    'error',
    'critical',
    'fatal'
]


class LogLevel(Enum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    FATAL = 'FATAL'

    @property
    def rank(self) -> int:
        return _LEVEL_RANKS[self]

    @classmethod
    def to_level(cls, level_name: LogLevelName | str) -> LogLevel | None:
        """
        Resolves a level name as it appears in STAGELINE_LOG_LEVEL.
        Unknown names resolve to None.
        """
        name = level_name.strip().upper()
        return cls.__members__.get(_LEVEL_ALIASES.get(name, name))


_LEVEL_ALIASES = {
    'WARNING': 'WARN',
}

_LEVEL_RANKS = {
    level: rank for rank, level in enumerate(LogLevel)
}

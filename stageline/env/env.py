from __future__ import annotations
from pydantic import BaseModel, StrictBool, StrictStr, StrictInt
from typing import Callable, Dict, Literal, Union

PrimaryType = Union[str, int, float, bytes, bool]


def parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Env(BaseModel):
    STAGELINE_HOST: StrictStr = "127.0.0.1"
    STAGELINE_STREAM_PORT: StrictInt = 3000
    STAGELINE_DATAGRAM_PORT: StrictInt = 41234
    STAGELINE_ENCODING: StrictStr = "utf-8"
    STAGELINE_STREAM_BACKLOG: StrictInt = 100
    STAGELINE_STREAM_REUSE_ADDRESS: StrictBool = True
    STAGELINE_STREAM_ACKNOWLEDGE: StrictBool = False
    # Linux lets two UDP sockets share a port when both set SO_REUSEADDR.
    STAGELINE_DATAGRAM_REUSE_ADDRESS: StrictBool = False
    STAGELINE_LOG_LEVEL: StrictStr = "info"
    STAGELINE_LOG_OUTPUT: Literal["stdout", "stderr"] = "stderr"

    @classmethod
    def types_map(cls) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "STAGELINE_HOST": str,
            "STAGELINE_STREAM_PORT": int,
            "STAGELINE_DATAGRAM_PORT": int,
            "STAGELINE_ENCODING": str,
            "STAGELINE_STREAM_BACKLOG": int,
            "STAGELINE_STREAM_REUSE_ADDRESS": parse_bool,
            "STAGELINE_STREAM_ACKNOWLEDGE": parse_bool,
            "STAGELINE_DATAGRAM_REUSE_ADDRESS": parse_bool,
            "STAGELINE_LOG_LEVEL": str,
            "STAGELINE_LOG_OUTPUT": str,
        }

    def get_logging_config(self) -> dict:
        """Keyword arguments for ``LoggingConfig.update``."""
        return {
            'log_level': self.STAGELINE_LOG_LEVEL,
            'log_output': self.STAGELINE_LOG_OUTPUT,
        }

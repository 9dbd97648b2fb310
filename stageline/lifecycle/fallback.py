import sys
from typing import TextIO

from .models import ErrorEvent


class DefaultErrorHandler:
    """
    Writes every error event to stderr. Installed on each registry until
    the first ``error`` handler of its own is registered.
    """

    def __init__(
        self,
        name: str,
        stream: TextIO | None = None,
    ) -> None:
        self.name = name
        self._stream = stream

    def __call__(self, event: ErrorEvent) -> None:
        stream = self._stream if self._stream is not None else sys.stderr

        stream.write(
            f'[{self.name}] Error in stage "{event.stage_name}": {event.error!r}\n'
        )
        stream.flush()

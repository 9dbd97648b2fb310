from __future__ import annotations

from enum import Enum, auto
from typing import (
    Any,
    Callable,
    Iterable,
    Mapping,
)

from .errors import UnknownStageError
from .stage import Stage


Handler = Callable[..., Any]
StageName = str | Stage
HandlerConfig = Mapping[StageName, Iterable[Handler]]


class ErrorHandlerState(Enum):
    USING_DEFAULT = auto()
    USER_REGISTERED = auto()


class StageHandlers:
    """
    Ordered handler chains, one per lifecycle stage.

    Chains only ever grow by appending. The ``error`` chain resolves to the
    default handler while ``error_handler_state`` is ``USING_DEFAULT``; the
    first ``error`` registration flips the state for good, and later ones
    append.
    """

    def __init__(
        self,
        handlers: HandlerConfig | None = None,
        default_error_handler: Handler | None = None,
    ) -> None:
        self._chains: dict[Stage, list[Handler]] = {
            stage: [] for stage in Stage
        }
        self._default_error_handler = default_error_handler
        self.error_handler_state = ErrorHandlerState.USING_DEFAULT
        self.rejected: list[tuple[UnknownStageError, Handler]] = []

        if handlers:
            for name, chain in handlers.items():
                for handler in chain:
                    self.register(name, handler)

    def register(
        self,
        stage: StageName,
        handler: Handler,
    ) -> UnknownStageError | None:
        resolved = Stage.from_name(stage)
        if resolved is None:
            error = UnknownStageError(stage)
            self.rejected.append((error, handler))
            return error

        if resolved is Stage.ERROR:
            self.error_handler_state = ErrorHandlerState.USER_REGISTERED

        self._chains[resolved].append(handler)

    def chain(self, stage: Stage) -> list[Handler]:
        if (
            stage is Stage.ERROR
        ) and (
            self.error_handler_state is ErrorHandlerState.USING_DEFAULT
        ) and (
            self._default_error_handler is not None
        ):
            return [self._default_error_handler]

        return list(self._chains[stage])

    def count(self, stage: Stage) -> int:
        return len(self._chains[stage])

    def take_rejected(self) -> list[tuple[UnknownStageError, Handler]]:
        rejected = self.rejected
        self.rejected = []

        return rejected

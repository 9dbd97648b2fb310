"""
Exceptions raised inside the lifecycle and delivered to ``error`` handlers.

None of these escape to the process owning a server. They are created by
the dispatcher or a transport adapter and handed to the ``error`` stage as
the ``error`` attribute of an ``ErrorEvent``.
"""

from typing import Any


class StagelineError(Exception):
    pass


class UnknownStageError(StagelineError):
    """
    A handler was registered under a name that is not a lifecycle stage.

    Reported as a warning-class error. The handler is discarded and
    registration of every other stage carries on.
    """

    def __init__(self, name: Any) -> None:
        super().__init__(f'"{name}" is not a supported lifecycle stage')
        self.name = name


class NoHandlersError(StagelineError):
    """A stage was invoked with nothing registered for it."""

    def __init__(self, stage: str) -> None:
        super().__init__(f'no handlers for stage "{stage}"')
        self.stage = stage


class RespondError(StagelineError):
    """A response could not be handed to the transport."""
    pass

import inspect
from typing import Any

from stageline.logging import Logger
from stageline.logging.stageline_logging_models import StageDebug, StageError

from .errors import NoHandlersError
from .models import ErrorEvent
from .registry import Handler, StageHandlers
from .stage import ErrorTag, Stage


class HandlerChain:
    """
    Runs the chain registered for a stage, one handler at a time.

    A handler fails by raising or by returning an exception instance.
    Every failure becomes exactly one ``error`` event and the rest of the
    chain still runs. Failures inside ``error`` handlers are logged, not
    re-dispatched.
    """

    def __init__(
        self,
        handlers: StageHandlers,
        name: str,
        logger: Logger | None = None,
    ) -> None:
        self._handlers = handlers
        self._name = name
        self._logger = logger or Logger()

    async def invoke(
        self,
        stage: Stage,
        *args: Any,
    ) -> bool:
        if stage is Stage.ERROR:
            return await self._invoke_error_chain(*args)

        chain = self._handlers.chain(stage)
        if len(chain) < 1:
            await self.fail(
                NoHandlersError(stage.value),
                stage,
                args,
            )
            return False

        succeeded = True
        for handler in chain:
            error = await self._run(handler, args)
            if error is None:
                continue

            succeeded = False

            await self._logger.log(
                StageDebug(
                    message=f'Handler {_handler_name(handler)} failed - {error!r}',
                    dispatcher=self._name,
                    stage=stage.value,
                ),
                name=self._name,
            )

            await self.fail(error, stage, args)

        return succeeded

    async def fail(
        self,
        error: BaseException,
        stage: Stage | ErrorTag,
        args: tuple[Any, ...] = (),
    ):
        await self._invoke_error_chain(
            ErrorEvent(
                error=error,
                stage=stage,
                args=tuple(args),
            )
        )

    async def _invoke_error_chain(self, *args: Any) -> bool:
        chain = self._handlers.chain(Stage.ERROR)

        succeeded = True
        for handler in chain:
            error = await self._run(handler, args)
            if error is None:
                continue

            succeeded = False

            await self._logger.log(
                StageError(
                    message=f'Error handler {_handler_name(handler)} failed - {error!r}',
                    dispatcher=self._name,
                    stage=Stage.ERROR.value,
                ),
                name=self._name,
            )

        return succeeded

    async def _run(
        self,
        handler: Handler,
        args: tuple[Any, ...],
    ) -> BaseException | None:
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                result = await result

        except Exception as err:
            return err

        if isinstance(result, BaseException):
            return result

        return None


def _handler_name(handler: Handler) -> str:
    return getattr(handler, '__qualname__', None) or type(handler).__name__

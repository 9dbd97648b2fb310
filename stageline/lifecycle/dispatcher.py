"""
Lifecycle dispatcher.

Maps raw transport events onto the staged lifecycle:

- stream connection: connect, then per chunk receiveMessage ->
  processMessage -> respondMessage, then disconnect. Chunks are only
  acknowledged when stream acknowledgment is switched on
- datagram: receiveMessage, handshake -> connect for an unseen peer,
  processMessage, acknowledgment, respondMessage once the ack is sent
- teardown: disconnect for every tracked session, then a single shutdown

The dispatcher never raises into its caller. Every failure is turned
into an ``error`` stage event.
"""

from typing import Any, Callable

from stageline.logging import Logger
from stageline.logging.stageline_logging_models import StageDebug, StageWarning

from .codec import acknowledge, decode_payload
from .fallback import DefaultErrorHandler
from .invoker import HandlerChain
from .models import Address, LifecycleContext
from .registry import Handler, HandlerConfig, StageHandlers, StageName
from .session_map import SessionMap
from .stage import ErrorTag, Stage


Acknowledger = Callable[[str, str], bytes]


class LifecycleDispatcher:
    def __init__(
        self,
        handlers: StageHandlers | HandlerConfig | None = None,
        name: str = 'stageline',
        encoding: str = 'utf-8',
        acknowledger: Acknowledger = acknowledge,
        logger: Logger | None = None,
        stream_acknowledge: bool = False,
    ) -> None:
        self.name = name
        self._logger = logger or Logger()

        if not isinstance(handlers, StageHandlers):
            handlers = StageHandlers(
                handlers,
                default_error_handler=DefaultErrorHandler(name),
            )

        self.handlers = handlers
        self.sessions = SessionMap()

        self._chain = HandlerChain(
            self.handlers,
            name,
            logger=self._logger,
        )

        self._encoding = encoding
        self._acknowledger = acknowledger
        self._stream_acknowledge = stream_acknowledge

        self._initialized = False
        self._listening = False
        self._torn_down = False

    @property
    def torn_down(self) -> bool:
        return self._torn_down

    def on(self, stage: StageName, handler: Handler):
        self.handlers.register(stage, handler)

    def on_error(self, handler: Handler):
        self.handlers.register(Stage.ERROR, handler)

    async def invoke(self, stage: Stage, *args: Any) -> bool:
        await self._report_rejected()
        return await self._chain.invoke(stage, *args)

    async def fail(
        self,
        error: BaseException,
        stage: Stage | ErrorTag,
        *args: Any,
    ):
        await self._report_rejected()
        await self._chain.fail(error, stage, args)

    async def initialize(self, config: Any = None):
        if self._initialized:
            return

        self._initialized = True
        await self.invoke(Stage.INIT, config)

    async def listening(self, address: Address):
        if self._listening:
            return

        self._listening = True
        await self.invoke(Stage.LISTENING, address)

    async def stream_opened(self, context: LifecycleContext):
        await self.invoke(Stage.CONNECT, context)

    async def stream_data(self, context: LifecycleContext):
        """
        Stream chunks are only acknowledged when ``stream_acknowledge`` is
        set. Otherwise respondMessage fires with the context alone and
        handlers write back through ``context.respond``.
        """
        await self.invoke(Stage.RECEIVE_MESSAGE, context)

        if self._stream_acknowledge:
            await self._process_and_respond(context)

        else:
            await self._process_and_mark(context)

    async def stream_closed(self, context: LifecycleContext):
        await self.invoke(Stage.DISCONNECT, context)

    async def datagram_received(self, context: LifecycleContext):
        await self.invoke(Stage.RECEIVE_MESSAGE, context)

        if context.peer not in self.sessions:
            await self._open_session(context)

        await self._process_and_respond(context)

    async def datagram_reply_received(self, context: LifecycleContext):
        """Inbound datagram on a client socket. Nothing is sent back."""
        await self.invoke(Stage.RECEIVE_MESSAGE, context)
        await self._process_and_mark(context)

    async def datagram_send(
        self,
        context: LifecycleContext,
        handshake_pending: bool,
    ) -> bool:
        """
        Outbound datagram on a client socket. ``handshake`` fires before
        the first transmission to a target and ``connect`` after the first
        one that succeeds.
        """
        target = context.target or context.peer
        known = target in self.sessions

        if known is False and handshake_pending:
            await self.invoke(Stage.HANDSHAKE, context)

        sent = await context.respond(context.payload)

        if sent and known is False:
            self.sessions.add(target)
            await self.invoke(Stage.CONNECT, context)

        return sent

    async def teardown(self, transport: str = 'datagram'):
        if self._torn_down:
            return

        self._torn_down = True

        for identity in self.sessions.identities():
            await self.invoke(
                Stage.DISCONNECT,
                LifecycleContext(
                    transport=transport,
                    peer=identity,
                    target=identity,
                ),
            )

        self.sessions.clear()
        await self.invoke(Stage.SHUTDOWN)

    async def _open_session(self, context: LifecycleContext):
        await self._logger.log(
            StageDebug(
                message=f'New session for {context.peer}',
                dispatcher=self.name,
                stage=Stage.HANDSHAKE.value,
            ),
            name=self.name,
        )

        await self.invoke(Stage.HANDSHAKE, context)

        self.sessions.add(context.peer)
        await self.invoke(Stage.CONNECT, context)

    async def _process_and_respond(self, context: LifecycleContext):
        text = decode_payload(context.payload, self._encoding)
        await self.invoke(Stage.PROCESS_MESSAGE, context, text)

        response = self._acknowledger(text, self._encoding)
        if await context.respond(response):
            await self.invoke(Stage.RESPOND_MESSAGE, context, response)

    async def _process_and_mark(self, context: LifecycleContext):
        await self.invoke(
            Stage.PROCESS_MESSAGE,
            context,
            decode_payload(context.payload, self._encoding),
        )
        await self.invoke(Stage.RESPOND_MESSAGE, context)

    async def _report_rejected(self):
        for error, handler in self.handlers.take_rejected():
            await self._logger.log(
                StageWarning(
                    message=str(error),
                    dispatcher=self.name,
                    stage='register',
                ),
                name=self.name,
            )

            await self._chain.fail(error, 'register', (error.name, handler))

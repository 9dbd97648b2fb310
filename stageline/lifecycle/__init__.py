from .codec import (
    ACK_PREFIX as ACK_PREFIX,
    acknowledge as acknowledge,
    decode_payload as decode_payload,
)
from .dispatcher import LifecycleDispatcher as LifecycleDispatcher
from .errors import (
    StagelineError as StagelineError,
    UnknownStageError as UnknownStageError,
    NoHandlersError as NoHandlersError,
    RespondError as RespondError,
)
from .fallback import DefaultErrorHandler as DefaultErrorHandler
from .invoker import HandlerChain as HandlerChain
from .models import (
    Address as Address,
    ErrorEvent as ErrorEvent,
    LifecycleContext as LifecycleContext,
    Session as Session,
    TransportKind as TransportKind,
)
from .registry import (
    ErrorHandlerState as ErrorHandlerState,
    Handler as Handler,
    HandlerConfig as HandlerConfig,
    StageHandlers as StageHandlers,
)
from .session_map import SessionMap as SessionMap
from .stage import (
    ErrorTag as ErrorTag,
    Stage as Stage,
)

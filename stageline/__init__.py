from .client import DatagramClient as DatagramClient
from .env import (
    Env as Env,
    load_env as load_env,
)
from .lifecycle import (
    ACK_PREFIX as ACK_PREFIX,
    Address as Address,
    ErrorEvent as ErrorEvent,
    LifecycleContext as LifecycleContext,
    LifecycleDispatcher as LifecycleDispatcher,
    Stage as Stage,
    StageHandlers as StageHandlers,
)
from .server import (
    DatagramServer as DatagramServer,
    StreamServer as StreamServer,
)

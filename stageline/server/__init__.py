from .adapters import (
    DatagramAdapter as DatagramAdapter,
    StreamAdapter as StreamAdapter,
    TransportAdapter as TransportAdapter,
)
from .event_pump import EventPump as EventPump
from .lifecycle_server import (
    DatagramServer as DatagramServer,
    LifecycleServer as LifecycleServer,
    StreamServer as StreamServer,
)
from .protocol import (
    DatagramProtocol as DatagramProtocol,
    ServerState as ServerState,
    StreamProtocol as StreamProtocol,
)

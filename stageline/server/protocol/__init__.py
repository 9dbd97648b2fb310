from .datagram_protocol import DatagramProtocol as DatagramProtocol
from .server_state import ServerState as ServerState
from .stream_protocol import StreamProtocol as StreamProtocol
from .utils import (
    get_local_addr as get_local_addr,
    get_remote_addr as get_remote_addr,
)

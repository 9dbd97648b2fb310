from .datagram_adapter import DatagramAdapter as DatagramAdapter
from .stream_adapter import StreamAdapter as StreamAdapter
from .transport_adapter import TransportAdapter as TransportAdapter

from .datagram_client import DatagramClient as DatagramClient

from typing import Literal

from .models import Entry, LogLevel


TransportName = Literal['stream', 'datagram']


class ServerDebug(Entry, kw_only=True):
    node_host: str
    node_port: int
    transport: TransportName
    level: LogLevel = LogLevel.DEBUG

class ServerInfo(Entry, kw_only=True):
    node_host: str
    node_port: int
    transport: TransportName
    level: LogLevel = LogLevel.INFO

class ServerError(Entry, kw_only=True):
    node_host: str
    node_port: int
    transport: TransportName
    level: LogLevel = LogLevel.ERROR

class StageDebug(Entry, kw_only=True):
    dispatcher: str
    stage: str
    level: LogLevel = LogLevel.DEBUG

class StageWarning(Entry, kw_only=True):
    dispatcher: str
    stage: str
    level: LogLevel = LogLevel.WARN

class StageError(Entry, kw_only=True):
    dispatcher: str
    stage: str
    level: LogLevel = LogLevel.ERROR

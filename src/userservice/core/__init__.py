"""
Socket-level machinery: the TCP listener, the per-client connection
wrapper and the worker pool that handles one connection per task.
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",     # accept loop
    "Connection",       # one client socket, one request
    "ConnectionState",
    "ThreadPool",       # workers
]

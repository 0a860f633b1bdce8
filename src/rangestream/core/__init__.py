"""
=============================================================================
CORE NETWORKING
=============================================================================

The transport underneath the media handler: sockets, connections, threads.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SocketServer   bind / listen / accept loop, signals, shutdown       │
    │ Connection     buffered request reads, sends that report failure    │
    │ ThreadPool     one worker per connection, grows to max_workers      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool, Worker, WorkerState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "Worker",
    "WorkerState",
]

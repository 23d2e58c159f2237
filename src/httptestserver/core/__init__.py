"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

Everything that runs on the event loop for a live connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ LISTENER                                                            │
    │  • Binds the listening socket via loop.create_server()              │
    │  • Builds one HTTPConnection per accepted socket                    │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ CONNECTION REGISTRY                                                 │
    │  • Admission control: at most maxconn live connections              │
    │  • Idempotent removal on teardown                                   │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ HTTP CONNECTION                                                     │
    │  • Request line → headers → body → dispatch → respond → close       │
    │  • Idle supervisor re-armed on every read and write                 │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ DELAY SCHEDULER                                                     │
    │  • One pending one-shot timer per connection for /delay/N           │
    │  • Cancelled when its connection is torn down first                 │
    └─────────────────────────────────────────────────────────────────────┘

A single thread runs the loop and every callback runs to completion, so
none of these components lock anything.
=============================================================================
"""

from .registry import ConnectionRegistry
from .scheduler import DelayScheduler
from .connection import ConnectionState, HTTPConnection
from .listener import Listener


__all__ = [
    "ConnectionRegistry",   # Live connections + admission control
    "DelayScheduler",       # Deferred-response timers
    "ConnectionState",      # Per-connection phases
    "HTTPConnection",       # The per-connection state machine
    "Listener",             # Binds and accepts
]

"""
Append-only audit logging for account state changes.
"""

from homi.kernel.events.event_store import EventStore

__all__ = [
    "EventStore",
]

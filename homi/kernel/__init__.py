"""
Kernel Layer

Foundational components of the identity service:
- Account and Profile models
- Append-only event log (every account mutation is logged in its transaction)
- Identity core (credentials, tokens, verification lifecycle)
"""

from homi.kernel.models import (
    Account,
    AccountRole,
    AccountState,
    EventLog,
    EventType,
    Gender,
    Profile,
)

__all__ = [
    # Accounts
    "Account",
    "AccountRole",
    "AccountState",
    "Gender",
    "Profile",
    # Event Log
    "EventLog",
    "EventType",
]

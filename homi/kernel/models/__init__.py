"""
Kernel Data Models

Core SQLAlchemy models for accounts, profiles and the audit log.
"""

from homi.kernel.models.base import Base, TimestampMixin, SoftDeleteMixin, generate_uuid
from homi.kernel.models.account import (
    Account,
    AccountRole,
    AccountState,
    Gender,
    Profile,
    SIGNUP_ROLES,
)
from homi.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "generate_uuid",
    # Account
    "Account",
    "AccountRole",
    "AccountState",
    "Gender",
    "Profile",
    "SIGNUP_ROLES",
    # Event Log
    "EventLog",
    "EventType",
]

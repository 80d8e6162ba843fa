"""
Event Store service for append-only audit logging.

Account mutations are logged here inside the same transaction that
performs them, so a rollback discards the audit record too.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from homi.kernel.models.event_log import EventLog, EventType

# Payload keys that would put a credential into the audit trail
FORBIDDEN_PAYLOAD_KEYS = frozenset({
    "password",
    "password_hash",
    "token",
    "token_hash",
    "national_id",
})


class EventStore:
    """
    Service for the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.ACCOUNT_REGISTERED,
            entity_type="account",
            entity_id=account.id,
            account_id=account.id,
            payload={"role": "TENANT"},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        account_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> EventLog:
        """
        Add an event to the current transaction.

        Args:
            event_type: What happened
            entity_type: "account" or "profile"
            entity_id: The changed row
            account_id: The account that triggered the event
            payload: JSON-able details; credential keys are rejected
            ip_address: Client IP address

        Raises:
            ValueError: payload carries a credential field
        """
        payload = payload or {}
        leaked = FORBIDDEN_PAYLOAD_KEYS.intersection(payload)
        if leaked:
            raise ValueError(f"Audit payload must not contain {sorted(leaked)}")

        event = EventLog(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=entity_id,
            account_id=account_id,
            payload=_to_json(payload),
            ip_address=ip_address,
        )
        # Committed by the caller's transaction
        self.session.add(event)
        return event

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
    ) -> List[EventLog]:
        """Events for one entity, newest first."""
        query = select(EventLog).where(
            and_(
                EventLog.entity_type == entity_type,
                EventLog.entity_id == entity_id,
            )
        )
        if event_types:
            query = query.where(EventLog.event_type.in_([e.value for e in event_types]))

        query = query.order_by(desc(EventLog.created_at)).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_events(
        self,
        event_type: Optional[EventType] = None,
        account_id: Optional[uuid.UUID] = None,
    ) -> int:
        query = select(func.count(EventLog.id))
        if event_type:
            query = query.where(EventLog.event_type == event_type.value)
        if account_id:
            query = query.where(EventLog.account_id == account_id)

        result = await self.session.execute(query)
        return result.scalar() or 0


def _to_json(value: Any) -> Any:
    """Convert UUIDs, dates, decimals and enums so the payload fits a JSON column."""
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_json(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value

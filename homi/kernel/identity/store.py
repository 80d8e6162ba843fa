"""
Persistence gateway for accounts and profiles.

Wraps an AsyncSession; uniqueness of email and phone is enforced by the
database indexes, the pre-checks here only give nicer errors.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from homi.kernel.events.event_store import EventStore
from homi.kernel.models.account import Account, Profile
from homi.kernel.models.event_log import EventType


class AccountStore:
    """Account/Profile queries plus an explicit transactional boundary."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Commit everything done inside the block, or roll all of it back."""
        try:
            yield self.session
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

    def add(self, account: Account) -> None:
        self.session.add(account)

    async def flush(self) -> None:
        await self.session.flush()

    def _live_accounts(self):
        return select(Account).where(Account.deleted_at.is_(None))

    async def get_by_id(self, account_id: uuid.UUID) -> Optional[Account]:
        query = self._live_accounts().where(Account.id == account_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[Account]:
        query = self._live_accounts().where(Account.email == email.lower().strip())
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_by_phone(
        self,
        exact: List[str],
        international_suffix: Optional[str] = None,
    ) -> List[Account]:
        """
        Accounts whose phone equals one of ``exact``, or which is stored in
        international form ending with ``international_suffix``. Oldest first.
        """
        conditions = []
        if exact:
            conditions.append(Profile.phone_number.in_(exact))
        if international_suffix:
            conditions.append(
                Profile.phone_number.like(f"+%{international_suffix}")
            )
        if not conditions:
            return []

        query = (
            self._live_accounts()
            .join(Profile, Profile.account_id == Account.id)
            .where(or_(*conditions))
            .order_by(Account.created_at)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def phone_in_use(
        self,
        phone_number: str,
        exclude_account_id: Optional[uuid.UUID] = None,
    ) -> bool:
        # Numbers of soft-deleted accounts stay reserved, like the global unique index
        query = select(Profile.id).where(Profile.phone_number == phone_number)
        if exclude_account_id is not None:
            query = query.where(Profile.account_id != exclude_account_id)
        result = await self.session.execute(query.limit(1))
        return result.first() is not None

    async def get_by_reset_token_hash(self, token_hash: str) -> Optional[Account]:
        query = self._live_accounts().where(Account.reset_token_hash == token_hash)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_verification_token_hash(self, token_hash: str) -> Optional[Account]:
        query = self._live_accounts().where(
            Account.email_verification_token_hash == token_hash
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def _update_if(self, account: Account, guard, values: Dict[str, Any]) -> bool:
        """
        UPDATE the account row only while ``guard`` still holds.

        Returns False when another transaction changed the row first. On
        success the loaded instance is brought in line without marking it dirty.
        """
        statement = (
            update(Account)
            .where(Account.id == account.id, Account.deleted_at.is_(None), guard)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        if result.rowcount != 1:
            return False
        for key, value in values.items():
            set_committed_value(account, key, value)
        return True

    async def consume_reset_token(self, account: Account, token_hash: str, password_hash: str) -> bool:
        """Swap the password and clear the reset token, if the token is still unused."""
        return await self._update_if(
            account,
            Account.reset_token_hash == token_hash,
            {
                "password_hash": password_hash,
                "reset_token_hash": None,
                "reset_token_expires": None,
            },
        )

    async def consume_verification_token(self, account: Account, token_hash: str) -> bool:
        return await self._update_if(
            account,
            Account.email_verification_token_hash == token_hash,
            {
                "email_verified": True,
                "email_verification_token_hash": None,
                "email_verification_token_expires": None,
            },
        )

    async def mark_fully_verified(self, account: Account) -> bool:
        """Set is_verified, unless another request already did."""
        return await self._update_if(account, Account.is_verified.is_(False), {"is_verified": True})

    async def record_event(
        self,
        event_type: EventType,
        account: Account,
        payload: Optional[Dict[str, Any]] = None,
        entity_type: str = "account",
        ip_address: Optional[str] = None,
    ) -> None:
        await self.event_store.log(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=account.id,
            account_id=account.id,
            payload=payload,
            ip_address=ip_address,
        )

"""Create an ADMIN account. Admins cannot self-register through the API.

Usage: python scripts/create_admin.py admin@example.com 'Str0ngPassword' First Last
"""
import asyncio
import sys
import uuid

from homi.config import get_settings
from homi.database import async_session_maker, init_db
from homi.kernel.identity.password import PasswordHasher
from homi.kernel.identity.store import AccountStore
from homi.kernel.models.account import Account, AccountRole, Profile
from homi.kernel.models.event_log import EventType


async def main(email: str, password: str, first_name: str, last_name: str) -> int:
    await init_db()
    hasher = PasswordHasher(rounds=get_settings().bcrypt_rounds)

    async with async_session_maker() as session:
        store = AccountStore(session)
        if await store.get_by_email(email):
            print(f"Account {email} already exists")
            return 1

        async with store.transaction():
            account = Account(
                id=uuid.uuid4(),
                email=email.lower().strip(),
                password_hash=hasher.hash(password),
                role=AccountRole.ADMIN.value,
                is_verified=True,
                email_verified=True,
            )
            account.profile = Profile(first_name=first_name, last_name=last_name)
            store.add(account)
            await store.flush()
            await store.record_event(
                EventType.ACCOUNT_REGISTERED,
                account,
                payload={"email": account.email, "role": AccountRole.ADMIN.value, "source": "script"},
            )

    print(f"Created admin {account.email} ({account.id})")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 5:
        print(__doc__)
        sys.exit(2)
    sys.exit(asyncio.run(main(*sys.argv[1:])))

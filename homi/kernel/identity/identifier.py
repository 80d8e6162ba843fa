"""
Resolve a login identifier (email or phone number) to an account.

Phone numbers are stored exactly as the user typed them at registration,
so lookup has to tolerate both local ("0155512345") and international
("+20 155 512 345") spellings of the same number. This is a heuristic,
not a phone-number parser: country-code lengths of 1 to 4 digits are all
tried, which can match the wrong local number for unusual codes.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from homi.kernel.identity.store import AccountStore
from homi.kernel.models.account import Account
from homi.logging_config import get_logger

logger = get_logger(__name__)

_SEPARATORS = re.compile(r"[\s\-.()]")
_DIGITS = re.compile(r"^\d+$")

MAX_COUNTRY_CODE_LENGTH = 4
MIN_NATIONAL_NUMBER_LENGTH = 9


@dataclass
class PhoneLookup:
    """Phone values to search for."""

    exact: List[str] = field(default_factory=list)
    # Matches stored "+<country code><suffix>" values
    international_suffix: Optional[str] = None


def is_email(identifier: str) -> bool:
    return "@" in identifier


def candidate_phone_formats(identifier: str) -> PhoneLookup:
    """
    Build the phone lookup for a non-email identifier.

    "+2015551234567" -> exact match on the input, or on "0" + the number
    left after dropping a 1-4 digit country code (when at least 9 digits
    remain). "0155512345" -> exact match, or any "+..." value ending in
    "155512345". Anything else -> exact match only.
    """
    raw = identifier.strip()
    compact = _SEPARATORS.sub("", raw)
    exact = [raw]
    if compact != raw:
        exact.append(compact)

    if compact.startswith("+"):
        digits = compact[1:]
        if not _DIGITS.match(digits):
            return PhoneLookup(exact=exact)
        for cc_length in range(1, MAX_COUNTRY_CODE_LENGTH + 1):
            national = digits[cc_length:]
            if len(national) >= MIN_NATIONAL_NUMBER_LENGTH:
                local = "0" + national
                if local not in exact:
                    exact.append(local)
        return PhoneLookup(exact=exact)

    if compact.startswith("0") and _DIGITS.match(compact):
        national = compact[1:]
        if national:
            return PhoneLookup(exact=exact, international_suffix=national)

    return PhoneLookup(exact=exact)


class IdentifierResolver:
    """Finds the live account behind an email address or phone number."""

    def __init__(self, store: AccountStore):
        self.store = store

    async def resolve(self, identifier: str) -> Optional[Account]:
        """Return the matching account, or None. Never raises for a miss."""
        identifier = (identifier or "").strip()
        if not identifier:
            return None

        if is_email(identifier):
            return await self.store.get_by_email(identifier)

        lookup = candidate_phone_formats(identifier)
        matches = await self.store.find_by_phone(
            lookup.exact,
            international_suffix=lookup.international_suffix,
        )
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                "Phone identifier matched several accounts; using the oldest",
                extra={"match_count": len(matches)},
            )
        return matches[0]

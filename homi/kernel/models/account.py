"""
Account and Profile models for identity management.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homi.kernel.models.base import Base, SoftDeleteMixin, TimestampMixin, generate_uuid


class AccountRole(str, Enum):
    """Account roles in the platform."""
    LANDLORD = "LANDLORD"
    TENANT = "TENANT"
    MAINTENANCE_PROVIDER = "MAINTENANCE_PROVIDER"
    ADMIN = "ADMIN"


# Roles a user may pick for themselves at sign-up
SIGNUP_ROLES = frozenset({AccountRole.LANDLORD, AccountRole.TENANT})


class Gender(str, Enum):
    """Gender values accepted during identity verification."""
    MALE = "MALE"
    FEMALE = "FEMALE"


class AccountState(str, Enum):
    """Verification state of an account, derived from its flags."""
    REGISTERED = "registered"
    EMAIL_VERIFIED = "email_verified"
    FULLY_VERIFIED = "fully_verified"


class Account(Base, TimestampMixin, SoftDeleteMixin):
    """Account model: credentials, role and verification flags."""

    __tablename__ = "accounts"
    __table_args__ = (
        # Email is unique among live (non-deleted) accounts
        Index(
            "uq_accounts_email_live",
            "email",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    role: Mapped[AccountRole] = mapped_column(
        String(50),
        nullable=False,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Password reset
    reset_token_hash: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    reset_token_expires: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Email verification
    email_verification_token_hash: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    email_verification_token_expires: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    profile: Mapped[Optional["Profile"]] = relationship(
        "Profile",
        back_populates="account",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def role_value(self) -> str:
        # role may be enum or str when loaded from the database
        return self.role.value if hasattr(self.role, "value") else str(self.role)

    @property
    def state(self) -> AccountState:
        if self.is_verified:
            return AccountState.FULLY_VERIFIED
        if self.email_verified:
            return AccountState.EMAIL_VERIFIED
        return AccountState.REGISTERED

    def __repr__(self) -> str:
        return f"<Account {self.email}>"


class Profile(Base, TimestampMixin):
    """Personal and contact data owned 1:1 by an Account."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    # NULL until a federated account supplies one. Unique across all rows,
    # soft-deleted accounts included
    phone_number: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        unique=True,
    )
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Verification fields, null until complete_verification
    national_id: Mapped[Optional[str]] = mapped_column(
        String(500),  # AES-GCM envelope, never plaintext
        nullable=True,
    )
    gender: Mapped[Optional[Gender]] = mapped_column(String(10), nullable=True)
    birthdate: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    gamification_points: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    preferred_budget_min: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )
    preferred_budget_max: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )

    account: Mapped["Account"] = relationship(
        "Account",
        back_populates="profile",
    )

    @property
    def is_verification_complete(self) -> bool:
        return bool(self.national_id and self.gender and self.birthdate)

    def __repr__(self) -> str:
        return f"<Profile {self.first_name} {self.last_name}>"

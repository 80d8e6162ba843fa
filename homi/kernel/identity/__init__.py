"""
Identity Core - Authentication, verification and credential management.
"""

from homi.kernel.identity.cipher import DecryptionError, FieldCipher
from homi.kernel.identity.components import (
    IdentityComponents,
    build_account_lifecycle,
    build_identity_components,
)
from homi.kernel.identity.identifier import IdentifierResolver, candidate_phone_formats
from homi.kernel.identity.identity_service import (
    AccountLifecycle,
    EmailVerificationResult,
    LoginResult,
)
from homi.kernel.identity.jwt import JWTManager, SessionClaims, TokenPair
from homi.kernel.identity.password import PasswordHasher
from homi.kernel.identity.store import AccountStore
from homi.kernel.identity.tokens import MintedToken, TokenKind, TokenMinter

__all__ = [
    "AccountLifecycle",
    "AccountStore",
    "DecryptionError",
    "EmailVerificationResult",
    "FieldCipher",
    "IdentifierResolver",
    "IdentityComponents",
    "JWTManager",
    "LoginResult",
    "MintedToken",
    "PasswordHasher",
    "SessionClaims",
    "TokenKind",
    "TokenMinter",
    "TokenPair",
    "build_account_lifecycle",
    "build_identity_components",
    "candidate_phone_formats",
]

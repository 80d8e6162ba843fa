"""Unit tests for password hashing."""

import pytest

from homi.kernel.identity.password import FEDERATED_PASSWORD_SENTINEL, PasswordHasher


@pytest.fixture
def fast_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    def test_hash_creates_different_hashes(self, fast_hasher):
        """Same password should create different hashes (due to salt)."""
        password = "TestPassword123"
        hash1 = fast_hasher.hash(password)
        hash2 = fast_hasher.hash(password)

        assert hash1 != hash2
        assert hash1.startswith("$2b$04$")

    def test_verify_correct_password(self, fast_hasher):
        """Correct password should verify successfully."""
        password = "TestPassword123"
        hashed = fast_hasher.hash(password)

        assert fast_hasher.verify(password, hashed) is True

    def test_verify_wrong_password(self, fast_hasher):
        """Wrong password should fail verification."""
        hashed = fast_hasher.hash("TestPassword123")

        assert fast_hasher.verify("WrongPassword", hashed) is False

    def test_default_cost_is_12(self):
        assert PasswordHasher().rounds == 12

    def test_password_truncated_to_72_bytes(self, fast_hasher):
        """bcrypt only sees the first 72 bytes."""
        base = "a" * 72
        hashed = fast_hasher.hash(base + "suffix")

        assert fast_hasher.verify(base + "different", hashed) is True

    @pytest.mark.parametrize("digest", ["", "not-a-hash", "$2b$04$short", FEDERATED_PASSWORD_SENTINEL])
    def test_malformed_digest_never_verifies(self, fast_hasher, digest):
        assert fast_hasher.verify("anything", digest) is False

    @pytest.mark.parametrize("candidate", ["", FEDERATED_PASSWORD_SENTINEL, "!federated", "TestPassword123"])
    def test_sentinel_rejects_every_password(self, fast_hasher, candidate):
        assert fast_hasher.verify(candidate, FEDERATED_PASSWORD_SENTINEL) is False

    def test_needs_rehash_on_cost_change(self, fast_hasher):
        hashed = fast_hasher.hash("TestPassword123")

        assert fast_hasher.needs_rehash(hashed) is False
        assert PasswordHasher(rounds=5).needs_rehash(hashed) is True
        assert fast_hasher.needs_rehash(FEDERATED_PASSWORD_SENTINEL) is True

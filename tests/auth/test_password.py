"""Tests for PasswordHasher - bcrypt hashing and constant-time verification."""

import time
from unittest.mock import patch

import bcrypt
import pytest

from auth.exceptions import HashError
from auth.password import PasswordHasher


class TestHash:
    """Test password hashing."""

    def test_produces_bcrypt_hash(self, hasher):
        password_hash = hasher.hash("password1")
        assert password_hash.startswith("$2")
        assert "password1" not in password_hash

    def test_same_password_hashes_differently(self, hasher):
        """Each hash gets its own salt."""
        assert hasher.hash("password1") != hasher.hash("password1")

    def test_work_factor_embedded_in_hash(self, hasher):
        assert hasher.hash("password1").split("$")[2] == "04"

    def test_rejects_password_over_72_bytes(self, hasher):
        with pytest.raises(HashError):
            hasher.hash("x" * 73)

    def test_rejects_nul_byte(self, hasher):
        with pytest.raises(HashError, match="NUL"):
            hasher.hash("pass\x00word1")

    def test_multibyte_password_counted_in_bytes(self, hasher):
        """25 three-byte characters is 75 bytes."""
        with pytest.raises(HashError):
            hasher.hash("€" * 25)

    def test_bcrypt_failure_becomes_hash_error(self, hasher):
        with patch("auth.password.bcrypt.hashpw", side_effect=ValueError("boom")):
            with pytest.raises(HashError):
                hasher.hash("password1")

    def test_timeout_raises_hash_error(self):
        hasher = PasswordHasher(rounds=4, max_workers=1, timeout_seconds=0.05)
        try:
            with patch.object(hasher, "_hashpw", side_effect=lambda encoded: time.sleep(0.5)):
                with pytest.raises(HashError, match="timed out"):
                    hasher.hash("password1")
        finally:
            hasher.shutdown()


class TestVerify:
    """Test password verification."""

    def test_correct_password_verifies(self, hasher):
        assert hasher.verify("password1", hasher.hash("password1")) is True

    def test_wrong_password_fails(self, hasher):
        assert hasher.verify("password2", hasher.hash("password1")) is False

    @pytest.mark.parametrize("password", ["password1", "correct horse battery staple", "pässwörd-ünïcode"])
    def test_round_trip_for_various_passwords(self, hasher, password):
        password_hash = hasher.hash(password)
        assert hasher.verify(password, password_hash) is True
        assert hasher.verify(password + "x", password_hash) is False

    def test_malformed_hash_returns_false(self, hasher):
        assert hasher.verify("password1", "not-a-bcrypt-hash") is False

    def test_malformed_hash_still_runs_full_check(self, hasher):
        """A malformed hash costs a real bcrypt comparison, not an early exit."""
        with patch("auth.password.bcrypt.checkpw", wraps=bcrypt.checkpw) as checkpw:
            hasher.verify("password1", "not-a-bcrypt-hash")
        assert checkpw.call_count == 2

    def test_over_long_password_returns_false(self, hasher):
        assert hasher.verify("x" * 100, hasher.hash("password1")) is False

    def test_nul_password_returns_false(self, hasher):
        with patch.object(hasher, "verify_dummy", wraps=hasher.verify_dummy) as dummy:
            assert hasher.verify("pass\x00word1", hasher.hash("password1")) is False
        dummy.assert_called_once()

    def test_old_work_factor_still_verifies(self, hasher):
        """Hashes made at a different cost stay valid."""
        old_hash = bcrypt.hashpw(b"password1", bcrypt.gensalt(rounds=5)).decode()
        assert hasher.verify("password1", old_hash) is True

    def test_verify_dummy_returns_none(self, hasher):
        assert hasher.verify_dummy("anything") is None


class TestNeedsRehash:
    """Test work factor upgrade detection."""

    def test_current_cost_needs_no_rehash(self, hasher):
        assert hasher.needs_rehash(hasher.hash("password1")) is False

    def test_different_cost_needs_rehash(self, hasher):
        old_hash = bcrypt.hashpw(b"password1", bcrypt.gensalt(rounds=5)).decode()
        assert hasher.needs_rehash(old_hash) is True

    def test_garbage_needs_rehash(self, hasher):
        assert hasher.needs_rehash("garbage") is True

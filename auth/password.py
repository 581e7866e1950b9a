"""Password hashing and verification.

bcrypt with a configurable work factor. The cost is embedded in every hash,
so raising `bcrypt_rounds` later leaves existing hashes verifiable.
Hashing is CPU-bound and runs on a small bounded thread pool (bcrypt
releases the GIL) so a burst of registrations can't starve request handling.
"""

import logging
import secrets
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

import bcrypt

from auth.config import AuthConfig
from auth.exceptions import HashError

logger = logging.getLogger(__name__)


class PasswordHasher:
    """bcrypt hashing with constant-time verification.

    Never logs passwords or hashes.
    """

    # bcrypt ignores (or rejects) input beyond 72 bytes
    MAX_PASSWORD_BYTES = 72

    def __init__(self, rounds: int = 12, max_workers: int = 4, timeout_seconds: float = 10.0):
        self._rounds = rounds
        self._timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="bcrypt",
        )
        # Same cost as real hashes so a dummy check takes as long as a real one
        self._dummy_hash = bcrypt.hashpw(
            secrets.token_urlsafe(16).encode("utf-8"),
            bcrypt.gensalt(rounds=rounds),
        )

    @classmethod
    def from_config(cls, config: AuthConfig) -> "PasswordHasher":
        return cls(
            rounds=config.bcrypt_rounds,
            max_workers=config.hash_workers,
            timeout_seconds=config.hash_timeout_seconds,
        )

    def _run(self, fn, *args):
        """Run fn on the worker pool, failing with HashError after the timeout.

        The worker is not cancelled; it runs to completion in the background.
        """
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self._timeout_seconds)
        except FutureTimeoutError:
            logger.error(f"Password hashing exceeded {self._timeout_seconds}s")
            raise HashError("Password hashing timed out")

    def hash(self, password: str) -> str:
        """Hash a plaintext password.

        Raises:
            HashError: If password is over 72 bytes or holds a NUL byte, bcrypt
                fails, or the pool times out.
        """
        encoded = password.encode("utf-8")
        if len(encoded) > self.MAX_PASSWORD_BYTES:
            raise HashError(f"Password exceeds {self.MAX_PASSWORD_BYTES} bytes")
        if b"\x00" in encoded:
            raise HashError("Password contains a NUL byte")

        try:
            hashed = self._run(self._hashpw, encoded)
        except (ValueError, OSError) as e:
            logger.error(f"bcrypt hashing failed: {type(e).__name__}")
            raise HashError("Password hashing failed") from e
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Check password against a stored hash.

        Returns False for a mismatch, an over-long password, a password with
        a NUL byte, or a malformed hash, each after one full-cost bcrypt
        comparison.

        Raises:
            HashError: Only if the worker pool times out.
        """
        encoded = password.encode("utf-8")
        if len(encoded) > self.MAX_PASSWORD_BYTES or b"\x00" in encoded:
            self.verify_dummy(password)
            return False
        return self._run(self._checkpw, encoded, password_hash)

    def verify_dummy(self, password: str) -> None:
        """Spend one verification's worth of time with no real hash.

        Used when there is no account to check against, so an unknown email
        costs the same as a wrong password.
        """
        encoded = password.encode("utf-8").replace(b"\x00", b"")[: self.MAX_PASSWORD_BYTES]
        self._run(bcrypt.checkpw, encoded, self._dummy_hash)

    def needs_rehash(self, password_hash: str) -> bool:
        """True if the hash was made with a different work factor than configured."""
        try:
            # bcrypt format: $2b$XX$...
            parts = password_hash.split("$")
            if len(parts) >= 3:
                return int(parts[2]) != self._rounds
        except (ValueError, IndexError):
            pass
        return True

    def shutdown(self) -> None:
        """Stop the worker pool. Pending hashes finish first."""
        self._executor.shutdown(wait=True)

    def _hashpw(self, encoded: bytes) -> bytes:
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds))

    def _checkpw(self, encoded: bytes, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            bcrypt.checkpw(encoded, self._dummy_hash)
            return False

"""
Password hashing utilities using bcrypt.
"""

from passlib.context import CryptContext

# bcrypt ignores everything after 72 bytes
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Password hashing and verification using bcrypt."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a plain text password."""
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: str | None) -> bool:
        """Check a plain text password against a stored hash.

        Accounts created through checkout have no password yet, so a missing
        hash never verifies.
        """
        if not hashed_password:
            return False
        if len(plain_password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            return False
        return self._context.verify(plain_password, hashed_password)

    def needs_rehash(self, hashed_password: str) -> bool:
        return self._context.needs_update(hashed_password)


password_hasher = PasswordHasher()

"""Password hashing for login accounts."""

from __future__ import annotations

from collections.abc import Callable

import bcrypt

# hash(secret) -> digest
PasswordHasher = Callable[[str], str]

DEFAULT_ROUNDS = 10
# bcrypt only reads this many bytes of the secret and rejects longer input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Compare a plaintext password against a stored bcrypt digest."""
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def bcrypt_hasher(rounds: int = DEFAULT_ROUNDS) -> PasswordHasher:
    """Build a hasher with a fixed bcrypt cost factor."""

    def hasher(password: str) -> str:
        return hash_password(password, rounds)

    return hasher

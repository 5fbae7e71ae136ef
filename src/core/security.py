"""Password hashing and opaque token helpers."""
import hashlib
import secrets
from functools import lru_cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from core.config import get_settings


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Get the Argon2id hasher configured from settings."""
    settings = get_settings()
    return PasswordHasher(
        time_cost=settings.password_hash_time_cost,
        memory_cost=settings.password_hash_memory_cost,
    )


def hash_password(password: str) -> str:
    """Hash a password with a fresh random salt."""
    return get_password_hasher().hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a password against a stored hash.

    Returns False for a wrong password and for a malformed stored hash alike.
    """
    try:
        return get_password_hasher().verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def password_needs_rehash(password_hash: str) -> bool:
    """Whether a stored hash was made with weaker parameters than the current ones."""
    try:
        return get_password_hasher().check_needs_rehash(password_hash)
    except InvalidHashError:
        return True


@lru_cache
def dummy_password_hash() -> str:
    """
    A valid hash of a random password.

    Verified against when a login names an unknown user, so that path costs
    the same as a wrong password and timing does not reveal which usernames exist.
    """
    return hash_password(secrets.token_urlsafe(16))


def generate_token() -> tuple[str, str]:
    """
    Generate a single-use token.

    Returns:
        Tuple of (plaintext_token, token_hash). Only the hash is stored;
        the plaintext goes out in an email or cookie.
    """
    plaintext = secrets.token_urlsafe(32)
    return plaintext, hash_token(plaintext)


def hash_token(token: str) -> str:
    """Hash a token for comparison against stored hashes."""
    return hashlib.sha256(token.encode()).hexdigest()


def tokens_match(provided: str | None, expected: str | None) -> bool:
    """Constant-time, byte-for-byte comparison; absent values never match."""
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())

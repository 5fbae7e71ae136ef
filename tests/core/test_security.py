"""Tests for password hashing and token helpers."""
from argon2 import PasswordHasher

from core.security import (
    dummy_password_hash,
    generate_token,
    hash_password,
    hash_token,
    password_needs_rehash,
    tokens_match,
    verify_password,
)


def test__hash_password__salted_and_verifiable() -> None:
    """Same password, different hashes; both verify."""
    first = hash_password("hunter22")
    second = hash_password("hunter22")

    assert first != second
    assert first.startswith("$argon2id$")
    assert verify_password("hunter22", first)
    assert verify_password("hunter22", second)
    assert not verify_password("hunter23", first)


def test__verify_password__malformed_hash_is_false() -> None:
    """A broken stored value never raises."""
    assert verify_password("hunter22", "not-a-hash") is False
    assert verify_password("hunter22", "") is False


def test__password_needs_rehash__weaker_parameters() -> None:
    """Hashes made with other cost parameters are flagged for upgrade."""
    weak = PasswordHasher(time_cost=1, memory_cost=512).hash("hunter22")

    assert password_needs_rehash(weak) is True
    assert password_needs_rehash(hash_password("hunter22")) is False


def test__dummy_password_hash__is_a_real_hash() -> None:
    """The timing decoy is a valid hash that matches nothing guessable."""
    decoy = dummy_password_hash()

    assert decoy.startswith("$argon2id$")
    assert not verify_password("", decoy)
    assert dummy_password_hash() == decoy


def test__generate_token__hash_matches() -> None:
    """The stored hash is the SHA-256 of the plaintext."""
    plaintext, token_hash = generate_token()

    assert len(plaintext) >= 32
    assert token_hash == hash_token(plaintext)
    assert len(token_hash) == 64


def test__tokens_match() -> None:
    """Exact byte equality only; absent values never match."""
    assert tokens_match("abc", "abc")
    assert not tokens_match("abc", "abd")
    assert not tokens_match("abc", "ABC")
    assert not tokens_match("", "")
    assert not tokens_match(None, "abc")
    assert not tokens_match("abc", None)

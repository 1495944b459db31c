"""
Lock number derivation for PostgreSQL advisory locks.

PostgreSQL identifies an advisory lock by a single signed 64-bit integer
that every application sharing the database draws from. Lock numbers built
here have two parts:

- The upper bytes hold a short ASCII namespace tag, so locks taken by this
  library do not collide with advisory locks of unrelated applications.
- The low 24 bits hold a caller-chosen discriminator, so several logical
  locks can share one namespace.

Example:
    >>> lock_number(1)
    6362582846355275777
"""

from __future__ import annotations

import hashlib

DEFAULT_NAMESPACE = "XLock"

DISCRIMINATOR_BITS = 24
MAX_DISCRIMINATOR = (1 << DISCRIMINATOR_BITS) - 1
MAX_NAMESPACE_LENGTH = 5


def namespace_magic(tag: str = DEFAULT_NAMESPACE) -> int:
    """
    Pack a namespace tag into the upper bytes of a lock number.

    Each character becomes one byte, first character most significant, and
    the result is shifted above the discriminator bits.

    Args:
        tag: 1 to 5 ASCII characters (code points below 128)

    Returns:
        Non-negative integer with the low 24 bits clear

    Raises:
        ValueError: If the tag is empty, too long or not 7-bit ASCII

    Example:
        >>> hex(namespace_magic("XLock"))
        '0x584c6f636b000000'
    """
    if not tag or len(tag) > MAX_NAMESPACE_LENGTH:
        raise ValueError(
            f"namespace must be 1 to {MAX_NAMESPACE_LENGTH} characters, got {tag!r}."
        )
    if not tag.isascii():
        raise ValueError(f"namespace must be ASCII, got {tag!r}.")
    return int.from_bytes(tag.encode("ascii"), byteorder="big") << DISCRIMINATOR_BITS


def lock_number(discriminator: int, namespace: str = DEFAULT_NAMESPACE) -> int:
    """
    Compute the advisory lock number for a discriminator.

    Args:
        discriminator: Small integer in ``[0, MAX_DISCRIMINATOR]`` that
            distinguishes logical locks within the namespace
        namespace: Namespace tag (see namespace_magic)

    Returns:
        Lock number that fits in a PostgreSQL bigint

    Raises:
        ValueError: If the discriminator is out of range
    """
    if not 0 <= discriminator <= MAX_DISCRIMINATOR:
        raise ValueError(
            f"discriminator must be between 0 and {MAX_DISCRIMINATOR}, got {discriminator}."
        )
    return namespace_magic(namespace) + discriminator


def discriminator_for(name: str) -> int:
    """
    Derive a stable discriminator from a name.

    Useful when each lock naturally maps to a name, such as one lock per
    schema history table. Uses SHA-256 truncated to the discriminator
    width, so the same name gives the same discriminator in every process.

    Args:
        name: Name identifying the logical lock

    Returns:
        Discriminator in ``[0, MAX_DISCRIMINATOR]``

    Example:
        >>> discriminator_for("public.schema_history") == discriminator_for(
        ...     "public.schema_history"
        ... )
        True
    """
    hash_bytes = hashlib.sha256(name.encode()).digest()
    return int.from_bytes(hash_bytes[:4], byteorder="big") & MAX_DISCRIMINATOR


__all__ = [
    "DEFAULT_NAMESPACE",
    "DISCRIMINATOR_BITS",
    "MAX_DISCRIMINATOR",
    "MAX_NAMESPACE_LENGTH",
    "discriminator_for",
    "lock_number",
    "namespace_magic",
]

"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Token generation (cryptographic)
- Token format checks
- String hashing

These utilities are pure infrastructure - they have no knowledge
of domain concepts like videos or upload sessions.

Usage:
    from core.helpers import generate_token, hash_string, is_hex_token

    token = generate_token(16)
    is_hex_token(token, 16)  # True
    hashed = hash_string("value", "sha256")
"""

from __future__ import annotations

import hashlib
import re
import secrets

_HEX_RE = re.compile(r"^[0-9a-f]+$")


def generate_token(length: int = 32) -> str:
    """
    Generate a cryptographically secure random token.

    Uses secrets module for secure random generation.

    Args:
        length: Number of bytes (resulting string is 2x length in hex)

    Returns:
        Hexadecimal token string

    Example:
        token = generate_token(16)  # Returns 32-character hex string
    """
    return secrets.token_hex(length)


def is_hex_token(value: object, length: int = 32) -> bool:
    """
    Check that value looks like a token produced by generate_token(length).

    Example:
        is_hex_token("ab" * 16, 16)  # True
        is_hex_token("../etc/passwd", 16)  # False
    """
    if not isinstance(value, str) or len(value) != length * 2:
        return False
    return bool(_HEX_RE.match(value))


def hash_string(value: str, algorithm: str = "sha256") -> str:
    """
    Hash a string using the specified algorithm.

    Args:
        value: String to hash
        algorithm: Hash algorithm (sha256, sha512, md5, etc.)

    Returns:
        Hexadecimal hash string

    Example:
        hashed = hash_string("password", "sha256")
    """
    hasher = hashlib.new(algorithm)
    hasher.update(value.encode("utf-8"))
    return hasher.hexdigest()

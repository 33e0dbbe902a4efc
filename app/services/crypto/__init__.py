"""
CloudEvents Gateway Cryptographic Services Module

Provides the credential digest used to keep plain text tokens out of memory:
- Salted SHA-256 token hashing
- Constant-time digest comparison
"""

from .hashing import DIGEST_LENGTH, hash_token, hashes_match

__all__ = [
    "DIGEST_LENGTH",
    "hash_token",
    "hashes_match",
]

"""
Credential hashing for the CloudEvents gateway.

Implements the one-way digest used by the token registries:
- SHA-256 over ``salt:token`` (or the bare token when no salt is given)
- Lowercase hex rendering (64 characters)
- Constant-time digest comparison
"""

import hashlib
import secrets

DIGEST_LENGTH = 64  # 256 bits as hex


def hash_token(salt: str, token: str) -> str:
    """
    Hash a token, optionally salted.

    When a salt is provided the digest input is ``salt + ":" + token``,
    otherwise it is the token alone.

    Args:
        salt: Salt string (the event source for per-source tokens, or "")
        token: Plain text token

    Returns:
        Lowercase hex SHA-256 digest
    """
    if salt:
        token = f"{salt}:{token}"
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def hashes_match(hashed: str, expected_hash: str) -> bool:
    """
    Compare two hex digests.

    Uses constant-time comparison to prevent timing attacks.
    """
    return secrets.compare_digest(hashed.encode("ascii"), expected_hash.encode("ascii"))

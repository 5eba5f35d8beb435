# Overview: Password hashing and verification (salted PBKDF2, "salt:hash" digests).

"""
Credential hasher.

Digest format: "<salt>:<hash>", both hex. The salt is 16 random bytes,
hex-encoded; the hex string itself is the PBKDF2 salt input. The hash is
PBKDF2-HMAC-SHA256, 100000 iterations, 64 bytes.

The iteration count, hash function, and key length are NOT stored in the
digest. Changing any of them makes every stored digest unverifiable.
"""

import hashlib
import hmac
import secrets

from ..errors import ValidationError, ErrorCode


PBKDF2_ALGORITHM = "sha256"
PBKDF2_ITERATIONS = 100_000
PBKDF2_KEY_LENGTH = 64
SALT_BYTES = 16
DIGEST_SEPARATOR = ":"

ADMIN_MIN_PASSWORD_LENGTH = 8
CUSTOMER_MIN_PASSWORD_LENGTH = 6


def validate_password(password, min_length: int) -> None:
    """
    Raise ValidationError(INVALID_PASSWORD) unless password is a string of
    at least min_length characters.
    """
    if not isinstance(password, str) or len(password) < min_length:
        raise ValidationError(
            ErrorCode.INVALID_PASSWORD,
            f"Password must be at least {min_length} characters",
        )


def _derive(password: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac(
        PBKDF2_ALGORITHM,
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
        dklen=PBKDF2_KEY_LENGTH,
    ).hex()


def hash_password(password: str) -> str:
    """
    Hash password with a fresh random salt.

    Two calls with the same password return different digests; both verify.
    """
    salt = secrets.token_hex(SALT_BYTES)
    return f"{salt}{DIGEST_SEPARATOR}{_derive(password, salt)}"


def verify_password(password: str, stored_digest: str | None) -> bool:
    """
    Verify password against a stored "salt:hash" digest.

    Fails closed: a missing digest, a missing separator, or an empty salt or
    hash returns False instead of raising.
    """
    if not password or not stored_digest or not isinstance(stored_digest, str):
        return False

    salt, sep, expected = stored_digest.partition(DIGEST_SEPARATOR)
    if not sep or not salt or not expected:
        return False

    computed = _derive(password, salt)
    return hmac.compare_digest(computed.encode("ascii"), expected.encode("utf-8"))

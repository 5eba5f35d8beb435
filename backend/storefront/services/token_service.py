# Overview: Cryptographically secure opaque identifiers for sessions, verification tokens, and row ids.

"""
Token generation.

Session tokens and single-use verification tokens are 32 random bytes,
hex-encoded (64 characters). Row ids are 16 random bytes (32 characters).

Collisions at this size are negligible; generate_unique_token still checks
the target column and retries a few times before giving up.
"""

import secrets

from ..extensions import db


TOKEN_BYTES = 32
ID_BYTES = 16
MAX_UNIQUE_ATTEMPTS = 5


def generate_token(nbytes: int = TOKEN_BYTES) -> str:
    """
    Return nbytes of CSPRNG output as a hex string (2 * nbytes characters).

    Bearer sessions and emailed links both depend on these being
    unguessable; never substitute random or uuid4 here.
    """
    if nbytes <= 0:
        raise ValueError("nbytes must be positive")
    return secrets.token_hex(nbytes)


def generate_id() -> str:
    """Primary key for principal, credential, session, and verification rows."""
    return secrets.token_hex(ID_BYTES)


def generate_unique_token(column, nbytes: int = TOKEN_BYTES) -> str:
    """
    Generate a token that does not currently exist in `column`
    (e.g. AdminSession.token).

    Raises RuntimeError if every attempt collided, which indicates a broken
    random source rather than bad luck.
    """
    for _ in range(MAX_UNIQUE_ATTEMPTS):
        token = generate_token(nbytes)
        exists = db.session.query(column).filter(column == token).first()
        if exists is None:
            return token
    raise RuntimeError("Could not generate a unique token")

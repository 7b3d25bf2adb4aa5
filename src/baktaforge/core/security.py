"""Security utilities: job capability secrets and API token checks."""

import base64
import hashlib
import secrets

from baktaforge.core.exceptions import AuthenticationError

# Random bytes behind one job secret
SECRET_BYTES = 50


# ─────────────────────────────────────────────────────────────────────────────
# Job secrets
# ─────────────────────────────────────────────────────────────────────────────

def generate_secret() -> str:
    """Create a new random capability token for a job."""
    return base64.b64encode(secrets.token_bytes(SECRET_BYTES)).decode("ascii")


def hash_secret(secret: str) -> str:
    """Return base64(SHA-256(secret)), the only form of a secret that is stored."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def secret_matches(secret: str, secret_hash: str) -> bool:
    """Compare a presented secret with a stored hash.

    Plain string comparison, not constant time.
    """
    return hash_secret(secret) == secret_hash


# ─────────────────────────────────────────────────────────────────────────────
# API token
# ─────────────────────────────────────────────────────────────────────────────

def verify_api_token(presented: str | None, expected: str | None) -> None:
    """
    Check the shared API token sent in the Authorization header.

    A missing ``expected`` token disables the check (development setups).

    Raises:
        AuthenticationError: Token missing or wrong
    """
    if not expected:
        return
    if presented is None:
        raise AuthenticationError("Error authenticating credentials")
    if presented.startswith("Bearer "):
        presented = presented[len("Bearer "):]
    if not secrets.compare_digest(presented, expected):
        raise AuthenticationError("API key does not match")

"""Security utilities: bearer token verification, invite codes, hashing."""

import hashlib
import re
import secrets
from functools import lru_cache

import jwt

from handwash.config import settings

# No 0/O, 1/I/L to keep codes readable aloud
INVITE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 8

_COMPACT_CODE = re.compile(r"^[A-Z0-9]{8}$")


# --- Hashing ---

def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def hash_endpoint(endpoint: str) -> str:
    """Stable fingerprint of a push endpoint URL, used in sort keys."""
    return sha256_hex(endpoint)[:32]


# --- Invite Codes ---

def generate_invite_code() -> str:
    """Generate a human-readable invite code like ``ABCD-EFGH``."""
    raw = "".join(secrets.choice(INVITE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))
    return f"{raw[:4]}-{raw[4:]}"


def normalize_invite_code(code: str) -> str:
    """Uppercase, trim, and restore the 4-4 grouping when it was omitted."""
    normalized = code.strip().upper()
    if _COMPACT_CODE.match(normalized):
        normalized = f"{normalized[:4]}-{normalized[4:]}"
    return normalized


def hash_invite_code(code: str) -> str:
    """One-way digest of a normalized invite code. The code itself is never stored."""
    return sha256_hex(normalize_invite_code(code))


# --- Bearer Tokens ---

@lru_cache(maxsize=1)
def _jwks_client(url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(url)


def decode_token(token: str) -> dict:
    """Verify a bearer JWT from the identity provider. Raises jwt.PyJWTError on failure."""
    options = {"require": ["sub", "exp"]}
    kwargs = {}
    if settings.jwt_audience:
        kwargs["audience"] = settings.jwt_audience
    else:
        options["verify_aud"] = False
    if settings.jwt_issuer:
        kwargs["issuer"] = settings.jwt_issuer

    if settings.jwt_jwks_url:
        key = _jwks_client(settings.jwt_jwks_url).get_signing_key_from_jwt(token).key
        algorithms = ["RS256"]
    else:
        key = settings.jwt_secret
        algorithms = [settings.jwt_algorithm]

    return jwt.decode(token, key, algorithms=algorithms, options=options, **kwargs)

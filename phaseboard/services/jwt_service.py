"""
JWT Service — access token generation, verification and revocation.

Access token:  1 hour (configurable via JWT_ACCESS_EXPIRES, seconds)
Algorithm:     HS256

Token payload:
{
    "sub": "<profile_id>",
    "email": "<profile email>",
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

Revocation keeps the ``jti`` of signed-out tokens in process memory until
the token would have expired anyway.
"""

import threading
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 3600      # 1 hour
ALGORITHM = "HS256"

_revoked: dict[str, float] = {}    # jti -> exp (epoch seconds)
_revoked_lock = threading.Lock()


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_access_token(profile_id: int, email: str | None = None) -> str:
    """Generate a signed access token for a profile."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(profile_id),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])

    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    if is_revoked(payload.get("jti")):
        raise jwt.InvalidTokenError("Token has been revoked")

    return payload


# ═══════════════════════════════════════════════════════════════
# Revocation
# ═══════════════════════════════════════════════════════════════
def revoke_token(token: str) -> dict:
    """Revoke a still-valid token by its ``jti``. Returns the decoded payload."""
    payload = decode_access_token(token)
    with _revoked_lock:
        _prune_revoked()
        _revoked[payload["jti"]] = float(payload["exp"])
    return payload


def is_revoked(jti: str | None) -> bool:
    if not jti:
        return False
    with _revoked_lock:
        return jti in _revoked


def _prune_revoked():
    now = datetime.now(timezone.utc).timestamp()
    for jti in [j for j, exp in _revoked.items() if exp < now]:
        del _revoked[jti]

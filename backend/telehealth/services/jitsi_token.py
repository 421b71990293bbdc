"""
Signed room credentials for Jitsi Meet's JWT authentication plugin.

The Jitsi server holds the same app id and secret; a participant presenting a
token it can verify is admitted to the named room with the identity and
moderator grants carried in the token's ``context`` claim.
"""

import time
from typing import Optional
from jose import jwt
from telehealth.exceptions import TelehealthNotConfigured

ALGORITHM = "HS256"
AUDIENCE = "jitsi"
DEFAULT_TTL_SECONDS = 7200  # 2 hours


def _flag(value: bool) -> str:
    # The Jitsi token plugin reads these grants as strings.
    return "true" if value else "false"


def build_claims(
    app_id: str,
    room_name: str,
    display_name: str,
    email: str = "",
    is_moderator: bool = False,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    now: Optional[int] = None,
) -> dict:
    issued_at = int(time.time()) if now is None else int(now)
    return {
        "iss": app_id,
        "sub": "*",
        "aud": AUDIENCE,
        "iat": issued_at,
        "nbf": issued_at,
        "exp": issued_at + ttl_seconds,
        "room": room_name,
        "context": {
            "user": {
                "name": display_name,
                "email": email,
                "moderator": _flag(is_moderator),
                "affiliation": "owner" if is_moderator else "member",
            },
            "features": {
                "recording": _flag(is_moderator),
                "livestreaming": "false",
                "screen-sharing": "true",
            },
        },
    }


def issue(
    app_id: str,
    app_secret: str,
    room_name: str,
    display_name: str,
    email: str = "",
    is_moderator: bool = False,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    now: Optional[int] = None,
) -> str:
    """Create a signed Jitsi room token. Same inputs at the same second give the same token."""
    if not app_secret:
        raise TelehealthNotConfigured("Jitsi JWT secret is not configured")
    claims = build_claims(app_id, room_name, display_name, email, is_moderator, ttl_seconds, now)
    return jwt.encode(claims, app_secret, algorithm=ALGORITHM, headers={"typ": "JWT"})


def verify(token: str, app_secret: str, app_id: Optional[str] = None) -> dict:
    """Decode a room token, checking signature, audience and validity window. Raises JWTError."""
    return jwt.decode(token, app_secret, algorithms=[ALGORITHM], audience=AUDIENCE, issuer=app_id)

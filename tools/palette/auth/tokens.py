"""Session token helpers.

Uses PyJWT with HS256. A token carries the username, issue time and expiry;
there is no server-side session table, so a token stays valid until it
expires even if the user is removed.
"""

from datetime import datetime, timedelta, timezone

import jwt

ALGORITHM = "HS256"


def create_token(username: str, secret: str, expiry_hours: int = 24) -> str:
    """Create a signed session token.

    Args:
        username: Identity of the logged-in user.
        secret: Secret key used for HS256 signing.
        expiry_hours: Token validity duration in hours (default 24).

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "username": username,
        "iat": now,
        "exp": now + timedelta(hours=expiry_hours),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str) -> str | None:
    """Return the username inside a valid token.

    Returns ``None`` if the token is expired, malformed, signed with another
    secret, or has no username claim.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
        username = payload["username"]
    except (jwt.InvalidTokenError, KeyError):
        return None
    return username if isinstance(username, str) and username else None

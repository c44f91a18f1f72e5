"""JWT decoding for merchant sessions.

Tokens are issued by the merchant login service; this service only
verifies them. Claims used:
  - sub:   merchant owner id
  - type:  "access"
  - exp:   expiry timestamp
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from onboarding.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(owner_id: str, expires_delta: timedelta | None = None) -> str:
    """Sign an access token for `owner_id` (tests and local tooling)."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    payload = {"sub": owner_id, "type": "access", "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}

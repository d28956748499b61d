"""JWT token creation and decoding.

Token claims:
  - sub:    username
  - role:   one of the Role values (unknown roles evaluate as view-only)
  - plant:  plant tag, or "ALL" for actors not tied to one plant
  - name:   display name, recorded on approval requests and decisions
  - type:   "access"
  - exp:    expiry timestamp
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from plantops.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    username: str,
    role: str,
    plant: str | None = None,
    display_name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": username,
        "role": role,
        "name": display_name or username,
        "type": "access",
        "exp": expire,
    }
    if plant:
        payload["plant"] = plant
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}

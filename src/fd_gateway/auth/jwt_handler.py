"""JWT access-token handling.

Tokens are issued by the surrounding user/session service; this module only
needs to verify them and turn the claims into an Actor. ``create_access_token``
exists for local tooling and tests.

Claims: sub (actor id), role, type="access", optional restaurant_id and team flag.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from config.settings import settings
from src.fd_common.enums import ActorRole
from src.fd_common.errors import InvalidCredentialsError
from src.fd_gateway.auth.capabilities import Actor

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"
_ACCESS_EXPIRE = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)


def create_access_token(
    actor_id: str,
    role: ActorRole,
    restaurant_id: str | None = None,
    is_team_member: bool = False,
) -> str:
    now = datetime.now(UTC)
    payload: dict[str, object] = {
        "sub": actor_id,
        "role": role.value,
        "type": "access",
        "team": is_team_member,
        "iat": now,
        "exp": now + _ACCESS_EXPIRE,
    }
    if restaurant_id is not None:
        payload["restaurant_id"] = restaurant_id
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def decode_token(token: str) -> Actor:
    """Decode and validate an access token into an Actor.

    Raises:
        InvalidCredentialsError: bad signature, expired, wrong type, unknown role.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != "access" or not payload.get("sub"):
        raise InvalidCredentialsError()
    try:
        role = ActorRole(payload.get("role"))
    except ValueError:
        raise InvalidCredentialsError() from None

    return Actor(
        id=str(payload["sub"]),
        role=role,
        restaurant_id=payload.get("restaurant_id"),
        is_team_member=bool(payload.get("team", False)),
    )

"""FastAPI dependencies resolving the calling Actor.

Usage in any protected router:
    from src.fd_gateway.auth.dependencies import get_current_actor

    @router.post("/protected")
    async def protected(actor: Annotated[Actor, Depends(get_current_actor)]):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.fd_common.errors import InvalidCredentialsError
from src.fd_gateway.auth.capabilities import Actor
from src.fd_gateway.auth.jwt_handler import decode_token

bearer_scheme = HTTPBearer(auto_error=False)

Credentials = HTTPAuthorizationCredentials | None

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_actor(credentials: Credentials = Depends(bearer_scheme)) -> Actor:
    """Require a valid Bearer token. Raises HTTP 401 otherwise."""
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        return decode_token(credentials.credentials)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None


async def get_optional_actor(credentials: Credentials = Depends(bearer_scheme)) -> Actor | None:
    """Guests (no token) resolve to None; a present but invalid token is still a 401."""
    if credentials is None:
        return None
    try:
        return decode_token(credentials.credentials)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

"""FastAPI dependencies for resolving the calling merchant owner.

Dependencies:
  get_current_owner  → decode bearer JWT, return the owner id (`sub`)
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from onboarding.auth.jwt import decode_token
from onboarding.middleware.exceptions import OwnerNotResolvedError

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_current_owner(token: str | None = Depends(oauth2_scheme)) -> str:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    owner_id = payload.get("sub")
    if not owner_id:
        raise OwnerNotResolvedError()
    return str(owner_id)

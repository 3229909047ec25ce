"""Authentication dependencies

Tokens are issued by the dashboard's login service; this API only verifies
them.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lien_sync.exceptions import AuthenticationError
from lien_sync.services.auth import decode_token

router = APIRouter(prefix="/auth", tags=["Authentication"])

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_operator(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Get the authenticated operator (JWT `sub`) or raise 401"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(message="Not authenticated")
    payload = decode_token(credentials.credentials)
    return str(payload["sub"])


@router.get("/me")
async def get_me(operator: str = Depends(get_current_operator)):
    """Get the operator the presented token belongs to"""
    return {"operator": operator}

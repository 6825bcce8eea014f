"""FastAPI dependency: get_current_seller_id.

Usage in a seller-only router:
    from src.jt_gateway.auth.dependencies import get_current_seller_id

    @router.get("/mine")
    async def mine(seller_id: str = Depends(get_current_seller_id)):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.jt_common.errors import InvalidCredentialsError
from src.jt_gateway.auth.jwt_handler import decode_token

bearer_scheme = HTTPBearer(auto_error=False)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_seller_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Seller id from the Bearer token's `sub` claim; 401 otherwise."""
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        payload = decode_token(credentials.credentials)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None
    return payload["sub"]

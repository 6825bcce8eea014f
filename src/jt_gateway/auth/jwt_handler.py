"""Seller access tokens.

Tokens are issued by the account service; this service only verifies them.
HS256 with the shared JWT_SECRET.
"""

from jose import JWTError, jwt

from config.settings import settings
from src.jt_common.errors import InvalidCredentialsError

_ALGORITHM = settings.JWT_ALGORITHM


def decode_token(token: str) -> dict[str, str]:
    """Decode an access token.

    Raises:
        InvalidCredentialsError: bad signature, expired, or not an access token.
    """
    try:
        payload: dict[str, str] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != "access" or not payload.get("sub"):
        raise InvalidCredentialsError()
    return payload

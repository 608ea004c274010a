"""Identity helpers.

Tokens are issued by the external identity provider and signed with the
key in `khata.config.Config`. This module only verifies them and turns
the `sub` claim into the owner id that scopes every ledger operation.
"""

import jwt
from khata.config import Config
from fastapi import HTTPException, status, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from khata.db.redis import redis_client
from redis.exceptions import RedisError
import logging

logger = logging.getLogger(__name__)


security = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:

    try:

        token_data = jwt.decode(
            jwt=token,
            key=Config.JWT_KEY,
            algorithms=[Config.JWT_ALGORITHM],
            leeway=10
        )

    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired"
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token."
        )

    return token_data


async def get_current_user(request: Request, bearer_token: HTTPAuthorizationCredentials = Depends(security)):
    """Extract and validate the owner from the request.

    Bearer token first (mobile), then the `access_token` cookie (web).

    Returns:
        dict: `{"user_id": <sub claim>}`, the owner id for the ledger.

    Raises:
        HTTPException: If no credentials are provided, or the token is
                       invalid, expired, revoked or not an access token.
    """
    token = None

    if bearer_token and bearer_token.credentials:
        token = bearer_token.credentials
    if not token:
        token = request.cookies.get("access_token")

    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    # Decode and validate token signature and expiry
    token_decoded = decode_token(token)

    jti = token_decoded.get('jti')

    # Revoked tokens are listed by jti until they expire. If the list
    # cannot be read the token is refused.
    revoked = None
    if jti:
        try:
            revoked = await redis_client.get(jti)
        except (RedisError, OSError) as e:
            logger.warning("Revocation check failed for token %s: %s", jti, e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service unavailable, retry shortly",
                headers={"Retry-After": "1"}
            )

    if revoked:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked"
        )

    token_type = token_decoded.get('type')
    if token_type is not None and token_type != 'access':
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type. Access token required."
        )

    user_id = token_decoded.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing user ID."
        )

    return {
        "user_id": str(user_id)
    }

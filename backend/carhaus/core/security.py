"""
JWT helpers for bearer authentication.

Tokens are issued by the identity provider in front of the marketplace;
this module signs tokens for trusted internal callers and tests and
verifies incoming ones.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from jose import ExpiredSignatureError, JWTError, jwt

from carhaus.core.config import settings
from carhaus.core.exceptions import TokenExpiredException

logger = logging.getLogger(__name__)


def create_access_token(
    subject: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The subject of the token (the user ID)
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims such as ``role``

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        "exp": expire,
        "iat": now,
        "sub": str(subject),
        "type": "access",
        "jti": secrets.token_urlsafe(16),
    }

    if additional_claims:
        to_encode.update(additional_claims)

    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    return encoded_jwt


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT token.

    Returns:
        The decoded payload, or None when the token is tampered with or
        not an access token.

    Raises:
        TokenExpiredException: The signature is valid but the token expired
    """
    try:
        payload: Dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        logger.debug("Rejected expired token")
        raise TokenExpiredException()
    except JWTError:
        return None

    if payload.get("type") != "access":
        return None
    return payload

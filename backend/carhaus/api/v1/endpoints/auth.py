"""
Authentication dependencies and the current-principal endpoint.

Tokens are issued upstream; every request carries a JWT bearer token
whose ``sub`` is the user id.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from carhaus.core.exceptions import (
    AuthenticationException,
    ForbiddenException,
    InvalidTokenException,
    NotFoundException,
)
from carhaus.core.logging import bind_user
from carhaus.core.security import decode_token
from carhaus.db.postgres.models import Dealer, User, UserRole
from carhaus.db.postgres.repositories import DealerRepository, UserRepository
from carhaus.db.postgres.session import get_db

router = APIRouter()
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


# =============================================================================
# Dependencies
# =============================================================================


def user_id_from_token(token: str) -> UUID:
    """
    Validate a bearer token and return its subject.

    Raises:
        TokenExpiredException: Token expired
        InvalidTokenException: Token invalid or without a UUID subject
    """
    payload = decode_token(token)
    if not payload:
        logger.warning("Invalid token provided")
        raise InvalidTokenException()

    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        logger.warning("Token subject is not a user id")
        raise InvalidTokenException()


async def get_current_user_from_token(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user from the JWT token.

    Raises:
        401: Invalid or expired token, or unknown user
        403: Inactive account
    """
    user = await UserRepository(db).get(user_id_from_token(token))
    if not user:
        raise InvalidTokenException()

    if not user.is_active:
        raise ForbiddenException("User account is inactive")

    bind_user(str(user.id))
    return user


async def get_optional_current_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Optional dependency returning None for anonymous requests.

    A token that is present but invalid is treated as anonymous.
    """
    if not token:
        return None

    try:
        return await get_current_user_from_token(token, db)
    except (AuthenticationException, ForbiddenException):
        return None


def require_role(*roles: str):
    """
    Dependency factory to require specific user roles.

    Args:
        roles: Allowed roles

    Returns:
        Dependency function that checks the user's role
    """

    async def role_checker(
        current_user: User = Depends(get_current_user_from_token),
    ) -> User:
        if current_user.role not in roles:
            raise ForbiddenException(
                "Insufficient permissions",
                details={"required_roles": list(roles)},
            )
        return current_user

    return role_checker


require_admin = require_role(UserRole.ADMIN)


async def get_current_dealer(
    current_user: User = Depends(require_role(UserRole.DEALER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> Dealer:
    """Dealer profile owned by the current user."""
    dealer = await DealerRepository(db).get_by_user(current_user.id)
    if dealer is None:
        raise NotFoundException("Dealer profile not found", resource_type="dealer")
    return dealer


# =============================================================================
# Endpoints
# =============================================================================


class PrincipalResponse(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    role: UserRole
    dealer_id: Optional[UUID] = None


@router.get("/me", response_model=PrincipalResponse)
async def get_me(
    current_user: User = Depends(get_current_user_from_token),
    db: AsyncSession = Depends(get_db),
):
    """Return the authenticated principal and, for dealer staff, the dealer id."""
    dealer = await DealerRepository(db).get_by_user(current_user.id)
    return PrincipalResponse(
        id=current_user.id,
        email=current_user.email,
        full_name=current_user.full_name,
        role=current_user.role,
        dealer_id=dealer.id if dealer else None,
    )

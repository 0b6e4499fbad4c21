"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_portal.core.clock import Clock, get_clock
from clinic_portal.core.exceptions import NotFoundException, UnauthorizedException
from clinic_portal.core.redis_client import CacheManager, get_cache_manager
from clinic_portal.core.security import decode_access_token
from clinic_portal.database import get_db
from clinic_portal.schemas.appointments import CallerContext
from clinic_portal.services.status_sweeper import StatusSweeper
from clinic_portal.services.user_service import UserService

# Security
security = HTTPBearer()


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID from token

    Raises:
        UnauthorizedException: If token is invalid or expired
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedException("Could not validate credentials")

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise UnauthorizedException("Could not validate credentials")

    try:
        return UUID(user_id_str)
    except ValueError:
        raise UnauthorizedException("Invalid user ID format")


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Get current user from database.

    Raises:
        UnauthorizedException: If user not found or inactive
    """
    user = await UserService.get_user_by_id(db, user_id)

    if not user:
        raise UnauthorizedException("User not found")

    if not user["is_active"]:
        raise UnauthorizedException("User account is deactivated")

    return user


async def get_caller(
    user: Annotated[dict, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CallerContext:
    """
    Resolve the authenticated user's patient profile.

    Raises:
        NotFoundException: If the user has no patient profile
    """
    patient_id = await UserService.get_patient_id(db, user["id"])
    if patient_id is None:
        raise NotFoundException("Patient profile not found")
    return CallerContext(user_id=user["id"], patient_id=patient_id)


async def get_swept_db(
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> AsyncSession:
    """Database session on which stale appointment statuses were just swept."""
    await StatusSweeper(db, clock).run()
    return db


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
SweptDatabaseSession = Annotated[AsyncSession, Depends(get_swept_db)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CurrentCaller = Annotated[CallerContext, Depends(get_caller)]
ClockDep = Annotated[Clock, Depends(get_clock)]
CacheDep = Annotated[CacheManager | None, Depends(get_cache_manager)]

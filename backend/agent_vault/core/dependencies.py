"""FastAPI dependencies for dependency injection"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from ..chain.base import ExecutionContext
from ..chain.context import WallClockContext
from ..db.database import get_db
from ..services.agent_lifecycle import AgentLifecycleService
from .config import Settings, get_settings
from .security import verify_token

logger = logging.getLogger(__name__)

# Bearer token scheme; tokens are minted out of band
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/token",
    auto_error=False,  # Don't auto-raise, let us handle it
)


async def get_current_caller(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> str:
    """
    Dependency resolving the transaction caller from the JWT subject.

    Raises:
        HTTPException 401: If token is missing or invalid
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        token_data = verify_token(token, token_type="access")
        return token_data.sub
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


# Type aliases for cleaner route signatures
SettingsDep = Annotated[Settings, Depends(get_settings)]
CurrentCallerDep = Annotated[str, Depends(get_current_caller)]
DbSessionDep = Annotated[AsyncSession, Depends(get_db)]


def get_execution_context(
    caller: CurrentCallerDep,
    settings: SettingsDep,
) -> ExecutionContext:
    """Clock and identity for one request"""
    return WallClockContext(
        caller=caller,
        genesis_timestamp=settings.genesis_timestamp,
        block_time_seconds=settings.block_time_seconds,
    )


ExecutionContextDep = Annotated[ExecutionContext, Depends(get_execution_context)]


def get_lifecycle_service(
    db: DbSessionDep,
    context: ExecutionContextDep,
    settings: SettingsDep,
) -> AgentLifecycleService:
    """Lifecycle controller bound to the request session and caller"""
    return AgentLifecycleService(db, context, params=settings.protocol_params())


LifecycleServiceDep = Annotated[AgentLifecycleService, Depends(get_lifecycle_service)]

"""SqlOwnershipRegistry - built-in ownership token registry"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import token_issue_failed
from ..db.models import OwnershipTokenDB
from .base import OwnershipRegistry

logger = logging.getLogger(__name__)


class SqlOwnershipRegistry(OwnershipRegistry):
    """Ownership tokens stored in `ownership_tokens`, one row per token id"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get(self, token_id: int) -> Optional[OwnershipTokenDB]:
        result = await self.session.execute(
            select(OwnershipTokenDB).where(OwnershipTokenDB.token_id == token_id)
        )
        return result.scalar_one_or_none()

    async def issue(self, token_id: int, owner: str) -> None:
        existing = await self._get(token_id)
        if existing is not None:
            raise token_issue_failed(
                token_id, f"Ownership token {token_id} already issued to {existing.owner}"
            )

        self.session.add(OwnershipTokenDB(token_id=token_id, owner=owner))
        await self.session.flush()
        logger.debug(f"Issued ownership token {token_id} to {owner}")

    async def owner_of(self, token_id: int) -> Optional[str]:
        token = await self._get(token_id)
        return token.owner if token else None

"""User index repository for database operations

Keeps the ordered list of agent ids registered by each owner. Entries are
only ever appended; pausing or draining an agent leaves its slot in place.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import UserAgentDB


class UserIndexRepository:
    """Repository for per-owner agent index"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_agent_ids(self, owner: str) -> list[int]:
        """Agent ids of an owner in insertion order"""
        result = await self.session.execute(
            select(UserAgentDB.agent_id)
            .where(UserAgentDB.owner == owner)
            .order_by(UserAgentDB.slot)
        )
        return list(result.scalars().all())

    async def count(self, owner: str) -> int:
        """Number of slots used by an owner"""
        result = await self.session.execute(
            select(func.count(UserAgentDB.id)).where(UserAgentDB.owner == owner)
        )
        return result.scalar() or 0

    async def append(self, owner: str, agent_id: int) -> UserAgentDB:
        """Append an agent id to the end of an owner's index"""
        slot = await self.count(owner)
        entry = UserAgentDB(owner=owner, slot=slot, agent_id=agent_id)
        self.session.add(entry)
        await self.session.flush()
        return entry

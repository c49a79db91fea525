"""Protocol state repository for the global counters row"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import ProtocolStateDB

STATE_ROW_ID = 1


class ProtocolStateRepository:
    """Repository for the singleton ProtocolStateDB row"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, for_update: bool = False) -> Optional[ProtocolStateDB]:
        """Load the counters row without creating it"""
        stmt = select(ProtocolStateDB).where(ProtocolStateDB.id == STATE_ROW_ID)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, for_update: bool = False) -> ProtocolStateDB:
        """Load the counters row, creating it all-zero on first use"""
        state = await self.get(for_update=for_update)
        if state is None:
            state = ProtocolStateDB(
                id=STATE_ROW_ID,
                total_agents=0,
                total_value_optimized=0,
                cumulative_profits=0,
                active_strategies=0,
            )
            self.session.add(state)
            await self.session.flush()
        return state

    async def record_deployment(self, initial_capital: int) -> ProtocolStateDB:
        """
        Reserve the next agent id and account for the deployed capital.

        The counters are incremented in SQL so concurrent deployments each
        observe a distinct total_agents.

        Returns:
            The updated counters; total_agents is the newly assigned id
        """
        state = await self.get_or_create(for_update=True)
        await self.session.execute(
            update(ProtocolStateDB)
            .where(ProtocolStateDB.id == STATE_ROW_ID)
            .values(
                total_agents=ProtocolStateDB.total_agents + 1,
                total_value_optimized=ProtocolStateDB.total_value_optimized + initial_capital,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(state)
        return state

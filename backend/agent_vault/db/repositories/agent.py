"""Agent repository for database operations

Handles agent records and their one-to-one positions.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AgentDB, AgentPositionDB


class AgentRepository:
    """Repository for Agent records"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        agent_id: int,
        owner: str,
        name: str,
        strategy_type: str,
        capital_deployed: int,
        loss_tolerance: int,
        created_block: int,
        neural_weights: list[int],
        learning_rate: int,
    ) -> AgentDB:
        """Create a new active agent with zero realized profit."""
        agent = AgentDB(
            id=agent_id,
            owner=owner,
            name=name,
            strategy_type=strategy_type,
            capital_deployed=capital_deployed,
            profit_generated=0,
            loss_tolerance=loss_tolerance,
            last_rebalance=created_block,
            is_active=True,
            neural_weights=list(neural_weights),
            learning_rate=learning_rate,
        )
        self.session.add(agent)
        await self.session.flush()
        return agent

    async def get_by_id(self, agent_id: int, for_update: bool = False) -> Optional[AgentDB]:
        """
        Get agent by ID.

        With `for_update` the row is locked until the transaction ends and
        re-read from the database even if the session already holds it.
        """
        stmt = select(AgentDB).where(AgentDB.id == agent_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update(self, agent: AgentDB, **fields) -> AgentDB:
        """Apply field changes and flush"""
        for key, value in fields.items():
            if not hasattr(agent, key):
                raise AttributeError(f"AgentDB has no field '{key}'")
            setattr(agent, key, value)
        await self.session.flush()
        return agent

    async def apply_rebalance(self, agent: AgentDB, observed_rebalance: int, **fields) -> bool:
        """
        Write rebalance results only if no other rebalance landed since
        `agent` was read (its last_rebalance is still `observed_rebalance`).
        """
        result = await self.session.execute(
            update(AgentDB)
            .where(AgentDB.id == agent.id, AgentDB.last_rebalance == observed_rebalance)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(agent)
        return result.rowcount == 1

    async def withdraw_capital(self, agent: AgentDB, amount: int) -> bool:
        """
        Decrease deployed capital by `amount` if the stored capital covers it.

        Returns:
            False when the guarded update matched no row
        """
        result = await self.session.execute(
            update(AgentDB)
            .where(AgentDB.id == agent.id, AgentDB.capital_deployed >= amount)
            .values(capital_deployed=AgentDB.capital_deployed - amount)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(agent)
        return result.rowcount == 1


class PositionRepository:
    """Repository for per-agent positions"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_agent(self, agent_id: int, for_update: bool = False) -> Optional[AgentPositionDB]:
        """Get the current position of an agent"""
        stmt = select(AgentPositionDB).where(AgentPositionDB.agent_id == agent_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def replace(
        self,
        agent_id: int,
        current_protocol: str,
        position_size: int,
        entry_block: int,
        hedged: bool,
    ) -> AgentPositionDB:
        """
        Replace an agent's position wholesale.

        Unrealized PnL always starts at zero for a fresh position.
        """
        position = await self.get_by_agent(agent_id, for_update=True)
        if position is None:
            position = AgentPositionDB(agent_id=agent_id)
            self.session.add(position)

        position.current_protocol = current_protocol
        position.position_size = position_size
        position.entry_block = entry_block
        position.unrealized_pnl = 0
        position.hedged = hedged

        await self.session.flush()
        return position

    async def reduce_size(self, position: AgentPositionDB, amount: int) -> bool:
        """Decrease position size if the stored size covers `amount`"""
        result = await self.session.execute(
            update(AgentPositionDB)
            .where(
                AgentPositionDB.agent_id == position.agent_id,
                AgentPositionDB.position_size >= amount,
            )
            .values(position_size=AgentPositionDB.position_size - amount)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(position)
        return result.rowcount == 1

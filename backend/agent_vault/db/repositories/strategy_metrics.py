"""Strategy metrics repository for database operations"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import StrategyMetricsDB


class StrategyMetricsRepository:
    """Repository for per-strategy rolling statistics"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, strategy_type: str, for_update: bool = False) -> Optional[StrategyMetricsDB]:
        """Get stored metrics, or None if the strategy was never rebalanced"""
        stmt = select(StrategyMetricsDB).where(StrategyMetricsDB.strategy_type == strategy_type)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> list[StrategyMetricsDB]:
        """Get metrics for every strategy-type seen so far"""
        result = await self.session.execute(
            select(StrategyMetricsDB).order_by(StrategyMetricsDB.strategy_type)
        )
        return list(result.scalars().all())

    async def upsert(
        self,
        strategy_type: str,
        total_deployed: int,
        total_profits: int,
        success_rate: int,
        avg_apy: int,
        risk_score: int,
    ) -> StrategyMetricsDB:
        """Create or overwrite the metrics row of a strategy-type"""
        metrics = await self.get(strategy_type)
        if metrics is None:
            metrics = StrategyMetricsDB(strategy_type=strategy_type)
            self.session.add(metrics)

        metrics.total_deployed = total_deployed
        metrics.total_profits = total_profits
        metrics.success_rate = success_rate
        metrics.avg_apy = avg_apy
        metrics.risk_score = risk_score

        await self.session.flush()
        return metrics

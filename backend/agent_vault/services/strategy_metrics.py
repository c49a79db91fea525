"""
Strategy metrics aggregator.

Every rebalance is attributed to the agent's strategy-type label. The
aggregate keeps an event count, cumulative positive PnL, a bounded
random-walk success counter and a derived APY figure.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..db.repositories import StrategyMetricsRepository
from ..models.strategy import StrategyMetrics

logger = logging.getLogger(__name__)

# APY scaling: total_profits * APY_SCALE / total_deployed
APY_SCALE = 36_500

DEFAULT_SUCCESS_RATE = 50
DEFAULT_RISK_SCORE = 50


def calculate_apy(total_profits: int, total_deployed: int) -> int:
    """Average APY figure; 0 when nothing has been deployed"""
    if total_deployed == 0:
        return 0
    return total_profits * APY_SCALE // total_deployed


def default_metrics(strategy_type: str) -> StrategyMetrics:
    return StrategyMetrics(
        strategy_type=strategy_type,
        total_deployed=0,
        total_profits=0,
        success_rate=DEFAULT_SUCCESS_RATE,
        avg_apy=0,
        risk_score=DEFAULT_RISK_SCORE,
    )


def apply_rebalance_outcome(current: StrategyMetrics, profit_loss: int) -> StrategyMetrics:
    """
    Fold one rebalance outcome into the aggregate.

    Positive PnL adds to total_profits and raises success_rate by one;
    anything else lowers success_rate by one. risk_score is carried through.
    """
    total_deployed = current.total_deployed + 1
    if profit_loss > 0:
        total_profits = current.total_profits + profit_loss
        success_rate = min(100, current.success_rate + 1)
    else:
        total_profits = current.total_profits
        success_rate = max(0, current.success_rate - 1)

    return StrategyMetrics(
        strategy_type=current.strategy_type,
        total_deployed=total_deployed,
        total_profits=total_profits,
        success_rate=success_rate,
        avg_apy=calculate_apy(total_profits, total_deployed),
        risk_score=current.risk_score,
    )


class StrategyMetricsService:
    """Reads and updates persisted per-strategy metrics"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = StrategyMetricsRepository(session)

    async def get(self, strategy_type: str, for_update: bool = False) -> StrategyMetrics:
        """Stored metrics, or the defaults for a strategy never rebalanced"""
        row = await self.repo.get(strategy_type, for_update=for_update)
        if row is None:
            return default_metrics(strategy_type)
        return StrategyMetrics.model_validate(row)

    async def list_all(self) -> list[StrategyMetrics]:
        return [StrategyMetrics.model_validate(row) for row in await self.repo.list_all()]

    async def record_rebalance(self, strategy_type: str, profit_loss: int) -> StrategyMetrics:
        """Apply a rebalance outcome and persist the result"""
        updated = apply_rebalance_outcome(
            await self.get(strategy_type, for_update=True), profit_loss
        )
        await self.repo.upsert(
            strategy_type=updated.strategy_type,
            total_deployed=updated.total_deployed,
            total_profits=updated.total_profits,
            success_rate=updated.success_rate,
            avg_apy=updated.avg_apy,
            risk_score=updated.risk_score,
        )
        logger.debug(
            f"Strategy {strategy_type}: events={updated.total_deployed} "
            f"success={updated.success_rate} apy={updated.avg_apy}"
        )
        return updated

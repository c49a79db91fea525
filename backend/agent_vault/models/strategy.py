"""Strategy-level and protocol-level read models"""

from pydantic import BaseModel, ConfigDict, Field


class StrategyMetrics(BaseModel):
    """
    Rolling statistics for one strategy-type label.

    total_deployed counts rebalance events, it is not a value sum.
    """

    model_config = ConfigDict(from_attributes=True)

    strategy_type: str
    total_deployed: int = 0
    total_profits: int = 0
    success_rate: int = Field(default=50, ge=0, le=100)
    avg_apy: int = Field(default=0, ge=0)
    risk_score: int = Field(default=50, ge=0, le=100)


class AllocationRecommendation(BaseModel):
    """Advisory stable/volatile split of a capital amount"""

    stable_pools: int
    volatile_pools: int
    recommended_protocols: list[str]


class ProtocolStats(BaseModel):
    """Global counters"""

    model_config = ConfigDict(from_attributes=True)

    total_agents: int = 0
    total_value_optimized: int = 0
    cumulative_profits: int = 0
    active_strategies: int = 0

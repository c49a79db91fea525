"""Data models for agents, positions, strategies and protocol counters"""

from .agent import (
    WEIGHT_SLOTS,
    Agent,
    AgentDetail,
    AgentPerformance,
    AgentPosition,
    DeployRequest,
    DeployResult,
    RebalanceRequest,
    RebalanceResult,
    TrainRequest,
    TrainResult,
    WithdrawRequest,
    WithdrawResult,
)
from .strategy import (
    AllocationRecommendation,
    ProtocolStats,
    StrategyMetrics,
)

__all__ = [
    # Agent models
    "WEIGHT_SLOTS",
    "Agent",
    "AgentDetail",
    "AgentPerformance",
    "AgentPosition",
    "DeployRequest",
    "DeployResult",
    "RebalanceRequest",
    "RebalanceResult",
    "TrainRequest",
    "TrainResult",
    "WithdrawRequest",
    "WithdrawResult",
    # Strategy / protocol models
    "AllocationRecommendation",
    "ProtocolStats",
    "StrategyMetrics",
]

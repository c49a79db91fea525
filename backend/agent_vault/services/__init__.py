"""Services module - lifecycle controller and pure agent arithmetic"""

from .agent_lifecycle import AgentLifecycleService
from .allocation import calculate_optimal_allocation
from .strategy_metrics import StrategyMetricsService, calculate_apy

__all__ = [
    "AgentLifecycleService",
    "StrategyMetricsService",
    "calculate_apy",
    "calculate_optimal_allocation",
]

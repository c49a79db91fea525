"""Repository layer for database operations"""

from .agent import AgentRepository, PositionRepository
from .protocol_state import ProtocolStateRepository
from .strategy_metrics import StrategyMetricsRepository
from .user_index import UserIndexRepository

__all__ = [
    "AgentRepository",
    "PositionRepository",
    "ProtocolStateRepository",
    "StrategyMetricsRepository",
    "UserIndexRepository",
]

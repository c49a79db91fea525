"""Database module - SQLAlchemy models and database connection"""

from .database import (
    AsyncSessionLocal,
    close_db,
    get_db,
    init_db,
)
from .models import (
    AgentDB,
    AgentPositionDB,
    Base,
    LedgerAccountDB,
    LedgerTransferDB,
    OwnershipTokenDB,
    ProtocolStateDB,
    StrategyMetricsDB,
    UserAgentDB,
)

__all__ = [
    "AsyncSessionLocal",
    "Base",
    "close_db",
    "get_db",
    "init_db",
    "AgentDB",
    "AgentPositionDB",
    "LedgerAccountDB",
    "LedgerTransferDB",
    "OwnershipTokenDB",
    "ProtocolStateDB",
    "StrategyMetricsDB",
    "UserAgentDB",
]

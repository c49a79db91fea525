"""Chain module - external collaborator adapters"""

from .base import (
    CONTRACT_PRINCIPAL,
    ExecutionContext,
    OwnershipRegistry,
    ValueTransferAdapter,
)
from .context import StaticContext, WallClockContext, block_height
from .ledger import SqlValueLedger
from .ownership import SqlOwnershipRegistry

__all__ = [
    "CONTRACT_PRINCIPAL",
    "ExecutionContext",
    "OwnershipRegistry",
    "SqlOwnershipRegistry",
    "SqlValueLedger",
    "StaticContext",
    "ValueTransferAdapter",
    "WallClockContext",
    "block_height",
]

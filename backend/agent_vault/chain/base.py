"""
External collaborator interfaces.

The lifecycle controller never moves value, issues ownership tokens or
reads the clock itself. It consumes these interfaces; each deployment
plugs in concrete adapters (the SQL-backed ones in this package, or a
bridge to a real ledger).
"""

from abc import ABC, abstractmethod
from typing import Optional

# Custodial principal holding deployed capital and retained fees
CONTRACT_PRINCIPAL = "agent-vault.custody"


class ValueTransferAdapter(ABC):
    """Moves fungible value between principals"""

    @abstractmethod
    async def transfer(
        self,
        amount: int,
        sender: str,
        recipient: str,
        memo: Optional[str] = None,
    ) -> None:
        """
        Move `amount` from sender to recipient.

        Raises:
            ProtocolError: TRANSFER_FAILED if the transfer cannot be made
        """

    @abstractmethod
    async def balance_of(self, principal: str) -> int:
        """Current balance of a principal (0 if unknown)"""


class OwnershipRegistry(ABC):
    """Issues and tracks one non-fungible ownership token per agent id"""

    @abstractmethod
    async def issue(self, token_id: int, owner: str) -> None:
        """
        Issue token `token_id` to `owner`.

        Raises:
            ProtocolError: TOKEN_ISSUE_FAILED if the token already exists
        """

    @abstractmethod
    async def owner_of(self, token_id: int) -> Optional[str]:
        """Holder of a token, or None if it was never issued"""


class ExecutionContext(ABC):
    """Clock and identity of the current transaction"""

    @abstractmethod
    def now(self) -> int:
        """Current block height"""

    @abstractmethod
    def caller(self) -> str:
        """Identity that originated the current transaction"""

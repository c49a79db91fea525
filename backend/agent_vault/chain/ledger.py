"""
SqlValueLedger - built-in value ledger.

Balances live in the same database session as the agent stores, so a
rolled-back operation also rolls back every transfer it made.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import invalid_parameters, transfer_failed
from ..db.models import LedgerAccountDB, LedgerTransferDB
from .base import ValueTransferAdapter

logger = logging.getLogger(__name__)


class SqlValueLedger(ValueTransferAdapter):
    """
    Value ledger stored in `ledger_accounts`.

    Transfers fail (TRANSFER_FAILED) when:
    - the amount is not positive
    - sender and recipient are the same principal
    - the sender's balance is lower than the amount

    Balances only move through SQL-side increments, and the debit is
    guarded on the committed balance, so two sessions spending the same
    account cannot both succeed.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_account(
        self, principal: str, for_update: bool = False
    ) -> Optional[LedgerAccountDB]:
        stmt = (
            select(LedgerAccountDB)
            .where(LedgerAccountDB.principal == principal)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_or_create_account(self, principal: str) -> LedgerAccountDB:
        account = await self._get_account(principal, for_update=True)
        if account is None:
            account = LedgerAccountDB(principal=principal, balance=0)
            self.session.add(account)
            await self.session.flush()
        return account

    async def _credit(self, principal: str, amount: int) -> None:
        await self._get_or_create_account(principal)
        await self.session.execute(
            update(LedgerAccountDB)
            .where(LedgerAccountDB.principal == principal)
            .values(balance=LedgerAccountDB.balance + amount)
            .execution_options(synchronize_session=False)
        )

    async def _debit(self, principal: str, amount: int) -> bool:
        """Take `amount` from `principal` only if the stored balance covers it"""
        result = await self.session.execute(
            update(LedgerAccountDB)
            .where(
                LedgerAccountDB.principal == principal,
                LedgerAccountDB.balance >= amount,
            )
            .values(balance=LedgerAccountDB.balance - amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def balance_of(self, principal: str) -> int:
        account = await self._get_account(principal)
        return account.balance if account else 0

    async def transfer(
        self,
        amount: int,
        sender: str,
        recipient: str,
        memo: Optional[str] = None,
    ) -> None:
        if amount <= 0:
            raise transfer_failed(
                "Transfer amount must be positive",
                amount=amount,
                sender=sender,
                recipient=recipient,
            )
        if sender == recipient:
            raise transfer_failed(
                "Sender and recipient must differ",
                amount=amount,
                sender=sender,
            )

        source = await self._get_account(sender, for_update=True)
        available = source.balance if source else 0
        if source is None or available < amount or not await self._debit(sender, amount):
            available = await self.balance_of(sender)
            raise transfer_failed(
                f"Insufficient ledger balance: {available} < {amount}",
                amount=amount,
                sender=sender,
                available=available,
            )

        await self._credit(recipient, amount)
        self.session.add(
            LedgerTransferDB(sender=sender, recipient=recipient, amount=amount, memo=memo)
        )
        await self.session.flush()
        logger.debug(f"Ledger transfer {amount} {sender} -> {recipient} ({memo})")

    async def mint(self, principal: str, amount: int, memo: str = "mint") -> int:
        """
        Credit new value to a principal (funding / faucet).

        Returns:
            The principal's balance after minting
        """
        if amount <= 0:
            raise invalid_parameters("Mint amount must be positive", amount=amount)

        await self._credit(principal, amount)
        self.session.add(
            LedgerTransferDB(sender=None, recipient=principal, amount=amount, memo=memo)
        )
        await self.session.flush()
        logger.info(f"Minted {amount} to {principal}")
        return await self.balance_of(principal)

"""
Protocol routes - global counters, owner index and the dev ledger faucet.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ...chain.ledger import SqlValueLedger
from ...core.dependencies import (
    CurrentCallerDep,
    DbSessionDep,
    LifecycleServiceDep,
    SettingsDep,
)
from ...models.strategy import ProtocolStats

router = APIRouter(tags=["Protocol"])
logger = logging.getLogger(__name__)


class FaucetRequest(BaseModel):
    amount: int = Field(..., gt=0)


class BalanceResponse(BaseModel):
    principal: str
    balance: int


@router.get("/protocol/stats", response_model=ProtocolStats)
async def get_protocol_stats(service: LifecycleServiceDep):
    """Global counters (total agents, total value optimized)"""
    return await service.get_protocol_stats()


@router.get("/users/{identity}/agents", response_model=list[int])
async def get_user_agents(
    identity: str,
    service: LifecycleServiceDep,
):
    """Agent ids registered by any identity"""
    return await service.get_user_agents(identity)


@router.get("/ledger/balance", response_model=BalanceResponse)
async def get_balance(
    db: DbSessionDep,
    caller: CurrentCallerDep,
):
    """Caller's balance on the built-in ledger"""
    balance = await SqlValueLedger(db).balance_of(caller)
    return BalanceResponse(principal=caller, balance=balance)


@router.post("/ledger/faucet", response_model=BalanceResponse)
async def faucet(
    data: FaucetRequest,
    db: DbSessionDep,
    caller: CurrentCallerDep,
    settings: SettingsDep,
):
    """
    Credit the caller on the built-in ledger.

    Development only; disabled in production.
    """
    if not settings.faucet_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Faucet is disabled"
        )

    balance = await SqlValueLedger(db).mint(caller, data.amount, memo="faucet")
    return BalanceResponse(principal=caller, balance=balance)

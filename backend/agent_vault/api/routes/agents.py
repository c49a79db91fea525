"""
Agent routes - lifecycle operations and agent queries.

Every mutating route maps one-to-one onto a lifecycle transition; the
caller is the JWT subject and protocol rejections are rendered by the
application-level ProtocolError handler.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from ...core.dependencies import CurrentCallerDep, LifecycleServiceDep
from ...models.agent import (
    AgentDetail,
    AgentPerformance,
    DeployRequest,
    DeployResult,
    RebalanceRequest,
    RebalanceResult,
    TrainRequest,
    TrainResult,
    WithdrawRequest,
    WithdrawResult,
)

router = APIRouter(prefix="/agents", tags=["Agents"])
logger = logging.getLogger(__name__)


@router.post("", response_model=DeployResult, status_code=status.HTTP_201_CREATED)
async def deploy_agent(
    data: DeployRequest,
    service: LifecycleServiceDep,
):
    """
    Register a new agent for the caller.

    Charges the registration fee and moves the initial capital into custody.
    """
    agent_id = await service.deploy(
        name=data.name,
        strategy_type=data.strategy_type,
        initial_capital=data.initial_capital,
        loss_tolerance=data.loss_tolerance,
    )
    return DeployResult(agent_id=agent_id)


@router.get("/mine", response_model=list[int])
async def list_my_agents(
    caller: CurrentCallerDep,
    service: LifecycleServiceDep,
):
    """Agent ids registered by the caller"""
    return await service.get_user_agents(caller)


@router.get("/{agent_id}", response_model=AgentDetail)
async def get_agent(
    agent_id: int,
    service: LifecycleServiceDep,
):
    """Get an agent with its current position"""
    detail = await service.get_agent_detail(agent_id)
    if detail is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Agent not found"
        )
    return detail


@router.get("/{agent_id}/performance", response_model=AgentPerformance)
async def get_agent_performance(
    agent_id: int,
    service: LifecycleServiceDep,
):
    """Accounting and rebalance readiness at the current block height"""
    return await service.get_agent_performance(agent_id)


@router.post("/{agent_id}/rebalance", response_model=RebalanceResult)
async def rebalance_agent(
    agent_id: int,
    data: RebalanceRequest,
    service: LifecycleServiceDep,
):
    """Realize accrued PnL and move the agent into a new position"""
    return await service.rebalance(agent_id, data.new_protocol, data.allocation_pct)


@router.post("/{agent_id}/pause", status_code=status.HTTP_200_OK)
async def pause_agent(
    agent_id: int,
    service: LifecycleServiceDep,
):
    """Deactivate an agent permanently"""
    ok = await service.pause(agent_id)
    return {"agent_id": agent_id, "paused": ok}


@router.post("/{agent_id}/withdraw", response_model=WithdrawResult)
async def withdraw_from_agent(
    agent_id: int,
    data: WithdrawRequest,
    service: LifecycleServiceDep,
):
    """Withdraw capital; the performance fee stays in custody"""
    return await service.withdraw(agent_id, data.amount)


@router.post("/{agent_id}/train", response_model=TrainResult)
async def train_agent(
    agent_id: int,
    data: TrainRequest,
    service: LifecycleServiceDep,
):
    """Apply one training step to the agent's weights"""
    weights = await service.train(agent_id, data.performance_data)
    agent = await service.get_agent(agent_id)
    return TrainResult(
        agent_id=agent_id,
        neural_weights=weights,
        learning_rate=agent.learning_rate if agent else 0,
    )

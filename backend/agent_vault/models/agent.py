"""
Agent models.

An Agent is a capital-management entity owned by one principal:
- Strategy-type label used for metrics aggregation
- Deployed capital and cumulative realized profit
- A 10-slot bounded weight vector and a learning rate
- A one-to-one Position describing where its capital currently sits
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

WEIGHT_SLOTS = 10


# =============================================================================
# Read Models
# =============================================================================


class AgentPosition(BaseModel):
    """Current deployment record of an agent"""

    model_config = ConfigDict(from_attributes=True)

    agent_id: int
    current_protocol: str
    position_size: int
    entry_block: int
    unrealized_pnl: int = 0
    hedged: bool = False


class Agent(BaseModel):
    """Agent entity (read model)"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    owner: str
    name: str
    strategy_type: str

    capital_deployed: int
    profit_generated: int
    loss_tolerance: int

    last_rebalance: int
    is_active: bool

    neural_weights: list[int]
    learning_rate: int


class AgentDetail(BaseModel):
    """Agent together with its position"""

    agent: Agent
    position: Optional[AgentPosition] = None


class AgentPerformance(BaseModel):
    """Performance snapshot of one agent at the current height"""

    agent_id: int
    strategy_type: str
    capital_deployed: int
    profit_generated: int
    position_size: int
    blocks_since_rebalance: int
    rebalance_ready: bool
    is_active: bool
    neural_weights: list[int]
    learning_rate: int


# =============================================================================
# Requests
# =============================================================================


class DeployRequest(BaseModel):
    """Request model for registering a new agent"""

    name: str = Field(..., min_length=1, max_length=64)
    strategy_type: str = Field(..., min_length=1, max_length=32)
    initial_capital: int = Field(..., gt=0)
    loss_tolerance: int = Field(..., ge=0)


class RebalanceRequest(BaseModel):
    """Request model for moving an agent's capital"""

    new_protocol: str = Field(..., min_length=1, max_length=64)
    allocation_pct: int = Field(..., ge=0)


class WithdrawRequest(BaseModel):
    """Request model for withdrawing capital from an agent"""

    amount: int = Field(..., ge=0)


class TrainRequest(BaseModel):
    """Request model for a training step; one signed signal per weight slot"""

    performance_data: list[int] = Field(
        ...,
        description="Signed performance signal per weight slot, each >= -100",
    )


# =============================================================================
# Results
# =============================================================================


class DeployResult(BaseModel):
    agent_id: int


class RebalanceResult(BaseModel):
    """Outcome of a rebalance"""

    new_position: int
    realized_pnl: int
    new_protocol: str


class WithdrawResult(BaseModel):
    """Net amount paid out after the performance fee"""

    agent_id: int
    amount: int
    fee: int
    net_amount: int


class TrainResult(BaseModel):
    agent_id: int
    neural_weights: list[int]
    learning_rate: int

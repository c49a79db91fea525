"""
Agent lifecycle service.

Orchestrates the five state transitions of an agent:
- deploy: register an agent, charging the registration fee and custody
- rebalance: realize accrued PnL, adapt weights, move the position
- pause: deactivate (there is no way back)
- withdraw: pay out capital minus the performance fee
- train: apply a training vector and raise the learning rate

Every transition runs as a single database transaction. All
preconditions are checked before anything is written, and any error
(precondition, ledger transfer, token issuance) rolls the whole
transaction back, including the SQL-backed ledger and registry.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..chain.base import (
    CONTRACT_PRINCIPAL,
    ExecutionContext,
    OwnershipRegistry,
    ValueTransferAdapter,
)
from ..chain.ledger import SqlValueLedger
from ..chain.ownership import SqlOwnershipRegistry
from ..core.config import ProtocolParams, get_settings
from ..core.errors import (
    ProtocolError,
    agent_paused,
    cooldown_active,
    insufficient_balance,
    invalid_parameters,
    max_agents_reached,
    not_authorized,
    not_registered,
)
from ..db.models import AgentDB, AgentPositionDB
from ..db.repositories import (
    AgentRepository,
    PositionRepository,
    ProtocolStateRepository,
    UserIndexRepository,
)
from ..models.agent import (
    Agent,
    AgentDetail,
    AgentPerformance,
    AgentPosition,
    RebalanceResult,
    WithdrawResult,
)
from ..models.strategy import AllocationRecommendation, ProtocolStats, StrategyMetrics
from ..monitoring.metrics import get_metrics_collector
from .accounting import (
    allocation_size,
    blocks_until_ready,
    calculate_pnl,
    is_hedged,
    performance_fee,
)
from .allocation import calculate_optimal_allocation
from .strategy_metrics import StrategyMetricsService
from .weight_engine import (
    INITIAL_LEARNING_RATE,
    initial_weights,
    next_learning_rate,
    train_neural_network,
    update_neural_weights,
)

logger = logging.getLogger(__name__)

# Protocol label of a freshly deployed, not yet allocated agent
UNALLOCATED_PROTOCOL = "none"

MAX_NAME_LENGTH = 64
MAX_STRATEGY_TYPE_LENGTH = 32
MAX_PROTOCOL_LENGTH = 64


class AgentLifecycleService:
    """
    Lifecycle controller for strategy agents.

    Usage:
        service = AgentLifecycleService(session, StaticContext(caller="alice", height=100))
        agent_id = await service.deploy("alpha", "yield", 10_000_000, 50)
    """

    def __init__(
        self,
        session: AsyncSession,
        context: ExecutionContext,
        ledger: Optional[ValueTransferAdapter] = None,
        registry: Optional[OwnershipRegistry] = None,
        params: Optional[ProtocolParams] = None,
    ):
        self.session = session
        self.context = context
        self.ledger = ledger or SqlValueLedger(session)
        self.registry = registry or SqlOwnershipRegistry(session)
        self.params = params or get_settings().protocol_params()

        self.agent_repo = AgentRepository(session)
        self.position_repo = PositionRepository(session)
        self.user_index = UserIndexRepository(session)
        self.state_repo = ProtocolStateRepository(session)
        self.strategy_metrics = StrategyMetricsService(session)
        self.metrics = get_metrics_collector()

    # =========================================================================
    # Transaction Handling
    # =========================================================================

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[None]:
        """Commit on success, roll everything back on any error"""
        try:
            yield
            await self.session.commit()
        except ProtocolError as e:
            await self.session.rollback()
            logger.warning(
                f"[{e.code.name}] {operation} rejected: {e.message}",
                extra={"operation": operation, "code": e.code.name, "caller": self.context.caller()},
            )
            self.metrics.track_operation(operation, "rejected", e.code.name)
            raise
        except Exception:
            await self.session.rollback()
            logger.error(f"{operation} failed", exc_info=True, extra={"operation": operation})
            self.metrics.track_operation(operation, "failed")
            raise
        self.metrics.track_operation(operation, "committed")

    async def _load_owned_agent(self, agent_id: int, caller: str, for_update: bool = False) -> AgentDB:
        """Load an agent and check the caller holds its ownership token"""
        agent = await self.agent_repo.get_by_id(agent_id, for_update=for_update)
        if agent is None:
            raise not_registered(agent_id)

        holder = await self.registry.owner_of(agent_id)
        if holder != caller:
            raise not_authorized(agent_id, caller)
        return agent

    async def _load_position(self, agent_id: int, for_update: bool = False) -> AgentPositionDB:
        position = await self.position_repo.get_by_agent(agent_id, for_update=for_update)
        if position is None:
            raise not_registered(agent_id)
        return position

    # =========================================================================
    # State Transitions
    # =========================================================================

    async def deploy(
        self,
        name: str,
        strategy_type: str,
        initial_capital: int,
        loss_tolerance: int,
    ) -> int:
        """
        Register a new agent for the caller.

        Charges the registration fee and moves the initial capital into
        custody, issues the ownership token and creates the agent with a
        neutral weight vector and an unallocated position.

        Args:
            name: Display name
            strategy_type: Free-text label used for metrics aggregation
            initial_capital: Capital moved into custody, must exceed the fee
            loss_tolerance: Percentage 0-100; >= 70 makes positions hedged

        Returns:
            The new agent id

        Raises:
            ProtocolError: MAX_AGENTS_REACHED, INVALID_PARAMETERS,
                INSUFFICIENT_BALANCE, or adapter failures
        """
        caller = self.context.caller()
        now = self.context.now()

        async with self._transaction("deploy"):
            # The cap compares the current length before appending, so an
            # owner can reach max_agents_per_user + 1 entries.
            owned = await self.user_index.count(caller)
            if owned > self.params.max_agents_per_user:
                raise max_agents_reached(caller, owned, self.params.max_agents_per_user)

            if not 0 <= loss_tolerance <= 100:
                raise invalid_parameters(
                    "Loss tolerance must be between 0 and 100",
                    loss_tolerance=loss_tolerance,
                )
            if not 0 < len(name) <= MAX_NAME_LENGTH:
                raise invalid_parameters(f"Name must be 1-{MAX_NAME_LENGTH} characters")
            if not 0 < len(strategy_type) <= MAX_STRATEGY_TYPE_LENGTH:
                raise invalid_parameters(
                    f"Strategy type must be 1-{MAX_STRATEGY_TYPE_LENGTH} characters"
                )
            if initial_capital <= self.params.registration_fee:
                raise insufficient_balance(
                    "Initial capital must exceed the registration fee",
                    initial_capital=initial_capital,
                    registration_fee=self.params.registration_fee,
                )

            await self.ledger.transfer(
                self.params.registration_fee, caller, CONTRACT_PRINCIPAL, memo="registration-fee"
            )
            await self.ledger.transfer(
                initial_capital, caller, CONTRACT_PRINCIPAL, memo="initial-capital"
            )

            state = await self.state_repo.record_deployment(initial_capital)
            agent_id = state.total_agents

            await self.registry.issue(agent_id, caller)
            await self.agent_repo.create(
                agent_id=agent_id,
                owner=caller,
                name=name,
                strategy_type=strategy_type,
                capital_deployed=initial_capital,
                loss_tolerance=loss_tolerance,
                created_block=now,
                neural_weights=initial_weights(),
                learning_rate=INITIAL_LEARNING_RATE,
            )
            await self.position_repo.replace(
                agent_id=agent_id,
                current_protocol=UNALLOCATED_PROTOCOL,
                position_size=initial_capital,
                entry_block=now,
                hedged=False,
            )
            await self.user_index.append(caller, agent_id)
            total_agents, total_value = state.total_agents, state.total_value_optimized

        self.metrics.update_protocol_counters(total_agents, total_value)
        logger.info(
            f"Deployed agent {agent_id} for {caller}: strategy={strategy_type} "
            f"capital={initial_capital} tolerance={loss_tolerance} block={now}",
            extra={"operation": "deploy", "agent_id": agent_id},
        )
        return agent_id

    async def rebalance(
        self,
        agent_id: int,
        new_protocol: str,
        allocation_pct: int,
    ) -> RebalanceResult:
        """
        Realize the current position's PnL and open a new position.

        Positive PnL is added to both capital and cumulative profit; a
        zero or negative PnL leaves both untouched. The new position size
        is computed from capital as it was before the PnL is added.

        Raises:
            ProtocolError: NOT_REGISTERED, NOT_AUTHORIZED, AGENT_PAUSED,
                COOLDOWN_ACTIVE, INVALID_PARAMETERS
        """
        caller = self.context.caller()
        now = self.context.now()

        async with self._transaction("rebalance"):
            agent = await self._load_owned_agent(agent_id, caller, for_update=True)
            if not agent.is_active:
                raise agent_paused(agent_id)

            elapsed = now - agent.last_rebalance
            if elapsed < self.params.cooldown_blocks:
                raise cooldown_active(agent_id, elapsed, self.params.cooldown_blocks)

            if not 0 <= allocation_pct <= 100:
                raise invalid_parameters(
                    "Allocation percentage must be between 0 and 100",
                    allocation_pct=allocation_pct,
                )
            if not 0 < len(new_protocol) <= MAX_PROTOCOL_LENGTH:
                raise invalid_parameters(
                    f"Protocol label must be 1-{MAX_PROTOCOL_LENGTH} characters"
                )

            position = await self._load_position(agent_id, for_update=True)

            new_position_size = allocation_size(agent.capital_deployed, allocation_pct)
            profit_loss = calculate_pnl(
                position.position_size, position.entry_block, position.hedged, now
            )
            new_weights = update_neural_weights(
                agent.neural_weights, profit_loss, agent.learning_rate
            )

            capital = agent.capital_deployed
            profit = agent.profit_generated
            if profit_loss > 0:
                capital += profit_loss
                profit += profit_loss

            applied = await self.agent_repo.apply_rebalance(
                agent,
                observed_rebalance=agent.last_rebalance,
                capital_deployed=capital,
                profit_generated=profit,
                last_rebalance=now,
                neural_weights=new_weights,
            )
            if not applied:
                # A concurrent rebalance committed after this one read the agent
                raise cooldown_active(agent_id, now - agent.last_rebalance, self.params.cooldown_blocks)
            await self.position_repo.replace(
                agent_id=agent_id,
                current_protocol=new_protocol,
                position_size=new_position_size,
                entry_block=now,
                hedged=is_hedged(agent.loss_tolerance),
            )
            await self.strategy_metrics.record_rebalance(agent.strategy_type, profit_loss)
            strategy_type = agent.strategy_type

        self.metrics.track_realized_profit(strategy_type, profit_loss)
        logger.info(
            f"Rebalanced agent {agent_id} into {new_protocol}: "
            f"position={new_position_size} pnl={profit_loss} block={now}",
            extra={"operation": "rebalance", "agent_id": agent_id},
        )
        return RebalanceResult(
            new_position=new_position_size,
            realized_pnl=profit_loss,
            new_protocol=new_protocol,
        )

    async def pause(self, agent_id: int) -> bool:
        """
        Deactivate an agent.

        A paused agent can no longer rebalance but can still be withdrawn
        from and trained. There is no unpause.
        """
        caller = self.context.caller()

        async with self._transaction("pause"):
            agent = await self._load_owned_agent(agent_id, caller, for_update=True)
            await self.agent_repo.update(agent, is_active=False)

        logger.info(f"Paused agent {agent_id}", extra={"operation": "pause", "agent_id": agent_id})
        return True

    async def withdraw(self, agent_id: int, amount: int) -> WithdrawResult:
        """
        Withdraw capital from an agent.

        The performance fee is levied on the agent's cumulative profit at
        every withdrawal and stays in custody. Capital and position size
        are both reduced by the full amount, independently of each other.

        Returns:
            WithdrawResult whose net_amount is what reached the caller

        Raises:
            ProtocolError: NOT_REGISTERED, NOT_AUTHORIZED, INVALID_PARAMETERS,
                INSUFFICIENT_BALANCE, TRANSFER_FAILED
        """
        caller = self.context.caller()

        async with self._transaction("withdraw"):
            agent = await self._load_owned_agent(agent_id, caller, for_update=True)

            if amount < 0:
                raise invalid_parameters("Withdrawal amount cannot be negative", amount=amount)
            if amount > agent.capital_deployed:
                raise insufficient_balance(
                    "Withdrawal exceeds deployed capital",
                    amount=amount,
                    capital_deployed=agent.capital_deployed,
                )

            fee = performance_fee(agent.profit_generated, self.params.performance_fee_bps)
            net_amount = amount - fee
            if net_amount < 0:
                raise insufficient_balance(
                    "Withdrawal does not cover the performance fee",
                    amount=amount,
                    fee=fee,
                )

            position = await self._load_position(agent_id, for_update=True)
            if amount > position.position_size:
                raise insufficient_balance(
                    "Withdrawal exceeds current position size",
                    amount=amount,
                    position_size=position.position_size,
                )

            # Both decrements are guarded on the stored values, so a concurrent
            # withdrawal that committed first makes them match no row.
            if not await self.agent_repo.withdraw_capital(agent, amount):
                raise insufficient_balance(
                    "Withdrawal exceeds deployed capital",
                    amount=amount,
                    capital_deployed=agent.capital_deployed,
                )
            if not await self.position_repo.reduce_size(position, amount):
                raise insufficient_balance(
                    "Withdrawal exceeds current position size",
                    amount=amount,
                    position_size=position.position_size,
                )
            await self.ledger.transfer(net_amount, CONTRACT_PRINCIPAL, caller, memo="withdraw")

        logger.info(
            f"Withdrew {amount} from agent {agent_id}: fee={fee} net={net_amount}",
            extra={"operation": "withdraw", "agent_id": agent_id},
        )
        return WithdrawResult(
            agent_id=agent_id,
            amount=amount,
            fee=fee,
            net_amount=net_amount,
        )

    async def train(self, agent_id: int, performance_data: Sequence[int]) -> list[int]:
        """
        Apply one training step to an agent's weights.

        Returns:
            The new weight vector

        Raises:
            ProtocolError: NOT_REGISTERED, NOT_AUTHORIZED, INVALID_PARAMETERS
        """
        caller = self.context.caller()

        async with self._transaction("train"):
            agent = await self._load_owned_agent(agent_id, caller, for_update=True)
            new_weights = train_neural_network(
                agent.neural_weights, list(performance_data), agent.learning_rate
            )
            new_rate = next_learning_rate(agent.learning_rate)
            await self.agent_repo.update(
                agent, neural_weights=new_weights, learning_rate=new_rate
            )

        logger.info(
            f"Trained agent {agent_id}: learning_rate={new_rate}",
            extra={"operation": "train", "agent_id": agent_id},
        )
        return new_weights

    # =========================================================================
    # Read Queries
    # =========================================================================

    async def get_agent(self, agent_id: int) -> Optional[Agent]:
        agent = await self.agent_repo.get_by_id(agent_id)
        return Agent.model_validate(agent) if agent else None

    async def get_position(self, agent_id: int) -> Optional[AgentPosition]:
        position = await self.position_repo.get_by_agent(agent_id)
        return AgentPosition.model_validate(position) if position else None

    async def get_agent_detail(self, agent_id: int) -> Optional[AgentDetail]:
        agent = await self.get_agent(agent_id)
        if agent is None:
            return None
        return AgentDetail(agent=agent, position=await self.get_position(agent_id))

    async def get_user_agents(self, identity: str) -> list[int]:
        """Agent ids registered by an identity, in registration order"""
        return await self.user_index.list_agent_ids(identity)

    async def get_strategy_metrics(self, strategy_type: str) -> StrategyMetrics:
        return await self.strategy_metrics.get(strategy_type)

    async def get_protocol_stats(self) -> ProtocolStats:
        state = await self.state_repo.get()
        return ProtocolStats.model_validate(state) if state else ProtocolStats()

    async def get_agent_performance(self, agent_id: int) -> AgentPerformance:
        """Snapshot of an agent's accounting and readiness at the current height"""
        agent = await self.agent_repo.get_by_id(agent_id)
        if agent is None:
            raise not_registered(agent_id)
        position = await self._load_position(agent_id)
        now = self.context.now()

        return AgentPerformance(
            agent_id=agent.id,
            strategy_type=agent.strategy_type,
            capital_deployed=agent.capital_deployed,
            profit_generated=agent.profit_generated,
            position_size=position.position_size,
            blocks_since_rebalance=now - agent.last_rebalance,
            rebalance_ready=agent.is_active
            and blocks_until_ready(agent.last_rebalance, now, self.params.cooldown_blocks) == 0,
            is_active=agent.is_active,
            neural_weights=list(agent.neural_weights),
            learning_rate=agent.learning_rate,
        )

    @staticmethod
    def calculate_optimal_allocation(capital: int, risk_tolerance: int) -> AllocationRecommendation:
        return calculate_optimal_allocation(capital, risk_tolerance)

"""
Tests for AgentLifecycleService.

Covers:
- Deployment (fees, custody, id assignment, owner cap)
- Rebalance (cooldown, PnL realization, weights, strategy metrics)
- Pause and what a paused agent can still do
- Withdraw (performance fee, capital/position divergence)
- Training
- Authorization and rollback on collaborator failure
"""

from typing import Optional
from unittest.mock import AsyncMock

import pytest

from agent_vault.chain.base import CONTRACT_PRINCIPAL
from agent_vault.chain.ledger import SqlValueLedger
from agent_vault.chain.ownership import SqlOwnershipRegistry
from agent_vault.core.config import ProtocolParams
from agent_vault.core.errors import ErrorCode, ProtocolError, transfer_failed
from agent_vault.services.agent_lifecycle import UNALLOCATED_PROTOCOL, AgentLifecycleService

CAPITAL = 10_000_000
FEE = 5_000_000
DEFAULT_FUNDING = 1_000_000_000


async def deploy_default(service: AgentLifecycleService, name: str = "alpha", tolerance: int = 50) -> int:
    return await service.deploy(name, "yield", CAPITAL, tolerance)


@pytest.mark.unit
class TestDeploy:
    async def test_first_deploy(self, service, ledger):
        agent_id = await deploy_default(service)

        assert agent_id == 1
        agent = await service.get_agent(1)
        assert agent.owner == "alice"
        assert agent.capital_deployed == CAPITAL
        assert agent.profit_generated == 0
        assert agent.is_active is True
        assert agent.neural_weights == [50] * 10
        assert agent.learning_rate == 10
        assert agent.last_rebalance == 100

        position = await service.get_position(1)
        assert position.current_protocol == UNALLOCATED_PROTOCOL
        assert position.position_size == CAPITAL
        assert position.entry_block == 100
        assert position.hedged is False

        assert await service.get_user_agents("alice") == [1]
        stats = await service.get_protocol_stats()
        assert stats.total_agents == 1
        assert stats.total_value_optimized == CAPITAL

    async def test_fee_and_capital_move_into_custody(self, service, ledger):
        await deploy_default(service)

        assert await ledger.balance_of("alice") == DEFAULT_FUNDING - FEE - CAPITAL
        assert await ledger.balance_of(CONTRACT_PRINCIPAL) == FEE + CAPITAL

    async def test_ids_are_global_and_sequential(self, service, context):
        first = await deploy_default(service)
        context.as_caller("bob")
        second = await deploy_default(service, name="beta")
        context.as_caller("alice")
        third = await deploy_default(service, name="gamma")

        assert (first, second, third) == (1, 2, 3)
        assert await service.get_user_agents("alice") == [1, 3]
        assert await service.get_user_agents("bob") == [2]
        assert (await service.get_protocol_stats()).total_agents == 3

    async def test_capital_must_exceed_fee(self, service, ledger):
        with pytest.raises(ProtocolError) as exc:
            await service.deploy("alpha", "yield", FEE, 50)

        assert exc.value.code == ErrorCode.INSUFFICIENT_BALANCE
        assert await ledger.balance_of("alice") == DEFAULT_FUNDING

    async def test_capital_one_above_fee_accepted(self, service):
        assert await service.deploy("alpha", "yield", FEE + 1, 50) == 1

    @pytest.mark.parametrize("tolerance", [-1, 101])
    async def test_loss_tolerance_out_of_range(self, service, tolerance):
        with pytest.raises(ProtocolError) as exc:
            await service.deploy("alpha", "yield", CAPITAL, tolerance)
        assert exc.value.code == ErrorCode.INVALID_PARAMETERS

    async def test_empty_name_rejected(self, service):
        with pytest.raises(ProtocolError) as exc:
            await service.deploy("", "yield", CAPITAL, 50)
        assert exc.value.code == ErrorCode.INVALID_PARAMETERS

    async def test_overlong_strategy_type_rejected(self, service):
        with pytest.raises(ProtocolError) as exc:
            await service.deploy("alpha", "y" * 33, CAPITAL, 50)
        assert exc.value.code == ErrorCode.INVALID_PARAMETERS

    async def test_owner_can_reach_one_more_than_the_limit(self, service):
        ids = [await deploy_default(service, name=f"agent-{i}") for i in range(11)]
        assert ids == list(range(1, 12))

        with pytest.raises(ProtocolError) as exc:
            await deploy_default(service, name="agent-12")

        assert exc.value.code == ErrorCode.MAX_AGENTS_REACHED
        assert exc.value.details["count"] == 11
        assert len(await service.get_user_agents("alice")) == 11

    async def test_cap_is_per_owner(self, service, context):
        for i in range(11):
            await deploy_default(service, name=f"agent-{i}")

        context.as_caller("bob")
        assert await deploy_default(service, name="bob-1") == 12

    async def test_unfunded_caller_leaves_no_trace(self, service, context, ledger):
        context.as_caller("carol")

        with pytest.raises(ProtocolError) as exc:
            await deploy_default(service)

        assert exc.value.code == ErrorCode.TRANSFER_FAILED
        assert await service.get_agent(1) is None
        assert await service.get_user_agents("carol") == []
        assert (await service.get_protocol_stats()).total_agents == 0


class FailingCapitalLedger(SqlValueLedger):
    """Ledger that accepts the fee transfer but rejects the capital transfer"""

    async def transfer(self, amount: int, sender: str, recipient: str, memo: Optional[str] = None) -> None:
        if memo == "initial-capital":
            raise transfer_failed("custody rejected", amount=amount)
        await super().transfer(amount, sender, recipient, memo)


@pytest.mark.unit
class TestDeployRollback:
    async def test_second_transfer_failure_undoes_fee(self, db_session, context, params, fund):
        await fund("alice")
        ledger = FailingCapitalLedger(db_session)
        service = AgentLifecycleService(db_session, context, ledger=ledger, params=params)

        with pytest.raises(ProtocolError) as exc:
            await deploy_default(service)

        assert exc.value.code == ErrorCode.TRANSFER_FAILED
        assert await ledger.balance_of("alice") == DEFAULT_FUNDING
        assert await ledger.balance_of(CONTRACT_PRINCIPAL) == 0
        assert (await service.get_protocol_stats()).total_agents == 0

    async def test_token_issue_failure_rolls_back_everything(self, service, db_session, ledger):
        await SqlOwnershipRegistry(db_session).issue(1, "mallory")
        await db_session.commit()

        with pytest.raises(ProtocolError) as exc:
            await deploy_default(service)

        assert exc.value.code == ErrorCode.TOKEN_ISSUE_FAILED
        assert await ledger.balance_of("alice") == DEFAULT_FUNDING
        assert await service.get_agent(1) is None
        assert await service.get_user_agents("alice") == []

    async def test_unexpected_adapter_error_propagates(self, db_session, context, params, fund):
        await fund("alice")

        ledger = SqlValueLedger(db_session)
        ledger.transfer = AsyncMock(side_effect=RuntimeError("node unreachable"))
        service = AgentLifecycleService(db_session, context, ledger=ledger, params=params)

        with pytest.raises(RuntimeError):
            await deploy_default(service)
        assert (await service.get_protocol_stats()).total_agents == 0


@pytest.mark.unit
class TestRebalance:
    async def test_rebalance_realizes_profit(self, service, context):
        await deploy_default(service)
        context.advance(6)

        result = await service.rebalance(1, "stable-lending", 60)

        assert result.new_position == 6_000_000
        assert result.realized_pnl == 60_000
        assert result.new_protocol == "stable-lending"

        agent = await service.get_agent(1)
        assert agent.capital_deployed == 10_060_000
        assert agent.profit_generated == 60_000
        assert agent.neural_weights == [60] * 10
        assert agent.last_rebalance == 106

        position = await service.get_position(1)
        assert position.current_protocol == "stable-lending"
        assert position.position_size == 6_000_000
        assert position.entry_block == 106
        assert position.unrealized_pnl == 0

    async def test_rebalance_updates_strategy_metrics(self, service, context):
        await deploy_default(service)
        context.advance(6)
        await service.rebalance(1, "stable-lending", 60)

        metrics = await service.get_strategy_metrics("yield")
        assert metrics.total_deployed == 1
        assert metrics.total_profits == 60_000
        assert metrics.success_rate == 51
        assert metrics.avg_apy == 2_190_000_000
        assert metrics.risk_score == 50

    async def test_untouched_strategy_has_defaults(self, service):
        metrics = await service.get_strategy_metrics("never-used")
        assert metrics.total_deployed == 0
        assert metrics.success_rate == 50
        assert metrics.avg_apy == 0

    async def test_immediate_rebalance_hits_cooldown(self, service):
        await deploy_default(service)

        with pytest.raises(ProtocolError) as exc:
            await service.rebalance(1, "stable-lending", 60)
        assert exc.value.code == ErrorCode.COOLDOWN_ACTIVE

    async def test_cooldown_boundary(self, service, context):
        await deploy_default(service)
        context.advance(5)

        with pytest.raises(ProtocolError) as exc:
            await service.rebalance(1, "stable-lending", 60)
        assert exc.value.code == ErrorCode.COOLDOWN_ACTIVE
        assert exc.value.details["elapsed_blocks"] == 5

        context.advance(1)
        result = await service.rebalance(1, "stable-lending", 60)
        assert result.new_position == 6_000_000

    async def test_new_size_uses_capital_before_profit(self, service, context):
        await deploy_default(service)
        context.advance(6)
        result = await service.rebalance(1, "dex-liquidity", 100)

        assert result.new_position == CAPITAL
        assert (await service.get_agent(1)).capital_deployed == CAPITAL + 60_000

    async def test_zero_pnl_lowers_weights_and_success(self, service, context):
        await deploy_default(service)
        context.advance(6)
        await service.rebalance(1, "parked", 0)
        context.advance(6)

        result = await service.rebalance(1, "parked", 0)

        assert result.realized_pnl == 0
        agent = await service.get_agent(1)
        assert agent.neural_weights == [50] * 10
        assert agent.capital_deployed == CAPITAL + 60_000
        assert agent.profit_generated == 60_000

        metrics = await service.get_strategy_metrics("yield")
        assert metrics.total_deployed == 2
        assert metrics.success_rate == 50

    async def test_high_tolerance_hedges_next_position(self, service, context):
        await service.deploy("hedger", "yield", CAPITAL, 80)
        context.advance(6)

        # The initial position is never hedged, so the first PnL is full
        first = await service.rebalance(1, "yield-vault", 100)
        assert first.realized_pnl == 60_000
        assert (await service.get_position(1)).hedged is True

        context.advance(10)
        second = await service.rebalance(1, "yield-vault", 100)
        # 10_000_000 * 10 / 1000 / 2
        assert second.realized_pnl == 50_000

    @pytest.mark.parametrize("pct", [-1, 101])
    async def test_allocation_out_of_range(self, service, context, pct):
        await deploy_default(service)
        context.advance(6)

        with pytest.raises(ProtocolError) as exc:
            await service.rebalance(1, "stable-lending", pct)
        assert exc.value.code == ErrorCode.INVALID_PARAMETERS

    async def test_rejected_rebalance_changes_nothing(self, service, context):
        await deploy_default(service)
        context.advance(6)

        with pytest.raises(ProtocolError):
            await service.rebalance(1, "stable-lending", 150)

        agent = await service.get_agent(1)
        assert agent.capital_deployed == CAPITAL
        assert agent.last_rebalance == 100
        assert (await service.get_strategy_metrics("yield")).total_deployed == 0

    async def test_unknown_agent(self, service):
        with pytest.raises(ProtocolError) as exc:
            await service.rebalance(42, "stable-lending", 60)
        assert exc.value.code == ErrorCode.NOT_REGISTERED

    async def test_non_owner_rejected(self, service, context):
        await deploy_default(service)
        context.advance(6)
        context.as_caller("bob")

        with pytest.raises(ProtocolError) as exc:
            await service.rebalance(1, "stable-lending", 60)
        assert exc.value.code == ErrorCode.NOT_AUTHORIZED


@pytest.mark.unit
class TestPause:
    async def test_pause_blocks_rebalance(self, service, context):
        await deploy_default(service)
        assert await service.pause(1) is True
        context.advance(6)

        with pytest.raises(ProtocolError) as exc:
            await service.rebalance(1, "stable-lending", 60)
        assert exc.value.code == ErrorCode.AGENT_PAUSED
        assert (await service.get_agent(1)).is_active is False

    async def test_pause_twice_is_harmless(self, service):
        await deploy_default(service)
        await service.pause(1)
        assert await service.pause(1) is True

    async def test_paused_agent_can_withdraw_and_train(self, service):
        await deploy_default(service)
        await service.pause(1)

        result = await service.withdraw(1, 1_000)
        assert result.net_amount == 1_000

        weights = await service.train(1, [0] * 10)
        assert weights == [55] * 10

    async def test_pause_by_non_owner(self, service, context):
        await deploy_default(service)
        context.as_caller("bob")

        with pytest.raises(ProtocolError) as exc:
            await service.pause(1)
        assert exc.value.code == ErrorCode.NOT_AUTHORIZED

    async def test_pause_unknown_agent(self, service):
        with pytest.raises(ProtocolError) as exc:
            await service.pause(7)
        assert exc.value.code == ErrorCode.NOT_REGISTERED


@pytest.mark.unit
class TestWithdraw:
    @pytest.fixture
    def params(self) -> ProtocolParams:
        return ProtocolParams(registration_fee=1_000)

    async def _profitable_agent(self, service, context) -> int:
        agent_id = await service.deploy("alpha", "yield", 100_000, 50)
        context.advance(10)
        result = await service.rebalance(agent_id, "stable-lending", 100)
        assert result.realized_pnl == 1_000
        return agent_id

    async def test_fee_withheld_from_payout(self, service, context, ledger):
        agent_id = await self._profitable_agent(service, context)
        before = await ledger.balance_of("alice")

        result = await service.withdraw(agent_id, 500)

        assert result.fee == 20
        assert result.net_amount == 480
        assert await ledger.balance_of("alice") == before + 480

        agent = await service.get_agent(agent_id)
        assert agent.capital_deployed == 100_500
        assert agent.profit_generated == 1_000
        assert (await service.get_position(agent_id)).position_size == 99_500

    async def test_fee_levied_again_on_every_withdrawal(self, service, context):
        agent_id = await self._profitable_agent(service, context)

        first = await service.withdraw(agent_id, 500)
        second = await service.withdraw(agent_id, 500)

        assert first.fee == second.fee == 20
        assert (await service.get_agent(agent_id)).capital_deployed == 100_000

    async def test_amount_below_fee_rejected(self, service, context):
        agent_id = await self._profitable_agent(service, context)

        with pytest.raises(ProtocolError) as exc:
            await service.withdraw(agent_id, 10)
        assert exc.value.code == ErrorCode.INSUFFICIENT_BALANCE
        assert exc.value.details["fee"] == 20

    async def test_amount_above_capital_rejected(self, service, context):
        agent_id = await self._profitable_agent(service, context)

        with pytest.raises(ProtocolError) as exc:
            await service.withdraw(agent_id, 101_001)
        assert exc.value.code == ErrorCode.INSUFFICIENT_BALANCE

    async def test_zero_payout_fails_at_the_ledger(self, service):
        agent_id = await service.deploy("alpha", "yield", 100_000, 50)

        with pytest.raises(ProtocolError) as exc:
            await service.withdraw(agent_id, 0)
        assert exc.value.code == ErrorCode.TRANSFER_FAILED

    async def test_negative_amount_rejected(self, service):
        agent_id = await service.deploy("alpha", "yield", 100_000, 50)

        with pytest.raises(ProtocolError) as exc:
            await service.withdraw(agent_id, -5)
        assert exc.value.code == ErrorCode.INVALID_PARAMETERS

    async def test_non_owner_rejected(self, service, context):
        agent_id = await service.deploy("alpha", "yield", 100_000, 50)
        context.as_caller("bob")

        with pytest.raises(ProtocolError) as exc:
            await service.withdraw(agent_id, 100)
        assert exc.value.code == ErrorCode.NOT_AUTHORIZED


@pytest.mark.unit
class TestCapitalPositionDivergence:
    async def test_withdraw_reduces_both_independently(self, service, context):
        await deploy_default(service)
        context.advance(6)
        await service.rebalance(1, "stable-lending", 60)

        result = await service.withdraw(1, 1_000_000)

        assert result.fee == 1_200
        assert result.net_amount == 998_800
        assert (await service.get_agent(1)).capital_deployed == 9_060_000
        assert (await service.get_position(1)).position_size == 5_000_000

    async def test_withdraw_beyond_position_rejected(self, service, context):
        await deploy_default(service)
        context.advance(6)
        await service.rebalance(1, "stable-lending", 60)

        with pytest.raises(ProtocolError) as exc:
            await service.withdraw(1, 7_000_000)

        assert exc.value.code == ErrorCode.INSUFFICIENT_BALANCE
        assert exc.value.details["position_size"] == 6_000_000
        assert (await service.get_agent(1)).capital_deployed == 10_060_000


@pytest.mark.unit
class TestTrain:
    async def test_training_step(self, service):
        await deploy_default(service)

        weights = await service.train(1, [0] * 10)

        assert weights == [55] * 10
        agent = await service.get_agent(1)
        assert agent.neural_weights == [55] * 10
        assert agent.learning_rate == 11

    async def test_learning_rate_caps_at_twenty(self, service):
        await deploy_default(service)
        for _ in range(12):
            await service.train(1, [-100] * 10)

        agent = await service.get_agent(1)
        assert agent.learning_rate == 20
        assert agent.neural_weights == [50] * 10

    async def test_wrong_length_rejected(self, service):
        await deploy_default(service)

        with pytest.raises(ProtocolError) as exc:
            await service.train(1, [0] * 9)
        assert exc.value.code == ErrorCode.INVALID_PARAMETERS
        assert (await service.get_agent(1)).learning_rate == 10

    async def test_non_owner_rejected(self, service, context):
        await deploy_default(service)
        context.as_caller("bob")

        with pytest.raises(ProtocolError) as exc:
            await service.train(1, [0] * 10)
        assert exc.value.code == ErrorCode.NOT_AUTHORIZED


@pytest.mark.unit
class TestQueries:
    async def test_missing_agent_reads_as_none(self, service):
        assert await service.get_agent(99) is None
        assert await service.get_position(99) is None
        assert await service.get_agent_detail(99) is None

    async def test_detail_bundles_position(self, service):
        await deploy_default(service)
        detail = await service.get_agent_detail(1)
        assert detail.agent.id == 1
        assert detail.position.position_size == CAPITAL

    async def test_performance_tracks_readiness(self, service, context):
        await deploy_default(service)
        context.advance(3)

        perf = await service.get_agent_performance(1)
        assert perf.blocks_since_rebalance == 3
        assert perf.rebalance_ready is False

        context.advance(3)
        assert (await service.get_agent_performance(1)).rebalance_ready is True

    async def test_paused_agent_never_ready(self, service, context):
        await deploy_default(service)
        await service.pause(1)
        context.advance(50)

        perf = await service.get_agent_performance(1)
        assert perf.is_active is False
        assert perf.rebalance_ready is False

    async def test_performance_of_unknown_agent(self, service):
        with pytest.raises(ProtocolError) as exc:
            await service.get_agent_performance(5)
        assert exc.value.code == ErrorCode.NOT_REGISTERED

    async def test_empty_protocol_stats(self, service):
        stats = await service.get_protocol_stats()
        assert stats.total_agents == 0
        assert stats.total_value_optimized == 0

    def test_allocation_is_static(self):
        rec = AgentLifecycleService.calculate_optimal_allocation(1000, 30)
        assert (rec.stable_pools, rec.volatile_pools) == (700, 300)

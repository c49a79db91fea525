"""
SQLAlchemy ORM Models

Database schema for the agent vault.

Architecture:
- AgentDB: capital-management agent, identified by a monotonic integer id
- AgentPositionDB: one-to-one current deployment record per agent
- StrategyMetricsDB: rolling statistics per strategy-type label
- UserAgentDB: ordered per-owner index of agent ids
- ProtocolStateDB: singleton row of global counters
- LedgerAccountDB / LedgerTransferDB: built-in value ledger
- OwnershipTokenDB: built-in ownership registry (one token per agent id)
"""

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


class AgentDB(Base):
    """
    Strategy agent representing deployed capital.

    Never deleted: Pause only clears is_active and Withdraw only reduces
    capital_deployed.
    """
    __tablename__ = "agents"

    # Assigned from ProtocolStateDB.total_agents, never reused
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    owner: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    strategy_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # Accounting
    capital_deployed: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    # Cumulative realized gains only; losses are never subtracted
    profit_generated: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    loss_tolerance: Mapped[int] = mapped_column(Integer, nullable=False)

    # Block height of the last rebalance (or creation)
    last_rebalance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Adaptive state: 10 slots in [0, 100], learning rate in [1, 20]
    neural_weights: Mapped[list] = mapped_column(JSON, nullable=False)
    learning_rate: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )


class AgentPositionDB(Base):
    """
    Current deployment of an agent's capital.

    Replaced wholesale on every rebalance; position_size is decremented
    independently of the agent's capital_deployed on withdraw.
    """
    __tablename__ = "agent_positions"

    agent_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("agents.id"),
        primary_key=True,
    )
    current_protocol: Mapped[str] = mapped_column(String(64), nullable=False)
    position_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    entry_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unrealized_pnl: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    hedged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class StrategyMetricsDB(Base):
    """Rolling per-strategy statistics, created lazily on first rebalance"""
    __tablename__ = "strategy_metrics"

    strategy_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    # Count of rebalance events, not a value sum
    total_deployed: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_profits: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    success_rate: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    avg_apy: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, default=50, nullable=False)


class UserAgentDB(Base):
    """One slot in an owner's ordered agent index"""
    __tablename__ = "user_agents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(128), nullable=False)
    slot: Mapped[int] = mapped_column(Integer, nullable=False)
    agent_id: Mapped[int] = mapped_column(Integer, ForeignKey("agents.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("owner", "slot", name="uq_user_agents_owner_slot"),
        Index("idx_user_agents_owner", "owner"),
    )


class ProtocolStateDB(Base):
    """Global counters, stored as a single row with id=1"""
    __tablename__ = "protocol_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    # Last assigned agent id
    total_agents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Sum of initial capital across deployments, never decremented
    total_value_optimized: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    # Inert: no mutation path writes these
    cumulative_profits: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    active_strategies: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class LedgerAccountDB(Base):
    """Fungible balance held by a principal (including the contract custody)"""
    __tablename__ = "ledger_accounts"

    principal: Mapped[str] = mapped_column(String(128), primary_key=True)
    balance: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )


class LedgerTransferDB(Base):
    """Journal entry for every successful transfer or mint"""
    __tablename__ = "ledger_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    recipient: Mapped[str] = mapped_column(String(128), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    memo: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False
    )

    __table_args__ = (
        Index("idx_ledger_transfers_sender", "sender"),
        Index("idx_ledger_transfers_recipient", "recipient"),
    )


class OwnershipTokenDB(Base):
    """Non-fungible ownership token; token_id equals the agent id"""
    __tablename__ = "ownership_tokens"

    token_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    owner: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False
    )

"""
Position accounting helpers.

Integer-only arithmetic; every division truncates toward zero.
"""

# Basis-point denominator for fees
BPS_DENOMINATOR = 10_000

# Yield accrual: position_size * blocks_held / PNL_DIVISOR
PNL_DIVISOR = 1_000

# Loss tolerance at or above which a new position is hedged
HEDGE_THRESHOLD = 70


def _div(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero"""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def calculate_pnl(position_size: int, entry_block: int, hedged: bool, now: int) -> int:
    """
    Signed PnL accrued by a position since it was opened.

    Hedged positions realize half of the accrual.
    """
    blocks_held = now - entry_block
    pnl = _div(position_size * blocks_held, PNL_DIVISOR)
    if hedged:
        pnl = _div(pnl, 2)
    return pnl


def allocation_size(capital: int, allocation_pct: int) -> int:
    """Share of capital deployed at the given percentage"""
    return _div(capital * allocation_pct, 100)


def is_hedged(loss_tolerance: int) -> bool:
    return loss_tolerance >= HEDGE_THRESHOLD


def performance_fee(profit_generated: int, fee_bps: int) -> int:
    """
    Fee levied on withdrawal.

    Computed from cumulative profit, so repeated withdrawals each charge
    the same base again.
    """
    if profit_generated <= 0:
        return 0
    return _div(profit_generated * fee_bps, BPS_DENOMINATOR)


def blocks_until_ready(last_rebalance: int, now: int, cooldown_blocks: int) -> int:
    """Blocks left before the next rebalance is accepted (0 when ready)"""
    return max(0, cooldown_blocks - (now - last_rebalance))

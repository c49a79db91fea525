"""Advisory allocation calculator (no live market data)"""

from ..core.errors import invalid_parameters
from ..models.strategy import AllocationRecommendation

RECOMMENDED_PROTOCOLS: tuple[str, ...] = ("stable-lending", "dex-liquidity", "yield-vault")


def calculate_optimal_allocation(capital: int, risk_tolerance: int) -> AllocationRecommendation:
    """
    Split capital between stable and volatile pools by risk tolerance.

    stable = capital * (100 - risk) / 100
    volatile = capital * risk / 100
    """
    if capital < 0:
        raise invalid_parameters("Capital cannot be negative", capital=capital)
    if not 0 <= risk_tolerance <= 100:
        raise invalid_parameters(
            "Risk tolerance must be between 0 and 100",
            risk_tolerance=risk_tolerance,
        )

    return AllocationRecommendation(
        stable_pools=capital * (100 - risk_tolerance) // 100,
        volatile_pools=capital * risk_tolerance // 100,
        recommended_protocols=list(RECOMMENDED_PROTOCOLS),
    )

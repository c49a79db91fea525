"""
Strategy routes - per-strategy metrics and allocation advice.
"""

from fastapi import APIRouter, Query

from ...core.dependencies import LifecycleServiceDep
from ...models.strategy import AllocationRecommendation, StrategyMetrics
from ...services.allocation import calculate_optimal_allocation

router = APIRouter(prefix="/strategies", tags=["Strategies"])


@router.get("", response_model=list[StrategyMetrics])
async def list_strategy_metrics(service: LifecycleServiceDep):
    """Metrics of every strategy-type rebalanced at least once"""
    return await service.strategy_metrics.list_all()


@router.get("/allocation", response_model=AllocationRecommendation)
async def get_optimal_allocation(
    capital: int = Query(..., ge=0),
    risk_tolerance: int = Query(..., ge=0, le=100),
):
    """
    Advisory stable/volatile split for a capital amount.

    Static calculation; no market data is consulted.
    """
    return calculate_optimal_allocation(capital, risk_tolerance)


@router.get("/{strategy_type}/metrics", response_model=StrategyMetrics)
async def get_strategy_metrics(
    strategy_type: str,
    service: LifecycleServiceDep,
):
    """Metrics of one strategy-type; defaults when it was never rebalanced"""
    return await service.get_strategy_metrics(strategy_type)

"""
Prometheus metrics for the agent vault.

Exposes metrics for monitoring:
- HTTP request latency and counts
- Lifecycle operations by outcome and rejection code
- Realized profit and global counters
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)


class MetricsCollector:
    """
    Prometheus metrics collector.

    Provides metrics for:
    - HTTP requests
    - Agent lifecycle operations
    - Protocol-wide counters
    """

    def __init__(self, app_name: str = "agent_vault"):
        self.app_name = app_name

        # ==================== HTTP Metrics ====================

        self.http_requests_total = Counter(
            f"{app_name}_http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status"],
        )

        self.http_request_duration_seconds = Histogram(
            f"{app_name}_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
        )

        # ==================== Lifecycle Metrics ====================

        self.operations_total = Counter(
            f"{app_name}_operations_total",
            "Lifecycle operations by outcome",
            ["operation", "outcome"],  # outcome: committed/rejected/failed
        )

        self.rejections_total = Counter(
            f"{app_name}_rejections_total",
            "Rejected lifecycle operations by error code",
            ["operation", "code"],
        )

        self.realized_profit_total = Counter(
            f"{app_name}_realized_profit_total",
            "Positive PnL realized by rebalances",
            ["strategy_type"],
        )

        # ==================== Protocol Metrics ====================

        self.total_agents = Gauge(
            f"{app_name}_total_agents",
            "Last assigned agent id",
        )

        self.total_value_optimized = Gauge(
            f"{app_name}_total_value_optimized",
            "Cumulative initial capital across deployments",
        )

        self.app_info = Info(
            f"{app_name}_app",
            "Application information",
        )

    def set_app_info(self, version: str, environment: str) -> None:
        self.app_info.info({"version": version, "environment": environment})

    def track_request(self, method: str, endpoint: str, status: int, duration: float) -> None:
        self.http_requests_total.labels(method=method, endpoint=endpoint, status=str(status)).inc()
        self.http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

    def track_operation(
        self,
        operation: str,
        outcome: str,
        code: Optional[str] = None,
    ) -> None:
        self.operations_total.labels(operation=operation, outcome=outcome).inc()
        if code is not None:
            self.rejections_total.labels(operation=operation, code=code).inc()

    def track_realized_profit(self, strategy_type: str, amount: int) -> None:
        if amount > 0:
            self.realized_profit_total.labels(strategy_type=strategy_type).inc(amount)

    def update_protocol_counters(self, total_agents: int, total_value_optimized: int) -> None:
        self.total_agents.set(total_agents)
        self.total_value_optimized.set(total_value_optimized)

    def generate_metrics(self) -> bytes:
        return generate_latest()

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the process-wide collector (metrics register once per process)"""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector

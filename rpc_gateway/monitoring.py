"""Request metrics for the gateway pipeline."""

import asyncio
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class MetricsSnapshot:
    """Point-in-time copy of the process-wide counters."""
    total_requests: int = 0
    total_failures: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    average_latency_ms: float = 0.0

    @property
    def success_rate(self) -> float:
        """Calculate success rate (0.0 to 1.0)."""
        if self.total_requests == 0:
            return 0.0
        return (self.total_requests - self.total_failures) / self.total_requests

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        return self.cache_hits / lookups if lookups else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['average_latency_ms'] = round(self.average_latency_ms, 2)
        data['success_rate'] = round(self.success_rate, 3)
        data['cache_hit_rate'] = round(self.cache_hit_rate, 3)
        return data


class MonitoringService:
    """Counters and running mean latency, optionally logged on an interval.

    Args:
        enabled: When False every recorder is a no-op and nothing is logged
        logging_interval_ms: Milliseconds between metrics log lines (default: 60000)
    """

    def __init__(self, enabled: bool = True, logging_interval_ms: float = 60000):
        self.enabled = enabled
        self.logging_interval = logging_interval_ms / 1000
        self._metrics = MetricsSnapshot()
        self._log_task: Optional[asyncio.Task] = None

    def record_request(self, latency_ms: float, success: bool) -> None:
        if not self.enabled:
            return
        m = self._metrics
        m.total_requests += 1
        if not success:
            m.total_failures += 1
        # Exact running mean over all completed requests
        n = m.total_requests
        m.average_latency_ms = (m.average_latency_ms * (n - 1) + latency_ms) / n

    def record_cache_hit(self) -> None:
        if self.enabled:
            self._metrics.cache_hits += 1

    def record_cache_miss(self) -> None:
        if self.enabled:
            self._metrics.cache_misses += 1

    def get_metrics(self) -> MetricsSnapshot:
        """Return a copy of the current counters."""
        return MetricsSnapshot(**asdict(self._metrics))

    async def start(self) -> None:
        """Start periodic metrics logging."""
        if self.enabled and self._log_task is None:
            self._log_task = asyncio.create_task(self._log_loop())

    async def stop(self) -> None:
        if self._log_task:
            self._log_task.cancel()
            try:
                await self._log_task
            except asyncio.CancelledError:
                pass
            self._log_task = None

    async def _log_loop(self) -> None:
        logger.info("rpc_metrics_logging_started", interval=self.logging_interval)

        while True:
            try:
                await asyncio.sleep(self.logging_interval)
                logger.info("rpc_metrics", **self.get_metrics().to_dict())
            except asyncio.CancelledError:
                logger.info("rpc_metrics_logging_stopped")
                raise
            except Exception as e:
                logger.error("rpc_metrics_logging_error", error=str(e))

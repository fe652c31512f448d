"""RPC Gateway - cache, rate limiter, batcher and connection pool in one pipeline.

A call first checks the response cache. On a miss it is admitted by the
rate limiter, queued in the batcher and sent as part of one JSON-RPC batch
through the connection pool. Successful results are cached; every outcome
is recorded by the monitoring service.

Usage:
    async with RpcGateway.from_config(GatewayConfig.from_env()) as gateway:
        block = await gateway.call("eth_getBlockByNumber", ["latest", False])
"""

import time
from typing import Any, Dict, Optional, Sequence, Union

import structlog

from rpc_gateway.batcher import RequestBatcher
from rpc_gateway.cache import ResponseCache, make_cache_key
from rpc_gateway.config import GatewayConfig
from rpc_gateway.connection_pool import ConnectionPool
from rpc_gateway.errors import GatewayClosedError, InvalidRpcRequestError, RpcRemoteError
from rpc_gateway.models import Priority, RpcCall, RpcResponseItem
from rpc_gateway.monitoring import MonitoringService
from rpc_gateway.rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)

_MISSING = object()


class RpcGateway:
    """Orchestrates one RPC call through the pipeline.

    Components are injected so they can be shared or replaced in tests;
    from_config() builds the default set.
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        cache: ResponseCache,
        rate_limiter: RateLimiter,
        pool: ConnectionPool,
        monitoring: MonitoringService,
        batcher: Optional[RequestBatcher] = None,
    ):
        self.config = config
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.pool = pool
        self.monitoring = monitoring
        self.batcher = batcher or RequestBatcher(
            sender=self._send_batch,
            window_ms=config.batching.window_ms,
        )
        self._uncached_methods = frozenset(config.cache.uncached_methods)
        self._headers = config.request_headers()
        self._started = False
        self._closed = False

    @classmethod
    def from_config(cls, config: Optional[GatewayConfig] = None) -> "RpcGateway":
        config = config or GatewayConfig()
        return cls(
            config,
            cache=ResponseCache(
                default_ttl_seconds=config.cache.default_ttl_seconds,
                max_entries=config.cache.max_entries,
                sweep_interval_seconds=config.cache.sweep_interval_seconds,
            ),
            rate_limiter=RateLimiter(
                reservoir=config.rate_limiter.reservoir,
                refresh_interval_ms=config.rate_limiter.refresh_interval_ms,
                min_time_ms=config.rate_limiter.min_time_ms,
            ),
            pool=ConnectionPool(
                max_sockets=config.pool.max_sockets,
                keep_alive=config.pool.keep_alive,
                timeout_ms=config.pool.timeout_ms,
            ),
            monitoring=MonitoringService(
                enabled=config.monitoring.enabled,
                logging_interval_ms=config.monitoring.logging_interval_ms,
            ),
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Start background tasks (metrics logging, cache sweep)."""
        if self._started:
            return
        await self.monitoring.start()
        await self.cache.start()
        self._started = True
        logger.info("rpc_gateway_started", rpc_url=self.config.rpc_url)

    async def close(self) -> None:
        """Drain queued calls, then release connections and background tasks."""
        if self._closed:
            return
        self._closed = True
        await self.batcher.close()
        await self.pool.close()
        await self.cache.close()
        await self.monitoring.stop()
        logger.info("rpc_gateway_closed", **self.monitoring.get_metrics().to_dict())

    async def _send_batch(self, payload):
        return await self.pool.send(self.config.rpc_url, payload, self._headers)

    async def call(
        self,
        method: str,
        params: Optional[Sequence[Any]] = None,
        priority: Union[Priority, str, int] = Priority.NORMAL,
        *,
        cache_ttl: Optional[float] = None,
        skip_cache: bool = False,
    ) -> Any:
        """Execute a JSON-RPC call.

        Args:
            method: RPC method name
            params: Ordered method parameters
            priority: Position in the next batch relative to other calls
            cache_ttl: Seconds to cache the result, defaults to the cache default
            skip_cache: Bypass cache read and write for this call

        Returns:
            The JSON-RPC result value

        Raises:
            InvalidRpcRequestError: method, params, priority or cache_ttl rejected
            RpcRemoteError: the node returned an error for this call
            BatchSendError: the batch carrying this call failed
        """
        if self._closed:
            raise GatewayClosedError("gateway is closed")

        rpc_call = RpcCall.build(method, params)
        priority = Priority.parse(priority)
        if cache_ttl is not None and cache_ttl < 0:
            raise InvalidRpcRequestError(f"cache_ttl must be >= 0, got {cache_ttl!r}")
        use_cache = not skip_cache and rpc_call.method not in self._uncached_methods
        key = make_cache_key(rpc_call.method, rpc_call.params)

        if use_cache:
            cached = self.cache.get(key, _MISSING)
            if cached is not _MISSING:
                self._record(self.monitoring.record_cache_hit)
                return cached
        self._record(self.monitoring.record_cache_miss)

        start = time.monotonic()
        try:
            item = await self.rate_limiter.schedule(
                lambda: self.batcher.add_request(rpc_call, priority)
            )
            result = self._unwrap(rpc_call, item)
        except Exception as e:
            latency_ms = (time.monotonic() - start) * 1000
            self._record(self.monitoring.record_request, latency_ms, False)
            logger.warning(
                "rpc_call_failed",
                method=rpc_call.method,
                error_type=type(e).__name__,
                error=str(e),
                latency_ms=round(latency_ms, 2),
            )
            raise

        latency_ms = (time.monotonic() - start) * 1000
        self._record(self.monitoring.record_request, latency_ms, True)
        if use_cache:
            self.cache.set(key, result, cache_ttl)
        return result

    @staticmethod
    def _unwrap(rpc_call: RpcCall, raw_item: Any) -> Any:
        item = RpcResponseItem.parse_item(raw_item)
        if item.error is not None:
            raise RpcRemoteError(
                code=item.error.code,
                message=item.error.message,
                data=item.error.data,
                method=rpc_call.method,
            )
        return item.result

    def _record(self, recorder, *args) -> None:
        # Metrics must never break a call.
        try:
            recorder(*args)
        except Exception as e:
            logger.error("metrics_record_failed", recorder=getattr(recorder, '__name__', repr(recorder)), error=str(e))

    def invalidate(self, method: str, params: Optional[Sequence[Any]] = None) -> bool:
        """Drop the cached result of one call."""
        rpc_call = RpcCall.build(method, params)
        return self.cache.delete(make_cache_key(rpc_call.method, rpc_call.params))

    async def get_block_number(self) -> int:
        """Get the latest block number."""
        return int(await self.call("eth_blockNumber", [], Priority.HIGH, cache_ttl=1), 16)

    async def get_balance(self, address: str, block: str = "latest") -> int:
        """Get an account balance in wei.

        Args:
            address: 0x-prefixed account address
            block: Block tag or 0x-prefixed block number
        """
        return int(await self.call("eth_getBalance", [address, block]), 16)

    async def get_block_by_number(
        self,
        number: Union[int, str] = "latest",
        full_transactions: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """Get a block by number or tag ("latest", "finalized", ...)."""
        tag = hex(number) if isinstance(number, int) else number
        return await self.call("eth_getBlockByNumber", [tag, full_transactions])

    def get_metrics(self) -> Dict[str, Any]:
        """Metrics for the whole pipeline."""
        return {
            "requests": self.monitoring.get_metrics().to_dict(),
            "cache": self.cache.get_stats(),
            "rate_limiter": self.rate_limiter.get_stats(),
            "batcher": self.batcher.get_stats(),
            "connection_pool": self.pool.get_stats(),
        }

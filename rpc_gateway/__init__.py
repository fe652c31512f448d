"""Caching, rate-limited, batching gateway for blockchain JSON-RPC providers."""

from rpc_gateway.batcher import RequestBatcher
from rpc_gateway.cache import ResponseCache, make_cache_key
from rpc_gateway.config import GatewayConfig
from rpc_gateway.connection_pool import ConnectionPool
from rpc_gateway.errors import (
    BatchSendError,
    GatewayClosedError,
    InvalidRpcRequestError,
    RpcConnectionError,
    RpcGatewayError,
    RpcHttpStatusError,
    RpcProtocolError,
    RpcRemoteError,
    RpcTimeoutError,
)
from rpc_gateway.gateway import RpcGateway
from rpc_gateway.models import Priority, RpcCall
from rpc_gateway.monitoring import MetricsSnapshot, MonitoringService
from rpc_gateway.rate_limiter import RateLimiter

__version__ = "0.1.0"

__all__ = [
    "BatchSendError",
    "ConnectionPool",
    "GatewayClosedError",
    "GatewayConfig",
    "InvalidRpcRequestError",
    "MetricsSnapshot",
    "MonitoringService",
    "Priority",
    "RateLimiter",
    "RequestBatcher",
    "ResponseCache",
    "RpcCall",
    "RpcConnectionError",
    "RpcGateway",
    "RpcGatewayError",
    "RpcHttpStatusError",
    "RpcProtocolError",
    "RpcRemoteError",
    "RpcTimeoutError",
    "make_cache_key",
]

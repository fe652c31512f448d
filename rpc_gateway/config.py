"""
Gateway Configuration
=====================
Single source of truth for connection pool, batching, cache, rate limiter
and monitoring settings. Every field can be overridden from the environment.

Usage:
    from rpc_gateway.config import GatewayConfig
    config = GatewayConfig.from_env()

    # Access settings
    window_ms = config.batching.window_ms
    reservoir = config.rate_limiter.reservoir
"""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from dotenv import load_dotenv

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}


def env_bool(name: str, default: bool) -> bool:
    """Read a boolean environment variable."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def env_tuple(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(',') if item.strip())


@dataclass
class ConnectionPoolConfig:
    """Outbound HTTP transport settings."""
    max_sockets: int = field(default_factory=lambda: env_int('RPC_POOL_MAX_SOCKETS', 100))
    keep_alive: bool = field(default_factory=lambda: env_bool('RPC_POOL_KEEP_ALIVE', True))
    timeout_ms: int = field(default_factory=lambda: env_int('RPC_POOL_TIMEOUT_MS', 10000))

    def __post_init__(self):
        if self.max_sockets < 1:
            raise ValueError("max_sockets must be >= 1")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")


@dataclass
class BatchingConfig:
    window_ms: int = field(default_factory=lambda: env_int('RPC_BATCH_WINDOW_MS', 10))

    def __post_init__(self):
        if self.window_ms < 0:
            raise ValueError("window_ms must be >= 0")


@dataclass
class CacheConfig:
    """Response cache settings.

    max_entries and sweep_interval_seconds of 0 disable the LRU bound and
    the background sweep respectively; expiry is then checked on read only.
    """
    default_ttl_seconds: int = field(default_factory=lambda: env_int('RPC_CACHE_DEFAULT_TTL_SECONDS', 60))
    max_entries: int = field(default_factory=lambda: env_int('RPC_CACHE_MAX_ENTRIES', 0))
    sweep_interval_seconds: int = field(default_factory=lambda: env_int('RPC_CACHE_SWEEP_INTERVAL_SECONDS', 0))
    uncached_methods: Tuple[str, ...] = field(default_factory=lambda: env_tuple(
        'RPC_CACHE_UNCACHED_METHODS',
        (
            'eth_sendRawTransaction',
            'eth_sendTransaction',
            'sendTransaction',
            # null until the transaction is mined
            'eth_getTransactionReceipt',
            'eth_getTransactionByHash',
        ),
    ))

    def __post_init__(self):
        if self.default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be > 0")
        if self.max_entries < 0 or self.sweep_interval_seconds < 0:
            raise ValueError("max_entries and sweep_interval_seconds must be >= 0")
        self.uncached_methods = tuple(self.uncached_methods)


@dataclass
class RateLimiterConfig:
    """Token bucket settings. The reservoir is reset to full every refresh interval."""
    min_time_ms: int = field(default_factory=lambda: env_int('RPC_LIMITER_MIN_TIME_MS', 100))
    reservoir: int = field(default_factory=lambda: env_int('RPC_LIMITER_RESERVOIR', 50))
    refresh_interval_ms: int = field(default_factory=lambda: env_int('RPC_LIMITER_REFRESH_INTERVAL_MS', 1000))

    def __post_init__(self):
        if self.reservoir < 1:
            raise ValueError("reservoir must be >= 1")
        if self.refresh_interval_ms <= 0:
            raise ValueError("refresh_interval_ms must be > 0")
        if self.min_time_ms < 0:
            raise ValueError("min_time_ms must be >= 0")


@dataclass
class MonitoringConfig:
    enabled: bool = field(default_factory=lambda: env_bool('RPC_MONITORING_ENABLED', True))
    logging_interval_ms: int = field(default_factory=lambda: env_int('RPC_MONITORING_LOGGING_INTERVAL_MS', 60000))

    def __post_init__(self):
        if self.logging_interval_ms <= 0:
            raise ValueError("logging_interval_ms must be > 0")


@dataclass
class GatewayConfig:
    """
    Top-level gateway configuration.

    The API key, when set, is sent on every outbound batch under
    api_key_header.
    """

    rpc_url: str = field(default_factory=lambda: os.getenv('RPC_URL', 'http://localhost:8545'))
    api_key: Optional[str] = field(default_factory=lambda: os.getenv('RPC_API_KEY') or None)
    api_key_header: str = field(default_factory=lambda: os.getenv('RPC_API_KEY_HEADER', 'x-api-key'))

    pool: ConnectionPoolConfig = field(default_factory=ConnectionPoolConfig)
    batching: BatchingConfig = field(default_factory=BatchingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    rate_limiter: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def __post_init__(self):
        if not self.rpc_url.startswith(('http://', 'https://')):
            raise ValueError(f"rpc_url must be an http(s) URL, got {self.rpc_url!r}")

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> 'GatewayConfig':
        """Load a .env file (if any) and build the configuration from the environment."""
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()
        return cls()

    def request_headers(self) -> Dict[str, str]:
        """Headers added to every outbound batch."""
        headers = {}
        if self.api_key:
            headers[self.api_key_header] = self.api_key
        return headers

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary, with the API key masked."""
        data = asdict(self)
        if data['api_key']:
            data['api_key'] = '***'
        data['cache']['uncached_methods'] = list(data['cache']['uncached_methods'])
        return data

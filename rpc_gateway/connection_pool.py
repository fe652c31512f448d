"""Pooled keep-alive HTTP transport for outbound RPC batches."""

import asyncio
from typing import Any, Dict, Optional

import aiohttp
import orjson
import structlog
from aiohttp import ClientTimeout
from yarl import URL

from rpc_gateway.errors import (
    RpcConnectionError,
    RpcHttpStatusError,
    RpcProtocolError,
    RpcTimeoutError,
)

logger = structlog.get_logger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class ConnectionPool:
    """One aiohttp session per target origin, reused for the pool lifetime.

    Args:
        max_sockets: Maximum concurrent connections per target (default: 100)
        keep_alive: Reuse connections between requests (default: True)
        timeout_ms: Total request timeout in milliseconds (default: 10000)
    """

    def __init__(self, max_sockets: int = 100, keep_alive: bool = True, timeout_ms: float = 10000):
        self.max_sockets = max_sockets
        self.keep_alive = keep_alive
        self.timeout_ms = timeout_ms
        self._timeout = ClientTimeout(total=timeout_ms / 1000)
        self._sessions: Dict[str, aiohttp.ClientSession] = {}
        self._closed = False

    @staticmethod
    def target_key(target: str) -> str:
        """Identity of a target: scheme, host and port."""
        return str(URL(target).origin())

    def _get_session(self, target: str) -> aiohttp.ClientSession:
        key = self.target_key(target)
        session = self._sessions.get(key)
        if session is None or session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_sockets,
                limit_per_host=self.max_sockets,
                force_close=not self.keep_alive,
            )
            session = aiohttp.ClientSession(connector=connector, timeout=self._timeout)
            self._sessions[key] = session
            logger.info(
                "connection_pool_session_created",
                target=key,
                max_sockets=self.max_sockets,
                keep_alive=self.keep_alive,
            )
        return session

    async def send(self, target: str, payload: Any, headers: Optional[Dict[str, str]] = None) -> Any:
        """POST a JSON payload and return the decoded JSON response.

        Raises:
            RpcTimeoutError: No response within timeout_ms
            RpcConnectionError: Transport-level failure
            RpcHttpStatusError: Non-2xx response status
            RpcProtocolError: Response body is not valid JSON
        """
        if self._closed:
            raise RpcConnectionError("connection pool is closed", target=target)

        session = self._get_session(target)
        request_headers = {**DEFAULT_HEADERS, **(headers or {})}
        try:
            body = orjson.dumps(payload)
        except (TypeError, orjson.JSONEncodeError) as e:
            raise RpcProtocolError(f"Payload is not JSON serializable: {e}", target=target) from e

        try:
            async with session.post(target, data=body, headers=request_headers) as response:
                raw = await response.read()
                if response.status >= 400:
                    raise RpcHttpStatusError(
                        response.status,
                        response.reason or raw[:200].decode(errors="replace"),
                        target=target,
                    )
        except asyncio.TimeoutError as e:
            raise RpcTimeoutError(
                f"No response from {target} within {self.timeout_ms:g}ms", target=target
            ) from e
        except aiohttp.ClientError as e:
            raise RpcConnectionError(f"Request to {target} failed: {e}", target=target) from e

        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise RpcProtocolError(f"Invalid JSON from {target}: {e}", target=target) from e

    async def close(self) -> None:
        """Close every pooled session."""
        self._closed = True
        sessions, self._sessions = list(self._sessions.values()), {}
        for session in sessions:
            await session.close()
        logger.info("connection_pool_closed", sessions=len(sessions))

    def get_stats(self) -> Dict[str, Any]:
        return {
            'targets': sorted(self._sessions),
            'max_sockets': self.max_sockets,
            'keep_alive': self.keep_alive,
            'timeout_ms': self.timeout_ms,
        }

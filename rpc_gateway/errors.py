"""Error types raised by the RPC gateway pipeline."""

from typing import Any, Optional


class RpcGatewayError(Exception):
    """Base class for all gateway errors."""


class InvalidRpcRequestError(RpcGatewayError):
    """Method name or params rejected at the gateway boundary."""


class GatewayClosedError(RpcGatewayError):
    """Raised when work is submitted after the gateway was closed."""


class RpcRemoteError(RpcGatewayError):
    """JSON-RPC error object returned for a single item of a batch."""

    def __init__(self, code: int, message: str, data: Any = None, method: Optional[str] = None):
        self.code = code
        self.message = message
        self.data = data
        self.method = method
        prefix = f"{method}: " if method else ""
        super().__init__(f"{prefix}RPC error {code}: {message}")


class BatchSendError(RpcGatewayError):
    """The outbound batch could not be delivered or understood.

    Every request that was part of the batch is rejected with the same
    instance.
    """

    def __init__(self, message: str, target: Optional[str] = None):
        self.target = target
        super().__init__(message)


class RpcTimeoutError(BatchSendError):
    """No response within the configured request timeout."""


class RpcConnectionError(BatchSendError):
    """Connection refused, reset, or the host could not be resolved."""


class RpcHttpStatusError(BatchSendError):
    """The endpoint answered with a non-2xx status."""

    def __init__(self, status: int, message: str, target: Optional[str] = None):
        self.status = status
        super().__init__(f"HTTP {status}: {message}", target=target)


class RpcProtocolError(BatchSendError):
    """The response body is not a valid JSON-RPC batch response."""

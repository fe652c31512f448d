"""Request and response types shared across the gateway pipeline."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from rpc_gateway.errors import InvalidRpcRequestError, RpcProtocolError

JSONRPC_VERSION = "2.0"


class Priority(Enum):
    """Request priority levels. Lower value is served first."""
    HIGH = 0
    NORMAL = 1
    LOW = 2

    @classmethod
    def parse(cls, value: Union["Priority", str, int]) -> "Priority":
        """Accept a Priority, its name (any case) or its numeric value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidRpcRequestError(f"Unknown priority: {value!r}") from None
        try:
            return cls(value)
        except ValueError:
            raise InvalidRpcRequestError(f"Unknown priority: {value!r}") from None


class RpcCall(BaseModel):
    """A validated JSON-RPC method invocation.

    params must be JSON serializable by orjson, which limits integers to
    64 bits. Larger quantities go over the wire as 0x-prefixed hex strings,
    as EVM nodes expect; anything wider is rejected with
    InvalidRpcRequestError before the call is queued.
    """
    method: str = Field(..., min_length=1, max_length=256)
    params: List[Any] = Field(default_factory=list)

    @field_validator('method')
    @classmethod
    def validate_method(cls, v: str) -> str:
        if any(ch.isspace() for ch in v):
            raise ValueError(f'Invalid RPC method name: {v!r}')
        return v

    @field_validator('params', mode='before')
    @classmethod
    def normalise_params(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (str, bytes)) or not isinstance(v, Sequence):
            raise ValueError('params must be an ordered sequence')
        return list(v)

    @classmethod
    def build(cls, method: Any, params: Any = None) -> "RpcCall":
        """Validate inputs, raising InvalidRpcRequestError on failure."""
        try:
            return cls(method=method, params=params)
        except ValidationError as e:
            raise InvalidRpcRequestError(str(e)) from e

    def to_wire(self, request_id: int) -> Dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "method": self.method,
            "params": self.params,
        }


class RpcErrorObject(BaseModel):
    code: int
    message: str = ""
    data: Any = None


class RpcResponseItem(BaseModel):
    """One element of a JSON-RPC batch response."""
    id: Optional[Union[int, str]] = None
    result: Any = None
    error: Optional[RpcErrorObject] = None

    @classmethod
    def parse_item(cls, raw: Any) -> "RpcResponseItem":
        if not isinstance(raw, dict):
            raise RpcProtocolError(f"Response item is not an object: {raw!r}")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise RpcProtocolError(f"Malformed response item: {e}") from e


@dataclass(order=True)
class QueuedRequest:
    """Pending call owned by the batcher until its batch settles.

    Ordering is (priority, sequence) so sorting a batch keeps arrival
    order among equal priorities.
    """
    priority: int
    sequence: int
    call: RpcCall = field(compare=False)
    future: asyncio.Future = field(compare=False, repr=False)

    def to_wire(self) -> Dict[str, Any]:
        return self.call.to_wire(self.sequence)

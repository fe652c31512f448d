"""Test doubles shared across the gateway tests."""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def echo_results(payload: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Batch response whose result for each item is [method, params]."""
    return [
        {"jsonrpc": "2.0", "id": item["id"], "result": [item["method"], item["params"]]}
        for item in payload
    ]


class FakePool:
    """Stand-in for ConnectionPool that answers from a callable."""

    def __init__(self, responder=echo_results):
        self.sent: List[List[Dict[str, Any]]] = []
        self.headers: List[Optional[Dict[str, str]]] = []
        self.responder = responder
        self.close = AsyncMock()

    async def send(self, target, payload, headers=None):
        self.sent.append(payload)
        self.headers.append(headers)
        return self.responder(payload)

    def get_stats(self):
        return {'targets': [], 'sent': len(self.sent)}

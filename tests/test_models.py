"""Tests for request/response models."""

import asyncio

import pytest

from rpc_gateway.errors import InvalidRpcRequestError, RpcProtocolError
from rpc_gateway.models import Priority, QueuedRequest, RpcCall, RpcResponseItem


class TestPriority:

    def test_ordering(self):
        assert Priority.HIGH.value < Priority.NORMAL.value < Priority.LOW.value

    @pytest.mark.parametrize("raw, expected", [
        (Priority.LOW, Priority.LOW),
        ("high", Priority.HIGH),
        (" Normal ", Priority.NORMAL),
        (2, Priority.LOW),
    ])
    def test_parse(self, raw, expected):
        assert Priority.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["urgent", 7])
    def test_parse_unknown(self, raw):
        with pytest.raises(InvalidRpcRequestError):
            Priority.parse(raw)


class TestRpcCall:

    def test_tuple_params_become_list(self):
        assert RpcCall.build("getBlock", (1, {"full": False})).params == [1, {"full": False}]

    def test_none_params(self):
        assert RpcCall.build("eth_chainId", None).params == []

    @pytest.mark.parametrize("method", ["", "get Block", None, 42])
    def test_invalid_method(self, method):
        with pytest.raises(InvalidRpcRequestError):
            RpcCall.build(method, [])

    @pytest.mark.parametrize("params", ["0xabc", {"a": 1}, 5])
    def test_invalid_params(self, params):
        with pytest.raises(InvalidRpcRequestError):
            RpcCall.build("getBlock", params)


class TestRpcResponseItem:

    def test_result_item(self):
        item = RpcResponseItem.parse_item({"jsonrpc": "2.0", "id": 3, "result": None})
        assert item.error is None
        assert item.result is None

    def test_error_item(self):
        item = RpcResponseItem.parse_item({"id": 3, "error": {"code": -32601, "message": "Method not found"}})
        assert item.error.code == -32601

    @pytest.mark.parametrize("raw", ["oops", {"id": 1, "error": {"message": "no code"}}])
    def test_malformed(self, raw):
        with pytest.raises(RpcProtocolError):
            RpcResponseItem.parse_item(raw)


@pytest.mark.asyncio
async def test_queued_request_sorts_by_priority_then_sequence():
    loop = asyncio.get_running_loop()
    call = RpcCall(method="m")
    requests = [
        QueuedRequest(priority=2, sequence=1, call=call, future=loop.create_future()),
        QueuedRequest(priority=0, sequence=3, call=call, future=loop.create_future()),
        QueuedRequest(priority=0, sequence=2, call=call, future=loop.create_future()),
    ]
    assert [r.sequence for r in sorted(requests)] == [2, 3, 1]

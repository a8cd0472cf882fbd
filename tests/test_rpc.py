import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from infra.fee_history import RPCFeeHistorySource
from infra.metrics import METRICS
from infra.rpc import AsyncRPC, get_rpc_urls


def test_rpc_urls_from_env(monkeypatch) -> None:
    monkeypatch.setenv("RPC_URLS", "a.example, https://b.example\nhttps://a.example")
    monkeypatch.delenv("RPC_URL", raising=False)
    assert get_rpc_urls() == ["https://a.example", "https://b.example"]


def test_rpc_urls_default(monkeypatch) -> None:
    monkeypatch.delenv("RPC_URLS", raising=False)
    monkeypatch.delenv("RPC_URL", raising=False)
    urls = get_rpc_urls()
    assert urls
    assert all(u.startswith("https://") for u in urls)


_FEE_HISTORY = {"oldestBlock": "0x10", "baseFeePerGas": ["0x64", "0x64"], "gasUsedRatio": [0.5]}


async def _serve(handler) -> TestServer:
    app = web.Application()
    app.router.add_post("/", handler)
    server = TestServer(app)
    await server.start_server()
    return server


@pytest.mark.asyncio
async def test_fee_history_over_http() -> None:
    async def handler(request):
        body = await request.json()
        assert body["method"] == "eth_feeHistory"
        return web.json_response(
            {
                "jsonrpc": "2.0",
                "id": body["id"],
                "result": {
                    "oldestBlock": "0x1",
                    "baseFeePerGas": ["0xa", "0xb"],
                    "gasUsedRatio": [0.25],
                },
            }
        )

    METRICS.reset()
    server = await _serve(handler)
    rpc = AsyncRPC(str(server.make_url("/")), max_retries=0)
    try:
        res = await RPCFeeHistorySource(rpc).fetch_fee_history(1, "latest")
    finally:
        await rpc.close()
        await server.close()
    assert res.base_fee_per_gas == (10, 11)
    assert METRICS.counter("rpc_requests_total") == 1
    assert METRICS.snapshot()["histograms"]["rpc_latency_ms"]["count"] == 1


@pytest.mark.asyncio
async def test_retries_transient_http_errors() -> None:
    hits = []

    async def handler(request):
        body = await request.json()
        hits.append(body["id"])
        if len(hits) == 1:
            return web.Response(status=503, text="busy")
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": _FEE_HISTORY})

    server = await _serve(handler)
    rpc = AsyncRPC(str(server.make_url("/")), max_retries=1, backoff_base_s=0.0)
    try:
        res = await RPCFeeHistorySource(rpc).fetch_fee_history(1, 16)
    finally:
        await rpc.close()
        await server.close()
    assert res.oldest_block == 16
    assert len(hits) == 2


@pytest.mark.asyncio
async def test_node_error_is_not_retried() -> None:
    hits = []

    async def handler(request):
        body = await request.json()
        hits.append(body["id"])
        return web.json_response(
            {"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32602, "message": "invalid block range"}}
        )

    server = await _serve(handler)
    rpc = AsyncRPC(str(server.make_url("/")), max_retries=3, backoff_base_s=0.0)
    try:
        with pytest.raises(RuntimeError, match="invalid block range"):
            await rpc.call("eth_feeHistory", ["0x1", "latest", []])
    finally:
        await rpc.close()
        await server.close()
    assert len(hits) == 1

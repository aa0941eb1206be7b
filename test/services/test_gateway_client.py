import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from controllers.dlmm_lp_domain.errors import (
    BadRequestError,
    InsufficientFundsError,
    PositionNotFoundError,
    TransientError,
)
from services.gateway_client import GatewayClient
from services.meteora_api_client import MeteoraApiClient

POOL_INFO = {
    "address": "pool-1",
    "baseTokenAddress": "So11111111111111111111111111111111111111112",
    "quoteTokenAddress": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "binStep": 100,
    "feePct": 0.1,
    "price": 100,
    "baseTokenAmount": 1000,
    "quoteTokenAmount": 100000,
    "activeBinId": -374,
}


class Recorder:
    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, dict(request.url.params), body))
        handler = self.routes[(request.method, request.url.path)]
        return handler(request) if callable(handler) else httpx.Response(200, json=handler)


def _client(routes):
    recorder = Recorder(routes)
    client = GatewayClient(
        "http://gateway.test",
        wallet_address="wallet-1",
        slippage_pct=Decimal("1"),
        transport=httpx.MockTransport(recorder),
        meteora_api=MeteoraApiClient("http://dlmm.test", transport=httpx.MockTransport(recorder)),
    )
    return client, recorder


def _run(client, coro):
    async def scenario():
        try:
            return await coro
        finally:
            await client.close()

    return asyncio.run(scenario())


def test_native_balance_uses_native_symbol():
    client, recorder = _client({("POST", "/chains/solana/balances"): {"balances": {"SOL": 1.25}}})

    balance = _run(client, client.get_balance())

    assert balance == Decimal("1.25")
    method, path, _, body = recorder.requests[0]
    assert body == {"network": "mainnet-beta", "address": "wallet-1", "tokens": ["SOL"]}


def test_missing_token_balance_is_zero():
    client, _ = _client({("POST", "/chains/solana/balances"): {"balances": {}}})

    assert _run(client, client.get_balance("USDC")) == Decimal("0")


def test_active_bin_from_pool_info():
    client, recorder = _client({("GET", "/connectors/meteora/clmm/pool-info"): POOL_INFO})

    active = _run(client, client.get_active_bin("pool-1"))

    assert active.bin_id == -374
    assert active.price_per_token == Decimal("100")
    assert recorder.requests[0][2] == {"network": "mainnet-beta", "poolAddress": "pool-1"}


def test_positions_from_pool():
    positions = [{"address": "pos-1", "poolAddress": "pool-1", "lowerBinId": -400, "upperBinId": -350}]
    client, recorder = _client({("GET", "/connectors/meteora/clmm/positions-owned"): positions})

    result = _run(client, client.get_positions_from_pool("pool-1"))

    assert [(p.pool_address, p.lower_bin_id, p.upper_bin_id, p.position_address) for p in result] == [
        ("pool-1", -400, -350, "pos-1")
    ]
    assert recorder.requests[0][2]["poolAddress"] == "pool-1"


def test_add_liquidity_converts_bins_to_prices():
    client, recorder = _client({
        ("GET", "/connectors/meteora/clmm/pool-info"): POOL_INFO,
        ("POST", "/connectors/meteora/clmm/open-position"): {"data": {"signature": "sig", "positionAddress": "pos-9"}},
    })

    opened = _run(client, client.add_liquidity("pool-1", Decimal("2"), Decimal("200"), 1))

    body = recorder.requests[1][3]
    assert body["poolAddress"] == "pool-1"
    assert body["walletAddress"] == "wallet-1"
    assert body["upperPrice"] == pytest.approx(101.0)
    assert body["lowerPrice"] == pytest.approx(100 / 1.01)
    assert body["baseTokenAmount"] == 2.0
    assert body["quoteTokenAmount"] == 200.0
    assert body["slippagePct"] == 1.0
    assert (opened.lower_bin_id, opened.upper_bin_id, opened.position_address) == (-375, -373, "pos-9")


def test_remove_liquidity_closes_positions_and_sums_amounts():
    client, recorder = _client({
        ("GET", "/connectors/meteora/clmm/positions-owned"): [
            {"address": "pos-1", "poolAddress": "pool-1", "lowerBinId": 1, "upperBinId": 5},
        ],
        ("POST", "/connectors/meteora/clmm/close-position"): {
            "signature": "sig",
            "data": {
                "baseTokenAmountRemoved": 1.5,
                "quoteTokenAmountRemoved": 150,
                "baseFeeAmountCollected": 0.01,
                "quoteFeeAmountCollected": 2,
            },
        },
    })

    removal = _run(client, client.remove_liquidity("pool-1"))

    assert removal.liquidity_removed == (Decimal("1.5"), Decimal("150"))
    assert removal.fees_claimed == (Decimal("0.01"), Decimal("2"))
    assert recorder.requests[1][3]["positionAddress"] == "pos-1"


def test_remove_liquidity_keeping_position_open():
    client, recorder = _client({
        ("GET", "/connectors/meteora/clmm/positions-owned"): [
            {"address": "pos-1", "poolAddress": "pool-1", "lowerBinId": 1, "upperBinId": 5},
        ],
        ("POST", "/connectors/meteora/clmm/remove-liquidity"): {
            "baseTokenAmountRemoved": 2,
            "quoteTokenAmountRemoved": 200,
        },
    })

    removal = _run(client, client.remove_liquidity("pool-1", close_position=False))

    assert removal.liquidity_removed == (Decimal("2"), Decimal("200"))
    assert removal.fees_claimed == (Decimal("0"), Decimal("0"))
    method, path, _, body = recorder.requests[1]
    assert path == "/connectors/meteora/clmm/remove-liquidity"
    assert body == {
        "network": "mainnet-beta",
        "walletAddress": "wallet-1",
        "positionAddress": "pos-1",
        "percentageToRemove": 100.0,
    }


def test_remove_liquidity_without_position():
    client, _ = _client({("GET", "/connectors/meteora/clmm/positions-owned"): []})

    with pytest.raises(PositionNotFoundError, match="No positions found"):
        _run(client, client.remove_liquidity("pool-1"))


def test_swap_sells_from_asset():
    client, recorder = _client({
        ("POST", "/connectors/jupiter/router/execute-swap"): {"data": {"amountIn": 1, "amountOut": 99.5}},
    })

    received = _run(client, client.swap("SOL", "USDC", Decimal("1")))

    assert received == Decimal("99.5")
    body = recorder.requests[0][3]
    assert (body["baseToken"], body["quoteToken"], body["side"], body["amount"]) == ("SOL", "USDC", "SELL", 1.0)


def test_pools_and_bin_step_come_from_dlmm_api():
    client, recorder = _client({
        ("GET", "/pair/pool-1"): {"address": "pool-1", "bin_step": 20},
    })

    assert _run(client, client.get_bin_step("pool-1")) == 20
    assert recorder.requests[0][1] == "/pair/pool-1"


@pytest.mark.parametrize(
    "status,payload,expected",
    [
        (400, {"message": "Insufficient funds for transaction"}, InsufficientFundsError),
        (500, {"message": "Transaction simulation failed: insufficient lamports"}, InsufficientFundsError),
        (400, {"message": "amount must be positive"}, BadRequestError),
        (404, {"error": "Position not found"}, PositionNotFoundError),
        (503, {"message": "upstream unavailable"}, TransientError),
    ],
)
def test_http_errors_are_tagged(status, payload, expected):
    client, _ = _client({
        ("POST", "/connectors/jupiter/router/execute-swap"): lambda request: httpx.Response(status, json=payload),
    })

    with pytest.raises(expected) as exc_info:
        _run(client, client.swap("SOL", "USDC", Decimal("1")))

    assert exc_info.value.status_code == status


def test_bad_request_message_prefix():
    client, _ = _client({
        ("POST", "/connectors/jupiter/router/execute-swap"): lambda request: httpx.Response(400, text="invalid"),
    })

    with pytest.raises(BadRequestError) as exc_info:
        _run(client, client.swap("SOL", "USDC", Decimal("1")))

    assert str(exc_info.value) == "Bad request: invalid"


def test_connection_errors_are_transient():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = _client({("GET", "/connectors/meteora/clmm/pool-info"): refuse})

    with pytest.raises(TransientError):
        _run(client, client.get_active_bin("pool-1"))

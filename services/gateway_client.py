"""Hummingbot Gateway client implementing the wallet, DLMM protocol and swap capabilities."""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from controllers.dlmm_lp_domain.components import (
    ActiveBin,
    LiquidityRemoval,
    OpenPosition,
    PoolCandidate,
)
from controllers.dlmm_lp_domain.errors import (
    BadRequestError,
    ErrorKind,
    PositionNotFoundError,
    TransientError,
    error_for_kind,
    kind_from_message,
)
from controllers.dlmm_lp_domain.range_calculator import RangeCalculator
from models.gateway_dlmm import (
    BalancesRequest,
    BalancesResponse,
    DLMMClosePositionRequest,
    DLMMClosePositionResponse,
    DLMMOpenPositionRequest,
    DLMMOpenPositionResponse,
    DLMMPoolInfoResponse,
    DLMMPositionInfo,
    DLMMRemoveLiquidityRequest,
    SwapExecuteRequest,
    SwapExecuteResponse,
)
from services.meteora_api_client import MeteoraApiClient

logger = logging.getLogger(__name__)


def _json_payload(model) -> Dict[str, Any]:
    # Gateway schemas expect JSON numbers, not the strings pydantic emits for Decimal.
    payload = model.model_dump(by_alias=True, exclude_none=True)
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in payload.items()}


def _unwrap(data: Any) -> Any:
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        return data["data"]
    return data


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


class GatewayClient:
    """Wallet, DLMM positions and router swaps through a Hummingbot Gateway.

    Pool discovery and bin-step lookups are served by the public DLMM API.
    Asset A is treated as the pool's base token and asset B as its quote token.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:15888",
        *,
        wallet_address: str,
        chain: str = "solana",
        network: str = "mainnet-beta",
        native_symbol: str = "SOL",
        dlmm_connector: str = "meteora/clmm",
        router_connector: str = "jupiter/router",
        slippage_pct: Optional[Decimal] = None,
        timeout: float = 30.0,
        meteora_api: Optional[MeteoraApiClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.wallet_address = wallet_address
        self.chain = chain
        self.network = network
        self.native_symbol = native_symbol
        self.dlmm_connector = dlmm_connector
        self.router_connector = router_connector
        self.slippage_pct = slippage_pct
        self.timeout = timeout
        self.meteora_api = meteora_api or MeteoraApiClient()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> "GatewayClient":
        gateway = settings.gateway
        return cls(
            gateway.url,
            wallet_address=gateway.wallet_address,
            chain=gateway.chain,
            network=gateway.network,
            native_symbol=gateway.native_symbol,
            dlmm_connector=gateway.dlmm_connector,
            router_connector=gateway.router_connector,
            slippage_pct=gateway.slippage_pct,
            timeout=gateway.timeout_sec,
            meteora_api=MeteoraApiClient(
                settings.meteora_api.url,
                timeout=settings.meteora_api.timeout_sec,
                page_size=settings.meteora_api.page_size,
            ),
            transport=transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await self.meteora_api.close()

    async def _request(self, method: str, path: str, params: Optional[Dict] = None, json: Optional[Dict] = None) -> Any:
        try:
            response = await self.client.request(method, path, params=params, json=json)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = _error_message(e.response)
            logger.error("gateway_http_error | path=%s status=%s message=%s", path, status, message)
            kind = kind_from_message(message)
            if kind != ErrorKind.TRANSIENT:
                raise error_for_kind(kind, message, status_code=status) from e
            if 400 <= status < 500:
                raise BadRequestError(f"Bad request: {message}", status_code=status) from e
            raise TransientError(f"Gateway error {status}: {message}", status_code=status) from e
        except httpx.RequestError as e:
            logger.error("gateway_request_error | path=%s error=%s", path, e)
            raise TransientError(f"Gateway request failed: {e}") from e

    def _dlmm_path(self, action: str) -> str:
        return f"connectors/{self.dlmm_connector}/{action}"

    # ==================== Wallet ====================

    async def get_balance(self, asset: Optional[str] = None) -> Decimal:
        token = asset or self.native_symbol
        request = BalancesRequest(network=self.network, address=self.wallet_address, tokens=[token])
        data = await self._request("POST", f"chains/{self.chain}/balances", json=_json_payload(request))
        balances = BalancesResponse.model_validate(data).balances
        return balances.get(token, Decimal("0"))

    # ==================== Pools ====================

    async def get_pools(self, asset_a: str, asset_b: str) -> List[PoolCandidate]:
        return await self.meteora_api.get_pools(asset_a, asset_b)

    async def get_bin_step(self, pool_address: str) -> int:
        return await self.meteora_api.get_bin_step(pool_address)

    async def get_pool_info(self, pool_address: str) -> DLMMPoolInfoResponse:
        data = await self._request(
            "GET",
            self._dlmm_path("pool-info"),
            params={"network": self.network, "poolAddress": pool_address},
        )
        return DLMMPoolInfoResponse.model_validate(data)

    async def get_active_bin(self, pool_address: str) -> ActiveBin:
        info = await self.get_pool_info(pool_address)
        if info.active_bin_id is None:
            raise TransientError(f"Pool info for {pool_address} has no active bin")
        return ActiveBin(bin_id=info.active_bin_id, price_per_token=info.price)

    # ==================== Positions ====================

    async def _positions_owned(self, pool_address: Optional[str] = None) -> List[DLMMPositionInfo]:
        params = {"network": self.network, "walletAddress": self.wallet_address}
        if pool_address:
            params["poolAddress"] = pool_address
        data = await self._request("GET", self._dlmm_path("positions-owned"), params=params)
        if isinstance(data, dict):
            data = data.get("positions", [])
        return [DLMMPositionInfo.model_validate(item) for item in data or []]

    async def get_positions(self) -> List[OpenPosition]:
        return [self._to_open_position(p) for p in await self._positions_owned()]

    async def get_positions_from_pool(self, pool_address: str) -> List[OpenPosition]:
        return [self._to_open_position(p) for p in await self._positions_owned(pool_address)]

    @staticmethod
    def _to_open_position(info: DLMMPositionInfo) -> OpenPosition:
        return OpenPosition(
            pool_address=info.pool_address,
            lower_bin_id=info.lower_bin_id,
            upper_bin_id=info.upper_bin_id,
            position_address=info.address,
        )

    async def add_liquidity(
        self,
        pool_address: str,
        amount_a: Decimal,
        amount_b: Decimal,
        range_interval: int,
    ) -> Optional[OpenPosition]:
        info = await self.get_pool_info(pool_address)
        if info.bin_step is None or info.active_bin_id is None:
            raise TransientError(f"Pool info for {pool_address} has no bin data")
        lower_price, upper_price = RangeCalculator.price_bounds(info.price, info.bin_step, range_interval)
        request = DLMMOpenPositionRequest(
            network=self.network,
            wallet_address=self.wallet_address,
            pool_address=pool_address,
            lower_price=lower_price,
            upper_price=upper_price,
            base_token_amount=amount_a,
            quote_token_amount=amount_b,
            slippage_pct=self.slippage_pct,
        )
        data = await self._request("POST", self._dlmm_path("open-position"), json=_json_payload(request))
        opened = DLMMOpenPositionResponse.model_validate(_unwrap(data))
        logger.info(
            "position_open_submitted | pool=%s position=%s lower=%s upper=%s",
            pool_address,
            opened.position_address,
            lower_price,
            upper_price,
        )
        return OpenPosition(
            pool_address=pool_address,
            lower_bin_id=info.active_bin_id - range_interval,
            upper_bin_id=info.active_bin_id + range_interval,
            position_address=opened.position_address,
        )

    async def remove_liquidity(self, pool_address: str, close_position: bool = True) -> LiquidityRemoval:
        positions = await self._positions_owned(pool_address)
        if not positions:
            raise PositionNotFoundError("No positions found in this pool")

        removed_a = removed_b = fees_a = fees_b = Decimal("0")
        for position in positions:
            if close_position:
                request = DLMMClosePositionRequest(
                    network=self.network,
                    wallet_address=self.wallet_address,
                    position_address=position.address,
                )
                action = "close-position"
            else:
                request = DLMMRemoveLiquidityRequest(
                    network=self.network,
                    wallet_address=self.wallet_address,
                    position_address=position.address,
                )
                action = "remove-liquidity"
            data = await self._request("POST", self._dlmm_path(action), json=_json_payload(request))
            result = DLMMClosePositionResponse.model_validate(_unwrap(data))
            removed_a += result.base_token_amount_removed
            removed_b += result.quote_token_amount_removed
            fees_a += result.base_fee_amount_collected
            fees_b += result.quote_fee_amount_collected

        return LiquidityRemoval(liquidity_removed=(removed_a, removed_b), fees_claimed=(fees_a, fees_b))

    # ==================== Swaps ====================

    async def swap(self, from_asset: str, to_asset: str, amount: Decimal) -> Decimal:
        request = SwapExecuteRequest(
            network=self.network,
            wallet_address=self.wallet_address,
            base_token=from_asset,
            quote_token=to_asset,
            amount=amount,
            side="SELL",
            slippage_pct=self.slippage_pct,
        )
        data = await self._request(
            "POST",
            f"connectors/{self.router_connector}/execute-swap",
            json=_json_payload(request),
        )
        result = SwapExecuteResponse.model_validate(_unwrap(data))
        logger.info("swap_executed | sold=%s %s received=%s %s", amount, from_asset, result.amount_out, to_asset)
        return result.amount_out

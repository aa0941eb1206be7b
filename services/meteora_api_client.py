"""Client for the public Meteora DLMM API (pool discovery and bin-step lookups)."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from controllers.dlmm_lp_domain.components import PoolCandidate
from controllers.dlmm_lp_domain.errors import BadRequestError, PoolNotFoundError, TransientError
from models.gateway_dlmm import DLMMPairItem, DLMMPairListResponse

logger = logging.getLogger(__name__)


class MeteoraApiClient:
    """Read-only access to ``dlmm-api.meteora.ag``."""

    max_pages = 10

    def __init__(
        self,
        base_url: str = "https://dlmm-api.meteora.ag",
        *,
        timeout: float = 15.0,
        page_size: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

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

    async def _request(self, method: str, path: str, params: Optional[Dict] = None) -> Any:
        try:
            response = await self.client.request(method, path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("dlmm_api_http_error | path=%s status=%s body=%s", path, status, e.response.text)
            if status == 404:
                raise PoolNotFoundError(f"Pool not found: {path}", status_code=status) from e
            if 400 <= status < 500:
                raise BadRequestError(f"Bad request: {e.response.text}", status_code=status) from e
            raise TransientError(f"DLMM API error {status}", status_code=status) from e
        except httpx.RequestError as e:
            logger.error("dlmm_api_request_error | path=%s error=%s", path, e)
            raise TransientError(f"DLMM API request failed: {e}") from e

    async def get_bin_step(self, pool_address: str) -> int:
        data = await self._request("GET", f"/pair/{pool_address}")
        return DLMMPairItem.model_validate(data).bin_step

    async def list_pairs(self, search_term: str) -> List[DLMMPairItem]:
        pairs: List[DLMMPairItem] = []
        for page in range(self.max_pages):
            data = await self._request(
                "GET",
                "/pair/all_with_pagination",
                params={"search_term": search_term, "page": page, "limit": self.page_size},
            )
            listing = DLMMPairListResponse.model_validate(data)
            pairs.extend(listing.pairs)
            if not listing.pairs or len(pairs) >= listing.total:
                break
        return pairs

    async def get_pools(self, asset_a: str, asset_b: str) -> List[PoolCandidate]:
        """Pools trading ``asset_a``/``asset_b`` in that order, matched by mint or by name.

        Asset A must be the pool's X (base) token: prices and deposit amounts are
        passed through unconverted, so reversed pools are skipped.
        """
        wanted = (asset_a.upper(), asset_b.upper())
        candidates = []
        for pair in await self.list_pairs(f"{asset_a}-{asset_b}"):
            if pair.hide or pair.is_blacklisted:
                continue
            mints = (pair.mint_x.upper(), pair.mint_y.upper())
            names = tuple(part.strip().upper() for part in pair.name.split("-"))
            if mints != wanted and names != wanted:
                if set(mints) == set(wanted) or set(names) == set(wanted):
                    logger.info("pool_order_inverted_skipped | pool=%s name=%s", pair.address, pair.name)
                continue
            candidates.append(
                PoolCandidate(
                    address=pair.address,
                    bin_step=pair.bin_step,
                    trade_volume_24h=pair.trade_volume_24h,
                    name=pair.name,
                )
            )
        logger.info("pools_listed | pair=%s-%s candidates=%d", asset_a, asset_b, len(candidates))
        return candidates

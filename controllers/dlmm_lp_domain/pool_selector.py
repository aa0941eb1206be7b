import logging
from decimal import Decimal
from typing import Iterable, Optional

from .components import AssetPair, PoolCandidate
from .io import ProtocolClient
from .range_calculator import RangeCalculator
from .retry import RetryExecutor


class PoolSelector:
    _logger: Optional[logging.Logger] = None

    @classmethod
    def logger(cls) -> logging.Logger:
        if cls._logger is None:
            cls._logger = logging.getLogger(__name__)
        return cls._logger

    def __init__(
        self,
        *,
        protocol: ProtocolClient,
        retry: RetryExecutor,
        range_per_side: Decimal,
        max_bins_per_side: int,
    ) -> None:
        self._protocol = protocol
        self._retry = retry
        self._range_per_side = Decimal(str(range_per_side))
        self._max_bins_per_side = max_bins_per_side

    def min_bin_step(self) -> int:
        return RangeCalculator.min_bin_step(self._range_per_side, self._max_bins_per_side)

    @staticmethod
    def pick(candidates: Iterable[PoolCandidate], min_bin_step: int) -> Optional[PoolCandidate]:
        # Highest 24h volume wins; on ties the first candidate seen is kept.
        best: Optional[PoolCandidate] = None
        for candidate in candidates:
            if candidate.bin_step < min_bin_step:
                continue
            if best is None or candidate.trade_volume_24h > best.trade_volume_24h:
                best = candidate
        return best

    async def select_pool(self, pair: AssetPair, min_bin_step: Optional[int] = None) -> Optional[PoolCandidate]:
        if min_bin_step is None:
            min_bin_step = self.min_bin_step()
        candidates = await self._retry.retry(
            lambda: self._protocol.get_pools(pair.asset_a, pair.asset_b),
            label="get_pools",
        )
        pool = self.pick(candidates, min_bin_step)
        if pool is None:
            self.logger().warning(
                "pool_not_found | pair=%s min_bin_step=%d candidates=%d",
                pair,
                min_bin_step,
                len(candidates),
            )
            return None
        self.logger().info(
            "pool_selected | pair=%s address=%s bin_step=%d volume_24h=%s",
            pair,
            pool.address,
            pool.bin_step,
            pool.trade_volume_24h,
        )
        return pool

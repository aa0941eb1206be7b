from decimal import Decimal
from math import ceil
from typing import Tuple

BPS = Decimal("10000")


class RangeCalculator:
    """Bin arithmetic for a position spanning ``range_per_side`` on each side of the price.

    A position may cover at most ``max_bins_per_side`` bins per side, so the
    configured width dictates the finest pool granularity that can express it.
    """

    @staticmethod
    def min_bin_step(range_per_side: Decimal, max_bins_per_side: int) -> int:
        if max_bins_per_side <= 0:
            raise ValueError(f"max_bins_per_side must be positive, got {max_bins_per_side}")
        return int(ceil(Decimal(str(range_per_side)) * BPS / Decimal(max_bins_per_side)))

    @staticmethod
    def bins_per_side(range_per_side: Decimal, bin_step: int, max_bins_per_side: int) -> int:
        if bin_step <= 0:
            raise ValueError(f"bin_step must be positive, got {bin_step}")
        wanted = int(ceil(Decimal(str(range_per_side)) * BPS / Decimal(bin_step)))
        return min(wanted, max_bins_per_side)

    @staticmethod
    def price_bounds(price: Decimal, bin_step: int, bins_per_side: int) -> Tuple[Decimal, Decimal]:
        if price <= 0:
            raise ValueError(f"price must be positive, got {price}")
        if bin_step <= 0:
            raise ValueError(f"bin_step must be positive, got {bin_step}")
        factor = (Decimal("1") + Decimal(bin_step) / BPS) ** bins_per_side
        return price / factor, price * factor

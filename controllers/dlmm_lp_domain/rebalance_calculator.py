from decimal import Decimal
from enum import Enum

from .components import AssetPair, RebalancePlan, SwapDirection, UsableBalances


class MinSwapPolicy(str, Enum):
    # Surplus below the minimum is left in place and re-evaluated on the next rebalance.
    SKIP = "skip"
    # No minimum: any positive surplus is swapped.
    SWAP = "swap"


class RebalanceCalculator:
    """Swap needed to bring the pair to an even value split, priced in asset B."""

    def __init__(
        self,
        *,
        pair: AssetPair,
        min_swap_value: Decimal = Decimal("0"),
        policy: MinSwapPolicy = MinSwapPolicy.SKIP,
    ) -> None:
        self._pair = pair
        self._min_swap_value = max(Decimal("0"), Decimal(str(min_swap_value)))
        self._policy = MinSwapPolicy(policy)

    def compute_rebalance(self, balances: UsableBalances, price: Decimal) -> RebalancePlan:
        price = Decimal(str(price))
        if price <= 0:
            raise ValueError(f"price must be positive, got {price}")
        balance_a, balance_b = self._pair.amounts(balances)

        total_value = balance_a * price + balance_b
        target_value_each = total_value / 2
        target_a = target_value_each / price
        target_b = target_value_each

        # Both assets cannot be in surplus of an even split, so at most one branch applies.
        if balance_a > target_a:
            direction = SwapDirection.SELL_A_FOR_B
            amount = balance_a - target_a
            value_b = amount * price
        elif balance_b > target_b:
            direction = SwapDirection.SELL_B_FOR_A
            amount = balance_b - target_b
            value_b = amount
        else:
            return RebalancePlan(
                direction=SwapDirection.NONE,
                amount=Decimal("0"),
                value_b=Decimal("0"),
                target_a=target_a,
                target_b=target_b,
            )

        if self._policy == MinSwapPolicy.SKIP and value_b < self._min_swap_value:
            return RebalancePlan(
                direction=SwapDirection.NONE,
                amount=amount,
                value_b=value_b,
                target_a=target_a,
                target_b=target_b,
                gated=True,
            )
        return RebalancePlan(
            direction=direction,
            amount=amount,
            value_b=value_b,
            target_a=target_a,
            target_b=target_b,
        )

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from .errors import ConfigurationError

UsableBalances = Dict[str, Decimal]


class ControllerState(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    HAS_POSITION = "HAS_POSITION"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    REPOSITIONING = "REPOSITIONING"


class SwapDirection(str, Enum):
    NONE = "none"
    SELL_A_FOR_B = "sell_a_for_b"
    SELL_B_FOR_A = "sell_b_for_a"


class AlertType(str, Enum):
    LOSS = "LOSS"
    PERFORMANCE_REPORT = "PERFORMANCE_REPORT"
    ERROR = "ERROR"
    WARNING = "WARNING"


@dataclass(frozen=True)
class AssetPair:
    asset_a: str
    asset_b: str
    asset_a_native: bool = False
    asset_b_native: bool = False

    def __post_init__(self) -> None:
        if not self.asset_a or not self.asset_b:
            raise ConfigurationError("Both pair assets must be set")
        if self.asset_a_native and self.asset_b_native:
            raise ConfigurationError(
                f"At most one pair asset may be native, got {self.asset_a} and {self.asset_b}"
            )

    @property
    def native_asset(self) -> Optional[str]:
        if self.asset_a_native:
            return self.asset_a
        if self.asset_b_native:
            return self.asset_b
        return None

    def is_native(self, asset: str) -> bool:
        return asset == self.native_asset

    def amounts(self, balances: UsableBalances) -> Tuple[Decimal, Decimal]:
        return (
            balances.get(self.asset_a, Decimal("0")),
            balances.get(self.asset_b, Decimal("0")),
        )

    def __str__(self) -> str:
        return f"{self.asset_a}-{self.asset_b}"


@dataclass(frozen=True)
class WorkingPool:
    """The pool in use and the bin range of the position held in it.

    Replaced as a whole on every reposition; never mutated in place.
    """

    address: str
    bin_step: int
    lower_bin_id: int
    upper_bin_id: int

    def contains(self, bin_id: int) -> bool:
        return self.lower_bin_id <= bin_id <= self.upper_bin_id


@dataclass(frozen=True)
class PoolCandidate:
    address: str
    bin_step: int
    trade_volume_24h: Decimal = Decimal("0")
    name: str = ""


@dataclass(frozen=True)
class ActiveBin:
    bin_id: int
    price_per_token: Decimal


@dataclass(frozen=True)
class OpenPosition:
    pool_address: str
    lower_bin_id: int
    upper_bin_id: int
    position_address: str = ""


@dataclass(frozen=True)
class LiquidityRemoval:
    liquidity_removed: Tuple[Decimal, Decimal]
    fees_claimed: Tuple[Decimal, Decimal]


@dataclass(frozen=True)
class RebalancePlan:
    direction: SwapDirection
    amount: Decimal
    value_b: Decimal
    target_a: Decimal
    target_b: Decimal
    gated: bool = False

    @property
    def should_swap(self) -> bool:
        return self.direction != SwapDirection.NONE and self.amount > 0

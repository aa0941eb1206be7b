import logging
from decimal import Decimal
from typing import List, Optional, Protocol

from .components import (
    ActiveBin,
    AlertType,
    AssetPair,
    LiquidityRemoval,
    OpenPosition,
    PoolCandidate,
    UsableBalances,
)
from .errors import InsufficientNativeBalanceError
from .retry import RetryExecutor


class Wallet(Protocol):
    async def get_balance(self, asset: Optional[str] = None) -> Decimal:
        ...


class ProtocolClient(Protocol):
    async def get_pools(self, asset_a: str, asset_b: str) -> List[PoolCandidate]:
        ...

    async def get_bin_step(self, pool_address: str) -> int:
        ...

    async def get_positions(self) -> List[OpenPosition]:
        ...

    async def get_positions_from_pool(self, pool_address: str) -> List[OpenPosition]:
        ...

    async def get_active_bin(self, pool_address: str) -> ActiveBin:
        ...

    async def add_liquidity(
        self,
        pool_address: str,
        amount_a: Decimal,
        amount_b: Decimal,
        range_interval: int,
    ) -> Optional[OpenPosition]:
        ...

    async def remove_liquidity(self, pool_address: str, close_position: bool = True) -> LiquidityRemoval:
        ...


class SwapService(Protocol):
    async def swap(self, from_asset: str, to_asset: str, amount: Decimal) -> Decimal:
        ...


class AlertSink(Protocol):
    async def send_alert(self, kind: AlertType, message: str) -> None:
        ...


class ActionLogger(Protocol):
    def log_action(self, action: str) -> None:
        ...

    def log_balances(self, amount_a: Decimal, amount_b: Decimal, prefix: str) -> None:
        ...

    def log_current_price(self, price: Decimal) -> None:
        ...

    def log_total_worth(self, amount_a: Decimal, amount_b: Decimal, price: Decimal) -> None:
        ...


class BalanceProvider:
    """Usable balances for the tracked pair, never cached between calls.

    The native asset is reported net of the configured fee buffer so that
    swaps and liquidity adds always leave enough to pay for transactions.
    """

    _logger: Optional[logging.Logger] = None

    @classmethod
    def logger(cls) -> logging.Logger:
        if cls._logger is None:
            cls._logger = logging.getLogger(__name__)
        return cls._logger

    def __init__(
        self,
        *,
        wallet: Wallet,
        pair: AssetPair,
        fee_buffer: Decimal,
        retry: Optional[RetryExecutor] = None,
    ) -> None:
        self._wallet = wallet
        self._pair = pair
        self._fee_buffer = max(Decimal("0"), Decimal(str(fee_buffer)))
        self._retry = retry

    @property
    def fee_buffer(self) -> Decimal:
        return self._fee_buffer

    async def usable_balances(self, pair: Optional[AssetPair] = None) -> UsableBalances:
        pair = pair or self._pair
        balances: UsableBalances = {}
        for asset in (pair.asset_a, pair.asset_b):
            raw = await self._raw_balance(None if pair.is_native(asset) else asset)
            if pair.is_native(asset):
                balances[asset] = max(Decimal("0"), raw - self._fee_buffer)
            else:
                balances[asset] = raw
        return balances

    async def raw_native_balance(self) -> Decimal:
        return await self._raw_balance(None)

    async def verify_fee_buffer(self) -> Decimal:
        raw = await self.raw_native_balance()
        if raw < self._fee_buffer:
            self.logger().error(
                "native_balance_below_buffer | balance=%s buffer=%s",
                raw,
                self._fee_buffer,
            )
            raise InsufficientNativeBalanceError(
                "Insufficient native token balance for transaction and position creation fees: "
                f"have {raw}, need at least {self._fee_buffer}"
            )
        return raw

    async def _raw_balance(self, asset: Optional[str]) -> Decimal:
        if self._retry is None:
            value = await self._wallet.get_balance(asset)
        else:
            value = await self._retry.retry(
                lambda: self._wallet.get_balance(asset),
                label=f"get_balance:{asset or 'native'}",
            )
        return Decimal(str(value or 0))

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from .components import (
    ActiveBin,
    AlertType,
    AssetPair,
    ControllerState,
    LiquidityRemoval,
    OpenPosition,
    RebalancePlan,
    SwapDirection,
    WorkingPool,
)
from .errors import ErrorKind, PositionNotFoundError, TransientError, classify_error
from .io import ActionLogger, AlertSink, BalanceProvider, ProtocolClient, SwapService, Wallet
from .pool_selector import PoolSelector
from .range_calculator import RangeCalculator
from .rebalance_calculator import MinSwapPolicy, RebalanceCalculator
from .retry import RetryExecutor, Sleep

# Require operator action; everything else is absorbed so the loop keeps polling.
FATAL_KINDS = frozenset({ErrorKind.INSUFFICIENT_NATIVE_BALANCE, ErrorKind.CONFIGURATION})


class PositionController:
    """Keeps a single DLMM position centered on the active price.

    The stored ``WorkingPool`` is the only mutable state. It is replaced as a
    whole after every reposition and re-derived from on-chain positions at
    cold start, so nothing needs to be persisted across restarts.
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
        pair: AssetPair,
        balance_provider: BalanceProvider,
        protocol: ProtocolClient,
        swap_service: SwapService,
        alert_sink: AlertSink,
        action_logger: ActionLogger,
        retry: RetryExecutor,
        pool_selector: PoolSelector,
        rebalance_calculator: RebalanceCalculator,
        range_per_side: Decimal,
        max_bins_per_side: int = 34,
        settle_delay_sec: float = 5.0,
        position_lookup_attempts: int = 2,
        loss_threshold: Decimal = Decimal("-0.02"),
        sleep: Optional[Sleep] = None,
    ) -> None:
        self._pair = pair
        self._balances = balance_provider
        self._protocol = protocol
        self._swap_service = swap_service
        self._alert_sink = alert_sink
        self._action_logger = action_logger
        self._retry = retry
        self._pool_selector = pool_selector
        self._rebalance_calculator = rebalance_calculator
        self._range_per_side = Decimal(str(range_per_side))
        self._max_bins_per_side = max_bins_per_side
        self._settle_delay_sec = max(0.0, float(settle_delay_sec))
        self._position_lookup_attempts = max(1, int(position_lookup_attempts))
        self._loss_threshold = Decimal(str(loss_threshold))
        self._sleep = sleep or asyncio.sleep

        self._state = ControllerState.UNINITIALIZED
        self._working_pool: Optional[WorkingPool] = None
        self._last_total_worth: Optional[Decimal] = None

    @classmethod
    def from_settings(
        cls,
        settings,
        *,
        wallet: Wallet,
        protocol: ProtocolClient,
        swap_service: SwapService,
        alert_sink: AlertSink,
        action_logger: ActionLogger,
        sleep: Optional[Sleep] = None,
    ) -> "PositionController":
        pair = settings.asset_pair()
        retry = RetryExecutor(
            max_attempts=settings.retry_attempts,
            delay_sec=settings.retry_delay_sec,
            sleep=sleep,
        )
        return cls(
            pair=pair,
            balance_provider=BalanceProvider(
                wallet=wallet,
                pair=pair,
                fee_buffer=settings.native_fee_buffer,
                retry=retry,
            ),
            protocol=protocol,
            swap_service=swap_service,
            alert_sink=alert_sink,
            action_logger=action_logger,
            retry=retry,
            pool_selector=PoolSelector(
                protocol=protocol,
                retry=retry,
                range_per_side=settings.position_range_per_side,
                max_bins_per_side=settings.max_bins_per_side,
            ),
            rebalance_calculator=RebalanceCalculator(
                pair=pair,
                min_swap_value=settings.min_swap_value,
                policy=MinSwapPolicy(settings.min_swap_policy),
            ),
            range_per_side=settings.position_range_per_side,
            max_bins_per_side=settings.max_bins_per_side,
            settle_delay_sec=settings.settle_delay_sec,
            position_lookup_attempts=settings.position_lookup_attempts,
            loss_threshold=settings.alert.loss_threshold,
            sleep=sleep,
        )

    @property
    def pair(self) -> AssetPair:
        return self._pair

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def working_pool(self) -> Optional[WorkingPool]:
        return self._working_pool

    @property
    def last_total_worth(self) -> Optional[Decimal]:
        return self._last_total_worth

    @property
    def balance_provider(self) -> BalanceProvider:
        return self._balances

    async def load_initial_state(self) -> bool:
        """Adopt the wallet's open position, or create one when there is none.

        Returns True when a new position was opened and False otherwise,
        including when no eligible pool exists for the pair.
        """
        await self._balances.verify_fee_buffer()
        positions = await self._retry.retry(self._protocol.get_positions, label="get_positions")

        if positions:
            position = positions[0]
            bin_step = await self._resolve_bin_step(position.pool_address)
            self._working_pool = WorkingPool(
                address=position.pool_address,
                bin_step=bin_step,
                lower_bin_id=position.lower_bin_id,
                upper_bin_id=position.upper_bin_id,
            )
            self._action_logger.log_action(
                f"Adopted existing position in pool {position.pool_address} "
                f"bins [{position.lower_bin_id}, {position.upper_bin_id}]"
            )
            self._transition(ControllerState.HAS_POSITION, reason="position_adopted")
            return False

        min_bin_step = self._pool_selector.min_bin_step()
        pool = await self._pool_selector.select_pool(self._pair, min_bin_step)
        if pool is None:
            await self._alert(
                AlertType.ERROR,
                f"No pool found for {self._pair} with bin step >= {min_bin_step}",
            )
            return False

        self._transition(ControllerState.REPOSITIONING, reason="cold_start")
        await self._rebalance(pool.address)
        self._working_pool = await self._add_liquidity(pool.address, pool.bin_step)
        self._transition(ControllerState.HAS_POSITION, reason="position_created")
        return True

    async def optimize(self) -> bool:
        """Run one tick. Returns True when the position was moved."""
        try:
            pool = self._working_pool
            if pool is None:
                raise PositionNotFoundError("No positions found in this pool")
            active = await self._active_bin(pool.address)
            if pool.contains(active.bin_id):
                self.logger().debug(
                    "in_range | pool=%s active_bin=%d range=[%d, %d]",
                    pool.address,
                    active.bin_id,
                    pool.lower_bin_id,
                    pool.upper_bin_id,
                )
                self._transition(ControllerState.HAS_POSITION, reason="in_range")
                return False
            self._transition(ControllerState.OUT_OF_RANGE, reason=f"active_bin={active.bin_id}")
            await self._reposition(pool)
            return True
        except Exception as exc:
            kind = classify_error(exc)
            if kind == ErrorKind.POSITION_NOT_FOUND:
                await self._recover(exc)
                return False
            if self._state == ControllerState.REPOSITIONING:
                self._transition(ControllerState.OUT_OF_RANGE, reason="reposition_failed")
            self.logger().error("optimize_failed | kind=%s error=%s", kind.value, exc, exc_info=True)
            await self._alert(AlertType.ERROR, f"In optimize: {exc}")
            if kind in FATAL_KINDS:
                raise
            return False

    async def current_total_worth(self) -> Optional[Decimal]:
        """Usable balances valued at the working pool's price, in asset B terms."""
        pool = self._working_pool
        if pool is None:
            return self._last_total_worth
        balances = await self._balances.usable_balances()
        active = await self._active_bin(pool.address)
        amount_a, amount_b = self._pair.amounts(balances)
        return amount_a * active.price_per_token + amount_b

    async def _reposition(self, pool: WorkingPool) -> None:
        self._transition(ControllerState.REPOSITIONING, reason="out_of_range")
        await self._remove_liquidity(pool.address)
        await self._balances.verify_fee_buffer()
        await self._rebalance(pool.address)
        self._working_pool = await self._add_liquidity(pool.address, pool.bin_step)
        self._transition(ControllerState.HAS_POSITION, reason="repositioned")

    async def _recover(self, exc: Exception) -> None:
        self.logger().warning("position_missing | error=%s", exc)
        await self._alert(AlertType.WARNING, f"Position not found, re-running cold start: {exc}")
        self._working_pool = None
        self._transition(ControllerState.UNINITIALIZED, reason="position_missing")
        try:
            await self.load_initial_state()
        except Exception as recovery_exc:
            kind = classify_error(recovery_exc)
            self.logger().error("recovery_failed | kind=%s error=%s", kind.value, recovery_exc, exc_info=True)
            await self._alert(AlertType.ERROR, f"In optimize: recovery failed: {recovery_exc}")
            if kind in FATAL_KINDS:
                raise

    async def _resolve_bin_step(self, pool_address: str) -> int:
        try:
            return await self._retry.retry(
                lambda: self._protocol.get_bin_step(pool_address),
                label="get_bin_step",
            )
        except Exception as exc:
            await self._alert(AlertType.ERROR, f"Could not get bin step for pool {pool_address}: {exc}")
            raise

    async def _active_bin(self, pool_address: str) -> ActiveBin:
        return await self._retry.retry(
            lambda: self._protocol.get_active_bin(pool_address),
            label="get_active_bin",
        )

    async def _remove_liquidity(self, pool_address: str) -> LiquidityRemoval:
        removal = await self._retry.retry(
            lambda: self._protocol.remove_liquidity(pool_address, True),
            label="remove_liquidity",
        )
        self._action_logger.log_balances(*removal.liquidity_removed, "Liquidity removed from pool")
        self._action_logger.log_balances(*removal.fees_claimed, "Rewards claimed")
        await self._sleep(self._settle_delay_sec)

        amount_a, amount_b = self._pair.amounts(await self._balances.usable_balances())
        self._action_logger.log_action(
            f"Withdrew liquidity and rewards from pool {pool_address}. "
            f"Usable balances: {self._pair.asset_a}={amount_a}, {self._pair.asset_b}={amount_b}"
        )
        return removal

    async def _rebalance(self, pool_address: str) -> RebalancePlan:
        balances = await self._balances.usable_balances()
        price = (await self._active_bin(pool_address)).price_per_token
        plan = self._rebalance_calculator.compute_rebalance(balances, price)

        if plan.should_swap:
            if plan.direction == SwapDirection.SELL_A_FOR_B:
                from_asset, to_asset = self._pair.asset_a, self._pair.asset_b
            else:
                from_asset, to_asset = self._pair.asset_b, self._pair.asset_a
            received = await self._retry.retry(
                lambda: self._swap_service.swap(from_asset, to_asset, plan.amount),
                label="swap",
            )
            self._action_logger.log_action(f"Swapped {plan.amount} {from_asset} for {received} {to_asset}")
            await self._sleep(self._settle_delay_sec)
        elif plan.gated:
            self.logger().info(
                "swap_skipped | amount=%s value=%s min_value_policy=skip",
                plan.amount,
                plan.value_b,
            )

        self._action_logger.log_current_price(price)
        amount_a, amount_b = self._pair.amounts(await self._balances.usable_balances())
        self._action_logger.log_total_worth(amount_a, amount_b, price)
        await self._track_worth(amount_a * price + amount_b)
        return plan

    async def _add_liquidity(self, pool_address: str, bin_step: int) -> WorkingPool:
        await self._balances.verify_fee_buffer()
        amount_a, amount_b = self._pair.amounts(await self._balances.usable_balances())
        range_interval = RangeCalculator.bins_per_side(self._range_per_side, bin_step, self._max_bins_per_side)
        opened = await self._retry.retry(
            lambda: self._protocol.add_liquidity(pool_address, amount_a, amount_b, range_interval),
            label="add_liquidity",
        )
        self._action_logger.log_balances(amount_a, amount_b, "Liquidity added to pool")

        position = await self._lookup_position(pool_address, opened)
        self.logger().info(
            "position_opened | pool=%s bin_step=%d interval=%d range=[%d, %d]",
            pool_address,
            bin_step,
            range_interval,
            position.lower_bin_id,
            position.upper_bin_id,
        )
        return WorkingPool(
            address=pool_address,
            bin_step=bin_step,
            lower_bin_id=position.lower_bin_id,
            upper_bin_id=position.upper_bin_id,
        )

    async def _lookup_position(self, pool_address: str, opened: Optional[OpenPosition]) -> OpenPosition:
        """Read back the position just opened, falling back to the range ``add_liquidity`` reported.

        Never raises ``PositionNotFoundError``: liquidity is already on chain and
        must not be re-added by cold-start recovery.
        """
        for attempt in range(self._position_lookup_attempts):
            positions = await self._retry.retry(
                lambda: self._protocol.get_positions_from_pool(pool_address),
                label="get_positions_from_pool",
            )
            if positions:
                return positions[0]
            if attempt < self._position_lookup_attempts - 1:
                await self._sleep(self._settle_delay_sec)
        if opened is not None:
            self.logger().warning(
                "position_readback_empty | pool=%s using_submitted_range=[%d, %d]",
                pool_address,
                opened.lower_bin_id,
                opened.upper_bin_id,
            )
            return opened
        raise TransientError(f"Position read-back empty after add in pool {pool_address}")

    async def _track_worth(self, total_worth: Decimal) -> None:
        previous = self._last_total_worth
        self._last_total_worth = total_worth
        if previous is None or previous <= 0:
            return
        change = (total_worth - previous) / previous
        if change <= self._loss_threshold:
            await self._alert(
                AlertType.LOSS,
                f"Total worth dropped {change:.2%} from {previous} to {total_worth} {self._pair.asset_b}",
            )

    async def _alert(self, kind: AlertType, message: str) -> None:
        try:
            await self._alert_sink.send_alert(kind, message)
        except Exception:
            self.logger().error("alert_failed | kind=%s message=%s", kind.value, message, exc_info=True)

    def _transition(self, state: ControllerState, *, reason: str) -> None:
        if state == self._state:
            return
        self.logger().info(
            "state_transition | pair=%s from=%s to=%s reason=%s",
            self._pair,
            self._state.value,
            state.value,
            reason,
        )
        self._state = state

"""Fixed-cadence driver for ``PositionController.optimize``.

Ticks never overlap: the next wait starts only after the current tick,
including any reposition and its retries, has returned.
"""
import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable, Optional

from controllers.dlmm_lp_domain.errors import ErrorKind, classify_error
from controllers.dlmm_lp_domain.io import AlertSink
from services.alerts import send_performance_report

logger = logging.getLogger(__name__)


class OptimizationLoop:
    def __init__(
        self,
        controller,
        *,
        poll_interval_sec: float = 10.0,
        startup_delay_sec: float = 10.0,
        report_interval_sec: float = 0.0,
        alert_sink: Optional[AlertSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.controller = controller
        self.poll_interval_sec = max(0.0, float(poll_interval_sec))
        self.startup_delay_sec = max(0.0, float(startup_delay_sec))
        self.report_interval_sec = max(0.0, float(report_interval_sec))
        self.alert_sink = alert_sink
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._running = False
        self._ticks = 0
        self._last_report_ts: Optional[float] = None
        self._last_report_worth: Optional[Decimal] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ticks(self) -> int:
        return self._ticks

    def stop(self):
        """Stop between ticks; a tick in progress is allowed to finish."""
        self._stop_event.set()

    async def run(self):
        if self._running:
            raise RuntimeError("OptimizationLoop is already running")
        self._running = True
        logger.info(
            "OptimizationLoop started | interval=%ss startup_delay=%ss",
            self.poll_interval_sec,
            self.startup_delay_sec,
        )
        try:
            if await self._wait(self.startup_delay_sec):
                return
            self._last_report_ts = self._clock()
            self._last_report_worth = self.controller.last_total_worth
            while not self._stop_event.is_set():
                await self.run_once()
                await self._maybe_report()
                if await self._wait(self.poll_interval_sec):
                    break
        finally:
            self._running = False
            logger.info("OptimizationLoop stopped | ticks=%d", self._ticks)

    async def run_once(self) -> bool:
        self._ticks += 1
        try:
            changed = await self.controller.optimize()
        except Exception as e:
            if classify_error(e) == ErrorKind.BAD_REQUEST:
                logger.warning("tick_bad_request | tick=%d error=%s", self._ticks, e)
                return False
            logger.error("tick_failed | tick=%d error=%s", self._ticks, e, exc_info=True)
            raise
        if changed:
            logger.info("position_repositioned | tick=%d", self._ticks)
        return changed

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True when a stop was requested meanwhile."""
        if self._stop_event.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _maybe_report(self):
        if self.alert_sink is None or self.report_interval_sec <= 0:
            return
        now = self._clock()
        if self._last_report_ts is not None and now - self._last_report_ts < self.report_interval_sec:
            return
        try:
            current = await self.controller.current_total_worth()
            if current is None:
                return
            await send_performance_report(
                self.alert_sink,
                current,
                self._last_report_worth,
                unit=self.controller.pair.asset_b,
            )
        except Exception as e:
            logger.error("performance_report_failed | error=%s", e, exc_info=True)
            return
        self._last_report_ts = now
        self._last_report_worth = current

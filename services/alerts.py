"""Alert delivery for the optimizer.

Alerts are fire-and-forget notifications. ``LogAlertSink`` writes them to the
application log; other transports only need an async ``send_alert(kind, message)``.
"""
import logging
from decimal import Decimal
from typing import Optional

from controllers.dlmm_lp_domain.components import AlertType
from controllers.dlmm_lp_domain.io import AlertSink

logger = logging.getLogger(__name__)

_LEVELS = {
    AlertType.ERROR: logging.ERROR,
    AlertType.LOSS: logging.WARNING,
    AlertType.WARNING: logging.WARNING,
    AlertType.PERFORMANCE_REPORT: logging.INFO,
}


class LogAlertSink:
    def __init__(self, name: str = ""):
        self.name = name

    async def send_alert(self, kind: AlertType, message: str) -> None:
        prefix = f"[{self.name}] " if self.name else ""
        logger.log(_LEVELS.get(kind, logging.WARNING), "alert | type=%s message=%s%s", kind.value, prefix, message)


def worth_change(current: Decimal, previous: Optional[Decimal]) -> Optional[Decimal]:
    if previous is None or previous <= 0:
        return None
    return (current - previous) / previous


async def send_performance_report(
    sink: AlertSink,
    current: Decimal,
    previous: Optional[Decimal],
    *,
    unit: str = "",
) -> None:
    suffix = f" {unit}" if unit else ""
    change = worth_change(current, previous)
    if change is None:
        message = f"Total worth: {current}{suffix}"
    else:
        message = f"Total worth: {current}{suffix} ({change:+.2%} since previous report, was {previous}{suffix})"
    await sink.send_alert(AlertType.PERFORMANCE_REPORT, message)

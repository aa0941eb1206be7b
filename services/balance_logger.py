"""Append-only audit trail of balances, prices and actions."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional, Union

from controllers.dlmm_lp_domain.components import AssetPair

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalFileStorage:
    def __init__(self, path: Union[str, Path] = "logs/balances.log"):
        self.path = Path(path)

    def append(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line.rstrip("\n") + "\n")

    def read_lines(self) -> List[str]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return [line.rstrip("\n") for line in f if line.strip()]


class BalanceLogger:
    """ActionLogger writing ``[timestamp] text`` lines to local storage.

    Every entry is also emitted on the module logger so it shows up in the
    process output.
    """

    def __init__(
        self,
        pair: AssetPair,
        storage: Optional[LocalFileStorage] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.pair = pair
        self.storage = storage or LocalFileStorage()
        self._clock = clock

    def _write(self, text: str) -> None:
        line = f"[{self._clock().isoformat()}] {text}"
        self.storage.append(line)
        logger.info("balance_log | %s", text)

    def log_action(self, action: str) -> None:
        self._write(action)

    def log_balances(self, amount_a: Decimal, amount_b: Decimal, prefix: str) -> None:
        self._write(f"{prefix}  -  {self.pair.asset_a}: {amount_a}, {self.pair.asset_b}: {amount_b}")

    def log_current_price(self, price: Decimal) -> None:
        self._write(f"Current price: {price} {self.pair.asset_b} per {self.pair.asset_a}")

    def log_total_worth(self, amount_a: Decimal, amount_b: Decimal, price: Decimal) -> None:
        total = amount_a * price + amount_b
        self._write(
            f"Total worth: {total} {self.pair.asset_b} "
            f"({self.pair.asset_a}: {amount_a}, {self.pair.asset_b}: {amount_b})"
        )

    def get_last_n_lines(self, n: int) -> List[str]:
        if n <= 0:
            return []
        return self.storage.read_lines()[-n:]

    def get_logs_from_timestamp(self, since: datetime) -> List[str]:
        """Lines logged at or after ``since``. Naive datetimes are taken as UTC."""
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        result = []
        for line in self.storage.read_lines():
            logged_at = self._parse_timestamp(line)
            if logged_at is not None and logged_at >= since:
                result.append(line)
        return result

    @staticmethod
    def _parse_timestamp(line: str) -> Optional[datetime]:
        if not line.startswith("[") or "]" not in line:
            return None
        try:
            parsed = datetime.fromisoformat(line[1:line.index("]")])
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

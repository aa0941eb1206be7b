import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import ErrorKind, InsufficientFundsError, classify_error

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


class RetryExecutor:
    """Bounded retry with a fixed delay between attempts.

    An "insufficient funds" failure cannot be fixed by trying again, so it is
    raised on first sight as ``InsufficientFundsError``. Every other failure is
    treated as possibly transient and retried until the attempt budget is spent,
    after which the last error is raised unchanged.
    """

    _logger: Optional[logging.Logger] = None

    @classmethod
    def logger(cls) -> logging.Logger:
        if cls._logger is None:
            cls._logger = logging.getLogger(__name__)
        return cls._logger

    def __init__(self, *, max_attempts: int = 3, delay_sec: float = 1.0, sleep: Optional[Sleep] = None) -> None:
        self._max_attempts = max(1, int(max_attempts))
        self._delay_sec = max(0.0, float(delay_sec))
        self._sleep = sleep or asyncio.sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def retry(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        label: str = "operation",
        max_attempts: Optional[int] = None,
        delay_sec: Optional[float] = None,
    ) -> T:
        attempts = self._max_attempts if max_attempts is None else max(1, int(max_attempts))
        delay = self._delay_sec if delay_sec is None else max(0.0, float(delay_sec))
        last_error: Optional[BaseException] = None
        for attempt in range(attempts):
            try:
                return await operation()
            except Exception as exc:
                last_error = exc
                kind = classify_error(exc)
                self.logger().warning(
                    "attempt_failed | op=%s attempt=%d/%d kind=%s error=%s",
                    label,
                    attempt + 1,
                    attempts,
                    kind.value,
                    exc,
                )
                if kind == ErrorKind.INSUFFICIENT_FUNDS:
                    if isinstance(exc, InsufficientFundsError):
                        raise
                    raise InsufficientFundsError("Insufficient funds") from exc
                if attempt < attempts - 1:
                    await self._sleep(delay)
        raise last_error

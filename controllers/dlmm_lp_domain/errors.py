from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_NATIVE_BALANCE = "insufficient_native_balance"
    POSITION_NOT_FOUND = "position_not_found"
    POOL_NOT_FOUND = "pool_not_found"
    BAD_REQUEST = "bad_request"
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"


class OptimizerError(Exception):
    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str = "", *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InsufficientFundsError(OptimizerError):
    kind = ErrorKind.INSUFFICIENT_FUNDS


class InsufficientNativeBalanceError(OptimizerError):
    kind = ErrorKind.INSUFFICIENT_NATIVE_BALANCE


class PositionNotFoundError(OptimizerError):
    kind = ErrorKind.POSITION_NOT_FOUND


class PoolNotFoundError(OptimizerError):
    kind = ErrorKind.POOL_NOT_FOUND


class BadRequestError(OptimizerError):
    kind = ErrorKind.BAD_REQUEST


class ConfigurationError(OptimizerError):
    kind = ErrorKind.CONFIGURATION


class TransientError(OptimizerError):
    kind = ErrorKind.TRANSIENT


_ERROR_TYPES = {
    ErrorKind.INSUFFICIENT_FUNDS: InsufficientFundsError,
    ErrorKind.INSUFFICIENT_NATIVE_BALANCE: InsufficientNativeBalanceError,
    ErrorKind.POSITION_NOT_FOUND: PositionNotFoundError,
    ErrorKind.POOL_NOT_FOUND: PoolNotFoundError,
    ErrorKind.BAD_REQUEST: BadRequestError,
    ErrorKind.CONFIGURATION: ConfigurationError,
    ErrorKind.TRANSIENT: TransientError,
}

# Lower-cased snippets reported by third-party collaborators that do not raise tagged errors.
_MESSAGE_KINDS = (
    ("insufficient native token balance", ErrorKind.INSUFFICIENT_NATIVE_BALANCE),
    ("insufficient funds", ErrorKind.INSUFFICIENT_FUNDS),
    ("insufficient lamports", ErrorKind.INSUFFICIENT_FUNDS),
    ("no positions found", ErrorKind.POSITION_NOT_FOUND),
    ("position not found", ErrorKind.POSITION_NOT_FOUND),
    ("bad request", ErrorKind.BAD_REQUEST),
)


def kind_from_message(message: str) -> ErrorKind:
    lowered = (message or "").lower()
    for snippet, kind in _MESSAGE_KINDS:
        if snippet in lowered:
            return kind
    return ErrorKind.TRANSIENT


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, OptimizerError):
        return exc.kind
    return kind_from_message(str(exc))


def error_for_kind(kind: ErrorKind, message: str, *, status_code: Optional[int] = None) -> OptimizerError:
    return _ERROR_TYPES[kind](message, status_code=status_code)

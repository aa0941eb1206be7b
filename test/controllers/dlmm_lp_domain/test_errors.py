from controllers.dlmm_lp_domain.errors import (
    BadRequestError,
    ErrorKind,
    InsufficientFundsError,
    PositionNotFoundError,
    TransientError,
    classify_error,
    error_for_kind,
    kind_from_message,
)


def test_tagged_errors_keep_their_kind():
    assert classify_error(InsufficientFundsError("x")) == ErrorKind.INSUFFICIENT_FUNDS
    assert classify_error(PositionNotFoundError("x")) == ErrorKind.POSITION_NOT_FOUND
    # Tag wins over message text.
    assert classify_error(TransientError("insufficient funds mentioned")) == ErrorKind.TRANSIENT


def test_untagged_errors_are_classified_by_message():
    assert classify_error(RuntimeError("Transaction failed: Insufficient funds")) == ErrorKind.INSUFFICIENT_FUNDS
    assert classify_error(RuntimeError("insufficient lamports 100, need 200")) == ErrorKind.INSUFFICIENT_FUNDS
    assert classify_error(RuntimeError("No positions found in this pool")) == ErrorKind.POSITION_NOT_FOUND
    assert classify_error(ValueError("Bad request: invalid amount")) == ErrorKind.BAD_REQUEST
    assert classify_error(RuntimeError("socket hang up")) == ErrorKind.TRANSIENT


def test_native_balance_message_is_not_mistaken_for_funds():
    message = "Insufficient native token balance for transaction and position creation fees"
    assert kind_from_message(message) == ErrorKind.INSUFFICIENT_NATIVE_BALANCE


def test_error_for_kind_builds_matching_subclass():
    err = error_for_kind(ErrorKind.BAD_REQUEST, "Bad request: nope", status_code=400)

    assert isinstance(err, BadRequestError)
    assert err.kind == ErrorKind.BAD_REQUEST
    assert err.status_code == 400
    assert str(err) == "Bad request: nope"

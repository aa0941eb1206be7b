from decimal import Decimal, InvalidOperation
from typing import Any


def to_ratio(value: Any, *, field: str, allow_zero: bool = False) -> Decimal:
    """Convert a config value into a ratio (0-1).

    Policy:
    - Accept ratio inputs only. Example: 0.05 == 5%.
    - Reject percent-points inputs (> 1) to avoid ambiguity (e.g. 5 could mean 5%).
    """
    try:
        ratio = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field} must be a number, got {value!r}")

    if not ratio.is_finite():
        raise ValueError(f"{field} must be finite, got {value!r}")
    if ratio < 0 or (ratio == 0 and not allow_zero):
        raise ValueError(f"{field} must be > 0, got {value!r}")
    if ratio > 1:
        raise ValueError(
            f"Expected ratio in (0, 1] for {field} (e.g. 0.05 for 5%), got {value!r}."
        )
    return ratio

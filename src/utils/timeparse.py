"""Duration parsing for TTL and timeout settings."""

import re


_UNIT_MILLIS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$")


def time_to_millis(value: int | float | str) -> int:
    """Convert a duration to milliseconds.

    Bare numbers (and digit-only strings) are already milliseconds;
    strings may carry a unit suffix: ``ms``, ``s``, ``m``, ``h`` or ``d``.

    Args:
        value: Duration such as ``5000``, ``"30s"`` or ``"5m"``.

    Returns:
        Duration in whole milliseconds.

    Raises:
        ValueError: If the value is negative or not a recognized duration.
    """
    if isinstance(value, bool):
        msg = f"Invalid duration: {value!r}"
        raise ValueError(msg)

    if isinstance(value, int | float):
        if value < 0:
            msg = f"Duration must not be negative: {value!r}"
            raise ValueError(msg)
        return int(value)

    match = _DURATION_PATTERN.match(value)
    if not match:
        msg = f"Invalid duration: {value!r}"
        raise ValueError(msg)

    amount, unit = match.groups()
    return int(float(amount) * _UNIT_MILLIS[unit or "ms"])

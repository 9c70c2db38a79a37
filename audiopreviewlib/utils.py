from __future__ import annotations

import math
from typing import Any

import numpy as np

_NICE_NUMBERS = (1.0, 2.0, 5.0, 10.0)


def round_to_nearest_nice_number(value: float) -> tuple[float, int]:
    """
    Round a tick interval to the nearest "nice" number (1, 2 or 5 times a
    power of ten) and return it with the number of decimal digits needed
    to label it.

    Non-positive and non-finite input returns ``(0, 0)``.
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0, 0
    if not math.isfinite(value) or value <= 0:
        return 0.0, 0

    # value = mantissa * 10^exponent
    exponent = math.floor(math.log10(value))
    scale = 10.0 ** exponent
    if scale == 0.0:
        # Subnormal input: the power of ten itself underflows
        mantissa = 10.0 ** (math.log10(value) - exponent)
    else:
        mantissa = value / scale

    log_m = math.log10(mantissa)
    nice = min(_NICE_NUMBERS, key=lambda n: abs(log_m - math.log10(n)))

    rounded = nice * scale if scale else float(f"{nice:g}e{exponent}")
    digits = -exponent - 1 if nice == 10.0 else -exponent
    return rounded, max(digits, 0)


def hz_to_mel(hz):
    """Hz -> mel (O'Shaughnessy).  Accepts scalars or numpy arrays."""
    return 2595.0 * np.log10(1.0 + np.asarray(hz, dtype=np.float64) / 700.0)


def mel_to_hz(mel):
    """Mel -> Hz, the exact inverse of :func:`hz_to_mel`."""
    return 700.0 * (np.power(10.0, np.asarray(mel, dtype=np.float64) / 2595.0) - 1.0)


# ---------------------------------------------------------------------------
# Input sanitizing (settings setters never raise)
# ---------------------------------------------------------------------------

def as_finite_float(value: Any) -> float | None:
    """Coerce *value* to a finite float, or ``None`` if that is impossible."""
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def value_in_range(value: Any, lower: float, upper: float,
                   default: float) -> float:
    """Clamp *value* into ``[lower, upper]``; unusable input gives *default*.

    The default is clamped too, so the result is always inside the range.
    """
    f = as_finite_float(value)
    if f is None:
        f = default
    return min(max(f, lower), upper)


def limited_value_in_range(value: Any, lower: float, upper: float,
                           default: float) -> float:
    """Return *value* if it lies in ``[lower, upper]``, otherwise *default*.

    Unlike :func:`value_in_range` this does not clamp; it is used for
    filter cutoffs where an out-of-range entry is treated as a typo.
    """
    f = as_finite_float(value)
    if f is None or f < lower or f > upper:
        return default
    return f


def bounded_min(value: Any, current_max: float, lower: float, upper: float,
                default: float) -> float:
    """New lower bound of a (min, max) pair: clamped, then kept <= *current_max*."""
    return min(value_in_range(value, lower, upper, default), current_max)


def bounded_max(value: Any, current_min: float, lower: float, upper: float,
                default: float) -> float:
    """New upper bound of a (min, max) pair: clamped, then kept >= *current_min*."""
    return max(value_in_range(value, lower, upper, default), current_min)


def ordered_range(lo: Any, hi: Any, lower: float, upper: float,
                  default_lo: float, default_hi: float) -> tuple[float, float]:
    """Clamp both ends of a range and collapse it if inverted.

    Used where both bounds change at once (resets, initialization); the
    upper bound wins ties by being pulled down to the lower bound.
    """
    new_lo = value_in_range(lo, lower, upper, default_lo)
    new_hi = value_in_range(hi, lower, upper, default_hi)
    if new_hi < new_lo:
        new_hi = new_lo
    return new_lo, new_hi


def as_int(value: Any, default: int) -> int:
    """Truncate *value* toward zero, or return *default* if not numeric."""
    f = as_finite_float(value)
    if f is None:
        return default
    return int(f)


def as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    return bool(value)

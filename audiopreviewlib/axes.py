"""Axis ticks and coordinate mapping for waveform and spectrogram views.

All positions are returned as fractions of the plot extent (0 = left or
bottom edge, 1 = right or top edge) so any renderer can scale them to its
own pixel size.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .models import AnalysisSettings, FrequencyScale
from .utils import hz_to_mel, mel_to_hz, round_to_nearest_nice_number

# Labels closer than this to either edge of the time axis are suppressed
TIME_LABEL_MARGIN = 0.05

_LOG_FLOOR_HZ = 1.0


@dataclass(frozen=True)
class Tick:
    value: float
    fraction: float
    label: str
    labeled: bool = True


# ---------------------------------------------------------------------------
# Generic linear mapping
# ---------------------------------------------------------------------------

def fraction_to_value(fraction: float, lo: float, hi: float) -> float:
    return lo + fraction * (hi - lo)


def value_to_fraction(value: float, lo: float, hi: float) -> float:
    """Position of *value* inside ``[lo, hi]``; 0 for a zero-width range."""
    span = hi - lo
    if span == 0:
        return 0.0
    return (value - lo) / span


# ---------------------------------------------------------------------------
# Frequency scales
# ---------------------------------------------------------------------------

def effective_frequency_range(settings: AnalysisSettings) -> tuple[float, float]:
    """Frequency range as drawn: the log scale cannot start below 1 Hz."""
    lo, hi = settings.min_frequency, settings.max_frequency
    if settings.frequency_scale == FrequencyScale.LOG:
        lo = max(lo, _LOG_FLOOR_HZ)
        hi = max(hi, lo)
    return lo, hi


def _warp(freq: float, scale: FrequencyScale) -> float:
    if scale == FrequencyScale.LOG:
        return math.log10(max(freq, _LOG_FLOOR_HZ))
    if scale == FrequencyScale.MEL:
        return hz_to_mel(max(freq, 0.0))
    return freq


def _unwarp(value: float, scale: FrequencyScale) -> float:
    if scale == FrequencyScale.LOG:
        return 10.0 ** value
    if scale == FrequencyScale.MEL:
        return mel_to_hz(value)
    return value


def frequency_to_fraction(freq: float, min_freq: float, max_freq: float,
                          scale: FrequencyScale) -> float:
    """Vertical position of *freq* on a spectrogram spanning min..max Hz."""
    return value_to_fraction(_warp(freq, scale), _warp(min_freq, scale),
                             _warp(max_freq, scale))


def fraction_to_frequency(fraction: float, min_freq: float, max_freq: float,
                          scale: FrequencyScale) -> float:
    """Inverse of :func:`frequency_to_fraction`."""
    lo, hi = _warp(min_freq, scale), _warp(max_freq, scale)
    return _unwarp(fraction_to_value(fraction, lo, hi), scale)


# ---------------------------------------------------------------------------
# Ticks
# ---------------------------------------------------------------------------

def _format(value: float, digits: int) -> str:
    text = f"{value:.{digits}f}"
    if text.startswith("-") and float(text) == 0:
        text = text[1:]
    return text


def nice_ticks(lo: float, hi: float, divisions: float) -> tuple[list[float], int]:
    """Tick values at a nice interval covering ``[lo, hi]``.

    The interval is ``(hi - lo) / divisions`` rounded to a nice number.
    Returns the values and the number of decimal digits for labels.
    """
    span = hi - lo
    if not span > 0 or not divisions > 0:
        return [], 0
    step, digits = round_to_nearest_nice_number(span / divisions)
    if step <= 0:
        return [], 0
    first = math.ceil(lo / step) * step
    count = math.floor(span / step + 1e-9)
    eps = step * 1e-9
    values = []
    for i in range(count + 1):
        v = first + step * i
        if v > hi + eps:
            break
        values.append(v)
    return values, digits


def time_ticks(min_time: float, max_time: float) -> list[Tick]:
    """About ten ticks across the visible time range."""
    values, digits = nice_ticks(min_time, max_time, 10)
    ticks = []
    for t in values:
        frac = value_to_fraction(t, min_time, max_time)
        ticks.append(Tick(
            value=t, fraction=frac, label=_format(t, digits),
            labeled=TIME_LABEL_MARGIN < frac < 1 - TIME_LABEL_MARGIN,
        ))
    return ticks


def amplitude_ticks(min_amplitude: float, max_amplitude: float,
                    vertical_scale: float = 1.0) -> list[Tick]:
    """Amplitude ticks; a taller plot (larger scale) gets more of them."""
    values, digits = nice_ticks(min_amplitude, max_amplitude,
                                10 * vertical_scale)
    return [
        Tick(value=a, fraction=value_to_fraction(a, min_amplitude, max_amplitude),
             label=_format(a, digits))
        for a in values
    ]


def frequency_ticks(settings: AnalysisSettings) -> list[Tick]:
    """Evenly spaced ticks in the warped (linear, log or mel) domain.

    The count is ``round(10 * spectrogram_vertical_scale)``; labels are
    whole Hz.
    """
    num = max(int(round(10 * settings.spectrogram_vertical_scale)), 1)
    lo, hi = effective_frequency_range(settings)
    scale = settings.frequency_scale
    ticks = []
    for i in range(num):
        frac = i / num
        freq = fraction_to_frequency(frac, lo, hi, scale)
        ticks.append(Tick(value=freq, fraction=frac, label=str(int(round(freq)))))
    return ticks


def channel_label(channel: int, number_of_channels: int) -> str:
    """``Lch``/``Rch`` for stereo, ``chN`` (1-based) otherwise, empty for mono."""
    if number_of_channels <= 1:
        return ""
    if number_of_channels == 2:
        return "Lch" if channel == 0 else "Rch"
    return f"ch{channel + 1}"


# ---------------------------------------------------------------------------
# Seek bar
# ---------------------------------------------------------------------------

def time_to_view_fraction(seconds: float, settings: AnalysisSettings) -> float:
    """Playhead position within the current view, clamped to ``[0, 1]``."""
    frac = value_to_fraction(seconds, settings.min_time, settings.max_time)
    return min(max(frac, 0.0), 1.0)


def view_fraction_to_time(fraction: float, settings: AnalysisSettings) -> float:
    """Time under a click at *fraction* of the view width."""
    return fraction_to_value(fraction, settings.min_time, settings.max_time)

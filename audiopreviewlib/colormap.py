"""Spectrogram heat-map colors: scalar lookup and vectorized image conversion."""

from __future__ import annotations

import math

import numpy as np

RGB = tuple[int, int, int]

BLACK: RGB = (0, 0, 0)

_CLASS_NUM = 6


def _class_color(amp_class: int, value: float) -> RGB:
    """Color of *value* (0..1, 1 = loudest end) inside one amplitude class.

    Class 0 holds the loudest sixth of the range, class 5 the quietest.
    """
    if amp_class == 0:
        return 255, 255, 125 + math.floor(value * 130)
    if amp_class == 1:
        return 255, 125 + math.floor(value * 130), 125
    if amp_class == 2:
        return 255, math.floor(value * 125), 125
    if amp_class == 3:
        return 125 + math.floor(value * 130), 0, 125
    if amp_class == 4:
        return math.floor(value * 125), 0, 125
    return 0, 0, math.floor(value * 125)


def get_spectrogram_color(amplitude_db: float | None, range_db: float) -> RGB:
    """Map a dB amplitude to an RGB triple on a six-class heat map.

    ``[range_db, 0]`` is split into six equal classes running from deep blue
    (quietest) through violet and red to yellow-white (0 dB).  Amplitudes
    outside the range clamp to the nearest class end.  ``None`` / NaN means
    missing data and returns black.
    """
    if amplitude_db is None:
        return BLACK
    amp = float(amplitude_db)
    if math.isnan(amp):
        return BLACK
    if not range_db < 0:
        # No usable range: anything at or above the reference is "loud".
        return _class_color(0, 1.0) if amp >= 0 else BLACK
    if math.isinf(amp):
        return _class_color(0, 1.0) if amp > 0 else _class_color(_CLASS_NUM - 1, 0.0)

    class_width = range_db / _CLASS_NUM
    amp_class = min(max(math.floor(amp / class_width), 0), _CLASS_NUM - 1)
    class_min_amp = (amp_class + 1) * class_width
    value = (amp - class_min_amp) / -class_width
    value = min(max(value, 0.0), 1.0)
    return _class_color(amp_class, value)


def format_rgb(color: RGB) -> str:
    """CSS-style ``rgb(r,g,b)`` string, as canvas renderers expect."""
    r, g, b = color
    return f"rgb({r},{g},{b})"


# ---------------------------------------------------------------------------
# Vectorized conversion (image rendering)
# ---------------------------------------------------------------------------

# Per class: (base, slope) for each channel so that channel = base + floor(value * slope)
_CLASS_RAMPS = np.array([
    [[255, 0], [255, 0], [125, 130]],
    [[255, 0], [125, 130], [125, 0]],
    [[255, 0], [0, 125], [125, 0]],
    [[125, 130], [0, 0], [125, 0]],
    [[0, 125], [0, 0], [125, 0]],
    [[0, 0], [0, 0], [0, 125]],
], dtype=np.float64)


def colorize_spectrogram(frames_db: np.ndarray, range_db: float) -> np.ndarray:
    """Convert a dB array of any shape to uint8 RGB with a trailing axis of 3.

    Produces exactly the colors of :func:`get_spectrogram_color` for each
    element, including black for NaN.
    """
    db = np.asarray(frames_db, dtype=np.float64)
    out = np.zeros(db.shape + (3,), dtype=np.uint8)
    if db.size == 0:
        return out
    nan_mask = np.isnan(db)

    if not range_db < 0:
        loud = (db >= 0) & ~nan_mask
        out[loud] = _class_color(0, 1.0)
        return out

    class_width = range_db / _CLASS_NUM
    safe = np.where(nan_mask, 0.0, db)
    safe = np.clip(safe, range_db * 10 ** 6, -range_db * 10 ** 6)
    classes = np.clip(np.floor(safe / class_width), 0, _CLASS_NUM - 1).astype(np.intp)
    class_min = (classes + 1) * class_width
    value = np.clip((safe - class_min) / -class_width, 0.0, 1.0)

    ramps = _CLASS_RAMPS[classes]  # (..., 3, 2)
    rgb = ramps[..., 0] + np.floor(value[..., np.newaxis] * ramps[..., 1])
    out[...] = np.clip(rgb, 0, 255).astype(np.uint8)
    out[nan_mask] = 0
    return out

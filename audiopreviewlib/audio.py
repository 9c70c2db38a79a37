from __future__ import annotations

import logging
import math
import os
import re
import time
from typing import Any

import numpy as np
import soundfile as sf

from .models import AudioBuffer

log = logging.getLogger(__name__)


class AudioLoadError(Exception):
    """Raised when a file cannot be opened or decoded."""


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def db_to_linear(db: float) -> float:
    return 10 ** (db / 20.0)


def linear_to_db(linear: float) -> float:
    if linear <= 0:
        return float(-np.inf)
    return float(20 * np.log10(linear))


def format_duration(seconds: float) -> str:
    """``MM:SS.mmm`` (minutes keep growing past an hour)."""
    if not math.isfinite(seconds) or seconds <= 0:
        return "00:00.000"
    m = int(seconds // 60)
    s = int(seconds % 60)
    ms = int((seconds % 1) * 1000)
    return f"{m:02d}:{s:02d}.{ms:03d}"


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------

_SUBTYPE_MAP = {
    'PCM_S8': '8-bit',
    'PCM_U8': '8-bit',
    'PCM_16': '16-bit',
    'PCM_24': '24-bit',
    'PCM_32': '32-bit',
    'FLOAT': '32-bit Float',
    'DOUBLE': '64-bit Float',
}


def probe(filepath: str) -> dict[str, Any]:
    """Header information without decoding the samples."""
    try:
        info = sf.info(filepath)
    except (RuntimeError, OSError) as e:
        raise AudioLoadError(f"{os.path.basename(filepath)}: {e}") from e
    return {
        "filename": os.path.basename(filepath),
        "format": info.format,
        "encoding": _SUBTYPE_MAP.get(info.subtype, info.subtype),
        "subtype": info.subtype,
        "channels": info.channels,
        "sample_rate": info.samplerate,
        "frames": info.frames,
        "duration": info.duration,
    }


def load_audio(filepath: str) -> AudioBuffer:
    """Decode a file into a float32 :class:`AudioBuffer`."""
    try:
        data, samplerate = sf.read(filepath, dtype='float32', always_2d=True)
    except (RuntimeError, OSError) as e:
        raise AudioLoadError(f"{os.path.basename(filepath)}: {e}") from e
    buffer = AudioBuffer.from_frames(data, samplerate)
    log.info("Loaded %s: %d ch, %d Hz, %.3f s", os.path.basename(filepath),
             buffer.number_of_channels, buffer.sample_rate, buffer.duration)
    return buffer


def crop(buffer: AudioBuffer, min_time: float, max_time: float) -> AudioBuffer:
    """Samples ``floor(min_time * sr) .. floor(max_time * sr)`` of every channel."""
    sr = buffer.sample_rate
    start = min(max(math.floor(min_time * sr), 0), buffer.length)
    end = min(max(math.floor(max_time * sr), start), buffer.length)
    return AudioBuffer(sr, buffer.data[:, start:end])


def write_wav(buffer: AudioBuffer, output_path: str, subtype: str = "FLOAT") -> None:
    """Write *buffer* as WAV (32-bit float unless *subtype* says otherwise)."""
    sf.write(output_path, buffer.data.T, buffer.sample_rate,
             subtype=subtype, format="WAV")
    log.info("Wrote %s (%.3f s)", output_path, buffer.duration)


_UNSAFE_FILENAME_RE = re.compile(r'[<>:"/\\|?*]+')


def default_cut_name() -> str:
    return time.strftime("cut_%Y%m%d_%H%M%S")


def sanitize_filename(name: str | None) -> str:
    """Filename for a cut: unsafe character runs become ``_`` and ``.wav``
    is appended.  An empty name gives a timestamped default."""
    if not name:
        return default_cut_name() + ".wav"
    return _UNSAFE_FILENAME_RE.sub("_", name) + ".wav"

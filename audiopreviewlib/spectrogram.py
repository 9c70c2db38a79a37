"""Short-time Fourier analysis: linear and mel spectrograms in dB.

Every call is a pure function of the channel data and one settings
snapshot.  Output rows are frames (one per hop), columns are frequency
bins (linear / log scale) or mel filters, values are dB relative to the
loudest cell of that call, so every value is <= 0.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable

import numpy as np
import scipy.fft

from .log import dbg
from .models import AnalysisSettings, AudioBuffer, FrequencyScale
from .utils import hz_to_mel, mel_to_hz

FFTFunc = Callable[[np.ndarray], tuple[np.ndarray, np.ndarray]]

# Peak power is never taken below this (Number.EPSILON in double precision)
PEAK_FLOOR = float(np.finfo(np.float64).eps)
# Per-cell floor so silent bins give a large negative dB value, not -inf
POWER_FLOOR = float(np.finfo(np.float64).tiny)

# Taps framed per FFT call (frames x window); working memory scales with this
DEFAULT_CHUNK_SAMPLES = 1 << 21


def scipy_rfft(frames: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Real FFT along the last axis, split into real and imaginary parts."""
    spec = scipy.fft.rfft(frames, axis=-1)
    return spec.real, spec.imag


def hann_window(n: int) -> np.ndarray:
    """Periodic Hann window ``0.5 - 0.5 cos(2 pi i / n)``."""
    i = np.arange(n, dtype=np.float64)
    return 0.5 - 0.5 * np.cos(2.0 * np.pi * i / n)


# ---------------------------------------------------------------------------
# Frequency helpers
# ---------------------------------------------------------------------------

def _bin_range(settings: AnalysisSettings, sample_rate: int) -> tuple[int, int]:
    n = settings.window_size
    df = sample_rate / n
    n_bins = n // 2 + 1
    lo = min(max(math.floor(settings.min_frequency / df), 0), n_bins)
    hi = min(max(math.floor(settings.max_frequency / df), lo), n_bins)
    return lo, hi


def spectrogram_bin_frequencies(settings: AnalysisSettings) -> np.ndarray:
    """Frequency in Hz of each column of :meth:`SpectrogramEngine.compute_spectrogram`."""
    lo, hi = _bin_range(settings, settings.sample_rate)
    df = settings.sample_rate / settings.window_size
    return np.arange(lo, hi, dtype=np.float64) * df


def _mel_points(num_filters: int, min_freq: float, max_freq: float) -> np.ndarray:
    return np.linspace(hz_to_mel(float(min_freq)), hz_to_mel(float(max_freq)),
                       num_filters + 2)


def mel_band_center_frequencies(settings: AnalysisSettings) -> np.ndarray:
    """Center frequency in Hz of each mel filter (column of the mel spectrogram)."""
    mels = _mel_points(settings.mel_filter_num, settings.min_frequency,
                       settings.max_frequency)
    return mel_to_hz(mels[1:-1])


def mel_filter_bank(num_filters: int, n_fft: int, sample_rate: int,
                    min_freq: float, max_freq: float) -> np.ndarray:
    """Triangular mel filters over the ``n_fft // 2 + 1`` real-FFT bins.

    Filter ``k`` rises from vertex ``k`` to vertex ``k + 1`` and falls to
    vertex ``k + 2``, where the ``num_filters + 2`` vertices are evenly
    spaced in mel between *min_freq* and *max_freq* and snapped to the
    nearest bin.  A filter whose vertices collapse onto one bin becomes a
    single unit tap there.

    Returns an array of shape ``(num_filters, n_fft // 2 + 1)``.
    """
    n_bins = n_fft // 2 + 1
    hz = mel_to_hz(_mel_points(num_filters, min_freq, max_freq))
    vertices = np.clip(np.round(hz * n_fft / sample_rate), 0, n_bins - 1).astype(int)

    bank = np.zeros((num_filters, n_bins), dtype=np.float64)
    j = np.arange(n_bins)
    for k in range(num_filters):
        start, center, end = vertices[k], vertices[k + 1], vertices[k + 2]
        if center > start:
            rising = (j >= start) & (j < center)
            bank[k, rising] = (j[rising] - start) / (center - start)
        if end > center:
            falling = (j >= center) & (j <= end)
            bank[k, falling] = (end - j[falling]) / (end - center)
        else:
            bank[k, center] = 1.0
    return bank


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class SpectrogramEngine:
    """Computes spectrograms for one channel of an :class:`AudioBuffer`.

    Parameters
    ----------
    fft : callable, optional
        ``fft(frames) -> (real, imag)`` transforming windowed frames along
        the last axis.  At least ``window_size // 2 + 1`` output columns
        are required; extra columns are ignored.  Defaults to
        :func:`scipy_rfft`.
    chunk_samples : int
        Upper bound on ``frames * window_size`` processed per FFT call.
        A cancel token is checked between chunks.
    """

    def __init__(self, fft: FFTFunc | None = None, *,
                 chunk_samples: int = DEFAULT_CHUNK_SAMPLES):
        self._fft = fft or scipy_rfft
        self._chunk_samples = max(int(chunk_samples), 1)

    def compute(self, channel: int, settings: AnalysisSettings,
                audio_buffer: AudioBuffer, *,
                cancel: threading.Event | None = None) -> np.ndarray | None:
        """Dispatch on ``settings.frequency_scale`` (mel or linear bins)."""
        if settings.frequency_scale == FrequencyScale.MEL:
            return self.compute_mel_spectrogram(channel, settings, audio_buffer,
                                                cancel=cancel)
        return self.compute_spectrogram(channel, settings, audio_buffer,
                                        cancel=cancel)

    def compute_spectrogram(self, channel: int, settings: AnalysisSettings,
                            audio_buffer: AudioBuffer, *,
                            cancel: threading.Event | None = None
                            ) -> np.ndarray | None:
        """Power spectrogram in dB, columns restricted to the frequency range.

        Used for both the linear and log frequency scales (the log warp is
        a rendering concern).  Returns ``None`` if *cancel* was set.
        """
        lo, hi = _bin_range(settings, audio_buffer.sample_rate)

        def reduce(power: np.ndarray) -> np.ndarray:
            return power[:, lo:hi]

        return self._run(channel, settings, audio_buffer, reduce, hi - lo,
                         cancel, "spectrogram")

    def compute_mel_spectrogram(self, channel: int, settings: AnalysisSettings,
                                audio_buffer: AudioBuffer, *,
                                cancel: threading.Event | None = None
                                ) -> np.ndarray | None:
        """Mel-band energies in dB, ``settings.mel_filter_num`` columns.

        Returns ``None`` if *cancel* was set.
        """
        bank = mel_filter_bank(settings.mel_filter_num, settings.window_size,
                               audio_buffer.sample_rate,
                               settings.min_frequency, settings.max_frequency)
        bank_t = bank.T

        def reduce(power: np.ndarray) -> np.ndarray:
            return power @ bank_t

        return self._run(channel, settings, audio_buffer, reduce,
                         settings.mel_filter_num, cancel, "mel spectrogram")

    # ── Internals ───────────────────────────────────────────────────────────

    def _run(self, channel, settings, audio_buffer, reduce, width, cancel, label):
        t0 = time.perf_counter()
        data = audio_buffer.get_channel_data(channel)
        sr = audio_buffer.sample_rate
        n = int(settings.window_size)
        hop = max(int(settings.hop_size), 1)
        n_bins = n // 2 + 1

        start = math.floor(settings.min_time * sr)
        end = math.floor(settings.max_time * sr)
        centers = np.arange(start, end, hop, dtype=np.int64)
        if centers.size == 0:
            return np.zeros((0, width), dtype=np.float64)

        taps = np.arange(n, dtype=np.int64) - n // 2
        window = hann_window(n)
        length = data.shape[0]

        per_chunk = max(self._chunk_samples // n, 1)
        rows = []
        for i in range(0, centers.size, per_chunk):
            if cancel is not None and cancel.is_set():
                dbg(f"{label} cancelled after {i} of {centers.size} frames")
                return None
            frames = _frame_chunk(data, length, centers[i:i + per_chunk], taps)
            frames *= window
            re, im = self._fft(frames)
            re = np.asarray(re, dtype=np.float64)[..., :n_bins]
            im = np.asarray(im, dtype=np.float64)[..., :n_bins]
            rows.append(reduce(re * re + im * im))

        power = np.concatenate(rows, axis=0)
        peak = max(float(power.max()) if power.size else 0.0, PEAK_FLOOR)
        out = 10.0 * np.log10(np.maximum(power, POWER_FLOOR) / peak)

        dbg(f"{label}: ch {channel}, {out.shape[0]} frames x {out.shape[1]} "
            f"(window {n}, hop {hop}) in {(time.perf_counter() - t0) * 1000:.1f} ms")
        return out


def _frame_chunk(data: np.ndarray, length: int, centers: np.ndarray,
                 taps: np.ndarray) -> np.ndarray:
    """Frames around *centers* as float64, zero where a tap falls outside
    the channel.  Only the taps of these frames are read."""
    idx = centers[:, np.newaxis] + taps
    inside = (idx >= 0) & (idx < length)
    frames = np.zeros(idx.shape, dtype=np.float64)
    frames[inside] = data[idx[inside]]
    return frames

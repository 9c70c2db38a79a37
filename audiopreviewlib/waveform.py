"""Waveform decimation for drawing long recordings."""

from __future__ import annotations

import math

import numpy as np

from .models import AnalysisSettings, AudioBuffer, WaveformRender

MAX_POINTS = 200_000
RENDER_WIDTH = 1000
MIN_POINTS_PER_PIXEL = 5


class WaveformDecimator:
    """Subsamples a sample range to at most ``max_points`` values.

    Keeps every ``stride``-th sample, ``stride = ceil(n / max_points)``.
    When more than ``render_width * min_points_per_pixel`` values remain,
    connecting them with lines would just fill the plot, so the render is
    marked for dot plotting (``mode == "points"``).
    """

    def __init__(self, max_points: int = MAX_POINTS,
                 render_width: int = RENDER_WIDTH,
                 min_points_per_pixel: int = MIN_POINTS_PER_PIXEL):
        self.max_points = max(int(max_points), 1)
        self.render_width = render_width
        self.min_points_per_pixel = min_points_per_pixel

    @property
    def dense_threshold(self) -> int:
        return self.render_width * self.min_points_per_pixel

    def decimate(self, samples: np.ndarray, *, start_index: int = 0) -> WaveformRender:
        samples = np.asarray(samples)
        n = samples.shape[0]
        stride = max(math.ceil(n / self.max_points), 1)
        picked = samples[::stride]
        mode = "points" if picked.shape[0] > self.dense_threshold else "line"
        return WaveformRender(
            samples=picked,
            stride=stride,
            mode=mode,
            start_index=start_index,
            end_index=start_index + n,
        )

    def decimate_channel(self, channel: int, settings: AnalysisSettings,
                         audio_buffer: AudioBuffer) -> WaveformRender:
        """Decimate the visible time range of one channel."""
        data = audio_buffer.get_channel_data(channel)
        sr = audio_buffer.sample_rate
        start = min(max(math.floor(settings.min_time * sr), 0), data.shape[0])
        end = min(max(math.floor(settings.max_time * sr), start), data.shape[0])
        render = self.decimate(data[start:end], start_index=start)
        render.meta["channel"] = channel
        return render

    @staticmethod
    def to_pixels(render: WaveformRender, settings: AnalysisSettings,
                  width: float, height: float) -> tuple[np.ndarray, np.ndarray]:
        """Pixel coordinates of each decimated sample.

        ``x`` runs ``0 .. width`` across the samples, ``y`` is 0 at
        ``max_amplitude`` and *height* at ``min_amplitude``.  A zero-width
        amplitude range draws every sample on the center line.
        """
        count = render.samples.shape[0]
        if count == 0:
            empty = np.zeros(0, dtype=np.float64)
            return empty, empty.copy()
        x = np.arange(count, dtype=np.float64) / count * width
        span = settings.max_amplitude - settings.min_amplitude
        if span == 0:
            d = np.full(count, 0.5)
        else:
            d = (render.samples.astype(np.float64) - settings.min_amplitude) / span
        y = height * (1.0 - d)
        return x, y

"""Analysis settings state machine.

:class:`AnalysisSettingsStore` owns one :class:`AnalysisSettings` snapshot
per open document.  Every mutation replaces the snapshot with a new, fully
clamped one, so consumers can hold on to ``store.state`` for the duration of
a computation without seeing it change underneath them.

Invalid input is never an error here: values typed into number fields or
read from a stale preset are clamped into range, and values that cannot be
interpreted at all fall back to a default or leave the field unchanged.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping

import numpy as np

from .axes import effective_frequency_range, fraction_to_frequency, fraction_to_value
from .events import EventBus
from .log import dbg
from .models import (
    AnalysisSettings,
    AudioBuffer,
    FrequencyScale,
    WindowSizeIndex,
    window_size_for_index,
)
from .utils import (
    as_bool,
    as_finite_float,
    as_int,
    bounded_max,
    bounded_min,
    ordered_range,
    value_in_range,
)

# Canvas geometry used by the renderer; hop size is derived from it.
WAVEFORM_CANVAS_WIDTH = 1000
WAVEFORM_CANVAS_HEIGHT = 200
WAVEFORM_CANVAS_VERTICAL_SCALE_MIN = 0.2
WAVEFORM_CANVAS_VERTICAL_SCALE_MAX = 2.0
SPECTROGRAM_CANVAS_WIDTH = 1800
SPECTROGRAM_CANVAS_HEIGHT = 600
SPECTROGRAM_CANVAS_VERTICAL_SCALE_MIN = 0.2
SPECTROGRAM_CANVAS_VERTICAL_SCALE_MAX = 2.0

WINDOW_SIZE_INDEX_MIN = WindowSizeIndex.W256.value
WINDOW_SIZE_INDEX_MAX = WindowSizeIndex.W32768.value
WINDOW_SIZE_INDEX_DEFAULT = WindowSizeIndex.W1024.value

AMPLITUDE_LIMIT = 100.0
SPECTROGRAM_AMPLITUDE_RANGE_MIN = -1000.0
SPECTROGRAM_AMPLITUDE_RANGE_DEFAULT = -90.0
MEL_FILTER_NUM_MIN = 20
MEL_FILTER_NUM_MAX = 200
MEL_FILTER_NUM_DEFAULT = 40


def calc_hop_size(state: AnalysisSettings,
                  canvas_width: int = SPECTROGRAM_CANVAS_WIDTH) -> int:
    """Hop size that gives each frame at least a minimal rectangle on screen.

    Never smaller than ``window_size // 32``.
    """
    min_rect_width = 2 * state.window_size / 1024
    full_sample_num = (state.max_time - state.min_time) * state.sample_rate
    enough_hop_size = int(min_rect_width * full_sample_num / canvas_width)
    min_hop_size = state.window_size // 32
    return max(enough_hop_size, min_hop_size)


def _window_size_index(value: Any) -> int:
    if isinstance(value, WindowSizeIndex):
        return value.value
    idx = as_int(value, WINDOW_SIZE_INDEX_DEFAULT)
    return min(max(idx, WINDOW_SIZE_INDEX_MIN), WINDOW_SIZE_INDEX_MAX)


def _mel_filter_num(value: Any) -> int:
    num = as_int(value, MEL_FILTER_NUM_DEFAULT)
    return min(max(num, MEL_FILTER_NUM_MIN), MEL_FILTER_NUM_MAX)


class AnalysisSettingsStore:
    """Holds and mutates the analysis settings of one document.

    Parameters
    ----------
    event_bus : EventBus | None
        If given, a ``settings.changed`` event is emitted after every
        mutation that changed the snapshot, with ``fields`` (names of the
        changed fields) and ``state`` (the new snapshot).
    canvas_width : int
        Spectrogram width in pixels, used to derive the hop size.
    """

    def __init__(self, event_bus: EventBus | None = None, *,
                 canvas_width: int = SPECTROGRAM_CANVAS_WIDTH):
        self._state = AnalysisSettings()
        self._event_bus = event_bus
        self._canvas_width = max(int(canvas_width), 1)

    @property
    def state(self) -> AnalysisSettings:
        """The current immutable snapshot."""
        return self._state

    def snapshot(self) -> AnalysisSettings:
        return self._state

    @property
    def canvas_width(self) -> int:
        return self._canvas_width

    # ── Internal helpers ────────────────────────────────────────────────────

    def _commit(self, new_state: AnalysisSettings) -> AnalysisSettings:
        old = self._state
        if new_state == old:
            return old
        self._state = new_state
        if self._event_bus is not None and self._event_bus.has_subscribers("settings.changed"):
            fields = [
                k for k in new_state.__dataclass_fields__
                if getattr(old, k) != getattr(new_state, k)
            ]
            self._event_bus.emit("settings.changed", fields=fields, state=new_state)
        return new_state

    def _update(self, **changes: Any) -> AnalysisSettings:
        return self._commit(replace(self._state, **changes))

    def _with_auto_hop(self, state: AnalysisSettings) -> AnalysisSettings:
        if not state.auto_calc_hop_size:
            return state
        return replace(state, hop_size=calc_hop_size(state, self._canvas_width))

    def _update_time(self, **changes: Any) -> AnalysisSettings:
        return self._commit(self._with_auto_hop(replace(self._state, **changes)))

    # ── Hop / window ────────────────────────────────────────────────────────

    def set_auto_calc_hop_size(self, value: bool) -> AnalysisSettings:
        """Enable or disable automatic hop size.  Enabling re-derives it."""
        flag = as_bool(value, True)
        return self._commit(self._with_auto_hop(
            replace(self._state, auto_calc_hop_size=flag)))

    def set_hop_size(self, value: Any) -> AnalysisSettings:
        """Set a manual hop size and switch automatic hop size off.

        Truncated to an integer and kept at or above ``window_size // 32``;
        non-numeric input is ignored.
        """
        hop = as_finite_float(value)
        if hop is None:
            dbg(f"ignoring hop size {value!r}")
            return self._state
        hop_size = max(int(hop), self._state.window_size // 32)
        return self._update(hop_size=hop_size, auto_calc_hop_size=False)

    def set_window_size_index(self, value: Any) -> AnalysisSettings:
        """Select the FFT window (index 0..7 -> 256..32768 samples)."""
        idx = _window_size_index(value)
        state = replace(self._state, window_size_index=idx,
                        window_size=window_size_for_index(idx))
        if state.auto_calc_hop_size:
            state = self._with_auto_hop(state)
        else:
            state = replace(state, hop_size=max(state.hop_size, state.window_size // 32))
        return self._commit(state)

    # ── Visibility / scale ──────────────────────────────────────────────────

    def set_waveform_visible(self, value: bool) -> AnalysisSettings:
        return self._update(waveform_visible=as_bool(value, True))

    def set_spectrogram_visible(self, value: bool) -> AnalysisSettings:
        return self._update(spectrogram_visible=as_bool(value, True))

    def set_waveform_vertical_scale(self, value: Any) -> AnalysisSettings:
        return self._update(waveform_vertical_scale=value_in_range(
            value, WAVEFORM_CANVAS_VERTICAL_SCALE_MIN,
            WAVEFORM_CANVAS_VERTICAL_SCALE_MAX, 1.0))

    def set_spectrogram_vertical_scale(self, value: Any) -> AnalysisSettings:
        return self._update(spectrogram_vertical_scale=value_in_range(
            value, SPECTROGRAM_CANVAS_VERTICAL_SCALE_MIN,
            SPECTROGRAM_CANVAS_VERTICAL_SCALE_MAX, 1.0))

    # ── Ranges ──────────────────────────────────────────────────────────────

    def set_min_frequency(self, value: Any) -> AnalysisSettings:
        s = self._state
        return self._update(min_frequency=bounded_min(
            value, s.max_frequency, 0.0, s.nyquist, 0.0))

    def set_max_frequency(self, value: Any) -> AnalysisSettings:
        s = self._state
        return self._update(max_frequency=bounded_max(
            value, s.min_frequency, 0.0, s.nyquist, s.nyquist))

    def set_min_time(self, value: Any) -> AnalysisSettings:
        s = self._state
        return self._update_time(min_time=bounded_min(
            value, s.max_time, 0.0, s.duration, 0.0))

    def set_max_time(self, value: Any) -> AnalysisSettings:
        s = self._state
        return self._update_time(max_time=bounded_max(
            value, s.min_time, 0.0, s.duration, s.duration))

    def set_min_amplitude(self, value: Any) -> AnalysisSettings:
        s = self._state
        return self._update(min_amplitude=bounded_min(
            value, s.max_amplitude, -AMPLITUDE_LIMIT, AMPLITUDE_LIMIT,
            s.min_amplitude_of_audio_buffer))

    def set_max_amplitude(self, value: Any) -> AnalysisSettings:
        s = self._state
        return self._update(max_amplitude=bounded_max(
            value, s.min_amplitude, -AMPLITUDE_LIMIT, AMPLITUDE_LIMIT,
            s.max_amplitude_of_audio_buffer))

    def set_spectrogram_amplitude_range(self, value: Any) -> AnalysisSettings:
        return self._update(spectrogram_amplitude_range=value_in_range(
            value, SPECTROGRAM_AMPLITUDE_RANGE_MIN, 0.0,
            SPECTROGRAM_AMPLITUDE_RANGE_DEFAULT))

    def set_frequency_scale(self, value: Any) -> AnalysisSettings:
        """Switch the frequency axis.  Unrecognized values are ignored."""
        scale = FrequencyScale.parse(value)
        if scale is None:
            dbg(f"ignoring frequency scale {value!r}")
            return self._state
        return self._update(frequency_scale=scale)

    def set_mel_filter_num(self, value: Any) -> AnalysisSettings:
        return self._update(mel_filter_num=_mel_filter_num(value))

    # ── Selection zoom ──────────────────────────────────────────────────────

    def zoom_time(self, start_fraction: float, end_fraction: float) -> AnalysisSettings:
        """Narrow the time range to a horizontal selection.

        Fractions are positions across the current view (0 = left edge,
        1 = right edge) and may come in either order.
        """
        s = self._state
        lo, hi = sorted((start_fraction, end_fraction))
        new_min = fraction_to_value(lo, s.min_time, s.max_time)
        new_max = fraction_to_value(hi, s.min_time, s.max_time)
        return self._set_pair("min_time", "max_time", new_min, new_max)

    def zoom_amplitude(self, low_fraction: float, high_fraction: float) -> AnalysisSettings:
        """Narrow the amplitude range to a vertical selection (0 = bottom)."""
        s = self._state
        lo, hi = sorted((low_fraction, high_fraction))
        new_min = fraction_to_value(lo, s.min_amplitude, s.max_amplitude)
        new_max = fraction_to_value(hi, s.min_amplitude, s.max_amplitude)
        return self._set_pair("min_amplitude", "max_amplitude", new_min, new_max)

    def zoom_frequency(self, low_fraction: float, high_fraction: float) -> AnalysisSettings:
        """Narrow the frequency range to a vertical selection on the
        spectrogram, honoring the current frequency scale (0 = bottom)."""
        s = self._state
        lo, hi = sorted((low_fraction, high_fraction))
        f_min, f_max = effective_frequency_range(s)
        new_min = fraction_to_frequency(lo, f_min, f_max, s.frequency_scale)
        new_max = fraction_to_frequency(hi, f_min, f_max, s.frequency_scale)
        return self._set_pair("min_frequency", "max_frequency", new_min, new_max)

    def seek_fraction_to_time(self, fraction: float) -> float:
        """Time in seconds under a click at *fraction* of the view width,
        clamped to the file."""
        s = self._state
        t = fraction_to_value(value_in_range(fraction, 0.0, 1.0, 0.0),
                              s.min_time, s.max_time)
        return min(max(t, 0.0), s.duration)

    def _set_pair(self, lo_key: str, hi_key: str, lo: Any, hi: Any) -> AnalysisSettings:
        # Order the two setter calls so neither is clamped by the stale other bound
        setters = {
            "min_time": self.set_min_time, "max_time": self.set_max_time,
            "min_amplitude": self.set_min_amplitude, "max_amplitude": self.set_max_amplitude,
            "min_frequency": self.set_min_frequency, "max_frequency": self.set_max_frequency,
        }
        lo_f, hi_f = as_finite_float(lo), as_finite_float(hi)
        if lo_f is None or hi_f is None:
            return self._state
        if lo_f > getattr(self._state, hi_key):
            setters[hi_key](hi_f)
            setters[lo_key](lo_f)
        else:
            setters[lo_key](lo_f)
            setters[hi_key](hi_f)
        return self._state

    # ── Resets / initialization ─────────────────────────────────────────────

    def reset_to_default_time_range(self) -> AnalysisSettings:
        return self._update_time(min_time=0.0, max_time=self._state.duration)

    def reset_to_default_amplitude_range(self, defaults: Mapping[str, Any]) -> AnalysisSettings:
        s = self._state
        lo, hi = ordered_range(
            defaults.get("min_amplitude"), defaults.get("max_amplitude"),
            -AMPLITUDE_LIMIT, AMPLITUDE_LIMIT,
            s.min_amplitude_of_audio_buffer, s.max_amplitude_of_audio_buffer)
        return self._update(min_amplitude=lo, max_amplitude=hi)

    def reset_to_default_frequency_range(self, defaults: Mapping[str, Any]) -> AnalysisSettings:
        s = self._state
        lo, hi = ordered_range(
            defaults.get("min_frequency"), defaults.get("max_frequency"),
            0.0, s.nyquist, 0.0, s.nyquist)
        return self._update(min_frequency=lo, max_frequency=hi)

    def initialize_from_default(self, defaults: Mapping[str, Any] | None,
                                audio_buffer: AudioBuffer | None) -> AnalysisSettings:
        """Bulk-initialize from configured defaults once audio is decoded.

        Scans every sample of every channel for the true min/max amplitude.
        Does nothing if *audio_buffer* is ``None``.
        """
        if audio_buffer is None:
            dbg("initialize_from_default without audio buffer: ignored")
            return self._state
        defaults = defaults or {}

        min_amp, max_amp = _buffer_amplitude_bounds(audio_buffer)
        sample_rate = int(audio_buffer.sample_rate)
        duration = float(audio_buffer.duration)
        nyquist = sample_rate / 2

        idx = _window_size_index(defaults.get("window_size_index"))
        scale = FrequencyScale.parse(defaults.get("frequency_scale")) or FrequencyScale.LINEAR
        min_f, max_f = ordered_range(
            defaults.get("min_frequency"), defaults.get("max_frequency"),
            0.0, nyquist, 0.0, nyquist)
        min_a, max_a = ordered_range(
            defaults.get("min_amplitude"), defaults.get("max_amplitude"),
            -AMPLITUDE_LIMIT, AMPLITUDE_LIMIT, min_amp, max_amp)

        state = replace(
            self._state,
            sample_rate=sample_rate,
            duration=duration,
            min_amplitude_of_audio_buffer=min_amp,
            max_amplitude_of_audio_buffer=max_amp,
            waveform_visible=as_bool(defaults.get("waveform_visible"), True),
            waveform_vertical_scale=value_in_range(
                defaults.get("waveform_vertical_scale"),
                WAVEFORM_CANVAS_VERTICAL_SCALE_MIN,
                WAVEFORM_CANVAS_VERTICAL_SCALE_MAX, 1.0),
            spectrogram_visible=as_bool(defaults.get("spectrogram_visible"), True),
            spectrogram_vertical_scale=value_in_range(
                defaults.get("spectrogram_vertical_scale"),
                SPECTROGRAM_CANVAS_VERTICAL_SCALE_MIN,
                SPECTROGRAM_CANVAS_VERTICAL_SCALE_MAX, 1.0),
            window_size_index=idx,
            window_size=window_size_for_index(idx),
            frequency_scale=scale,
            mel_filter_num=_mel_filter_num(defaults.get("mel_filter_num")),
            min_frequency=min_f,
            max_frequency=max_f,
            min_time=0.0,
            max_time=duration,
            min_amplitude=min_a,
            max_amplitude=max_a,
            spectrogram_amplitude_range=value_in_range(
                defaults.get("spectrogram_amplitude_range"),
                SPECTROGRAM_AMPLITUDE_RANGE_MIN, 0.0,
                SPECTROGRAM_AMPLITUDE_RANGE_DEFAULT),
        )
        # Hop size last: it depends on window size and time range
        state = replace(state, hop_size=calc_hop_size(state, self._canvas_width))
        dbg(f"initialized: {sample_rate} Hz, {duration:.3f} s, "
            f"window {state.window_size}, hop {state.hop_size}")
        return self._commit(state)


def _buffer_amplitude_bounds(audio_buffer: AudioBuffer) -> tuple[float, float]:
    """True min/max sample over all channels; (-1, 1) for an empty buffer."""
    if audio_buffer.length == 0:
        return -1.0, 1.0
    lo = min(float(np.min(audio_buffer.get_channel_data(ch)))
             for ch in range(audio_buffer.number_of_channels))
    hi = max(float(np.max(audio_buffer.get_channel_data(ch)))
             for ch in range(audio_buffer.number_of_channels))
    return lo, hi

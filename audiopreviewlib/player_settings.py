"""Playback preferences of one document.

Playback itself happens in the host application; this store only keeps
the values it needs (initial volume, filter cutoffs, rate) clamped and
consistent with the decoded sample rate.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping

from .events import EventBus
from .models import AnalysisSettings, AudioBuffer, PlayerSettings
from .utils import as_bool, limited_value_in_range, value_in_range

VOLUME_DB_MIN = -80.0
VOLUME_DB_MAX = 0.0
VOLUME_MIN = 0.0
VOLUME_MAX = 100.0
FILTER_FREQUENCY_MIN = 10.0
FILTER_FREQUENCY_HPF_DEFAULT = 100.0
FILTER_FREQUENCY_LPF_DEFAULT = 10000.0
PLAYBACK_RATE_MIN = 0.25
PLAYBACK_RATE_MAX = 4.0


class PlayerSettingsStore:
    """Holds and mutates :class:`PlayerSettings`.

    Volumes and playback rate are clamped.  Filter cutoffs outside
    ``[10 Hz, sample_rate / 2]`` are treated as mistyped and replaced by
    the default cutoff (100 Hz high-pass, 10 kHz low-pass).
    """

    def __init__(self, event_bus: EventBus | None = None):
        self._state = PlayerSettings()
        self._event_bus = event_bus

    @property
    def state(self) -> PlayerSettings:
        return self._state

    def _update(self, **changes: Any) -> PlayerSettings:
        new_state = replace(self._state, **changes)
        if new_state != self._state:
            self._state = new_state
            if self._event_bus is not None:
                self._event_bus.emit("player_settings.changed",
                                     fields=sorted(changes), state=new_state)
        return self._state

    def _hpf(self, value: Any, sample_rate: float) -> float:
        return limited_value_in_range(value, FILTER_FREQUENCY_MIN, sample_rate / 2,
                                      FILTER_FREQUENCY_HPF_DEFAULT)

    def _lpf(self, value: Any, sample_rate: float) -> float:
        return limited_value_in_range(value, FILTER_FREQUENCY_MIN, sample_rate / 2,
                                      FILTER_FREQUENCY_LPF_DEFAULT)

    # ── Setters ─────────────────────────────────────────────────────────────

    def set_volume_unit_db(self, value: bool) -> PlayerSettings:
        return self._update(volume_unit_db=as_bool(value, False))

    def set_initial_volume_db(self, value: Any) -> PlayerSettings:
        return self._update(initial_volume_db=value_in_range(
            value, VOLUME_DB_MIN, VOLUME_DB_MAX, VOLUME_DB_MAX))

    def set_initial_volume(self, value: Any) -> PlayerSettings:
        return self._update(initial_volume=value_in_range(
            value, VOLUME_MIN, VOLUME_MAX, VOLUME_MAX))

    def set_enable_spacekey_play(self, value: bool) -> PlayerSettings:
        return self._update(enable_spacekey_play=as_bool(value, True))

    def set_enable_seek_to_play(self, value: bool) -> PlayerSettings:
        return self._update(enable_seek_to_play=as_bool(value, True))

    def set_enable_hpf(self, value: bool) -> PlayerSettings:
        return self._update(enable_hpf=as_bool(value, False))

    def set_hpf_frequency(self, value: Any) -> PlayerSettings:
        return self._update(hpf_frequency=self._hpf(value, self._state.sample_rate))

    def set_enable_lpf(self, value: bool) -> PlayerSettings:
        return self._update(enable_lpf=as_bool(value, False))

    def set_lpf_frequency(self, value: Any) -> PlayerSettings:
        return self._update(lpf_frequency=self._lpf(value, self._state.sample_rate))

    def set_match_filter_frequency_to_spectrogram(
        self, value: bool, analysis_settings: AnalysisSettings | None = None,
    ) -> PlayerSettings:
        """Toggle matching; switching it on with *analysis_settings* given
        copies the spectrogram range into the cutoffs right away."""
        flag = as_bool(value, False)
        self._update(match_filter_frequency_to_spectrogram=flag)
        if flag and analysis_settings is not None:
            self.sync_filters_to_spectrogram(analysis_settings)
        return self._state

    def set_playback_rate(self, value: Any) -> PlayerSettings:
        return self._update(playback_rate=value_in_range(
            value, PLAYBACK_RATE_MIN, PLAYBACK_RATE_MAX, 1.0))

    # ── Spectrogram coupling ────────────────────────────────────────────────

    def filter_frequencies(self, analysis_settings: AnalysisSettings) -> tuple[float, float]:
        """Effective ``(hpf, lpf)`` cutoffs.

        With matching enabled these follow the spectrogram's frequency
        range, passed through the same limits as a typed-in cutoff.
        """
        s = self._state
        if not s.match_filter_frequency_to_spectrogram:
            return s.hpf_frequency, s.lpf_frequency
        return (self._hpf(analysis_settings.min_frequency, s.sample_rate),
                self._lpf(analysis_settings.max_frequency, s.sample_rate))

    def sync_filters_to_spectrogram(self, analysis_settings: AnalysisSettings) -> PlayerSettings:
        """Store the matched cutoffs (after each analysis).  No-op when
        matching is off."""
        if not self._state.match_filter_frequency_to_spectrogram:
            return self._state
        hpf, lpf = self.filter_frequencies(analysis_settings)
        return self._update(hpf_frequency=hpf, lpf_frequency=lpf)

    # ── Initialization ──────────────────────────────────────────────────────

    def initialize_from_default(self, defaults: Mapping[str, Any] | None,
                                audio_buffer: AudioBuffer | None) -> PlayerSettings:
        """Apply configured defaults once audio is decoded (no-op without audio)."""
        if audio_buffer is None:
            return self._state
        d = defaults or {}
        sr = audio_buffer.sample_rate
        return self._update(
            sample_rate=sr,
            volume_unit_db=as_bool(d.get("volume_unit_db"), False),
            initial_volume_db=value_in_range(
                d.get("initial_volume_db"), VOLUME_DB_MIN, VOLUME_DB_MAX, VOLUME_DB_MAX),
            initial_volume=value_in_range(
                d.get("initial_volume"), VOLUME_MIN, VOLUME_MAX, VOLUME_MAX),
            enable_spacekey_play=as_bool(d.get("enable_spacekey_play"), True),
            enable_seek_to_play=as_bool(d.get("enable_seek_to_play"), True),
            enable_hpf=as_bool(d.get("enable_hpf"), False),
            hpf_frequency=self._hpf(d.get("hpf_frequency"), sr),
            enable_lpf=as_bool(d.get("enable_lpf"), False),
            lpf_frequency=self._lpf(d.get("lpf_frequency"), sr),
            match_filter_frequency_to_spectrogram=as_bool(
                d.get("match_filter_frequency_to_spectrogram"), False),
            playback_rate=value_in_range(
                d.get("playback_rate"), PLAYBACK_RATE_MIN, PLAYBACK_RATE_MAX, 1.0),
        )

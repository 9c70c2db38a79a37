"""Tests for the analysis settings state machine."""

import random

import numpy as np
import pytest

from audiopreviewlib.models import AnalysisSettings, AudioBuffer, FrequencyScale
from audiopreviewlib.settings import (
    AnalysisSettingsStore,
    SPECTROGRAM_CANVAS_WIDTH,
    calc_hop_size,
)


def assert_consistent(s: AnalysisSettings):
    assert s.window_size == 2 ** (s.window_size_index + 8)
    assert 256 <= s.window_size <= 32768
    assert s.hop_size >= s.window_size // 32
    assert 0 <= s.min_frequency <= s.max_frequency <= s.sample_rate / 2
    assert 0 <= s.min_time <= s.max_time <= s.duration
    assert -100 <= s.min_amplitude <= s.max_amplitude <= 100
    assert -1000 <= s.spectrogram_amplitude_range <= 0
    assert 20 <= s.mel_filter_num <= 200


class TestCalcHopSize:
    def test_ten_seconds(self):
        s = AnalysisSettings(sample_rate=44100, window_size=1024, min_time=0.0,
                             max_time=10.0)
        # 2 * 441000 / 1800 = 490
        assert calc_hop_size(s) == 490

    def test_floor_at_window_fraction(self):
        s = AnalysisSettings(sample_rate=44100, window_size=4096, min_time=0.0,
                             max_time=0.01)
        assert calc_hop_size(s) == 4096 // 32

    def test_canvas_width(self):
        s = AnalysisSettings(sample_rate=44100, window_size=1024, max_time=10.0)
        assert calc_hop_size(s, canvas_width=900) == 980


class TestInitializeFromDefault:
    def test_ten_second_stereo(self, store):
        s = store.state
        assert s.sample_rate == 44100
        assert s.duration == pytest.approx(10.0)
        assert s.window_size == 1024
        assert s.min_time == 0 and s.max_time == pytest.approx(10.0)
        assert s.hop_size == calc_hop_size(s, SPECTROGRAM_CANVAS_WIDTH)
        assert s.max_frequency == 22050
        assert_consistent(s)

    def test_buffer_extremes_over_all_channels(self, asymmetric_buffer):
        store = AnalysisSettingsStore()
        store.initialize_from_default({}, asymmetric_buffer)
        s = store.state
        assert s.min_amplitude_of_audio_buffer == pytest.approx(-0.25)
        assert s.max_amplitude_of_audio_buffer == pytest.approx(0.75)
        assert s.min_amplitude == pytest.approx(-0.25)
        assert s.max_amplitude == pytest.approx(0.75)

    def test_defaults_are_clamped(self, short_buffer):
        store = AnalysisSettingsStore()
        store.initialize_from_default({
            "window_size_index": 12,
            "min_frequency": -10,
            "max_frequency": 99999,
            "frequency_scale": "mel",
            "mel_filter_num": 5000,
            "spectrogram_amplitude_range": 20,
        }, short_buffer)
        s = store.state
        assert s.window_size_index == 7
        assert s.window_size == 32768
        assert s.min_frequency == 0
        assert s.max_frequency == 24000
        assert s.frequency_scale == FrequencyScale.MEL
        assert s.mel_filter_num == 200
        assert s.spectrogram_amplitude_range == 0
        assert_consistent(s)

    def test_inverted_frequency_defaults_collapse(self, sine_buffer):
        store = AnalysisSettingsStore()
        store.initialize_from_default(
            {"min_frequency": 5000, "max_frequency": 1000}, sine_buffer)
        assert store.state.min_frequency == 5000
        assert store.state.max_frequency == 5000

    def test_without_buffer_is_noop(self):
        store = AnalysisSettingsStore()
        before = store.state
        assert store.initialize_from_default({"window_size_index": 5}, None) is before
        assert store.state is before

    def test_empty_buffer(self):
        store = AnalysisSettingsStore()
        store.initialize_from_default({}, AudioBuffer(44100, np.zeros((1, 0))))
        s = store.state
        assert s.duration == 0
        assert s.min_amplitude_of_audio_buffer == -1
        assert s.max_amplitude_of_audio_buffer == 1
        assert_consistent(s)


class TestWindowAndHop:
    @pytest.mark.parametrize("index, size", [(0, 256), (2, 1024), (7, 32768)])
    def test_window_sizes(self, store, index, size):
        assert store.set_window_size_index(index).window_size == size

    @pytest.mark.parametrize("value, index", [(-3, 0), (99, 7), (3.7, 3), ("4", 4), ("bad", 2)])
    def test_window_index_clamped(self, store, value, index):
        assert store.set_window_size_index(value).window_size_index == index

    def test_auto_hop_follows_window(self, store):
        s = store.set_window_size_index(4)
        assert s.hop_size == calc_hop_size(s)

    def test_manual_hop_disables_auto(self, store):
        s = store.set_hop_size(100)
        assert s.auto_calc_hop_size is False
        assert s.hop_size == 100

    def test_manual_hop_floor(self, store):
        assert store.set_hop_size(1).hop_size == 1024 // 32

    def test_manual_hop_kept_on_window_change(self, store):
        store.set_hop_size(100)
        assert store.set_window_size_index(3).hop_size == 100
        # Larger window raises the floor
        assert store.set_window_size_index(7).hop_size == 32768 // 32

    def test_reenable_auto_hop(self, store):
        store.set_hop_size(100)
        s = store.set_auto_calc_hop_size(True)
        assert s.hop_size == calc_hop_size(s)

    def test_hop_follows_time_range(self, store):
        s = store.set_max_time(5.0)
        assert s.hop_size == calc_hop_size(s)

    def test_invalid_hop_ignored(self, store):
        before = store.state
        assert store.set_hop_size("x") is before


class TestRanges:
    def test_min_frequency_clamped_to_nyquist(self, store):
        s = store.set_min_frequency(30000)
        assert s.min_frequency == 22050
        assert s.max_frequency == 22050

    def test_min_frequency_bounded_by_max(self, store):
        store.set_max_frequency(8000)
        assert store.set_min_frequency(9000).min_frequency == 8000

    def test_max_frequency_bounded_by_min(self, store):
        store.set_min_frequency(1000)
        assert store.set_max_frequency(500).max_frequency == 1000

    def test_negative_frequency(self, store):
        assert store.set_min_frequency(-50).min_frequency == 0

    def test_time_range(self, store):
        assert store.set_max_time(20).max_time == pytest.approx(10.0)
        assert store.set_min_time(-1).min_time == 0
        store.set_max_time(4)
        assert store.set_min_time(6).min_time == 4

    def test_amplitude_range(self, store):
        assert store.set_max_amplitude(500).max_amplitude == 100
        assert store.set_min_amplitude(-500).min_amplitude == -100
        store.set_max_amplitude(0.5)
        assert store.set_min_amplitude(0.9).min_amplitude == 0.5

    def test_nan_amplitude_uses_buffer_extremes(self, store):
        s = store.set_max_amplitude(float("nan"))
        assert s.max_amplitude == pytest.approx(s.max_amplitude_of_audio_buffer)

    def test_spectrogram_amplitude_range(self, store):
        assert store.set_spectrogram_amplitude_range(-5000).spectrogram_amplitude_range == -1000
        assert store.set_spectrogram_amplitude_range(10).spectrogram_amplitude_range == 0
        assert store.set_spectrogram_amplitude_range(-60).spectrogram_amplitude_range == -60

    def test_mel_filter_num(self, store):
        assert store.set_mel_filter_num(1).mel_filter_num == 20
        assert store.set_mel_filter_num(1000).mel_filter_num == 200
        assert store.set_mel_filter_num(64.9).mel_filter_num == 64

    def test_vertical_scales(self, store):
        assert store.set_waveform_vertical_scale(5).waveform_vertical_scale == 2.0
        assert store.set_spectrogram_vertical_scale(0).spectrogram_vertical_scale == 0.2

    def test_visibility_is_independent(self, store):
        s = store.set_waveform_visible(False)
        assert s.waveform_visible is False and s.spectrogram_visible is True
        s = store.set_spectrogram_visible(False)
        assert s.waveform_visible is False and s.spectrogram_visible is False


class TestFrequencyScale:
    @pytest.mark.parametrize("value, expected", [
        ("mel", FrequencyScale.MEL), ("LOG", FrequencyScale.LOG),
        (0, FrequencyScale.LINEAR), (FrequencyScale.MEL, FrequencyScale.MEL),
    ])
    def test_accepted(self, store, value, expected):
        assert store.set_frequency_scale(value).frequency_scale == expected

    @pytest.mark.parametrize("value", ["bark", 3, None, True, 1.0])
    def test_rejected_is_noop(self, store, value):
        store.set_frequency_scale("log")
        before = store.state
        assert store.set_frequency_scale(value) is before


class TestResets:
    def test_reset_time(self, store):
        store.set_max_time(3)
        store.set_min_time(1)
        s = store.reset_to_default_time_range()
        assert s.min_time == 0 and s.max_time == pytest.approx(10.0)

    def test_reset_frequency(self, store):
        store.set_max_frequency(1000)
        s = store.reset_to_default_frequency_range({"min_frequency": 20, "max_frequency": 16000})
        assert (s.min_frequency, s.max_frequency) == (20, 16000)

    def test_reset_frequency_clamps(self, store):
        s = store.reset_to_default_frequency_range({"min_frequency": -1, "max_frequency": 1e9})
        assert (s.min_frequency, s.max_frequency) == (0, 22050)

    def test_reset_amplitude_missing_defaults_use_buffer(self, store):
        store.set_max_amplitude(0.1)
        s = store.reset_to_default_amplitude_range({})
        assert s.min_amplitude == pytest.approx(s.min_amplitude_of_audio_buffer)
        assert s.max_amplitude == pytest.approx(s.max_amplitude_of_audio_buffer)


class TestZoomAndSeek:
    def test_zoom_time(self, store):
        s = store.zoom_time(0.6, 0.2)
        assert s.min_time == pytest.approx(2.0)
        assert s.max_time == pytest.approx(6.0)

    def test_zoom_time_nested(self, store):
        store.zoom_time(0.5, 1.0)
        s = store.zoom_time(0.0, 0.5)
        assert (s.min_time, s.max_time) == (pytest.approx(5.0), pytest.approx(7.5))

    def test_zoom_amplitude(self, store):
        store.reset_to_default_amplitude_range({"min_amplitude": -1, "max_amplitude": 1})
        s = store.zoom_amplitude(0.75, 0.25)
        assert (s.min_amplitude, s.max_amplitude) == (pytest.approx(-0.5), pytest.approx(0.5))

    def test_zoom_frequency_linear(self, store):
        s = store.zoom_frequency(0.0, 0.5)
        assert (s.min_frequency, s.max_frequency) == (0, pytest.approx(11025))

    def test_zoom_frequency_log(self, store):
        store.set_frequency_scale("log")
        store.reset_to_default_frequency_range({"min_frequency": 10, "max_frequency": 10000})
        s = store.zoom_frequency(1 / 3, 2 / 3)
        assert s.min_frequency == pytest.approx(100)
        assert s.max_frequency == pytest.approx(1000)

    def test_seek(self, store):
        store.zoom_time(0.5, 1.0)
        assert store.seek_fraction_to_time(0.5) == pytest.approx(7.5)
        assert store.seek_fraction_to_time(2.0) == pytest.approx(10.0)
        assert store.seek_fraction_to_time(-1) == pytest.approx(5.0)


class TestEvents:
    def test_settings_changed_emitted(self, event_bus, stereo_buffer):
        seen = []
        event_bus.subscribe("settings.changed", lambda **d: seen.append(d))
        store = AnalysisSettingsStore(event_bus)
        store.initialize_from_default({}, stereo_buffer)
        store.set_mel_filter_num(64)
        assert "mel_filter_num" in seen[-1]["fields"]
        assert seen[-1]["state"] is store.state

    def test_no_event_without_change(self, event_bus, stereo_buffer):
        store = AnalysisSettingsStore(event_bus)
        store.initialize_from_default({}, stereo_buffer)
        seen = []
        event_bus.subscribe("settings.changed", lambda **d: seen.append(d))
        store.set_mel_filter_num(40)
        assert seen == []


class TestInvariantsUnderRandomInput:
    def test_random_sequences_keep_invariants(self, stereo_buffer):
        rng = random.Random(1234)
        store = AnalysisSettingsStore()
        store.initialize_from_default({}, stereo_buffer)
        junk = [None, "x", float("nan"), float("inf"), -1e9, 1e9, True]
        ops = [
            lambda v: store.set_window_size_index(v),
            lambda v: store.set_hop_size(v),
            lambda v: store.set_auto_calc_hop_size(bool(rng.getrandbits(1))),
            lambda v: store.set_min_frequency(v),
            lambda v: store.set_max_frequency(v),
            lambda v: store.set_min_time(v),
            lambda v: store.set_max_time(v),
            lambda v: store.set_min_amplitude(v),
            lambda v: store.set_max_amplitude(v),
            lambda v: store.set_spectrogram_amplitude_range(v),
            lambda v: store.set_mel_filter_num(v),
            lambda v: store.set_frequency_scale(v),
            lambda v: store.zoom_time(rng.random(), rng.random()),
            lambda v: store.zoom_frequency(rng.random(), rng.random()),
            lambda v: store.reset_to_default_time_range(),
        ]
        for _ in range(2000):
            if rng.random() < 0.15:
                value = rng.choice(junk)
            else:
                value = rng.uniform(-50000, 50000)
            rng.choice(ops)(value)
            assert_consistent(store.state)

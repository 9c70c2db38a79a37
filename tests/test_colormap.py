"""Tests for the spectrogram heat-map colors."""

import numpy as np
import pytest

from audiopreviewlib.colormap import (
    BLACK,
    colorize_spectrogram,
    format_rgb,
    get_spectrogram_color,
)


class TestGetSpectrogramColor:
    def test_zero_db_is_class_zero_top(self):
        assert get_spectrogram_color(0.0, -90.0) == (255, 255, 255)

    def test_class_boundaries(self):
        # range -90 -> six classes of 15 dB
        assert get_spectrogram_color(-15.0, -90.0) == (255, 255, 125)
        assert get_spectrogram_color(-7.5, -90.0) == (255, 255, 190)
        assert get_spectrogram_color(-22.5, -90.0) == (255, 190, 125)
        assert get_spectrogram_color(-37.5, -90.0) == (255, 62, 125)
        assert get_spectrogram_color(-52.5, -90.0) == (190, 0, 125)
        assert get_spectrogram_color(-67.5, -90.0) == (62, 0, 125)
        assert get_spectrogram_color(-82.5, -90.0) == (0, 0, 62)

    def test_floor_is_black(self):
        assert get_spectrogram_color(-90.0, -90.0) == (0, 0, 0)

    def test_out_of_range_clamps(self):
        assert get_spectrogram_color(-500.0, -90.0) == (0, 0, 0)
        assert get_spectrogram_color(30.0, -90.0) == (255, 255, 255)

    def test_missing_data_is_black(self):
        assert get_spectrogram_color(None, -90.0) == BLACK
        assert get_spectrogram_color(float("nan"), -90.0) == BLACK

    def test_infinite_amplitudes(self):
        assert get_spectrogram_color(float("inf"), -90.0) == (255, 255, 255)
        assert get_spectrogram_color(float("-inf"), -90.0) == (0, 0, 0)

    def test_non_negative_range(self):
        assert get_spectrogram_color(0.0, 0.0) == (255, 255, 255)
        assert get_spectrogram_color(-1.0, 0.0) == BLACK
        assert get_spectrogram_color(5.0, 10.0) == (255, 255, 255)

    @pytest.mark.parametrize("range_db", [-1.0, -60.0, -90.0, -1000.0])
    def test_always_well_formed(self, range_db):
        for amp in np.linspace(10 * range_db, -10 * range_db, 301):
            color = get_spectrogram_color(float(amp), range_db)
            assert len(color) == 3
            assert all(isinstance(c, int) and 0 <= c <= 255 for c in color)

    def test_louder_is_never_darker_in_red(self):
        reds = [get_spectrogram_color(float(a), -90.0)[0]
                for a in np.linspace(-90, 0, 91)]
        assert reds == sorted(reds)


class TestFormatRgb:
    def test_format(self):
        assert format_rgb((1, 22, 255)) == "rgb(1,22,255)"


class TestColorizeSpectrogram:
    def test_matches_scalar(self):
        amps = np.concatenate([np.linspace(-120, 10, 263), [np.nan, -np.inf, np.inf]])
        image = colorize_spectrogram(amps, -90.0)
        assert image.shape == (amps.size, 3)
        assert image.dtype == np.uint8
        for amp, rgb in zip(amps, image):
            assert tuple(int(c) for c in rgb) == get_spectrogram_color(float(amp), -90.0)

    def test_two_dimensional(self):
        frames = np.full((4, 7), -30.0)
        image = colorize_spectrogram(frames, -90.0)
        assert image.shape == (4, 7, 3)
        assert np.all(image == np.array(get_spectrogram_color(-30.0, -90.0)))

    def test_empty(self):
        assert colorize_spectrogram(np.zeros((0, 40)), -90.0).shape == (0, 40, 3)

    def test_non_negative_range(self):
        image = colorize_spectrogram(np.array([0.0, -1.0, np.nan]), 0.0)
        assert [tuple(int(c) for c in px) for px in image] == [
            (255, 255, 255), (0, 0, 0), (0, 0, 0)]

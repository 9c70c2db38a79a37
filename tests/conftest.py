"""
Shared pytest fixtures for the AudioPreview test suite.

Provides synthetic audio buffers and initialized settings stores.
"""

import numpy as np
import pytest

from audiopreviewlib.events import EventBus
from audiopreviewlib.models import AudioBuffer
from audiopreviewlib.settings import AnalysisSettingsStore


def make_sine(freq: float, duration: float, sample_rate: int = 44100,
              amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(duration * sample_rate)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


# =============================================================================
# Audio Buffer Fixtures
# =============================================================================


@pytest.fixture
def sine_buffer() -> AudioBuffer:
    """One second of a 1 kHz sine at 44.1 kHz, mono."""
    return AudioBuffer(44100, make_sine(1000.0, 1.0))


@pytest.fixture
def stereo_buffer() -> AudioBuffer:
    """Ten seconds of stereo at 44.1 kHz (440 Hz left, 3 kHz right)."""
    left = make_sine(440.0, 10.0, amplitude=0.8)
    right = make_sine(3000.0, 10.0, amplitude=0.3)
    return AudioBuffer(44100, np.stack([left, right]))


@pytest.fixture
def short_buffer() -> AudioBuffer:
    """A tenth of a second of a 2 kHz sine at 48 kHz, mono."""
    return AudioBuffer(48000, make_sine(2000.0, 0.1, sample_rate=48000))


@pytest.fixture
def silent_buffer() -> AudioBuffer:
    """Half a second of digital silence at 44.1 kHz."""
    return AudioBuffer(44100, np.zeros(22050, dtype=np.float32))


@pytest.fixture
def asymmetric_buffer() -> AudioBuffer:
    """Stereo buffer whose true extremes are -0.25 (right) and 0.75 (left)."""
    data = np.zeros((2, 4410), dtype=np.float32)
    data[0, 100] = 0.75
    data[0, 200] = -0.1
    data[1, 300] = -0.25
    data[1, 400] = 0.5
    return AudioBuffer(44100, data)


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(stereo_buffer) -> AnalysisSettingsStore:
    """A store initialized from defaults with the ten-second stereo buffer."""
    s = AnalysisSettingsStore()
    s.initialize_from_default({}, stereo_buffer)
    return s

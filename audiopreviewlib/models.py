from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np


class FrequencyScale(Enum):
    LINEAR = 0
    LOG = 1
    MEL = 2

    @classmethod
    def parse(cls, value: Any) -> FrequencyScale | None:
        """Return the scale named by *value*, or ``None`` if unrecognized.

        Accepts a member, its integer value, or its name in any case
        (``"mel"``, ``"Log"``).  Booleans are rejected.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return None
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None


class WindowSizeIndex(Enum):
    W256 = 0
    W512 = 1
    W1024 = 2
    W2048 = 3
    W4096 = 4
    W8192 = 5
    W16384 = 6
    W32768 = 7

    @property
    def window_size(self) -> int:
        return window_size_for_index(self.value)


def window_size_for_index(index: int) -> int:
    return 2 ** (index + 8)


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """Decoded multichannel audio, read-only once built.

    Attributes:
        sample_rate: Samples per second (> 0).
        data:        float32 array of shape ``(channels, length)``.
    """
    sample_rate: int
    data: np.ndarray

    def __post_init__(self):
        arr = np.asarray(self.data, dtype=np.float32)
        if arr.ndim == 1:
            arr = arr[np.newaxis, :]
        if arr.ndim != 2 or arr.shape[0] < 1:
            raise ValueError(f"audio data must be (channels, length), got {arr.shape}")
        if self.sample_rate <= 0:
            raise ValueError(f"sample rate must be positive, got {self.sample_rate}")
        arr = np.array(arr, copy=True)
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)

    @classmethod
    def from_frames(cls, frames: np.ndarray, sample_rate: int) -> AudioBuffer:
        """Build from soundfile-style ``(length, channels)`` data."""
        frames = np.asarray(frames)
        if frames.ndim == 1:
            return cls(sample_rate, frames)
        return cls(sample_rate, frames.T)

    @property
    def number_of_channels(self) -> int:
        return int(self.data.shape[0])

    @property
    def length(self) -> int:
        return int(self.data.shape[1])

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate

    def get_channel_data(self, channel: int) -> np.ndarray:
        if not 0 <= channel < self.number_of_channels:
            raise IndexError(
                f"channel {channel} out of range (0..{self.number_of_channels - 1})")
        return self.data[channel]


@dataclass(frozen=True)
class AnalysisSettings:
    """Immutable snapshot of the analysis view settings.

    Produced by :class:`~audiopreviewlib.settings.AnalysisSettingsStore`;
    consumers hold one snapshot for the duration of a computation.
    """
    sample_rate: int = 44100
    duration: float = 0.0
    min_amplitude_of_audio_buffer: float = -1.0
    max_amplitude_of_audio_buffer: float = 1.0
    auto_calc_hop_size: bool = True
    waveform_visible: bool = True
    waveform_vertical_scale: float = 1.0
    spectrogram_visible: bool = True
    spectrogram_vertical_scale: float = 1.0
    window_size_index: int = WindowSizeIndex.W1024.value
    window_size: int = 1024
    hop_size: int = 256
    min_frequency: float = 0.0
    max_frequency: float = 22050.0
    min_time: float = 0.0
    max_time: float = 0.0
    min_amplitude: float = -1.0
    max_amplitude: float = 1.0
    spectrogram_amplitude_range: float = -90.0
    frequency_scale: FrequencyScale = FrequencyScale.LINEAR
    mel_filter_num: int = 40

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2

    def to_dict(self) -> dict[str, Any]:
        out = {k: getattr(self, k) for k in self.__dataclass_fields__}
        out["frequency_scale"] = self.frequency_scale.name.lower()
        return out


@dataclass(frozen=True)
class PlayerSettings:
    sample_rate: int = 44100
    volume_unit_db: bool = False
    initial_volume_db: float = 0.0
    initial_volume: float = 100.0
    enable_spacekey_play: bool = True
    enable_seek_to_play: bool = True
    enable_hpf: bool = False
    hpf_frequency: float = 100.0
    enable_lpf: bool = False
    lpf_frequency: float = 10000.0
    match_filter_frequency_to_spectrogram: bool = False
    playback_rate: float = 1.0


@dataclass
class WaveformRender:
    """Decimated samples plus a drawing hint for the renderer.

    Attributes:
        samples: The (possibly subsampled) sample values.
        stride:  Subsampling step applied to the source range (1 = none).
        mode:    ``"points"`` to plot one dot per sample, ``"line"`` to
                 connect consecutive samples.
        start_index / end_index: Source sample range (end exclusive).
    """
    samples: np.ndarray
    stride: int
    mode: str
    start_index: int = 0
    end_index: int = 0
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def is_dense(self) -> bool:
        return self.mode == "points"

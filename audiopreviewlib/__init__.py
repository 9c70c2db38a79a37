from ._version import __version__
from .models import (
    FrequencyScale,
    WindowSizeIndex,
    AudioBuffer,
    AnalysisSettings,
    PlayerSettings,
    WaveformRender,
)
from .settings import AnalysisSettingsStore, calc_hop_size
from .player_settings import PlayerSettingsStore
from .spectrogram import (
    SpectrogramEngine,
    hann_window,
    mel_filter_bank,
    mel_band_center_frequencies,
    spectrogram_bin_frequencies,
)
from .waveform import WaveformDecimator
from .colormap import get_spectrogram_color, colorize_spectrogram, format_rgb
from .utils import round_to_nearest_nice_number, hz_to_mel, mel_to_hz
from .audio import AudioLoadError, load_audio, crop, write_wav, sanitize_filename
from .config import (
    build_structured_defaults,
    merge_structured,
    validate_config,
    validate_param_values,
    validate_structured_config,
    load_preset,
    save_preset,
    ConfigError,
    ConfigFieldError,
    ParamSpec,
    ANALYSIS_PARAMS,
    PLAYER_PARAMS,
)
from .worker import AnalysisWorker, AnalysisResult, run_analysis
from .events import EventBus

__all__ = [
    "__version__",
    "FrequencyScale",
    "WindowSizeIndex",
    "AudioBuffer",
    "AnalysisSettings",
    "PlayerSettings",
    "WaveformRender",
    "AnalysisSettingsStore",
    "calc_hop_size",
    "PlayerSettingsStore",
    "SpectrogramEngine",
    "hann_window",
    "mel_filter_bank",
    "mel_band_center_frequencies",
    "spectrogram_bin_frequencies",
    "WaveformDecimator",
    "get_spectrogram_color",
    "colorize_spectrogram",
    "format_rgb",
    "round_to_nearest_nice_number",
    "hz_to_mel",
    "mel_to_hz",
    "AudioLoadError",
    "load_audio",
    "crop",
    "write_wav",
    "sanitize_filename",
    "build_structured_defaults",
    "merge_structured",
    "validate_config",
    "validate_param_values",
    "validate_structured_config",
    "load_preset",
    "save_preset",
    "ConfigError",
    "ConfigFieldError",
    "ParamSpec",
    "ANALYSIS_PARAMS",
    "PLAYER_PARAMS",
    "AnalysisWorker",
    "AnalysisResult",
    "run_analysis",
    "EventBus",
]

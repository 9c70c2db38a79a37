from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)

PRESET_SCHEMA_VERSION = "1.0"

SECTIONS = ("analysis", "player")


class ConfigError(Exception):
    """Raised when a preset cannot be read or fails validation."""
    pass


@dataclass
class ConfigFieldError:
    """A single validation error for one configuration field.

    Attributes:
        key:     The config key that failed validation.
        value:   The offending value.
        message: Human-readable explanation of what is wrong.
    """
    key: str
    value: Any
    message: str


@dataclass(frozen=True)
class ParamSpec:
    """Declarative specification for a single configuration parameter.

    Describes type, default, valid range, allowed values, and labels for
    one key of the ``analysis`` or ``player`` section.
    """
    key: str
    type: type | tuple              # expected Python type(s)
    default: Any
    label: str                       # short UI label
    description: str = ""            # longer tooltip / help text
    min: float | int | None = None   # inclusive lower bound (unless min_exclusive)
    max: float | int | None = None   # inclusive upper bound (unless max_exclusive)
    min_exclusive: bool = False
    max_exclusive: bool = False
    choices: list | None = None      # allowed values
    nullable: bool = False           # True if None is valid


# ---------------------------------------------------------------------------
# Parameter sections
# ---------------------------------------------------------------------------

ANALYSIS_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="window_size_index", type=int, default=2, min=0, max=7,
        label="Window size",
        description="FFT window size as an index: 0 = 256 ... 7 = 32768 samples.",
    ),
    ParamSpec(
        key="frequency_scale", type=(str, int), default="linear",
        choices=["linear", "log", "mel", 0, 1, 2],
        label="Frequency scale",
        description="Vertical axis of the spectrogram.",
    ),
    ParamSpec(
        key="mel_filter_num", type=int, default=40, min=20, max=200,
        label="Mel filters",
        description="Number of triangular filters in the mel filter bank.",
    ),
    ParamSpec(
        key="min_frequency", type=(int, float), default=0.0, min=0.0,
        label="Min frequency (Hz)",
        description="Lower edge of the spectrogram. Clamped to Nyquist on load.",
    ),
    ParamSpec(
        key="max_frequency", type=(int, float), default=22000.0, min=0.0,
        label="Max frequency (Hz)",
        description="Upper edge of the spectrogram. Clamped to Nyquist on load.",
    ),
    ParamSpec(
        key="min_amplitude", type=(int, float), default=-1.0,
        min=-100.0, max=100.0,
        label="Min amplitude",
        description="Lower edge of the waveform view.",
    ),
    ParamSpec(
        key="max_amplitude", type=(int, float), default=1.0,
        min=-100.0, max=100.0,
        label="Max amplitude",
        description="Upper edge of the waveform view.",
    ),
    ParamSpec(
        key="spectrogram_amplitude_range", type=(int, float), default=-90.0,
        min=-1000.0, max=0.0,
        label="Spectrogram range (dB)",
        description=(
            "Floor of the spectrogram color scale relative to the loudest "
            "bin of the current view (0 dB)."
        ),
    ),
    ParamSpec(
        key="waveform_visible", type=bool, default=True,
        label="Show waveform",
    ),
    ParamSpec(
        key="waveform_vertical_scale", type=(int, float), default=1.0,
        min=0.2, max=2.0,
        label="Waveform vertical scale",
    ),
    ParamSpec(
        key="spectrogram_visible", type=bool, default=True,
        label="Show spectrogram",
    ),
    ParamSpec(
        key="spectrogram_vertical_scale", type=(int, float), default=1.0,
        min=0.2, max=2.0,
        label="Spectrogram vertical scale",
    ),
]

PLAYER_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="volume_unit_db", type=bool, default=False,
        label="Volume in dB",
        description="Show the volume slider in dB instead of percent.",
    ),
    ParamSpec(
        key="initial_volume_db", type=(int, float), default=0.0,
        min=-80.0, max=0.0,
        label="Initial volume (dB)",
    ),
    ParamSpec(
        key="initial_volume", type=(int, float), default=100.0,
        min=0.0, max=100.0,
        label="Initial volume (%)",
    ),
    ParamSpec(
        key="enable_spacekey_play", type=bool, default=True,
        label="Space key toggles playback",
    ),
    ParamSpec(
        key="enable_seek_to_play", type=bool, default=True,
        label="Click to seek starts playback",
    ),
    ParamSpec(
        key="enable_hpf", type=bool, default=False,
        label="High-pass filter",
    ),
    ParamSpec(
        key="hpf_frequency", type=(int, float), default=100.0, min=10.0,
        label="High-pass cutoff (Hz)",
    ),
    ParamSpec(
        key="enable_lpf", type=bool, default=False,
        label="Low-pass filter",
    ),
    ParamSpec(
        key="lpf_frequency", type=(int, float), default=10000.0, min=10.0,
        label="Low-pass cutoff (Hz)",
    ),
    ParamSpec(
        key="match_filter_frequency_to_spectrogram", type=bool, default=False,
        label="Match filters to spectrogram",
        description=(
            "Use the spectrogram's visible frequency range as the playback "
            "band-pass instead of the fixed cutoffs."
        ),
    ),
    ParamSpec(
        key="playback_rate", type=(int, float), default=1.0,
        min=0.25, max=4.0,
        label="Playback rate",
    ),
]

TOP_LEVEL_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="auto_analyze", type=bool, default=True,
        label="Analyze on open",
        description="Compute the waveform and spectrogram as soon as a file opens.",
    ),
]

_SECTION_PARAMS: dict[str, list[ParamSpec]] = {
    "analysis": ANALYSIS_PARAMS,
    "player": PLAYER_PARAMS,
}


def section_defaults(section: str) -> dict[str, Any]:
    """Flat ``{key: default}`` dict for one section."""
    return {p.key: p.default for p in _SECTION_PARAMS[section]}


def build_structured_defaults() -> dict[str, Any]:
    """Build a structured config dict with all defaults, organized by section.

    Returns::

        {
            "auto_analyze": True,
            "analysis": { ... },
            "player": { ... },
        }
    """
    structured: dict[str, Any] = {p.key: p.default for p in TOP_LEVEL_PARAMS}
    for section in SECTIONS:
        structured[section] = section_defaults(section)
    return structured


def merge_structured(
    defaults: dict[str, Any],
    overrides: dict[str, Any],
) -> dict[str, Any]:
    """Deep-merge *overrides* into *defaults* (two levels deep).

    Unknown sections and unknown keys are dropped so stale presets from
    older versions still load.
    """
    merged = copy.deepcopy(defaults)
    for p in TOP_LEVEL_PARAMS:
        if p.key in overrides:
            merged[p.key] = overrides[p.key]
    for section in SECTIONS:
        values = overrides.get(section)
        if not isinstance(values, dict):
            continue
        target = merged.setdefault(section, {})
        for k, v in values.items():
            if k in target:
                target[k] = v
            else:
                log.debug("Ignoring unknown key %s.%s", section, k)
    return merged


# ---------------------------------------------------------------------------
# Validation  (ParamSpec-driven)
# ---------------------------------------------------------------------------

def validate_param_values(
    params: list[ParamSpec],
    values: dict[str, Any],
) -> list[ConfigFieldError]:
    """Validate *values* against a list of :class:`ParamSpec` definitions.

    Returns a (possibly empty) list of :class:`ConfigFieldError` objects.
    Only keys present in *values* are checked; missing keys are not errors
    (they will receive their default).
    """
    errors: list[ConfigFieldError] = []

    for spec in params:
        if spec.key not in values:
            continue

        value = values[spec.key]

        # -- nullable --
        if value is None:
            if spec.nullable:
                continue
            errors.append(ConfigFieldError(
                spec.key, value,
                f"{spec.label} must not be empty.",
            ))
            continue

        # -- type (bool is not an int here) --
        expected = spec.type
        if expected is not bool and isinstance(value, bool):
            errors.append(ConfigFieldError(
                spec.key, value,
                f"{spec.label} must be {_type_label(expected)}, got boolean.",
            ))
            continue
        if not isinstance(value, expected):
            errors.append(ConfigFieldError(
                spec.key, value,
                f"{spec.label} must be {_type_label(expected)}, "
                f"got {type(value).__name__}.",
            ))
            continue

        # -- choices --
        if spec.choices is not None:
            probe = value.lower() if isinstance(value, str) else value
            if probe not in spec.choices:
                opts = ", ".join(repr(c) for c in spec.choices)
                errors.append(ConfigFieldError(
                    spec.key, value,
                    f"{spec.label} must be one of {opts}.",
                ))
            continue

        # -- numeric range --
        if isinstance(value, (int, float)):
            msg = _range_error(spec, value)
            if msg:
                errors.append(ConfigFieldError(spec.key, value, msg))

    return errors


def _range_error(spec: ParamSpec, value: float) -> str | None:
    if value != value:  # NaN
        return f"{spec.label} must be a number."
    if spec.min is not None:
        if spec.min_exclusive and value <= spec.min:
            return f"{spec.label} must be greater than {spec.min}."
        if not spec.min_exclusive and value < spec.min:
            return f"{spec.label} must be at least {spec.min}."
    if spec.max is not None:
        if spec.max_exclusive and value >= spec.max:
            return f"{spec.label} must be less than {spec.max}."
        if not spec.max_exclusive and value > spec.max:
            return f"{spec.label} must be at most {spec.max}."
    return None


def validate_structured_config(
    structured: dict[str, Any],
) -> list[ConfigFieldError]:
    """Validate a structured config dict section by section.

    The ``key`` of each returned error is prefixed with its section, e.g.
    ``"analysis.mel_filter_num"``.  A section that is not a JSON object is
    reported as a single error.
    """
    errors: list[ConfigFieldError] = list(
        validate_param_values(TOP_LEVEL_PARAMS, structured))

    for section, params in _SECTION_PARAMS.items():
        values = structured.get(section, {})
        if not isinstance(values, dict):
            errors.append(ConfigFieldError(
                section, values, f"Section '{section}' must be an object.",
            ))
            continue
        for err in validate_param_values(params, values):
            errors.append(ConfigFieldError(
                f"{section}.{err.key}", err.value, err.message,
            ))

    analysis = structured.get("analysis", {})
    if isinstance(analysis, dict):
        errors.extend(_pair_errors(analysis, "min_frequency", "max_frequency"))
        errors.extend(_pair_errors(analysis, "min_amplitude", "max_amplitude"))

    return errors


def _pair_errors(values: dict[str, Any], lo_key: str,
                 hi_key: str) -> list[ConfigFieldError]:
    lo, hi = values.get(lo_key), values.get(hi_key)
    if isinstance(lo, (int, float)) and isinstance(hi, (int, float)) \
            and not isinstance(lo, bool) and not isinstance(hi, bool) and lo > hi:
        return [ConfigFieldError(
            f"analysis.{lo_key}", lo,
            f"analysis.{lo_key} ({lo}) must not exceed analysis.{hi_key} ({hi}).",
        )]
    return []


def validate_config(structured: dict[str, Any]) -> None:
    """Raise :class:`ConfigError` listing every invalid field."""
    errors = validate_structured_config(structured)
    if errors:
        lines = [e.message for e in errors]
        raise ConfigError(
            "Configuration has invalid values:\n  • " + "\n  • ".join(lines)
        )


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

def load_preset(path: str) -> dict[str, Any]:
    """
    Load a JSON preset file and merge it over the built-in defaults.
    Raises ConfigError if the file cannot be read, parsed, or validated.
    """
    if not os.path.isfile(path):
        raise ConfigError(f"Preset file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in preset file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read preset file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Preset file must contain a JSON object, got {type(data).__name__}")

    # Metadata keys are not config
    preset = {k: v for k, v in data.items() if k not in ("schema_version", "_description")}
    merged = merge_structured(build_structured_defaults(), preset)
    validate_config(merged)
    log.info("Loaded preset %s", path)
    return merged


def save_preset(config: dict[str, Any], path: str, *, description: str | None = None) -> None:
    """
    Save a structured config as a JSON preset file.
    Only values that differ from the defaults are written.
    """
    preset: dict[str, Any] = {"schema_version": PRESET_SCHEMA_VERSION}
    if description:
        preset["_description"] = description

    defaults = build_structured_defaults()
    for p in TOP_LEVEL_PARAMS:
        if p.key in config and config[p.key] != p.default:
            preset[p.key] = config[p.key]
    for section in SECTIONS:
        values = config.get(section, {})
        changed = {
            k: v for k, v in values.items()
            if k in defaults[section] and defaults[section][k] != v
        }
        if changed:
            preset[section] = changed

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(preset, f, indent=4, ensure_ascii=False)
    log.info("Preset saved to %s", path)


def _type_label(t) -> str:
    """Human-readable label for an expected type or tuple of types."""
    if isinstance(t, tuple):
        return " or ".join(x.__name__ for x in t)
    return t.__name__

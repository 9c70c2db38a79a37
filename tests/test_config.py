"""Tests for config defaults, validation and presets."""

import json

import pytest

from audiopreviewlib.config import (
    ANALYSIS_PARAMS,
    PLAYER_PARAMS,
    PRESET_SCHEMA_VERSION,
    ConfigError,
    build_structured_defaults,
    load_preset,
    merge_structured,
    save_preset,
    section_defaults,
    validate_config,
    validate_param_values,
    validate_structured_config,
)


class TestDefaults:
    def test_structure(self):
        d = build_structured_defaults()
        assert d["auto_analyze"] is True
        assert set(d) == {"auto_analyze", "analysis", "player"}
        assert d["analysis"]["window_size_index"] == 2
        assert d["analysis"]["frequency_scale"] == "linear"
        assert d["analysis"]["mel_filter_num"] == 40
        assert d["player"]["hpf_frequency"] == 100.0

    def test_defaults_validate(self):
        assert validate_structured_config(build_structured_defaults()) == []

    def test_every_param_in_section(self):
        assert set(section_defaults("analysis")) == {p.key for p in ANALYSIS_PARAMS}
        assert set(section_defaults("player")) == {p.key for p in PLAYER_PARAMS}

    def test_defaults_are_copies(self):
        a = build_structured_defaults()
        a["analysis"]["mel_filter_num"] = 99
        assert build_structured_defaults()["analysis"]["mel_filter_num"] == 40


class TestMerge:
    def test_override(self):
        merged = merge_structured(build_structured_defaults(),
                                  {"analysis": {"mel_filter_num": 80}, "auto_analyze": False})
        assert merged["analysis"]["mel_filter_num"] == 80
        assert merged["auto_analyze"] is False
        assert merged["analysis"]["window_size_index"] == 2

    def test_unknown_keys_dropped(self):
        merged = merge_structured(build_structured_defaults(),
                                  {"analysis": {"colour": "red"}, "theme": "dark"})
        assert "colour" not in merged["analysis"]
        assert "theme" not in merged

    def test_does_not_mutate_defaults(self):
        defaults = build_structured_defaults()
        merge_structured(defaults, {"analysis": {"mel_filter_num": 80}})
        assert defaults["analysis"]["mel_filter_num"] == 40


class TestValidation:
    def test_type_error(self):
        errors = validate_param_values(ANALYSIS_PARAMS, {"mel_filter_num": "many"})
        assert len(errors) == 1
        assert errors[0].key == "mel_filter_num"

    def test_bool_is_not_a_number(self):
        errors = validate_param_values(ANALYSIS_PARAMS, {"window_size_index": True})
        assert errors and "boolean" in errors[0].message

    def test_range(self):
        errors = validate_param_values(ANALYSIS_PARAMS, {"window_size_index": 8})
        assert errors and errors[0].key == "window_size_index"
        assert validate_param_values(ANALYSIS_PARAMS, {"window_size_index": 7}) == []

    @pytest.mark.parametrize("value", ["linear", "LOG", "mel", 0, 2])
    def test_frequency_scale_accepted(self, value):
        assert validate_param_values(ANALYSIS_PARAMS, {"frequency_scale": value}) == []

    @pytest.mark.parametrize("value", ["bark", 3, 1.0])
    def test_frequency_scale_rejected(self, value):
        assert validate_param_values(ANALYSIS_PARAMS, {"frequency_scale": value})

    def test_not_nullable(self):
        assert validate_param_values(PLAYER_PARAMS, {"enable_hpf": None})

    def test_section_prefix(self):
        config = build_structured_defaults()
        config["player"]["initial_volume_db"] = 3
        errors = validate_structured_config(config)
        assert [e.key for e in errors] == ["player.initial_volume_db"]

    def test_inverted_pairs(self):
        config = build_structured_defaults()
        config["analysis"]["min_frequency"] = 5000
        config["analysis"]["max_frequency"] = 100
        errors = validate_structured_config(config)
        assert [e.key for e in errors] == ["analysis.min_frequency"]

    def test_section_must_be_object(self):
        config = build_structured_defaults()
        config["player"] = [1, 2]
        errors = validate_structured_config(config)
        assert errors[0].key == "player"

    def test_validate_config_raises(self):
        config = build_structured_defaults()
        config["analysis"]["mel_filter_num"] = 5
        with pytest.raises(ConfigError, match="Mel filters"):
            validate_config(config)


class TestPresets:
    def test_round_trip(self, tmp_path):
        config = build_structured_defaults()
        config["analysis"]["frequency_scale"] = "mel"
        config["player"]["enable_lpf"] = True
        path = tmp_path / "presets" / "mine.json"
        save_preset(config, str(path), description="mel view")

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["schema_version"] == PRESET_SCHEMA_VERSION
        assert raw["_description"] == "mel view"
        # Only non-default values are written
        assert raw["analysis"] == {"frequency_scale": "mel"}
        assert raw["player"] == {"enable_lpf": True}

        assert load_preset(str(path)) == config

    def test_missing(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_preset(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_preset(str(path))

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigError, match="JSON object"):
            load_preset(str(path))

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "range.json"
        path.write_text(json.dumps({"analysis": {"window_size_index": 42}}), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_preset(str(path))

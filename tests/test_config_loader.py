"""
Tests for config_loader module.
"""
import json

import pytest

import config_loader


class TestLoadConfig:
    """Test loading and merging."""

    def test_missing_file_uses_defaults(self, tmp_path):
        config = config_loader.load_config(tmp_path / "config.json")
        assert config == config_loader.get_default_config()

    def test_partial_file_merged_over_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"segmentation": {"threshold": 0.2}}))

        config = config_loader.load_config(path)

        assert config["segmentation"]["threshold"] == 0.2
        assert config["segmentation"]["max_silence_duration_sec"] == 1.0
        assert config["storage"]["output_dir"] == "barks"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            config_loader.load_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"timeline": {"min_zoom_window_sec": 0}}))
        with pytest.raises(ValueError, match="min_zoom_window_sec"):
            config_loader.load_config(path)


class TestValidateConfig:
    """Test validation rules."""

    def test_defaults_are_valid(self):
        assert config_loader.validate_config(config_loader.get_default_config()) == (True, None)

    def test_missing_section(self):
        config = config_loader.get_default_config()
        del config["timeline"]
        ok, msg = config_loader.validate_config(config)
        assert not ok
        assert "timeline" in msg

    @pytest.mark.parametrize("path, value", [
        ("segmentation.threshold", 0),
        ("segmentation.max_silence_duration_sec", -1),
        ("audio.chunk_duration", 0),
        ("audio.sample_rate", 0),
        ("audio.sample_format", "S24_LE"),
        ("storage.write_queue_size", 0),
        ("storage.max_backlog_bytes", 0),
        ("timeline.scroll_step_fraction", 1.5),
        ("timeline.zoom_step", 1.0),
    ])
    def test_rejects_bad_values(self, path, value):
        config = config_loader.get_default_config()
        section, key = path.split(".")
        config[section][key] = value
        ok, msg = config_loader.validate_config(config)
        assert not ok
        assert key in msg

    def test_default_window_shorter_than_min_zoom(self):
        config = config_loader.get_default_config()
        config["timeline"]["default_window_sec"] = 5.0
        ok, msg = config_loader.validate_config(config)
        assert not ok


#!/usr/bin/env python3
"""Configuration loader for barkwatch."""
import json
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

from logger import get_logger

log = get_logger(__name__)


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "device": "default",
            "sample_rate": 16000,
            "channels": 1,
            "sample_format": "S16_LE",
            "chunk_duration": 0.1,
            "dc_offset_removal": False
        },
        "segmentation": {
            "threshold": 0.05,
            "max_silence_duration_sec": 1.0
        },
        "storage": {
            "output_dir": "barks",
            "filename_prefix": "bark",
            "write_queue_size": 8,
            "max_backlog_bytes": 64 * 1024 * 1024
        },
        "timeline": {
            "min_zoom_window_sec": 10.0,
            "default_window_sec": 24 * 3600.0,
            "scroll_step_fraction": 0.1,
            "zoom_step": 1.25
        },
        "playback": {
            "player_command": "aplay"
        },
        "logging": {
            "level": "INFO",
            "log_file": None
        }
    }


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate configuration structure and values."""
    defaults = get_default_config()

    # Check required top-level keys
    for key in defaults.keys():
        if key not in config:
            return False, f"Missing required config section: {key}"

    # Validate audio settings
    audio = config.get("audio", {})
    if not isinstance(audio.get("sample_rate"), int) or audio.get("sample_rate") <= 0:
        return False, "audio.sample_rate must be a positive integer"
    if not isinstance(audio.get("channels"), int) or audio.get("channels") <= 0:
        return False, "audio.channels must be a positive integer"
    if audio.get("sample_format") != "S16_LE":
        return False, "audio.sample_format must be S16_LE"
    if audio.get("chunk_duration") <= 0:
        return False, "audio.chunk_duration must be positive"

    # Validate segmentation
    seg = config.get("segmentation", {})
    if seg.get("threshold") <= 0:
        return False, "segmentation.threshold must be positive"
    if seg.get("max_silence_duration_sec") <= 0:
        return False, "segmentation.max_silence_duration_sec must be positive"

    # Validate storage
    storage = config.get("storage", {})
    if not storage.get("output_dir"):
        return False, "storage.output_dir must be set"
    if not storage.get("filename_prefix"):
        return False, "storage.filename_prefix must be set"
    if storage.get("write_queue_size") < 1:
        return False, "storage.write_queue_size must be at least 1"
    if storage.get("max_backlog_bytes") <= 0:
        return False, "storage.max_backlog_bytes must be positive"

    # Validate timeline
    timeline = config.get("timeline", {})
    if timeline.get("min_zoom_window_sec") <= 0:
        return False, "timeline.min_zoom_window_sec must be positive"
    if timeline.get("default_window_sec") < timeline.get("min_zoom_window_sec"):
        return False, "timeline.default_window_sec must be at least timeline.min_zoom_window_sec"
    if not 0 < timeline.get("scroll_step_fraction", 0) <= 1:
        return False, "timeline.scroll_step_fraction must be between 0 and 1"
    if timeline.get("zoom_step") <= 1:
        return False, "timeline.zoom_step must be greater than 1"

    return True, None


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from JSON file, merging with defaults.

    Args:
        config_path: Path to config file. If None, looks for config.json in current directory.

    Returns:
        Merged configuration dictionary.

    Raises:
        ValueError: If config is invalid.
    """
    defaults = get_default_config()

    if config_path is None:
        config_path = Path("config.json")

    if not config_path.exists():
        log.info(f"Config file {config_path} not found, using defaults")
        return defaults

    try:
        with config_path.open() as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file {config_path}: {e}")

    # Deep merge with defaults
    merged = _deep_merge(defaults, config)

    is_valid, error_msg = validate_config(merged)
    if not is_valid:
        raise ValueError(f"Invalid configuration: {error_msg}")

    log.info(f"Loaded configuration from {config_path}")
    return merged


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result

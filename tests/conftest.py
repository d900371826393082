"""
Pytest configuration and shared fixtures.

This module provides:
- Common fixtures for test configuration
- Helper functions for synthetic frames, clips and WAV files
- Constants used across tests
"""
import sys
import wave
from pathlib import Path
from typing import List, Sequence

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import config_loader
import pytest
import numpy as np

from core.audio import AmplitudeFrame
from core.catalog import ClipCatalogEntry
from core.stats import box_whisker

# Test constants
TEST_SAMPLE_RATE = 16000
TEST_CHUNK_DURATION = 0.1
INT16_FULL_SCALE = 32768.0
BASE_TIME = 1_700_000_000.0


@pytest.fixture
def config(tmp_path):
    """Default configuration with storage pointed at a temp directory."""
    cfg = config_loader.get_default_config()
    cfg["audio"]["sample_rate"] = TEST_SAMPLE_RATE
    cfg["audio"]["chunk_duration"] = TEST_CHUNK_DURATION
    cfg["storage"]["output_dir"] = str(tmp_path / "barks")
    return cfg


@pytest.fixture
def clips_dir(config):
    """Clip output directory from the config fixture (created)."""
    path = Path(config["storage"]["output_dir"])
    path.mkdir(parents=True, exist_ok=True)
    return path


# Helper functions for test data creation

def make_frames(
    loudness: Sequence[float],
    start: float = 0.0,
    duration: float = 1.0,
    data: bytes = b"\x00\x00"
) -> List[AmplitudeFrame]:
    """
    Build consecutive frames with the given loudness values.

    Args:
        loudness: One value per frame
        start: Timestamp of the first frame
        duration: Duration of every frame
        data: Raw bytes attached to every frame
    """
    return [
        AmplitudeFrame(timestamp=start + i * duration, loudness=value, duration=duration, data=data)
        for i, value in enumerate(loudness)
    ]


def frames_with_bursts(total_seconds: int, loud_at: Sequence[int], loud: float = 0.5) -> List[AmplitudeFrame]:
    """One-second frames, quiet except at the listed seconds."""
    values = [loud if t in loud_at else 0.0 for t in range(total_seconds)]
    return make_frames(values)


def create_test_audio_samples(
    sample_rate: int = TEST_SAMPLE_RATE,
    duration: float = 1.0,
    frequency: float = 440.0,
    amplitude: float = 0.5
) -> np.ndarray:
    """
    Create test audio samples (sine wave).

    Returns:
        int16 array of audio samples
    """
    t = np.arange(int(sample_rate * duration)) / sample_rate
    return (np.sin(2 * np.pi * frequency * t) * amplitude * INT16_FULL_SCALE).astype(np.int16)


def write_wav(path: Path, samples: np.ndarray, sample_rate: int = TEST_SAMPLE_RATE, channels: int = 1) -> Path:
    """Write int16 samples to a WAV file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(samples.astype("<i2").tobytes())
    return path


def make_entry(entry_id: str, start: float, duration: float, loudness: Sequence[float] = (0.1, 0.2, 0.3)) -> ClipCatalogEntry:
    """Catalog entry at a known time, without a real file behind it."""
    return ClipCatalogEntry(
        entry_id=entry_id,
        path=Path(f"/nonexistent/{entry_id}.wav"),
        start_time=start,
        duration=duration,
        stats=box_whisker(loudness),
    )

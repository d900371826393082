"""
Tests for core.audio module.

arecord is never launched; frames are built from raw PCM directly or via a
mocked subprocess.
"""
from unittest.mock import MagicMock, patch

import pytest
import numpy as np

from core.audio import AudioCapture, pcm_to_mono
from core.errors import DeviceUnavailable

from tests.conftest import TEST_CHUNK_DURATION, TEST_SAMPLE_RATE, create_test_audio_samples


class TestPcmToMono:
    """Test PCM decoding."""

    def test_mono(self):
        data = np.array([0, 16384, -32768], dtype="<i2").tobytes()
        assert pcm_to_mono(data, 1).tolist() == [0.0, 0.5, -1.0]

    def test_stereo_averaged(self):
        data = np.array([16384, 0, -16384, -16384], dtype="<i2").tobytes()
        assert pcm_to_mono(data, 2).tolist() == [0.25, -0.5]

    def test_odd_byte_dropped(self):
        data = np.array([16384], dtype="<i2").tobytes() + b"\x01"
        assert pcm_to_mono(data, 1).tolist() == [0.5]


class TestFrames:
    """Test frame construction."""

    def test_frame_loudness_and_duration(self, config):
        capture = AudioCapture(config)
        samples = create_test_audio_samples(duration=TEST_CHUNK_DURATION, amplitude=0.5)

        frame = capture.frame_from_bytes(samples.tobytes())

        assert frame.loudness == pytest.approx(0.5, abs=0.01)
        assert frame.duration == pytest.approx(TEST_CHUNK_DURATION)
        assert frame.data == samples.tobytes()

    def test_timestamps_follow_sample_count(self, config):
        capture = AudioCapture(config)
        chunk = np.zeros(int(TEST_SAMPLE_RATE * TEST_CHUNK_DURATION), dtype=np.int16).tobytes()

        stamps = [capture.frame_from_bytes(chunk).timestamp for _ in range(3)]

        assert stamps[1] - stamps[0] == pytest.approx(TEST_CHUNK_DURATION)
        assert stamps[2] - stamps[1] == pytest.approx(TEST_CHUNK_DURATION)


class TestCaptureProcess:
    """Test arecord process handling."""

    def test_missing_arecord_raises_device_unavailable(self, config):
        capture = AudioCapture(config)
        with patch("core.audio.subprocess.Popen", side_effect=FileNotFoundError("arecord")):
            with pytest.raises(DeviceUnavailable, match="arecord command not found"):
                capture.start()

    def test_immediate_exit_raises_device_unavailable(self, config):
        proc = MagicMock()
        proc.poll.return_value = 1
        proc.stderr.read.return_value = b"arecord: main: audio open error: No such file or directory"
        capture = AudioCapture(config)
        with patch("core.audio.subprocess.Popen", return_value=proc), patch("core.audio.time.sleep"):
            with pytest.raises(DeviceUnavailable, match="not found"):
                capture.start()
        with pytest.raises(RuntimeError):
            capture.read_frame()

    def test_frames_until_stream_ends(self, config):
        chunk_bytes = int(TEST_SAMPLE_RATE * TEST_CHUNK_DURATION) * 2
        proc = MagicMock()
        proc.poll.return_value = None
        proc.stdout.read.side_effect = [b"\x00" * chunk_bytes, b"\x00" * chunk_bytes, b""]
        capture = AudioCapture(config)
        with patch("core.audio.subprocess.Popen", return_value=proc), patch("core.audio.time.sleep"):
            capture.start()
            frames = list(capture.frames())
            capture.stop()

        assert len(frames) == 2
        proc.terminate.assert_called_once()

    def test_read_before_start(self, config):
        with pytest.raises(RuntimeError):
            AudioCapture(config).read_frame()

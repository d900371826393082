"""
Audio capture abstraction.

Single Responsibility: Turn the live ALSA input into a stream of AmplitudeFrames.
"""
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Iterator
import numpy as np

from logger import get_logger
from .errors import DeviceUnavailable
from .stats import peak_amplitude

log = get_logger(__name__)

# Constant for int16 to float32 conversion (2^15)
INT16_FULL_SCALE = 32768.0


@dataclass
class AmplitudeFrame:
    """One fixed-size window of captured audio and its loudness."""
    timestamp: float  # Seconds since the epoch, monotonic within a capture run
    loudness: float  # Peak absolute amplitude in [0.0, 1.0]
    duration: float  # Seconds
    data: bytes = b""  # Raw PCM bytes (int16 little-endian)


def pcm_to_mono(data: bytes, channels: int) -> np.ndarray:
    """Decode S16_LE PCM bytes into normalized mono float32 samples."""
    data = data[:len(data) - len(data) % 2]
    samples = np.frombuffer(data, dtype="<i2").astype(np.float32) / INT16_FULL_SCALE
    if channels > 1:
        usable = samples.size - (samples.size % channels)
        samples = samples[:usable].reshape(-1, channels).mean(axis=1)
    return samples


class AudioCapture:
    """
    Handles audio capture from ALSA arecord.

    Frame timestamps are derived from the wall clock at start plus the number
    of samples read, so they never go backwards even if reads are delayed.
    """

    BYTES_PER_SAMPLE = 2

    def __init__(self, config: dict):
        """
        Initialize audio capture.

        Args:
            config: Configuration dictionary with audio settings
        """
        self.config = config
        self.audio_config = config["audio"]
        self.sample_rate = self.audio_config["sample_rate"]
        self.channels = self.audio_config["channels"]
        self.chunk_duration = self.audio_config["chunk_duration"]
        self.chunk_samples = int(self.sample_rate * self.chunk_duration)
        self.chunk_bytes = self.chunk_samples * self.BYTES_PER_SAMPLE * self.channels
        self.dc_offset_removal = self.audio_config.get("dc_offset_removal", False)

        self._process: Optional[subprocess.Popen] = None
        self._dc_offset_ema = 0.0
        self._start_wall: float = 0.0
        self._samples_read = 0

    @property
    def frame_duration(self) -> float:
        """Exact duration of one frame in seconds."""
        return self.chunk_samples / float(self.sample_rate)

    def start(self) -> None:
        """
        Start the arecord process.

        Raises:
            DeviceUnavailable: If arecord is missing or exits immediately
        """
        if self._process is not None:
            raise RuntimeError("Audio capture already started")

        device = self.audio_config["device"]
        if not device or not isinstance(device, str):
            raise DeviceUnavailable(
                f"Invalid audio device configuration: {device}. "
                f"Expected string like 'default' or 'plughw:CARD=Device,DEV=0'"
            )

        cmd = [
            "arecord",
            "-D", device,
            "-f", self.audio_config["sample_format"],
            "-r", str(self.sample_rate),
            "-c", str(self.channels),
            "-q",
            "-t", "raw"
        ]

        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE
            )
        except FileNotFoundError:
            raise DeviceUnavailable(
                "arecord command not found. Install alsa-utils: "
                "sudo apt-get install alsa-utils"
            )
        except OSError as e:
            raise DeviceUnavailable(
                f"Failed to start arecord process. Command: {' '.join(cmd)}. Error: {e}"
            )

        # Give process a moment to initialize
        time.sleep(0.1)

        if self._process.poll() is not None:
            stderr_msg = ""
            if self._process.stderr:
                stderr_msg = self._process.stderr.read().decode(errors="ignore").strip()
            self._process = None

            error_hints = {
                "Device or resource busy": "Audio device is in use by another process",
                "No such file or directory": f"Audio device '{device}' not found. Check with 'arecord -l'",
                "Permission denied": "No permission to access audio device. Add user to audio group: 'sudo usermod -a -G audio $USER'",
                "Invalid argument": f"Invalid audio device or format. Device: {device}, Format: {self.audio_config['sample_format']}"
            }

            hint = ""
            for key, msg in error_hints.items():
                if key in stderr_msg:
                    hint = f" Hint: {msg}"
                    break

            raise DeviceUnavailable(
                f"arecord failed to start. Device: {device}. Error: {stderr_msg}.{hint}"
            )

        self._start_wall = time.time()
        self._samples_read = 0
        log.debug(f"Started arecord on {device} ({self.sample_rate} Hz, {self.channels} ch)")

    def read_frame(self) -> Optional[AmplitudeFrame]:
        """
        Read the next frame.

        Returns:
            AmplitudeFrame or None if the stream ended
        """
        if self._process is None:
            raise RuntimeError("Audio capture not started")

        if self._process.stdout is None:
            return None

        data = self._process.stdout.read(self.chunk_bytes)

        if not data or len(data) < self.chunk_bytes:
            return None

        return self.frame_from_bytes(data)

    def frame_from_bytes(self, data: bytes) -> AmplitudeFrame:
        """Build a frame from one chunk of raw PCM and advance the sample clock."""
        samples = pcm_to_mono(data, self.channels)

        if self.dc_offset_removal and samples.size:
            alpha = 0.001
            self._dc_offset_ema = (
                alpha * float(np.mean(samples)) +
                (1 - alpha) * self._dc_offset_ema
            )
            samples = samples - self._dc_offset_ema

        timestamp = self._start_wall + self._samples_read / float(self.sample_rate)
        self._samples_read += samples.size

        return AmplitudeFrame(
            timestamp=timestamp,
            loudness=peak_amplitude(samples),
            duration=samples.size / float(self.sample_rate),
            data=data
        )

    def frames(self) -> Iterator[AmplitudeFrame]:
        """Yield frames until the stream ends."""
        while self._process is not None:
            frame = self.read_frame()
            if frame is None:
                log.info("Audio stream ended")
                return
            yield frame

    def stop(self) -> None:
        """Stop audio capture process."""
        if self._process is None:
            return

        if self._process.poll() is None:
            self._process.terminate()
            time.sleep(0.1)
            if self._process.poll() is None:
                self._process.kill()

        self._process = None

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.stop()

"""
Repository pattern for clip persistence.

Single Responsibility: Handle clip file I/O operations.

Clips are written once, to a temporary file that is renamed into place, so a
reader never sees a partially written clip. Filenames encode the start time
to the second; a second clip starting within the same second gets a numeric
suffix instead of overwriting the first.
"""
import datetime
import os
import queue
import re
import tempfile
import threading
import wave
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Deque, List, Optional

import numpy as np

from logger import get_logger
from .audio import pcm_to_mono
from .errors import DecodeFailure, ResourceExhausted, WriteFailure
from .segmenter import Clip

log = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


@dataclass
class StoredClip:
    """A clip file found on disk, identified by its name."""
    path: Path
    start_time: datetime.datetime
    sequence: int = 0

    @property
    def clip_id(self) -> str:
        return self.path.stem


@dataclass
class DecodedClip:
    """Mono samples read back from a clip file."""
    samples: np.ndarray
    sample_rate: int
    duration: float


class ClipRepository:
    """
    Repository for clip WAV files.

    Single Responsibility: Clip file naming, writing and enumeration.
    """

    BYTES_PER_SAMPLE = 2

    def __init__(self, config: dict, output_dir: Optional[Path] = None):
        """
        Initialize clip repository.

        Args:
            config: Configuration dictionary
            output_dir: Overrides storage.output_dir when given
        """
        self.config = config
        self.storage_config = config["storage"]
        self.audio_config = config["audio"]
        self.output_dir = Path(output_dir or self.storage_config["output_dir"])
        self.prefix = self.storage_config["filename_prefix"]

        self.sample_rate = self.audio_config["sample_rate"]
        self.channels = self.audio_config["channels"]

        self._name_re = re.compile(
            rf"^{re.escape(self.prefix)}_(\d{{8}}_\d{{6}})(?:_(\d+))?\.wav$"
        )

    def path_for(self, start_time: datetime.datetime, sequence: int = 0) -> Path:
        """Filename for a clip starting at ``start_time``."""
        stem = f"{self.prefix}_{start_time.strftime(TIMESTAMP_FORMAT)}"
        if sequence:
            stem = f"{stem}_{sequence}"
        return self.output_dir / f"{stem}.wav"

    def save_clip(self, clip: Clip) -> Path:
        """
        Write a completed clip.

        Args:
            clip: Clip to persist

        Returns:
            Path to the written file

        Raises:
            WriteFailure: If the file could not be written
        """
        tmp_path = None
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".partial-", suffix=".wav", dir=str(self.output_dir))
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as fh:
                with wave.open(fh, "wb") as wf:
                    wf.setnchannels(self.channels)
                    wf.setsampwidth(self.BYTES_PER_SAMPLE)
                    wf.setframerate(self.sample_rate)
                    for chunk in clip.frames:
                        wf.writeframes(chunk)
            fpath = self._claim_name(clip.start_time, tmp_path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise WriteFailure(f"Failed to write clip starting {clip.start_time}: {e}") from e

        log.debug(f"Saved clip: {fpath}")
        return fpath

    def _claim_name(self, start_time: datetime.datetime, tmp_path: Path) -> Path:
        """Move the finished temp file to the first free name for start_time."""
        sequence = 0
        fpath = self.path_for(start_time, sequence)
        while fpath.exists():
            sequence += 1
            fpath = self.path_for(start_time, sequence)
        os.replace(tmp_path, fpath)
        return fpath

    def parse_name(self, path: Path) -> Optional[StoredClip]:
        """Parse a clip filename, returning None if it is not one of ours."""
        match = self._name_re.match(path.name)
        if not match:
            return None
        try:
            start_time = datetime.datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
        except ValueError:
            return None
        sequence = int(match.group(2)) if match.group(2) else 0
        return StoredClip(path=path, start_time=start_time, sequence=sequence)

    def list_clips(self) -> List[StoredClip]:
        """All clip files in the output directory, oldest first."""
        if not self.output_dir.exists():
            return []
        found = []
        for path in self.output_dir.iterdir():
            if not path.is_file():
                continue
            stored = self.parse_name(path)
            if stored is not None:
                found.append(stored)
        found.sort(key=lambda s: (s.start_time, s.sequence))
        return found

    def load_clip(self, path: Path) -> DecodedClip:
        """
        Decode a clip file into mono float32 samples.

        Raises:
            DecodeFailure: If the file is unreadable or not 16-bit PCM
        """
        try:
            with wave.open(str(path), "rb") as wf:
                nch = wf.getnchannels()
                sr = wf.getframerate()
                width = wf.getsampwidth()
                nframes = wf.getnframes()
                frames = wf.readframes(nframes)
        except (OSError, EOFError, wave.Error) as e:
            raise DecodeFailure(f"Cannot decode {path}: {e}", path) from e

        if width != self.BYTES_PER_SAMPLE:
            raise DecodeFailure(f"Unsupported sample width {width} in {path}", path)
        samples = pcm_to_mono(frames, nch)
        if sr <= 0 or samples.size == 0:
            raise DecodeFailure(f"No audio in {path}", path)

        return DecodedClip(samples=samples, sample_rate=sr, duration=samples.size / float(sr))


class ClipWriter:
    """
    Background writer decoupling clip persistence from audio acquisition.

    Completed clips go into a bounded queue drained by one writer thread.
    When the queue is full they wait in an in-memory backlog; once the
    backlog holds more than ``max_backlog_bytes`` of audio, ``submit`` raises
    ResourceExhausted instead of dropping anything.
    """

    def __init__(
        self,
        repository: ClipRepository,
        queue_size: int = 8,
        max_backlog_bytes: int = 64 * 1024 * 1024,
        on_saved: Optional[Callable[[Clip, Path], None]] = None
    ):
        self.repository = repository
        self.max_backlog_bytes = max_backlog_bytes
        self.on_saved = on_saved

        self._queue: "queue.Queue[Optional[Clip]]" = queue.Queue(maxsize=queue_size)
        self._backlog: Deque[Clip] = deque()
        self._backlog_bytes = 0
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

        self.saved_count = 0
        self.failed_count = 0

    @classmethod
    def from_config(cls, repository: ClipRepository, config: dict, **kwargs) -> "ClipWriter":
        storage = config["storage"]
        return cls(
            repository,
            queue_size=storage["write_queue_size"],
            max_backlog_bytes=storage["max_backlog_bytes"],
            **kwargs
        )

    @property
    def backlog_bytes(self) -> int:
        return self._backlog_bytes

    def start(self) -> None:
        """Start the writer thread."""
        if self._thread is not None:
            raise RuntimeError("Clip writer already started")
        self._thread = threading.Thread(target=self._run, name="clip-writer", daemon=True)
        self._thread.start()

    def submit(self, clip: Clip) -> None:
        """
        Hand a completed clip to the writer without blocking.

        Raises:
            ResourceExhausted: If the backlog exceeds its cap
            RuntimeError: If the writer was closed
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Clip writer is closed")
            self._backlog.append(clip)
            self._backlog_bytes += clip.size_bytes
            self._drain_backlog()
            if self._backlog_bytes > self.max_backlog_bytes:
                raise ResourceExhausted(
                    f"Clip write backlog at {self._backlog_bytes} bytes exceeds cap of "
                    f"{self.max_backlog_bytes} bytes; storage appears stalled"
                )
        if self._backlog:
            log.warning(f"Write queue full, {len(self._backlog)} clip(s) waiting in memory")

    def _drain_backlog(self) -> None:
        # Caller holds self._lock
        while self._backlog:
            clip = self._backlog[0]
            try:
                self._queue.put_nowait(clip)
            except queue.Full:
                return
            self._backlog.popleft()
            self._backlog_bytes -= clip.size_bytes

    def _run(self) -> None:
        while True:
            clip = self._queue.get()
            try:
                if clip is None:
                    return
                self._write(clip)
            finally:
                self._queue.task_done()
                with self._lock:
                    self._drain_backlog()

    def _write(self, clip: Clip) -> None:
        try:
            path = self.repository.save_clip(clip)
        except WriteFailure as e:
            self.failed_count += 1
            log.error(f"{e}; clip dropped, recording continues")
            return
        except Exception as e:
            self.failed_count += 1
            log.error(f"Unexpected error writing clip starting {clip.start_time}: {e}; clip dropped", exc_info=True)
            return
        self.saved_count += 1
        if self.on_saved is not None:
            try:
                self.on_saved(clip, path)
            except Exception as e:
                log.error(f"Saved-clip callback failed for {path}: {e}", exc_info=True)

    def close(self, timeout: Optional[float] = None) -> None:
        """Write everything still pending, then stop the writer thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._thread is None:
            self.start()
        while True:
            with self._lock:
                self._drain_backlog()
                if not self._backlog:
                    break
            self._queue.join()
        self._queue.put(None)
        self._thread.join(timeout)

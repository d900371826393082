"""
Event segmentation.

Single Responsibility: Decide, frame by frame, where a clip starts and ends.

The engine is a two-state machine (IDLE / CAPTURING). Every frame whose
loudness reaches the threshold resets the silence timer, so bursts separated
by less than ``max_silence_duration`` end up in one clip. Trailing quiet
frames are kept in the clip until the timer runs out.
"""
import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Union

from .audio import AmplitudeFrame


class CaptureMode(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"


@dataclass
class Clip:
    """A completed event: buffered audio plus its timing and loudness."""
    start_timestamp: float  # Epoch seconds of the first buffered frame
    duration: float
    frames: List[bytes]
    loudness: List[float]

    @property
    def start_time(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self.start_timestamp)

    @property
    def peak(self) -> float:
        return max(self.loudness) if self.loudness else 0.0

    @property
    def size_bytes(self) -> int:
        return sum(len(f) for f in self.frames)


@dataclass
class ClipStarted:
    """Capture began at ``timestamp`` (epoch seconds)."""
    timestamp: float


@dataclass
class ClipEnded:
    """Capture that began at ``timestamp`` closed after ``duration`` seconds."""
    timestamp: float
    duration: float


BoundaryEvent = Union[ClipStarted, ClipEnded]

USEC_PER_SEC = 1_000_000


def to_usec(seconds: float) -> int:
    return int(round(seconds * USEC_PER_SEC))


@dataclass
class CaptureState:
    """Everything the engine knows about the clip being captured."""
    mode: CaptureMode = CaptureMode.IDLE
    capture_start: Optional[float] = None
    last_timestamp: Optional[float] = None
    last_duration: float = 0.0
    silence_usec: int = 0  # Whole microseconds
    frames: List[bytes] = field(default_factory=list)
    loudness: List[float] = field(default_factory=list)

    @property
    def capturing(self) -> bool:
        return self.mode is CaptureMode.CAPTURING

    @property
    def silence_timer(self) -> float:
        return self.silence_usec / USEC_PER_SEC


class SegmentationEngine:
    """
    Turns a stream of AmplitudeFrames into completed Clips.

    Threshold comparison is inclusive: a frame exactly at the threshold
    counts as loud.
    """

    def __init__(self, threshold: float, max_silence_duration: float):
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        if max_silence_duration <= 0:
            raise ValueError("max_silence_duration must be positive")
        self.threshold = threshold
        self.max_silence_duration = max_silence_duration
        self._max_silence_usec = to_usec(max_silence_duration)
        self._state = CaptureState()
        self._listeners: List[Callable[[BoundaryEvent], None]] = []

    @classmethod
    def from_config(cls, config: dict) -> "SegmentationEngine":
        seg = config["segmentation"]
        return cls(
            threshold=seg["threshold"],
            max_silence_duration=seg["max_silence_duration_sec"],
        )

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def capturing(self) -> bool:
        return self._state.capturing

    def add_listener(self, listener: Callable[[BoundaryEvent], None]) -> None:
        """Register a callback for ClipStarted / ClipEnded events."""
        self._listeners.append(listener)

    def _emit(self, event: BoundaryEvent) -> None:
        for listener in self._listeners:
            listener(event)

    def process(self, frame: AmplitudeFrame) -> Optional[Clip]:
        """
        Feed one frame through the state machine.

        Args:
            frame: Next frame in capture order

        Returns:
            The completed Clip if this frame closed one, None otherwise
        """
        state = self._state
        loud = frame.loudness >= self.threshold

        if not state.capturing:
            if not loud:
                return None
            state.mode = CaptureMode.CAPTURING
            state.capture_start = frame.timestamp
            state.silence_usec = 0
            self._append(frame)
            self._emit(ClipStarted(timestamp=frame.timestamp))
        else:
            self._append(frame)
            if loud:
                state.silence_usec = 0
            else:
                state.silence_usec += to_usec(frame.duration)

        if state.silence_usec >= self._max_silence_usec:
            return self._close()
        return None

    def flush(self) -> Optional[Clip]:
        """Close the clip in progress, if any (end of input or shutdown)."""
        if not self._state.capturing:
            return None
        return self._close()

    def clips(self, frames: Iterable[AmplitudeFrame]) -> Iterator[Clip]:
        """
        Lazily yield completed clips from a frame stream.

        The clip in progress is flushed when the stream is exhausted.
        """
        for frame in frames:
            clip = self.process(frame)
            if clip is not None:
                yield clip
        clip = self.flush()
        if clip is not None:
            yield clip

    def _append(self, frame: AmplitudeFrame) -> None:
        state = self._state
        state.frames.append(frame.data)
        state.loudness.append(frame.loudness)
        state.last_timestamp = frame.timestamp
        state.last_duration = frame.duration

    def _close(self) -> Clip:
        state = self._state
        duration = state.last_timestamp - state.capture_start + state.last_duration
        clip = Clip(
            start_timestamp=state.capture_start,
            duration=duration,
            frames=state.frames,
            loudness=state.loudness,
        )
        capture_start = state.capture_start
        self._state = CaptureState()
        self._emit(ClipEnded(timestamp=capture_start, duration=duration))
        return clip

"""
Loudness statistics for clips.

Quartiles use linear interpolation between closest ranks (numpy's default
"linear" percentile method, Hyndman & Fan type 7): for [1, 2, 3, 4, 5] this
gives q1=2 and q3=4.
"""
from dataclasses import dataclass
from typing import Iterable, List

import numpy as np


@dataclass(frozen=True)
class BoxWhiskerStats:
    """Five-number summary of per-frame loudness within one clip."""
    min: float
    q1: float
    median: float
    q3: float
    max: float

    def as_dict(self) -> dict:
        return {
            "min": self.min,
            "q1": self.q1,
            "median": self.median,
            "q3": self.q3,
            "max": self.max,
        }


def box_whisker(values: Iterable[float]) -> BoxWhiskerStats:
    """
    Compute the five-number summary of a loudness sequence.

    Args:
        values: Per-frame loudness values (at least one)

    Returns:
        BoxWhiskerStats

    Raises:
        ValueError: If values is empty
    """
    arr = np.asarray(list(values), dtype=np.float64)
    if arr.size == 0:
        raise ValueError("Cannot summarize an empty loudness sequence")

    q = np.percentile(arr, [0, 25, 50, 75, 100], method="linear")
    return BoxWhiskerStats(
        min=float(q[0]),
        q1=float(q[1]),
        median=float(q[2]),
        q3=float(q[3]),
        max=float(q[4]),
    )


def peak_amplitude(samples: np.ndarray) -> float:
    """Peak absolute amplitude of normalized samples."""
    if samples.size == 0:
        return 0.0
    return float(np.max(np.abs(samples)))


def frame_loudness(samples: np.ndarray, frame_samples: int) -> List[float]:
    """
    Split mono samples into fixed-size frames and return each frame's peak.

    A trailing partial frame counts as a frame of its own.
    """
    if frame_samples <= 0:
        raise ValueError("frame_samples must be positive")
    return [
        peak_amplitude(samples[i:i + frame_samples])
        for i in range(0, len(samples), frame_samples)
    ]

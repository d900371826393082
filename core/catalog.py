"""
Clip catalog loading.

Single Responsibility: Build the viewer's read-only list of clip metadata
from the clip directory.

Every clip is decoded once here to compute its loudness summary; the viewer
never touches the audio again except for playback. A file that cannot be
decoded is skipped with a warning and the rest of the catalog still loads.
"""
import datetime
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from logger import get_logger
from .errors import CatalogLoadCancelled, DecodeFailure
from .repository import ClipRepository, StoredClip
from .stats import BoxWhiskerStats, box_whisker, frame_loudness

log = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class ClipCatalogEntry:
    """Metadata for one stored clip (everything but the audio)."""
    entry_id: str
    path: Path
    start_time: float  # Epoch seconds
    duration: float
    stats: BoxWhiskerStats

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    @property
    def peak(self) -> float:
        return self.stats.max

    @property
    def started_at(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self.start_time)

    def overlaps(self, start: float, end: float) -> bool:
        """True if [start_time, end_time) intersects [start, end)."""
        return self.start_time < end and self.end_time > start


def build_entry(repository: ClipRepository, stored: StoredClip, frame_duration: float) -> ClipCatalogEntry:
    """
    Decode one stored clip and summarize it.

    Raises:
        DecodeFailure: If the clip cannot be decoded
    """
    decoded = repository.load_clip(stored.path)
    frame_samples = max(1, int(round(decoded.sample_rate * frame_duration)))
    loudness = frame_loudness(decoded.samples, frame_samples)
    return ClipCatalogEntry(
        entry_id=stored.clip_id,
        path=stored.path,
        start_time=stored.start_time.timestamp(),
        duration=decoded.duration,
        stats=box_whisker(loudness),
    )


def load_catalog(
    repository: ClipRepository,
    frame_duration: float,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[threading.Event] = None
) -> List[ClipCatalogEntry]:
    """
    Load every clip in the repository into catalog entries.

    Args:
        repository: Where the clips live
        frame_duration: Loudness window in seconds (the recorder's chunk_duration)
        progress: Called as progress(done, total) after each file
        cancel: When set, loading stops with CatalogLoadCancelled

    Returns:
        Entries ordered by start time, then filename sequence

    Raises:
        CatalogLoadCancelled: If cancel was set before loading finished
    """
    stored_clips = repository.list_clips()
    total = len(stored_clips)
    entries: List[ClipCatalogEntry] = []
    failures = 0

    log.info(f"Loading {total} clip(s) from {repository.output_dir}")

    for done, stored in enumerate(stored_clips, start=1):
        if cancel is not None and cancel.is_set():
            raise CatalogLoadCancelled(f"Catalog load cancelled after {done - 1} of {total} clips")
        try:
            entries.append(build_entry(repository, stored, frame_duration))
        except DecodeFailure as e:
            failures += 1
            log.warning(f"Skipping unreadable clip: {e}")
        if progress is not None:
            progress(done, total)

    # Stable: same-second clips keep their filename sequence order
    entries.sort(key=lambda e: e.start_time)

    if failures:
        log.warning(f"Loaded {len(entries)} clip(s), skipped {failures} unreadable")
    else:
        log.info(f"Loaded {len(entries)} clip(s)")
    return entries

"""
Core domain models and interfaces for barkwatch.

Recorder side: AudioCapture -> SegmentationEngine -> ClipWriter -> ClipRepository.
Viewer side: ClipRepository -> load_catalog -> TimelineModel, with
PlaybackController driving the highlight of the playing clip.
"""

from .audio import AudioCapture, AmplitudeFrame, pcm_to_mono, INT16_FULL_SCALE
from .errors import (
    BarkwatchError,
    DeviceUnavailable,
    WriteFailure,
    ResourceExhausted,
    DecodeFailure,
    EmptyCatalogError,
    CatalogLoadCancelled,
)
from .stats import BoxWhiskerStats, box_whisker, frame_loudness, peak_amplitude
from .segmenter import (
    CaptureMode,
    CaptureState,
    Clip,
    ClipStarted,
    ClipEnded,
    SegmentationEngine,
)
from .repository import ClipRepository, ClipWriter, StoredClip, DecodedClip
from .catalog import ClipCatalogEntry, build_entry, load_catalog
from .timeline import TimelineModel, TimelineViewState
from .playback import PlaybackController, TransportState
from .reporting import (
    catalog_to_dataframe,
    activity_summary,
    generate_activity_report,
)

__all__ = [
    # Audio
    'AudioCapture',
    'AmplitudeFrame',
    'pcm_to_mono',
    'INT16_FULL_SCALE',
    # Errors
    'BarkwatchError',
    'DeviceUnavailable',
    'WriteFailure',
    'ResourceExhausted',
    'DecodeFailure',
    'EmptyCatalogError',
    'CatalogLoadCancelled',
    # Stats
    'BoxWhiskerStats',
    'box_whisker',
    'frame_loudness',
    'peak_amplitude',
    # Segmentation
    'CaptureMode',
    'CaptureState',
    'Clip',
    'ClipStarted',
    'ClipEnded',
    'SegmentationEngine',
    # Repository
    'ClipRepository',
    'ClipWriter',
    'StoredClip',
    'DecodedClip',
    # Catalog
    'ClipCatalogEntry',
    'build_entry',
    'load_catalog',
    # Timeline
    'TimelineModel',
    'TimelineViewState',
    # Playback
    'PlaybackController',
    'TransportState',
    # Reporting
    'catalog_to_dataframe',
    'activity_summary',
    'generate_activity_report',
]

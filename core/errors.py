"""
Error kinds shared by the recorder and the viewer.

Per-clip failures (WriteFailure, DecodeFailure) are isolated by their callers;
process-level failures (DeviceUnavailable, ResourceExhausted) are fatal.
"""
from pathlib import Path
from typing import Optional


class BarkwatchError(Exception):
    """Base class for barkwatch errors."""


class DeviceUnavailable(BarkwatchError):
    """No usable audio input device; the recorder cannot start."""


class WriteFailure(BarkwatchError):
    """Writing a single clip to storage failed."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class ResourceExhausted(BarkwatchError):
    """The in-memory write backlog grew past its configured cap."""


class DecodeFailure(BarkwatchError):
    """A stored clip could not be decoded."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class EmptyCatalogError(BarkwatchError):
    """An operation needs a non-empty catalog time range."""


class CatalogLoadCancelled(BarkwatchError):
    """Catalog loading was cancelled before it finished."""

"""
Clip playback.

Single Responsibility: Play one clip at a time through ALSA aplay and report
transport state changes.
"""
import subprocess
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from logger import get_logger
from .catalog import ClipCatalogEntry

log = get_logger(__name__)


class TransportState(Enum):
    STOPPED = "stopped"
    PLAYING = "playing"


StateListener = Callable[[TransportState, Optional[str]], None]


class PlaybackController:
    """
    Plays catalog entries, at most one at a time.

    Starting a clip while another plays stops the first. Listeners are told
    ``(state, entry_id)`` on every transition; the viewer uses this to
    highlight the playing clip on the timeline.
    """

    def __init__(self, player_command: str = "aplay"):
        self.player_command = player_command
        self._process: Optional[subprocess.Popen] = None
        self._current_id: Optional[str] = None
        self._listeners: List[StateListener] = []

    @classmethod
    def from_config(cls, config: dict) -> "PlaybackController":
        return cls(player_command=config["playback"]["player_command"])

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    @property
    def state(self) -> TransportState:
        return TransportState.PLAYING if self._current_id is not None else TransportState.STOPPED

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self.state, self._current_id)

    def play(self, entry: ClipCatalogEntry) -> bool:
        """
        Start playing a clip, stopping whatever was playing.

        Returns:
            True if playback started
        """
        self._terminate()
        self._current_id = None

        cmd = [self.player_command, "-q", str(entry.path)]
        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE
            )
        except OSError as e:
            log.error(f"Failed to start playback of {Path(entry.path).name}: {e}")
            self._process = None
            self._notify()
            return False

        self._current_id = entry.entry_id
        log.info(f"Playing {entry.entry_id} ({entry.duration:.1f}s)")
        self._notify()
        return True

    def stop(self) -> None:
        """Stop playback if anything is playing."""
        was_playing = self._current_id is not None
        self._terminate()
        self._current_id = None
        if was_playing:
            self._notify()

    def poll(self) -> TransportState:
        """
        Check whether the player finished on its own.

        Call periodically from the UI loop.
        """
        if self._process is not None and self._process.poll() is not None:
            returncode = self._process.returncode
            if returncode != 0 and self._process.stderr is not None:
                err = self._process.stderr.read().decode(errors="ignore").strip()
                log.warning(f"Player exited with code {returncode} for {self._current_id}: {err}")
            self._release()
            self._current_id = None
            self._notify()
        return self.state

    def _terminate(self) -> None:
        if self._process is None:
            return
        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
        self._release()

    def _release(self) -> None:
        if self._process.stderr is not None:
            self._process.stderr.close()
        self._process = None

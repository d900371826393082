"""
Tests for core.playback module.

The player subprocess is mocked; no audio output device needed.
"""
from unittest.mock import MagicMock, patch

import pytest

from core.playback import PlaybackController, TransportState
from core.timeline import TimelineModel

from tests.conftest import BASE_TIME, make_entry


def fake_process(running: bool = True, returncode: int = 0):
    proc = MagicMock()
    proc.poll.return_value = None if running else returncode
    proc.returncode = returncode
    proc.stderr.read.return_value = b""
    return proc


@pytest.fixture
def entries():
    return [make_entry("a", BASE_TIME, 2), make_entry("b", BASE_TIME + 60, 3)]


class TestPlaybackController:
    """Test transport state and exclusivity."""

    def test_play_starts_player(self, entries):
        controller = PlaybackController(player_command="aplay")
        with patch("core.playback.subprocess.Popen", return_value=fake_process()) as popen:
            assert controller.play(entries[0]) is True

        cmd = popen.call_args[0][0]
        assert cmd[0] == "aplay"
        assert cmd[-1] == str(entries[0].path)
        assert controller.state is TransportState.PLAYING
        assert controller.current_id == "a"

    def test_second_play_stops_first(self, entries):
        controller = PlaybackController()
        first, second = fake_process(), fake_process()
        with patch("core.playback.subprocess.Popen", side_effect=[first, second]):
            controller.play(entries[0])
            controller.play(entries[1])

        first.terminate.assert_called_once()
        second.terminate.assert_not_called()
        assert controller.current_id == "b"

    def test_stop(self, entries):
        controller = PlaybackController()
        proc = fake_process()
        with patch("core.playback.subprocess.Popen", return_value=proc):
            controller.play(entries[0])
        controller.stop()

        proc.terminate.assert_called_once()
        assert controller.state is TransportState.STOPPED
        assert controller.current_id is None

    def test_poll_detects_natural_end(self, entries):
        controller = PlaybackController()
        proc = fake_process()
        with patch("core.playback.subprocess.Popen", return_value=proc):
            controller.play(entries[0])

        assert controller.poll() is TransportState.PLAYING
        proc.poll.return_value = 0
        assert controller.poll() is TransportState.STOPPED
        assert controller.current_id is None

    def test_player_pipe_closed_on_stop(self, entries):
        controller = PlaybackController()
        proc = fake_process()
        with patch("core.playback.subprocess.Popen", return_value=proc):
            controller.play(entries[0])
        controller.stop()

        proc.stderr.close.assert_called_once()

    def test_player_pipe_closed_on_natural_end(self, entries):
        controller = PlaybackController()
        proc = fake_process()
        with patch("core.playback.subprocess.Popen", return_value=proc):
            controller.play(entries[0])
        proc.poll.return_value = 0
        controller.poll()

        proc.stderr.close.assert_called_once()

    def test_replaced_player_pipe_closed(self, entries):
        controller = PlaybackController()
        first, second = fake_process(), fake_process()
        with patch("core.playback.subprocess.Popen", side_effect=[first, second]):
            controller.play(entries[0])
            controller.play(entries[1])

        first.stderr.close.assert_called_once()
        second.stderr.close.assert_not_called()

    def test_missing_player(self, entries):
        controller = PlaybackController(player_command="no-such-player")
        with patch("core.playback.subprocess.Popen", side_effect=FileNotFoundError("no-such-player")):
            assert controller.play(entries[0]) is False
        assert controller.state is TransportState.STOPPED

    def test_listeners_notified(self, entries):
        controller = PlaybackController()
        seen = []
        controller.add_listener(lambda state, entry_id: seen.append((state, entry_id)))
        with patch("core.playback.subprocess.Popen", return_value=fake_process()):
            controller.play(entries[0])
        controller.stop()

        assert seen == [
            (TransportState.PLAYING, "a"),
            (TransportState.STOPPED, None),
        ]

    def test_stop_when_idle_is_silent(self):
        controller = PlaybackController()
        seen = []
        controller.add_listener(lambda state, entry_id: seen.append(state))
        controller.stop()
        assert seen == []

    def test_from_config(self, config):
        config["playback"]["player_command"] = "paplay"
        assert PlaybackController.from_config(config).player_command == "paplay"


class TestHighlightLinkage:
    """Playback state drives the timeline highlight."""

    def test_playing_clip_is_highlighted(self, entries):
        model = TimelineModel(min_zoom_window=10.0)
        model.load(entries)
        controller = PlaybackController()
        controller.add_listener(
            lambda state, entry_id: model.set_highlight(entry_id if state is TransportState.PLAYING else None)
        )

        with patch("core.playback.subprocess.Popen", side_effect=[fake_process(), fake_process()]):
            controller.play(entries[0])
            assert model.is_highlighted("a")
            controller.play(entries[1])
            assert model.is_highlighted("b")
            assert not model.is_highlighted("a")

        controller.stop()
        assert model.highlighted_entry() is None

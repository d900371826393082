#!/usr/bin/env python3
"""
Bark recorder: listen on the audio input and save each loud event as its own clip.

Usage:
    python recorder.py
    python recorder.py --config config.json --output-dir barks --debug
"""
import argparse
import datetime
import sys
from pathlib import Path
from typing import Optional

import config_loader
from logger import get_logger, setup_logging_from_config
from core import (
    AudioCapture,
    Clip,
    ClipEnded,
    ClipRepository,
    ClipStarted,
    ClipWriter,
    DeviceUnavailable,
    ResourceExhausted,
    SegmentationEngine,
)

log = get_logger("recorder")

EXIT_OK = 0
EXIT_DEVICE_UNAVAILABLE = 1
EXIT_RESOURCE_EXHAUSTED = 2
EXIT_CONFIG_ERROR = 3


def log_boundary(event) -> None:
    """One console line per capture start and stop."""
    started = datetime.datetime.fromtimestamp(event.timestamp).strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(event, ClipStarted):
        log.info(f"Started recording at {started}")
    elif isinstance(event, ClipEnded):
        log.info(f"Finished recording started at {started} ({event.duration:.2f}s)")


def log_saved(clip: Clip, path: Path) -> None:
    log.info(f"Saved clip: {path} ({clip.duration:.2f}s, peak {clip.peak:.3f})")


def run_recorder(
    config: dict,
    capture: Optional[AudioCapture] = None,
    repository: Optional[ClipRepository] = None
) -> int:
    """
    Run the capture loop until the input ends or Ctrl+C.

    Args:
        config: Loaded configuration
        capture: Audio source (defaults to arecord from config)
        repository: Clip storage (defaults to storage.output_dir)

    Returns:
        Process exit code
    """
    capture = capture or AudioCapture(config)
    repository = repository or ClipRepository(config)
    engine = SegmentationEngine.from_config(config)
    engine.add_listener(log_boundary)
    writer = ClipWriter.from_config(
        repository,
        config,
        on_saved=log_saved
    )

    _print_startup_info(config, repository)

    try:
        capture.start()
    except DeviceUnavailable as e:
        log.critical(f"Audio input unavailable: {e}")
        return EXIT_DEVICE_UNAVAILABLE

    writer.start()
    exit_code = EXIT_OK

    try:
        for clip in engine.clips(capture.frames()):
            writer.submit(clip)
    except KeyboardInterrupt:
        log.info("Stopping recorder (Ctrl+C received)...")
    except ResourceExhausted as e:
        log.critical(f"{e}. Exiting to avoid losing audio silently.")
        exit_code = EXIT_RESOURCE_EXHAUSTED
    finally:
        capture.stop()

    if exit_code == EXIT_RESOURCE_EXHAUSTED:
        return exit_code

    # Interrupted mid-capture: keep what was already heard
    pending = engine.flush()
    if pending is not None:
        try:
            writer.submit(pending)
        except ResourceExhausted as e:
            log.critical(f"{e}. Exiting to avoid losing audio silently.")
            return EXIT_RESOURCE_EXHAUSTED

    writer.close()
    log.info(f"Recorder stopped: {writer.saved_count} clip(s) saved, {writer.failed_count} failed")
    return exit_code


def _print_startup_info(config: dict, repository: ClipRepository) -> None:
    """Log startup information."""
    audio = config["audio"]
    seg = config["segmentation"]

    log.info("=" * 60)
    log.info("BARKWATCH - Starting Recorder")
    log.info("=" * 60)
    log.info(f"Audio Device: {audio['device']}")
    log.info(f"Sample Rate: {audio['sample_rate']} Hz, Channels: {audio['channels']}")
    log.info(f"Frame Duration: {audio['chunk_duration']}s")
    log.info(f"Threshold: {seg['threshold']:.3f}")
    log.info(f"Max Silence: {seg['max_silence_duration_sec']:.1f}s")
    log.info(f"Clips Directory: {repository.output_dir.resolve()}")
    log.info("=" * 60)
    log.info("Listening for barks... Press Ctrl+C to stop.")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Record loud events as individual clips")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json")
    parser.add_argument("--output-dir", type=Path, default=None, help="Override storage.output_dir")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    try:
        config = config_loader.load_config(args.config)
    except ValueError as e:
        print(f"[ERROR] Failed to load configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging_from_config(config, debug=args.debug)
    repository = ClipRepository(config, output_dir=args.output_dir)
    return run_recorder(config, repository=repository)


if __name__ == "__main__":
    sys.exit(main())

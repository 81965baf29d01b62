"""Audio sources feeding frames into the analysis pipeline."""

import logging
from pathlib import Path
from typing import Optional, Union

from spectrascope.config import VisualizerConfig
from spectrascope.errors import ConfigurationError
from spectrascope.sources.base import (
    RING_BUFFER_CAPACITY,
    AudioSource,
    FrameRingBuffer,
    SourceKind,
    TimedSource,
)
from spectrascope.sources.file import FileSource
from spectrascope.sources.live import CaptureMode, LiveCaptureSource
from spectrascope.sources.synthetic import SyntheticSource

__all__ = [
    "RING_BUFFER_CAPACITY",
    "AudioSource",
    "CaptureMode",
    "FileSource",
    "FrameRingBuffer",
    "LiveCaptureSource",
    "SourceKind",
    "SyntheticSource",
    "TimedSource",
    "create_source",
]


def create_source(
    kind: SourceKind,
    config: Optional[VisualizerConfig] = None,
    path: Optional[Union[str, Path]] = None,
    mode: CaptureMode = CaptureMode.MICROPHONE,
    logger: Optional[logging.Logger] = None,
) -> AudioSource:
    """
    Build a source of the given kind from *config*.

    Args:
        kind: Which backend to use.
        config: Frame length, rates and tone settings (default config if None).
        path: Audio file, required for ``SourceKind.FILE``.
        mode: Capture mode for ``SourceKind.LIVE``.
        logger: Logging handle passed to the source.
    """
    config = config or VisualizerConfig()
    kind = SourceKind(kind)

    if kind is SourceKind.SYNTHETIC:
        return SyntheticSource(
            frequency=config.tone_frequency,
            amplitude=config.tone_amplitude,
            frame_length=config.frame_length,
            tick_rate=config.playback_rate,
            sample_rate=config.sample_rate,
            logger=logger,
        )
    if kind is SourceKind.FILE:
        if path is None:
            raise ConfigurationError("File source requires an audio file path")
        return FileSource(
            path,
            playback_rate=config.playback_rate,
            frame_length=config.frame_length,
            sample_rate=config.sample_rate,
            logger=logger,
        )
    if kind is SourceKind.LIVE:
        return LiveCaptureSource(
            mode=mode,
            frame_length=config.frame_length,
            sample_rate=config.sample_rate,
            logger=logger,
        )
    raise ConfigurationError(f"Unknown source kind: {kind}")

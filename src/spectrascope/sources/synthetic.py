"""Synthetic sine-tone source for deterministic testing and demos."""

import logging
from typing import Optional

import librosa
import numpy as np

from spectrascope.config import FRAME_LENGTH, SAMPLE_RATE
from spectrascope.sources.base import SourceKind, TimedSource


class SyntheticSource(TimedSource):
    """
    Generates a pure sine tone.

    Every frame starts at phase zero, so all frames are identical.
    """

    kind = SourceKind.SYNTHETIC

    def __init__(
        self,
        frequency: float = 440.0,
        amplitude: float = 0.5,
        frame_length: int = FRAME_LENGTH,
        tick_rate: float = 60.0,
        sample_rate: int = SAMPLE_RATE,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(
            rate=tick_rate,
            frame_length=frame_length,
            sample_rate=sample_rate,
            logger=logger,
        )
        self.frequency = frequency
        self.amplitude = amplitude

    @property
    def name(self) -> str:
        return "Test (Synthetic)"

    async def initialize(self) -> None:
        self.log.debug(
            f"Synthetic source initialized: {self.frequency:.1f}Hz tone, "
            f"amplitude {self.amplitude:.2f}, {self.frame_length} samples per frame"
        )

    def _make_frame(self) -> np.ndarray:
        # phi=-pi/2 turns librosa's cosine into a sine starting at zero
        tone = librosa.tone(
            self.frequency,
            sr=self.sample_rate,
            length=self.frame_length,
            phi=-np.pi / 2,
        )
        frame = (self.amplitude * tone).astype(np.float32)

        if len(self._buffer) == 0:
            preview = ", ".join(f"{x:.3f}" for x in frame[:5])
            self.log.debug(f"Test audio first 5 samples: [{preview}]")
        return frame

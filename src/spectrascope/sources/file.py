"""
WAV file playback source.

Decodes an uncompressed PCM WAV file, folds it to mono, resamples it to
the pipeline rate and replays it frame by frame in a loop.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import librosa
import numpy as np
from scipy.io import wavfile

from spectrascope.config import FRAME_LENGTH, SAMPLE_RATE
from spectrascope.errors import ConfigurationError
from spectrascope.sources.base import SourceKind, TimedSource

SUPPORTED_EXTENSIONS = (".wav",)


def pcm_to_float(data: np.ndarray) -> np.ndarray:
    """
    Scale decoded PCM samples to float32 in [-1.0, 1.0].

    Integer formats are divided by their full-scale value (unsigned 8-bit
    is re-centred first); float formats pass through.

    Raises:
        ConfigurationError: For a sample format WAV cannot hold.
    """
    if data.dtype == np.int16:
        return data.astype(np.float32) / 32768.0
    if data.dtype == np.int32:
        return (data.astype(np.float64) / 2147483648.0).astype(np.float32)
    if data.dtype == np.uint8:
        return (data.astype(np.float32) - 128.0) / 128.0
    if np.issubdtype(data.dtype, np.floating):
        return data.astype(np.float32)
    raise ConfigurationError(f"Unsupported WAV sample format: {data.dtype}")


def downmix(data: np.ndarray) -> np.ndarray:
    """Average channels per sample; mono input is returned unchanged."""
    if data.ndim == 1:
        return data
    if data.shape[1] == 1:
        return data[:, 0]
    return data.mean(axis=1).astype(data.dtype)


def resample_linear(samples: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """
    Linearly resample *samples* from *from_rate* to *to_rate*.

    Output sample i reads the input at position ``i * from_rate / to_rate``,
    interpolating between the floor and ceil indices (ceil clamped to the
    last input sample). The output has ``floor(len / ratio)`` samples.
    """
    if from_rate <= 0 or to_rate <= 0:
        raise ValueError("sample rates must be > 0")
    if from_rate == to_rate or len(samples) == 0:
        return samples

    ratio = from_rate / to_rate
    n_out = int(np.floor(len(samples) / ratio))

    positions = np.arange(n_out) * ratio
    lo = np.floor(positions).astype(np.int64)
    hi = np.minimum(lo + 1, len(samples) - 1)
    frac = positions - lo

    out = samples[lo] * (1.0 - frac) + samples[hi] * frac
    return out.astype(samples.dtype, copy=False)


def load_wav(path: Union[str, Path]) -> Tuple[np.ndarray, int]:
    """
    Decode a WAV file to mono float32 samples.

    Returns:
        Tuple of (samples, file_sample_rate).

    Raises:
        ConfigurationError: If the file is missing, has another extension,
            or cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Audio file not found: {path}")

    ext = path.suffix.lower()
    if ext == ".mp3":
        raise ConfigurationError("MP3 files not yet supported. Please use WAV files.")
    if ext not in SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported audio format: {ext or '(none)'}. "
            f"Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    try:
        rate, data = wavfile.read(path)
    except (ValueError, OSError) as exc:
        raise ConfigurationError(f"Failed to parse WAV file {path}: {exc}") from exc

    return downmix(pcm_to_float(data)), int(rate)


class FileSource(TimedSource):
    """Replays a WAV file at a fixed frame rate, looping at the end."""

    kind = SourceKind.FILE

    def __init__(
        self,
        path: Union[str, Path],
        playback_rate: float = 60.0,
        frame_length: int = FRAME_LENGTH,
        sample_rate: int = SAMPLE_RATE,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(
            rate=playback_rate,
            frame_length=frame_length,
            sample_rate=sample_rate,
            logger=logger,
        )
        self.path = Path(path)
        self.audio_data = np.zeros(0, dtype=np.float32)
        self.file_sample_rate = sample_rate
        self.position = 0

    @property
    def name(self) -> str:
        return f"File: {self.path.name}"

    @property
    def duration(self) -> float:
        """Duration of the loaded audio in seconds."""
        if len(self.audio_data) == 0:
            return 0.0
        return float(librosa.get_duration(y=self.audio_data, sr=self.sample_rate))

    async def initialize(self) -> None:
        self.log.info(f"Loading audio file: {self.path}")
        samples, rate = await asyncio.to_thread(load_wav, self.path)
        self.load_samples(samples, rate)
        # Checked after resampling, which can shorten a tiny file to nothing.
        if len(self.audio_data) == 0:
            raise ConfigurationError(f"Audio file contains no samples: {self.path}")

        self.log.info(
            f"Loaded WAV file: {len(self.audio_data)} samples, "
            f"{self.duration:.2f}s duration (file rate {rate}Hz)"
        )

    def load_samples(self, samples: np.ndarray, sample_rate: int) -> None:
        """Use in-memory mono samples instead of a decoded file."""
        samples = np.asarray(samples, dtype=np.float32)
        self.file_sample_rate = sample_rate
        if sample_rate != self.sample_rate:
            self.log.debug(f"Resampling from {sample_rate}Hz to {self.sample_rate}Hz")
            samples = resample_linear(samples, sample_rate, self.sample_rate)
        self.audio_data = samples
        self.position = 0

    async def _open(self) -> None:
        if len(self.audio_data) == 0:
            raise ConfigurationError(f"{self.name} has no audio loaded; call initialize() first")
        self.position = 0
        self.log.info(f"Starting file audio playback at {self.rate:g} FPS")

    def _make_frame(self) -> np.ndarray:
        if self.position >= len(self.audio_data):
            self.position = 0

        chunk = self.audio_data[self.position : self.position + self.frame_length]
        frame = np.zeros(self.frame_length, dtype=np.float32)
        frame[: len(chunk)] = chunk
        self.position += self.frame_length
        return frame

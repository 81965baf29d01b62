"""
Spectrum analysis for a single audio frame.

Turns one frame of normalized samples into a magnitude spectrum over the
positive-frequency half, locates the dominant frequency and reduces the
spectrum to a caller-chosen number of display bins.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from spectrascope.config import DFT_WINDOW_SIZE, FFT_WINDOW_SIZE, SAMPLE_RATE
from spectrascope.core.fft import FFTEngine, TransformKind


@dataclass
class FrequencyData:
    """Spectrum of one frame. Recomputed every tick, never retained."""

    frequencies: np.ndarray   # bin centre frequencies in Hz
    magnitudes: np.ndarray    # parallel to frequencies
    dominant_frequency: float
    total_energy: float       # sum of squared magnitudes
    sample_rate: int = SAMPLE_RATE
    window_size: int = 0      # samples actually transformed

    @property
    def n_bins(self) -> int:
        return len(self.magnitudes)

    @property
    def resolution_hz(self) -> float:
        """Width of one raw bin in Hz (0 for an empty spectrum)."""
        if self.window_size == 0:
            return 0.0
        return self.sample_rate / self.window_size


class SpectrumAnalyzer:
    """
    Computes magnitude spectra with a configurable transform engine.

    The window defaults to 512 samples for the FFT and 256 for the exact
    DFT, which is computed less often per unit time due to its cost.
    """

    def __init__(
        self,
        engine: Optional[FFTEngine] = None,
        window_size: Optional[int] = None,
        sample_rate: int = SAMPLE_RATE,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            engine: Transform engine (default: Cooley-Tukey).
            window_size: Maximum samples per transform (default depends on engine).
            sample_rate: Sample rate of incoming frames in Hz.
            logger: Logging handle (default: module logger).
        """
        self.engine = engine or FFTEngine.fast()
        if window_size is None:
            window_size = (
                DFT_WINDOW_SIZE if self.engine.kind is TransformKind.DFT else FFT_WINDOW_SIZE
            )
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1 (got {window_size})")
        self.window_size = window_size
        self.sample_rate = sample_rate
        self.log = logger or logging.getLogger(__name__)
        self.log.info(f"Using {self.engine.name} for frequency analysis")

    def analyze(self, frame: np.ndarray) -> FrequencyData:
        """
        Compute the magnitude spectrum of *frame*.

        At most ``window_size`` samples are used; shorter frames are
        transformed at their own length (no zero-padding).

        Args:
            frame: 1-D normalized samples.

        Returns:
            FrequencyData over the first half of the transform's bins.
        """
        samples = np.asarray(frame, dtype=np.float64)[: self.window_size]

        if self.log.isEnabledFor(logging.DEBUG) and len(samples) > 0:
            rms = float(np.sqrt(np.mean(samples * samples)))
            self.log.debug(
                f"{self.engine.name} input: {len(samples)} samples, RMS {rms:.6f}"
            )

        result = self.engine.transform(samples)
        # The fast transform may have truncated to a power of two.
        window = len(result)
        half = window // 2

        if half == 0:
            return FrequencyData(
                frequencies=np.zeros(0),
                magnitudes=np.zeros(0),
                dominant_frequency=0.0,
                total_energy=0.0,
                sample_rate=self.sample_rate,
                window_size=window,
            )

        magnitudes = result.magnitudes()[:half]
        frequencies = np.arange(half) * self.sample_rate / window

        # argmax resolves ties to the first occurrence
        dominant = float(frequencies[int(np.argmax(magnitudes))])
        total_energy = float(np.sum(magnitudes * magnitudes))

        self.log.debug(
            f"{self.engine.name} output: {half} bins, "
            f"max magnitude {float(np.max(magnitudes)):.6f}, total energy {total_energy:.6f}"
        )

        return FrequencyData(
            frequencies=frequencies,
            magnitudes=magnitudes,
            dominant_frequency=dominant,
            total_energy=total_energy,
            sample_rate=self.sample_rate,
            window_size=window,
        )

    @staticmethod
    def _bin_size(n_magnitudes: int, count: int) -> int:
        if count < 1:
            raise ValueError(f"bin count must be >= 1 (got {count})")
        return n_magnitudes // count

    def get_frequency_bins(self, data: FrequencyData, count: int) -> np.ndarray:
        """
        Reduce the spectrum to *count* display bins.

        The magnitudes are split into contiguous ranges of
        ``len(magnitudes) // count`` values and each bin is the mean of its
        range. Samples past ``count * bin_size`` are dropped.

        When *count* exceeds the spectrum length each magnitude fills one bin
        and the remaining bins are zero, so the result length always equals
        *count*.

        Raises:
            ValueError: If count < 1.
        """
        magnitudes = np.asarray(data.magnitudes, dtype=np.float64)
        bin_size = self._bin_size(len(magnitudes), count)

        if bin_size == 0:
            bins = np.zeros(count)
            bins[: len(magnitudes)] = magnitudes
            return bins

        usable = magnitudes[: count * bin_size]
        return usable.reshape(count, bin_size).mean(axis=1)

    def bin_ranges(self, data: FrequencyData, count: int) -> List[Tuple[float, float]]:
        """
        Frequency range ``(low_hz, high_hz)`` covered by each display bin.

        Matches the partition used by :meth:`get_frequency_bins`; zero-valued
        padding bins report an empty range at the top of the spectrum.
        """
        n = data.n_bins
        bin_size = self._bin_size(n, count)
        resolution = data.resolution_hz
        width = max(bin_size, 1)

        ranges = []
        for i in range(count):
            start = min(i * width, n)
            end = min(start + width, n)
            ranges.append((start * resolution, end * resolution))
        return ranges

"""
Pipeline driver: audio source -> spectrum -> smoothed display bins.

Two periodic tasks run on the same event loop. The source's own capture
task appends frames to its ring buffer at the source's cadence, and the
analysis loop here ticks at ``update_rate``. Each tick reads the newest
frame. A slow source can be read more than once and a fast one skips
frames.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from spectrascope.config import VisualizerConfig
from spectrascope.core.analyzer import SpectrumAnalyzer
from spectrascope.core.fft import FFTEngine, TransformKind
from spectrascope.core.smoother import StreamSmoother
from spectrascope.errors import SpectrascopeError
from spectrascope.log import child_logger
from spectrascope.sources import AudioSource, SourceKind, create_source


@dataclass
class BandLevel:
    """One display bin: its frequency range and smoothed magnitude."""

    low_hz: float
    high_hz: float
    magnitude: float
    level: float  # magnitude scaled by sensitivity


@dataclass
class SpectrumTick:
    """Output of one analysis tick, handed to the consumer."""

    index: int
    time: float
    dominant_frequency: float
    total_energy: float
    bands: List[BandLevel] = field(default_factory=list)

    @property
    def magnitudes(self) -> np.ndarray:
        return np.array([b.magnitude for b in self.bands])

    @property
    def levels(self) -> np.ndarray:
        return np.array([b.level for b in self.bands])


Consumer = Callable[[SpectrumTick], None]
ExtentProvider = Callable[[], Optional[int]]


class SpectrumPipeline:
    """
    Drives an :class:`AudioSource` and a :class:`SpectrumAnalyzer`.

    The consumer receives one :class:`SpectrumTick` per tick that had a
    frame available. ``extent_provider`` reports how many bins the
    consumer can show when ``auto_bin_count`` is enabled.
    """

    def __init__(
        self,
        source: AudioSource,
        config: Optional[VisualizerConfig] = None,
        analyzer: Optional[SpectrumAnalyzer] = None,
        smoother: Optional[StreamSmoother] = None,
        consumer: Optional[Consumer] = None,
        extent_provider: Optional[ExtentProvider] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or VisualizerConfig()
        self.log = logger or logging.getLogger(__name__)
        self.source = source

        if analyzer is None:
            kind = TransformKind.COOLEY_TUKEY if self.config.use_fft else TransformKind.DFT
            analyzer = SpectrumAnalyzer(
                engine=FFTEngine(kind),
                window_size=self.config.effective_window_size,
                sample_rate=self.config.sample_rate,
                logger=child_logger(logger, "analyzer"),
            )
        self.analyzer = analyzer
        self.smoother = smoother or StreamSmoother()
        self.consumer = consumer
        self.extent_provider = extent_provider

        self._running = False
        self._tick_index = 0
        self._started_at = 0.0

        self.log.debug(f"Pipeline created with {self.source.name} source")

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, fallback_to_synthetic: bool = False) -> None:
        """
        Initialize the source and start capturing.

        Args:
            fallback_to_synthetic: Replace a source that fails to initialize
                or start with a synthetic tone instead of raising.

        Raises:
            ConfigurationError, DeviceError: If the source cannot start and
                no fallback is requested.
        """
        if self._running:
            return

        self.log.info(f"Starting {self.source.name} audio source")
        try:
            await self._start_source()
        except SpectrascopeError as exc:
            self.log.error(f"Audio source failed: {exc}")
            if not fallback_to_synthetic or self.source.kind is SourceKind.SYNTHETIC:
                raise
            self.source.stop_capture()
            self.source = create_source(
                SourceKind.SYNTHETIC,
                self.config,
                logger=child_logger(self.log, "source"),
            )
            self.log.warning(f"Falling back to {self.source.name} source")
            await self._start_source()

        self._running = True
        self._tick_index = 0
        self._started_at = time.monotonic()

    async def _start_source(self) -> None:
        await self.source.initialize()
        await self.source.start_capture()

    def stop(self) -> None:
        """Stop capture and drop smoothing state. Safe to call repeatedly."""
        if not self._running:
            return
        self._running = False
        self.source.stop_capture()
        self.smoother.reset()
        self.log.info("Pipeline stopped")

    def bin_count(self) -> int:
        extent = self.extent_provider() if self.extent_provider is not None else None
        return self.config.resolve_bin_count(extent)

    def tick(self) -> Optional[SpectrumTick]:
        """
        Run one analysis step on the newest frame.

        Returns:
            The tick delivered to the consumer, or None when the pipeline is
            stopped or no frame has been produced yet.

        Raises:
            DeviceError: If the source stopped itself after a capture failure.
        """
        if not self._running:
            return None

        if self.source.error is not None:
            error = self.source.error
            self.stop()
            raise error

        frame = self.source.get_latest_audio_data()
        if frame is None:
            return None

        data = self.analyzer.analyze(frame)
        count = self.bin_count()
        bins = self.analyzer.get_frequency_bins(data, count)
        smoothed = self.smoother.apply(bins, self.config.smoothing)
        ranges = self.analyzer.bin_ranges(data, count)

        sensitivity = self.config.sensitivity
        bands = [
            BandLevel(low_hz=low, high_hz=high, magnitude=float(m), level=float(m) * sensitivity)
            for (low, high), m in zip(ranges, smoothed)
        ]

        tick = SpectrumTick(
            index=self._tick_index,
            time=time.monotonic() - self._started_at,
            dominant_frequency=data.dominant_frequency,
            total_energy=data.total_energy,
            bands=bands,
        )
        self._tick_index += 1

        self.log.debug(
            f"Tick {tick.index}: {count} bins, smoothing {self.config.smoothing:.2f}, "
            f"total energy {data.total_energy:.6f}"
        )

        if self.consumer is not None:
            self.consumer(tick)
        return tick

    async def run(self, duration: Optional[float] = None) -> int:
        """
        Tick at ``update_rate`` until :meth:`stop` or *duration* elapses.

        Starts the pipeline if needed and always stops it on exit.

        Returns:
            Number of ticks delivered to the consumer.

        Raises:
            DeviceError: If the source fails while running.
        """
        if not self._running:
            await self.start()

        loop = asyncio.get_running_loop()
        interval = 1.0 / self.config.update_rate
        deadline = None if duration is None else loop.time() + duration
        delivered = 0

        try:
            while self._running:
                if deadline is not None and loop.time() >= deadline:
                    break
                if self.tick() is not None:
                    delivered += 1
                await asyncio.sleep(interval)
        finally:
            self.stop()

        return delivered

    async def __aenter__(self) -> "SpectrumPipeline":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()


__all__ = [
    "BandLevel",
    "Consumer",
    "SpectrumPipeline",
    "SpectrumTick",
]

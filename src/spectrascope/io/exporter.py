"""
Tick serialization.

Writes each analysis tick as one JSON object per line so an external
renderer can consume the stream from a file or a pipe.
"""

import json
from typing import Any, Optional, TextIO

import numpy as np

from spectrascope.pipeline import SpectrumTick


class TickExporter:
    """
    Pipeline consumer that writes ticks as JSON lines.

    Each line has the form::

        {"index": 0, "time": 0.0167, "dominant_frequency": 430.66,
         "total_energy": 1.2e4,
         "bands": [{"low_hz": 0.0, "high_hz": 344.5, "magnitude": 1.5, "level": 7.5}, ...]}
    """

    def __init__(self, stream: TextIO, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            stream: Writable text stream.
            precision: Decimal places for floating point values.
        """
        self.stream = stream
        self.precision = precision
        self.written = 0

    def _round(self, value: float) -> Optional[float]:
        """Round to configured precision; NaN and inf become None."""
        f = float(value)
        if np.isnan(f) or np.isinf(f):
            return None
        return round(f, self.precision)

    def tick_to_dict(self, tick: SpectrumTick) -> dict[str, Any]:
        return {
            "index": tick.index,
            "time": self._round(tick.time),
            "dominant_frequency": self._round(tick.dominant_frequency),
            "total_energy": self._round(tick.total_energy),
            "bands": [
                {
                    "low_hz": self._round(band.low_hz),
                    "high_hz": self._round(band.high_hz),
                    "magnitude": self._round(band.magnitude),
                    "level": self._round(band.level),
                }
                for band in tick.bands
            ],
        }

    def __call__(self, tick: SpectrumTick) -> None:
        self.stream.write(json.dumps(self.tick_to_dict(tick), separators=(",", ":")) + "\n")
        self.stream.flush()
        self.written += 1

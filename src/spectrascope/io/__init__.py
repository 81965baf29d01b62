"""Output adapters for pipeline consumers."""

from spectrascope.io.exporter import TickExporter

__all__ = ["TickExporter"]

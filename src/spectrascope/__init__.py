"""Real-time audio spectrum analysis for reactive displays."""

from spectrascope.config import VisualizerConfig, load_config
from spectrascope.core.analyzer import FrequencyData, SpectrumAnalyzer
from spectrascope.core.fft import FFTEngine, TransformKind
from spectrascope.core.smoother import StreamSmoother
from spectrascope.errors import ConfigurationError, DeviceError, SpectrascopeError
from spectrascope.io.exporter import TickExporter
from spectrascope.pipeline import SpectrumPipeline, SpectrumTick
from spectrascope.sources import (
    CaptureMode,
    FileSource,
    LiveCaptureSource,
    SourceKind,
    SyntheticSource,
    create_source,
)

__version__ = "0.1.0"
__all__ = [
    "CaptureMode",
    "ConfigurationError",
    "DeviceError",
    "FFTEngine",
    "FileSource",
    "FrequencyData",
    "LiveCaptureSource",
    "SourceKind",
    "SpectrascopeError",
    "SpectrumAnalyzer",
    "SpectrumPipeline",
    "SpectrumTick",
    "StreamSmoother",
    "SyntheticSource",
    "TickExporter",
    "TransformKind",
    "VisualizerConfig",
    "create_source",
    "load_config",
]

"""Core spectrum processing modules."""

from spectrascope.core.analyzer import FrequencyData, SpectrumAnalyzer
from spectrascope.core.fft import FFTEngine, FFTResult, TransformKind
from spectrascope.core.smoother import StreamSmoother

__all__ = [
    "FFTEngine",
    "FFTResult",
    "FrequencyData",
    "SpectrumAnalyzer",
    "StreamSmoother",
    "TransformKind",
]

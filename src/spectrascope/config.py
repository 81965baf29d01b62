"""
Runtime configuration for the visualizer pipeline.

All settings live on a single dataclass so the CLI, JSON config files and
tests construct the pipeline the same way.
"""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from spectrascope.errors import ConfigurationError

SAMPLE_RATE = 44100
FRAME_LENGTH = 1024

# Window sizes per transform. The exact transform is O(N^2), so it gets
# a smaller window.
FFT_WINDOW_SIZE = 512
DFT_WINDOW_SIZE = 256

MIN_AUTO_BINS = 8
FALLBACK_EXTENT = 20


@dataclass
class VisualizerConfig:
    """Settings for sources, analysis and the display tick."""

    # Cadence
    update_rate: float = 60.0      # analysis ticks per second
    playback_rate: float = 60.0    # file/synthetic frames per second

    # Analysis
    smoothing: float = 0.3         # 0.0 = instant, 1.0 = frozen
    sensitivity: float = 5.0
    bin_count: int = 64
    auto_bin_count: bool = False
    max_bin_count: int = 128
    use_fft: bool = True
    window_size: Optional[int] = None

    # Signal
    frame_length: int = FRAME_LENGTH
    sample_rate: int = SAMPLE_RATE
    tone_frequency: float = 440.0
    tone_amplitude: float = 0.5

    debug_logging: bool = False

    def __post_init__(self):
        if self.update_rate <= 0:
            raise ConfigurationError(f"update_rate must be > 0 (got {self.update_rate})")
        if self.playback_rate <= 0:
            raise ConfigurationError(f"playback_rate must be > 0 (got {self.playback_rate})")
        if not 0.0 <= self.smoothing <= 1.0:
            raise ConfigurationError(f"smoothing must be in [0, 1] (got {self.smoothing})")
        if self.bin_count < 1:
            raise ConfigurationError(f"bin_count must be >= 1 (got {self.bin_count})")
        if self.max_bin_count < MIN_AUTO_BINS:
            raise ConfigurationError(
                f"max_bin_count must be >= {MIN_AUTO_BINS} (got {self.max_bin_count})"
            )
        if self.window_size is not None and self.window_size < 2:
            raise ConfigurationError(f"window_size must be >= 2 (got {self.window_size})")
        if self.frame_length < 1:
            raise ConfigurationError(f"frame_length must be >= 1 (got {self.frame_length})")
        if self.sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be > 0 (got {self.sample_rate})")

    @property
    def effective_window_size(self) -> int:
        """Configured window, or the default for the selected transform."""
        if self.window_size is not None:
            return self.window_size
        return FFT_WINDOW_SIZE if self.use_fft else DFT_WINDOW_SIZE

    def resolve_bin_count(self, visible_extent: Optional[int] = None) -> int:
        """
        Number of output bins for the current tick.

        With ``auto_bin_count`` the count follows the consumer's visible extent
        (two less than the extent, at least 8, at most ``max_bin_count``).
        An unknown extent counts as 20.
        """
        if not self.auto_bin_count:
            return self.bin_count

        extent = visible_extent if visible_extent is not None else FALLBACK_EXTENT
        extent = max(1, extent)
        return min(max(MIN_AUTO_BINS, extent - 2), self.max_bin_count)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "VisualizerConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(path: Union[str, Path]) -> VisualizerConfig:
    """
    Load a :class:`VisualizerConfig` from a JSON file.

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a JSON object.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        values = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Failed to read config file {path}: {exc}") from exc

    if not isinstance(values, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    try:
        return VisualizerConfig.from_dict(values)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid config file {path}: {exc}") from exc

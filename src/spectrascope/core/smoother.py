"""
Temporal smoothing of display bins.

Applies exponential smoothing across successive bin vectors so the
display does not flicker from one analysis tick to the next.
"""

from typing import Optional

import numpy as np


class StreamSmoother:
    """
    Exponential smoother over a stream of equal-length bin vectors.

    ``smoothed = factor * previous + (1 - factor) * current``

    The factor saturates at both ends: 0.0 passes the input through
    unchanged and 1.0 freezes the output at the first vector received.
    """

    def __init__(self):
        self._state: Optional[np.ndarray] = None

    @property
    def state(self) -> Optional[np.ndarray]:
        """Last smoothed vector, or None before the first call."""
        return None if self._state is None else self._state.copy()

    def apply(self, bins: np.ndarray, factor: float) -> np.ndarray:
        """
        Smooth *bins* against the retained state.

        The first call, and any call whose bin count differs from the
        retained state, reseeds the state and returns *bins* unsmoothed.

        Args:
            bins: Current bin magnitudes.
            factor: Weight of the previous state, in [0.0, 1.0].

        Returns:
            Smoothed bin vector (also stored as the new state).

        Raises:
            ValueError: If factor is outside [0.0, 1.0].
        """
        if not 0.0 <= factor <= 1.0:
            raise ValueError(f"smoothing factor must be in [0, 1] (got {factor})")

        current = np.asarray(bins, dtype=np.float64)

        if self._state is None or len(self._state) != len(current):
            self._state = current.copy()
            return current.copy()

        smoothed = factor * self._state + (1.0 - factor) * current
        self._state = smoothed
        return smoothed.copy()

    def reset(self) -> None:
        """Drop the retained state; the next call reseeds."""
        self._state = None

"""
Audio source capability interface and frame ring buffer.

Every source produces fixed-length mono float32 frames in [-1, 1] and
keeps the most recent ones in a small ring buffer. Frame production runs
as an asyncio task owned by the source; the analysis tick only ever reads
the newest frame, so no synchronization is needed.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from enum import Enum
from typing import Deque, List, Optional

import numpy as np

from spectrascope.config import FRAME_LENGTH, SAMPLE_RATE
from spectrascope.errors import SpectrascopeError

RING_BUFFER_CAPACITY = 10


class SourceKind(Enum):
    SYNTHETIC = "synthetic"
    FILE = "file"
    LIVE = "live"


class FrameRingBuffer:
    """Bounded FIFO of audio frames; the oldest frame is evicted on overflow."""

    def __init__(self, capacity: int = RING_BUFFER_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1 (got {capacity})")
        self.capacity = capacity
        self._frames: Deque[np.ndarray] = deque(maxlen=capacity)

    def append(self, frame: np.ndarray) -> None:
        self._frames.append(frame)

    def latest(self) -> Optional[np.ndarray]:
        if not self._frames:
            return None
        return self._frames[-1]

    def frames(self) -> List[np.ndarray]:
        """Retained frames, oldest first."""
        return list(self._frames)

    def clear(self) -> None:
        self._frames.clear()

    def __len__(self) -> int:
        return len(self._frames)


class AudioSource:
    """
    Base class for audio sources.

    Lifecycle::

        await source.initialize()      # validate resources
        await source.start_capture()   # spawn the capture task
        source.get_latest_audio_data() # poll from the analysis tick
        source.stop_capture()          # stop and release resources

    Starting an already-active source is a no-op, as is stopping an
    inactive one. Stopping clears the capture flag; sources whose loop
    blocks on a device override :meth:`_stop_task` and release from the
    loop itself.
    """

    kind: SourceKind

    def __init__(
        self,
        frame_length: int = FRAME_LENGTH,
        sample_rate: int = SAMPLE_RATE,
        logger: Optional[logging.Logger] = None,
    ):
        if frame_length < 1:
            raise ValueError(f"frame_length must be >= 1 (got {frame_length})")
        self.frame_length = frame_length
        self.sample_rate = sample_rate
        self.log = logger or logging.getLogger(__name__)
        # Set when the capture task stops on its own because of a failure.
        self.error: Optional[SpectrascopeError] = None

        self._buffer = FrameRingBuffer()
        self._is_capturing = False
        self._task: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        raise NotImplementedError

    @property
    def is_active(self) -> bool:
        return self._is_capturing

    @property
    def frames(self) -> List[np.ndarray]:
        return self._buffer.frames()

    async def initialize(self) -> None:
        """Validate configuration and resources."""

    async def start_capture(self) -> None:
        if self._is_capturing:
            self.log.debug(f"{self.name} already capturing; start ignored")
            return

        self.error = None
        await self._open()
        self._is_capturing = True
        self._task = asyncio.get_running_loop().create_task(
            self._capture_loop(), name=f"capture:{self.name}"
        )
        self.log.debug(f"{self.name} capture started")

    def stop_capture(self) -> None:
        if not self._is_capturing:
            return

        self._is_capturing = False
        task, self._task = self._task, None
        if task is None or task.done():
            self._close()
        else:
            self._stop_task(task)
        self.log.debug(f"{self.name} capture stopped")

    def get_latest_audio_data(self) -> Optional[np.ndarray]:
        """Most recent frame, or None if nothing has been produced yet."""
        return self._buffer.latest()

    def _add_frame(self, frame: np.ndarray) -> None:
        self._buffer.append(frame)

    def _fail(self, error: SpectrascopeError) -> None:
        """Stop capturing after an unrecoverable error and keep it for the driver."""
        self.log.error(str(error))
        self.error = error
        if self._is_capturing:
            self.log.warning(f"Stopping {self.name} capture due to persistent errors")
            self._is_capturing = False
            self._close()
        self._task = None

    def _stop_task(self, task: asyncio.Task) -> None:
        """Stop a running capture task. Cancels it and releases at once."""
        task.cancel()
        self._close()

    async def _open(self) -> None:
        """Acquire resources before the capture task starts."""

    def _close(self) -> None:
        """Release resources; called once per successful start."""

    async def _capture_loop(self) -> None:
        raise NotImplementedError


class TimedSource(AudioSource):
    """Source that produces one frame per timer tick."""

    def __init__(
        self,
        rate: float = 60.0,
        frame_length: int = FRAME_LENGTH,
        sample_rate: int = SAMPLE_RATE,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(frame_length=frame_length, sample_rate=sample_rate, logger=logger)
        if rate <= 0:
            raise ValueError(f"rate must be > 0 (got {rate})")
        self.rate = rate

    @property
    def interval(self) -> float:
        return 1.0 / self.rate

    def produce_frame(self) -> np.ndarray:
        """Build the next frame and append it to the ring buffer."""
        frame = self._make_frame()
        self._add_frame(frame)
        return frame

    def _make_frame(self) -> np.ndarray:
        raise NotImplementedError

    async def _capture_loop(self) -> None:
        while self._is_capturing:
            self.produce_frame()
            await asyncio.sleep(self.interval)

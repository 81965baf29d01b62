"""
Live capture from an input device (microphone or system-audio loopback).

The device is driven through a small recorder interface so the capture
loop can be exercised without audio hardware. The default recorder wraps
a ``sounddevice.InputStream`` delivering int16 frames.

Loopback mode picks the first input device whose name looks like a
monitor of the system output, with a per-platform second pass.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from spectrascope.config import FRAME_LENGTH, SAMPLE_RATE
from spectrascope.errors import ConfigurationError, DeviceError
from spectrascope.sources.base import AudioSource, SourceKind

LOOPBACK_KEYWORDS = (
    "loopback",
    "monitor",
    "stereo mix",
    "what u hear",
    "what you hear",
    "speakers",
    "output",
    "soundflower",
    "blackhole",
    "virtual",
    "system audio",
)

PLATFORM_LOOPBACK_KEYWORDS = {
    "linux": ("monitor", ".monitor"),               # PulseAudio / PipeWire monitors
    "win32": ("stereo mix", "what u hear"),
    "darwin": ("soundflower", "blackhole"),
}


class CaptureMode(Enum):
    MICROPHONE = "microphone"
    LOOPBACK = "loopback"


class Recorder(Protocol):
    """Blocking frame reader over one input device."""

    def start(self) -> None: ...

    def read(self) -> np.ndarray: ...

    def stop(self) -> None: ...

    def release(self) -> None: ...


RecorderFactory = Callable[[int, Optional[int], int], Recorder]
DeviceLister = Callable[[], List[Tuple[int, str]]]


def is_loopback_device(name: str) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in LOOPBACK_KEYWORDS)


def find_loopback_device(
    names: Sequence[str],
    platform: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> Optional[int]:
    """
    Position in *names* of the first loopback-capable device.

    Args:
        names: Device names in enumeration order.
        platform: ``sys.platform`` value selecting the fallback keyword set.
        logger: Logging handle.

    Returns:
        Index into *names*, or None if no device qualifies.
    """
    log = logger or logging.getLogger(__name__)
    platform = platform or sys.platform

    for i, name in enumerate(names):
        log.debug(f"Device {i}: {name}")
        if is_loopback_device(name):
            log.info(f"Found potential loopback device at index {i}: {name}")
            return i

    fallback = PLATFORM_LOOPBACK_KEYWORDS.get(platform, ())
    for i, name in enumerate(names):
        lowered = name.lower()
        if any(keyword in lowered for keyword in fallback):
            log.info(f"Found {platform} loopback device at index {i}: {name}")
            return i

    return None


def list_input_devices() -> List[Tuple[int, str]]:
    """``(device_index, name)`` for every device with input channels."""
    import sounddevice as sd

    return [
        (i, dev["name"])
        for i, dev in enumerate(sd.query_devices())
        if dev["max_input_channels"] > 0
    ]


class SoundDeviceRecorder:
    """Mono int16 recorder over a ``sounddevice.InputStream``."""

    def __init__(
        self,
        frame_length: int = FRAME_LENGTH,
        device: Optional[int] = None,
        sample_rate: int = SAMPLE_RATE,
    ):
        import sounddevice as sd

        self.frame_length = frame_length
        self._stream = sd.InputStream(
            device=device,
            channels=1,
            samplerate=sample_rate,
            blocksize=frame_length,
            dtype="int16",
        )

    def start(self) -> None:
        self._stream.start()

    def read(self) -> np.ndarray:
        data, _overflowed = self._stream.read(self.frame_length)
        return np.asarray(data)[:, 0].copy()

    def stop(self) -> None:
        self._stream.stop()

    def release(self) -> None:
        self._stream.close()


class LiveCaptureSource(AudioSource):
    """
    Captures fixed-length frames from an input device.

    Each frame read re-arms the next one until capture stops. Stopping only
    clears the capture flag; the loop releases the device once the read in
    flight returns. A failed read stops capture, releases the device and
    leaves the failure in :attr:`error` for the driver. The device is
    released at most once per :meth:`initialize`; call it again before
    restarting.
    """

    kind = SourceKind.LIVE

    def __init__(
        self,
        mode: CaptureMode = CaptureMode.MICROPHONE,
        frame_length: int = FRAME_LENGTH,
        sample_rate: int = SAMPLE_RATE,
        recorder_factory: RecorderFactory = SoundDeviceRecorder,
        device_lister: DeviceLister = list_input_devices,
        platform: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(frame_length=frame_length, sample_rate=sample_rate, logger=logger)
        self.mode = CaptureMode(mode)
        self.device_index: Optional[int] = None
        self._recorder_factory = recorder_factory
        self._device_lister = device_lister
        self._platform = platform or sys.platform
        self._recorder: Optional[Recorder] = None
        self._released = True
        self._draining: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        if self.mode is CaptureMode.LOOPBACK:
            return "System Audio Output"
        return "Microphone"

    async def initialize(self) -> None:
        await self._drain()
        self.log.info(f"Initializing {self.name} source...")

        if self.mode is CaptureMode.LOOPBACK:
            self.device_index = await self._select_loopback_device()
            self.log.info(f"Using loopback device index: {self.device_index}")

        try:
            self._recorder = self._recorder_factory(
                self.frame_length, self.device_index, self.sample_rate
            )
        except Exception as exc:
            raise ConfigurationError(f"Failed to initialize audio capture: {exc}") from exc

        self._released = False
        self.log.info(f"{self.name} capture initialized successfully")

    async def _select_loopback_device(self) -> int:
        try:
            devices = await asyncio.to_thread(self._device_lister)
        except Exception as exc:
            raise ConfigurationError(f"Cannot list audio devices: {exc}") from exc

        self.log.info(f"Found {len(devices)} audio input devices")
        names = [name for _, name in devices]
        position = find_loopback_device(names, platform=self._platform, logger=self.log)

        if position is None:
            self.log.warning("No loopback device found. Available devices:")
            for index, name in devices:
                self.log.warning(f"  {index}: {name}")
            raise ConfigurationError(
                "No system audio loopback device found. Please ensure your system "
                "has a monitor/loopback audio device enabled."
            )
        return devices[position][0]

    async def _drain(self) -> None:
        """Wait for a stopped capture task to release the device."""
        task, self._draining = self._draining, None
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def _open(self) -> None:
        await self._drain()
        if self._recorder is None:
            raise DeviceError(f"{self.name} capture not initialized")
        try:
            await asyncio.to_thread(self._recorder.start)
        except Exception as exc:
            self._close()
            raise DeviceError(f"Failed to start {self.name} capture: {exc}") from exc

    def _stop_task(self, task: asyncio.Task) -> None:
        # The loop sees the cleared flag and releases after its read returns.
        self._draining = task

    def _close(self) -> None:
        if self._released or self._recorder is None:
            return
        self._released = True
        recorder, self._recorder = self._recorder, None
        try:
            recorder.stop()
            recorder.release()
        except Exception as exc:
            self.log.error(f"Error stopping recorder: {exc}")

    async def _read(self, recorder: Recorder) -> np.ndarray:
        read = asyncio.ensure_future(asyncio.to_thread(recorder.read))
        try:
            return await asyncio.shield(read)
        except asyncio.CancelledError:
            # never release the device under a blocked read
            await asyncio.wait({read})
            if not read.cancelled():
                read.exception()
            raise

    async def _capture_loop(self) -> None:
        try:
            while self._is_capturing:
                recorder = self._recorder
                if recorder is None:
                    break
                try:
                    raw = await self._read(recorder)
                except Exception as exc:
                    if self._is_capturing:
                        self._fail(DeviceError(f"Error in {self.name} audio loop: {exc}"))
                    return

                # Capture may have stopped while the read was in flight.
                if not self._is_capturing:
                    break
                self._add_frame(np.asarray(raw, dtype=np.float32) / 32768.0)
                await asyncio.sleep(0)
        finally:
            self._close()

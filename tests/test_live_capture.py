"""Tests for live device capture, driven through a scripted recorder."""

import asyncio
import time

import numpy as np
import pytest

from spectrascope.errors import ConfigurationError, DeviceError
from spectrascope.pipeline import SpectrumPipeline
from spectrascope.sources import SyntheticSource
from spectrascope.sources.live import (
    CaptureMode,
    LiveCaptureSource,
    find_loopback_device,
    is_loopback_device,
)


class FakeRecorder:
    """Recorder returning scripted int16 frames."""

    def __init__(
        self,
        frames=None,
        fail_after=None,
        fail_on_start=False,
        frame_length=1024,
        read_time=0.001,
    ):
        self.frames = list(frames) if frames else [np.zeros(frame_length, dtype=np.int16)]
        self.fail_after = fail_after
        self.fail_on_start = fail_on_start
        self.read_time = read_time
        self.reads = 0
        self.starts = 0
        self.stops = 0
        self.releases = 0
        self.in_read = False
        self.closed_during_read = False

    def start(self):
        if self.fail_on_start:
            raise OSError("device busy")
        self.starts += 1

    def read(self):
        self.in_read = True
        try:
            time.sleep(self.read_time)
            if self.fail_after is not None and self.reads >= self.fail_after:
                raise OSError("device unplugged")
            frame = self.frames[self.reads % len(self.frames)]
            self.reads += 1
            return frame
        finally:
            self.in_read = False

    def stop(self):
        self.closed_during_read |= self.in_read
        self.stops += 1

    def release(self):
        self.closed_during_read |= self.in_read
        self.releases += 1


class FakeFactory:
    def __init__(self, recorder=None, error=None):
        self.recorder = recorder or FakeRecorder()
        self.error = error
        self.calls = []

    def __call__(self, frame_length, device, sample_rate):
        self.calls.append((frame_length, device, sample_rate))
        if self.error is not None:
            raise self.error
        return self.recorder


def lister(*names):
    # device indices deliberately differ from list positions
    return lambda: [(10 + i, name) for i, name in enumerate(names)]


async def wait_for(condition, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# Loopback device selection
# ---------------------------------------------------------------------------

class TestLoopbackSelection:
    @pytest.mark.parametrize(
        "name",
        ["Monitor of Built-in Audio", "Stereo Mix (Realtek)", "BlackHole 2ch", "CABLE Output"],
    )
    def test_loopback_names(self, name):
        assert is_loopback_device(name)

    def test_plain_microphone_is_not_loopback(self):
        assert not is_loopback_device("USB Microphone")

    def test_first_match_wins(self):
        names = ["Built-in Microphone", "Monitor of Speakers", "Stereo Mix"]
        assert find_loopback_device(names, platform="linux") == 1

    def test_no_match(self):
        assert find_loopback_device(["Mic A", "Mic B"], platform="linux") is None

    def test_empty_list(self):
        assert find_loopback_device([], platform="darwin") is None

    @pytest.mark.asyncio
    async def test_initialize_selects_device_index(self, quiet_logger):
        factory = FakeFactory()
        source = LiveCaptureSource(
            mode=CaptureMode.LOOPBACK,
            recorder_factory=factory,
            device_lister=lister("Webcam Mic", "Monitor of Built-in Audio"),
            platform="linux",
            logger=quiet_logger,
        )

        await source.initialize()

        assert source.device_index == 11
        assert factory.calls == [(1024, 11, 44100)]

    @pytest.mark.asyncio
    async def test_no_loopback_device(self, quiet_logger, caplog):
        source = LiveCaptureSource(
            mode=CaptureMode.LOOPBACK,
            recorder_factory=FakeFactory(),
            device_lister=lister("Webcam Mic"),
            logger=quiet_logger,
        )

        with pytest.raises(ConfigurationError, match="loopback"):
            await source.initialize()
        assert any("Webcam Mic" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_lister_failure(self, quiet_logger):
        def broken():
            raise OSError("PortAudio not initialized")

        source = LiveCaptureSource(
            mode=CaptureMode.LOOPBACK,
            recorder_factory=FakeFactory(),
            device_lister=broken,
            logger=quiet_logger,
        )
        with pytest.raises(ConfigurationError, match="list audio devices"):
            await source.initialize()

    @pytest.mark.asyncio
    async def test_microphone_uses_default_device(self, quiet_logger):
        factory = FakeFactory()
        source = LiveCaptureSource(recorder_factory=factory, logger=quiet_logger)
        await source.initialize()
        assert factory.calls == [(1024, None, 44100)]
        assert source.name == "Microphone"


# ---------------------------------------------------------------------------
# Capture lifecycle
# ---------------------------------------------------------------------------

class TestLiveCapture:
    @pytest.mark.asyncio
    async def test_recorder_creation_failure(self, quiet_logger):
        source = LiveCaptureSource(
            recorder_factory=FakeFactory(error=RuntimeError("no such device")),
            logger=quiet_logger,
        )
        with pytest.raises(ConfigurationError, match="no such device"):
            await source.initialize()

    @pytest.mark.asyncio
    async def test_frames_normalized(self, quiet_logger):
        raw = np.array([0, 16384, -32768, 32767], dtype=np.int16)
        recorder = FakeRecorder(frames=[raw])
        source = LiveCaptureSource(
            frame_length=4, recorder_factory=FakeFactory(recorder), logger=quiet_logger
        )
        await source.initialize()
        await source.start_capture()

        await wait_for(lambda: source.get_latest_audio_data() is not None)
        source.stop_capture()
        await asyncio.sleep(0.01)

        frame = source.frames[0]
        assert frame.dtype == np.float32
        np.testing.assert_allclose(frame, [0.0, 0.5, -1.0, 32767 / 32768], rtol=1e-6)

    @pytest.mark.asyncio
    async def test_ring_buffer_bounded(self, quiet_logger):
        source = LiveCaptureSource(recorder_factory=FakeFactory(), logger=quiet_logger)
        await source.initialize()
        await source.start_capture()

        await wait_for(lambda: source._recorder is None or source._recorder.reads >= 15)
        source.stop_capture()
        await asyncio.sleep(0.01)

        assert len(source.frames) == 10

    @pytest.mark.asyncio
    async def test_read_failure_stops_and_releases_once(self, quiet_logger):
        recorder = FakeRecorder(fail_after=3)
        source = LiveCaptureSource(recorder_factory=FakeFactory(recorder), logger=quiet_logger)
        await source.initialize()
        await source.start_capture()

        await wait_for(lambda: source.error is not None)

        assert isinstance(source.error, DeviceError)
        assert not source.is_active
        assert len(source.frames) == 3
        assert recorder.stops == 1
        assert recorder.releases == 1

        source.stop_capture()
        assert recorder.releases == 1

    @pytest.mark.asyncio
    async def test_double_stop_releases_once(self, quiet_logger):
        recorder = FakeRecorder()
        source = LiveCaptureSource(recorder_factory=FakeFactory(recorder), logger=quiet_logger)
        await source.initialize()
        await source.start_capture()
        await wait_for(lambda: recorder.reads >= 1)

        source.stop_capture()
        source.stop_capture()
        await wait_for(lambda: recorder.releases >= 1)
        await asyncio.sleep(0.01)

        assert recorder.releases == 1
        assert recorder.stops == 1

    @pytest.mark.asyncio
    async def test_release_waits_for_read_in_flight(self, quiet_logger):
        recorder = FakeRecorder(read_time=0.05)
        source = LiveCaptureSource(recorder_factory=FakeFactory(recorder), logger=quiet_logger)
        await source.initialize()
        await source.start_capture()
        await wait_for(lambda: recorder.in_read)

        source.stop_capture()

        assert not source.is_active
        assert recorder.releases == 0
        await wait_for(lambda: recorder.releases == 1)
        assert not recorder.closed_during_read
        assert recorder.stops == 1

    @pytest.mark.asyncio
    async def test_cancelled_task_waits_for_read(self, quiet_logger):
        recorder = FakeRecorder(read_time=0.05)
        source = LiveCaptureSource(recorder_factory=FakeFactory(recorder), logger=quiet_logger)
        await source.initialize()
        await source.start_capture()
        await wait_for(lambda: recorder.in_read)

        task = source._task
        task.cancel()
        await asyncio.wait({task})

        assert recorder.releases == 1
        assert not recorder.closed_during_read

    @pytest.mark.asyncio
    async def test_start_twice_starts_device_once(self, quiet_logger):
        recorder = FakeRecorder()
        source = LiveCaptureSource(recorder_factory=FakeFactory(recorder), logger=quiet_logger)
        await source.initialize()
        await source.start_capture()
        await source.start_capture()

        assert recorder.starts == 1
        source.stop_capture()
        await asyncio.sleep(0.01)

    @pytest.mark.asyncio
    async def test_start_without_initialize(self, quiet_logger):
        source = LiveCaptureSource(recorder_factory=FakeFactory(), logger=quiet_logger)
        with pytest.raises(DeviceError, match="not initialized"):
            await source.start_capture()
        assert not source.is_active

    @pytest.mark.asyncio
    async def test_device_start_failure(self, quiet_logger):
        recorder = FakeRecorder(fail_on_start=True)
        source = LiveCaptureSource(recorder_factory=FakeFactory(recorder), logger=quiet_logger)
        await source.initialize()

        with pytest.raises(DeviceError, match="device busy"):
            await source.start_capture()
        assert not source.is_active
        assert recorder.releases == 1

        source.stop_capture()
        assert recorder.releases == 1

    @pytest.mark.asyncio
    async def test_start_failure_released_on_fallback(self, quiet_logger):
        recorder = FakeRecorder(fail_on_start=True)
        source = LiveCaptureSource(recorder_factory=FakeFactory(recorder), logger=quiet_logger)
        pipeline = SpectrumPipeline(source, logger=quiet_logger)

        await pipeline.start(fallback_to_synthetic=True)
        assert isinstance(pipeline.source, SyntheticSource)
        pipeline.stop()
        source.stop_capture()
        await asyncio.sleep(0.01)

        assert recorder.releases == 1
        assert recorder.stops == 1

    @pytest.mark.asyncio
    async def test_restart_requires_initialize(self, quiet_logger):
        recorder = FakeRecorder()
        source = LiveCaptureSource(recorder_factory=FakeFactory(recorder), logger=quiet_logger)
        await source.initialize()
        await source.start_capture()
        await wait_for(lambda: recorder.reads >= 1)
        source.stop_capture()

        # start waits for the stopped loop to release before checking the device
        with pytest.raises(DeviceError, match="not initialized"):
            await source.start_capture()
        assert recorder.releases == 1

        await source.initialize()
        await source.start_capture()
        assert source.is_active
        source.stop_capture()
        await wait_for(lambda: recorder.releases == 2)
        assert not recorder.closed_during_read

"""Shared fixtures for spectrascope tests."""

import logging

import numpy as np
import pytest

TEST_SR = 44100


def sine(frequency: float, n_samples: int, amplitude: float = 0.5, sr: int = TEST_SR) -> np.ndarray:
    t = np.arange(n_samples) / sr
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


@pytest.fixture
def pure_sine():
    """1024 samples of a 440 Hz tone at 44.1 kHz."""
    return sine(440.0, 1024)


@pytest.fixture
def mixed_signal():
    """Two tones (220 Hz loud, 3 kHz quiet) with a little noise."""
    rng = np.random.default_rng(7)
    n = 1024
    y = sine(220.0, n, 0.6) + sine(3000.0, n, 0.2)
    y = y + 0.01 * rng.standard_normal(n).astype(np.float32)
    return y.astype(np.float32)


@pytest.fixture
def quiet_logger():
    """Logger with no handlers that still records at DEBUG level."""
    logger = logging.getLogger("tests.quiet")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def make_sine():
    """Factory: make_sine(frequency, n_samples, amplitude=0.5, sr=44100)."""
    return sine

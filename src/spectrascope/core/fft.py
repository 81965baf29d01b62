"""
Discrete Fourier transform engines.

Two interchangeable algorithms over real-valued input:

* ``TransformKind.DFT``: direct O(N^2) summation, exact for any length.
* ``TransformKind.COOLEY_TUKEY``: iterative radix-2 FFT, O(N log N).
  Input is truncated (never zero-padded) to the largest power of two
  that fits.

On power-of-two input both produce the same spectrum to within floating
point tolerance.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict

import numpy as np

# Bounds the DFT's working memory to DFT_CHUNK_ROWS * N values.
DFT_CHUNK_ROWS = 64


@dataclass(frozen=True)
class FFTResult:
    """Real and imaginary parts of a transform, equal length."""

    real: np.ndarray
    imag: np.ndarray

    def __len__(self) -> int:
        return len(self.real)

    def magnitudes(self) -> np.ndarray:
        return np.sqrt(self.real * self.real + self.imag * self.imag)


class TransformKind(Enum):
    DFT = "dft"
    COOLEY_TUKEY = "cooley-tukey"


def _as_samples(samples) -> np.ndarray:
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError(f"transform input must be 1-D, got shape {x.shape}")
    return x


def largest_power_of_two(n: int) -> int:
    """Largest power of two <= n (0 for n < 1)."""
    if n < 1:
        return 0
    return 1 << (n.bit_length() - 1)


def bit_reverse_indices(n: int) -> np.ndarray:
    """
    Bit-reversed index permutation for a power-of-two length.

    Example: for n=8, index 1 (001) maps to 4 (100).
    """
    bits = n.bit_length() - 1
    idx = np.arange(n)
    rev = np.zeros(n, dtype=np.int64)
    for b in range(bits):
        rev = (rev << 1) | ((idx >> b) & 1)
    return rev


def dft(samples) -> FFTResult:
    """
    Direct discrete Fourier transform.

    X[k] = sum_n x[n] * (cos(-2*pi*k*n/N) + i*sin(-2*pi*k*n/N))
    """
    x = _as_samples(samples)
    n = len(x)
    if n == 0:
        return FFTResult(np.zeros(0), np.zeros(0))

    k = np.arange(n)
    real = np.empty(n)
    imag = np.empty(n)
    # Rows of the twiddle matrix are built DFT_CHUNK_ROWS at a time.
    for start in range(0, n, DFT_CHUNK_ROWS):
        rows = k[start : start + DFT_CHUNK_ROWS]
        # Reduce k*n mod N before scaling so large products keep their precision.
        angle = -2.0 * np.pi * (np.outer(rows, k) % n) / n
        real[start : start + len(rows)] = np.cos(angle) @ x
        imag[start : start + len(rows)] = np.sin(angle) @ x
    return FFTResult(real=real, imag=imag)


def cooley_tukey_fft(samples) -> FFTResult:
    """
    Iterative radix-2 Cooley-Tukey FFT.

    Bit-reversal permutation first, then butterfly stages of size
    2, 4, 8, ... N. Each stage combines the two halves of every block with
    twiddle factors cos(-2*pi*j/size) + i*sin(-2*pi*j/size).
    """
    x = _as_samples(samples)
    n = largest_power_of_two(len(x))
    if n == 0:
        return FFTResult(np.zeros(0), np.zeros(0))

    real = x[:n][bit_reverse_indices(n)]
    imag = np.zeros(n)

    size = 2
    while size <= n:
        half = size // 2
        angle = -2.0 * np.pi * np.arange(half) / size
        w_re = np.cos(angle)
        w_im = np.sin(angle)

        # Each row is one block; views write straight through to real/imag.
        re = real.reshape(-1, size)
        im = imag.reshape(-1, size)
        u_re = re[:, :half].copy()
        u_im = im[:, :half].copy()
        v_re = re[:, half:]
        v_im = im[:, half:]

        t_re = v_re * w_re - v_im * w_im
        t_im = v_re * w_im + v_im * w_re

        re[:, half:] = u_re - t_re
        im[:, half:] = u_im - t_im
        re[:, :half] = u_re + t_re
        im[:, :half] = u_im + t_im

        size *= 2

    return FFTResult(real=real, imag=imag)


_TRANSFORMS: Dict[TransformKind, Callable[[np.ndarray], FFTResult]] = {
    TransformKind.DFT: dft,
    TransformKind.COOLEY_TUKEY: cooley_tukey_fft,
}

_NAMES = {
    TransformKind.DFT: "DFT",
    TransformKind.COOLEY_TUKEY: "Cooley-Tukey FFT",
}


class FFTEngine:
    """Transform engine selected by :class:`TransformKind`."""

    def __init__(self, kind: TransformKind = TransformKind.COOLEY_TUKEY):
        self.kind = TransformKind(kind)

    @classmethod
    def fast(cls) -> "FFTEngine":
        return cls(TransformKind.COOLEY_TUKEY)

    @classmethod
    def exact(cls) -> "FFTEngine":
        return cls(TransformKind.DFT)

    @property
    def name(self) -> str:
        return _NAMES[self.kind]

    def output_length(self, n_samples: int) -> int:
        """Number of bins :meth:`transform` returns for *n_samples* inputs."""
        if self.kind is TransformKind.COOLEY_TUKEY:
            return largest_power_of_two(n_samples)
        return max(0, n_samples)

    def transform(self, samples) -> FFTResult:
        return _TRANSFORMS[self.kind](samples)

    def __repr__(self) -> str:
        return f"FFTEngine({self.kind.name})"

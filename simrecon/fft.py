"""
Centered FFT's which run on the CPU or GPU depending on the array type.

All spectra in this package use the centered convention, i.e. the zero frequency is at index n // 2 along
every transformed axis and the real-space origin is also at pixel n // 2.
"""

from typing import Union, Optional
import numpy as np
import numpy.fft as fft_cpu

try:
    import cupy as cp
    import cupyx.scipy.fft as fft_gpu
except ImportError:
    cp = None
    fft_gpu = None

if cp:
    array = Union[np.ndarray, cp.ndarray]
else:
    array = np.ndarray


def _get_fft_module(m: array):
    if cp and isinstance(m, cp.ndarray):
        return fft_gpu
    return fft_cpu


def _all_axes(m: array,
              axes: Optional[tuple[int, ...]]) -> tuple[int, ...]:
    if axes is None:
        return tuple(range(-m.ndim, 0))
    return tuple(axes)


def ftn(m: array,
        axes: Optional[tuple[int, ...]] = None,
        shift: bool = True) -> array:
    """
    nD FFT which handles fftshifting appropriately

    :param m: array to perform Fourier transform on
    :param axes: axes to transform. By default, all axes are transformed
    :param shift: whether to shift the arrays to move zero index from/to the center.
      When True, the spatial coordinates for each pixel are range(n) - (n // 2) along a dimension of size n
      When False, the spatial coordinates are range(n)
    :return ft: Fourier transform. Frequencies can be found with fftshift(fftfreq(n, dr)) if shift is True,
      or fftfreq(n, dr) otherwise.
    """
    fft = _get_fft_module(m)
    axes = _all_axes(m, axes)

    if not shift:
        return fft.fftn(m, axes=axes)

    return fft.fftshift(fft.fftn(fft.ifftshift(m, axes=axes), axes=axes), axes=axes)


def iftn(m: array,
         axes: Optional[tuple[int, ...]] = None,
         shift: bool = True) -> array:
    """
    Inverse function for ftn()

    :param m:
    :param axes:
    :param shift:
    :return ift:
    """
    fft = _get_fft_module(m)
    axes = _all_axes(m, axes)

    if not shift:
        return fft.ifftn(m, axes=axes)

    return fft.fftshift(fft.ifftn(fft.ifftshift(m, axes=axes), axes=axes), axes=axes)


def ft2(m: array,
        shift: bool = True) -> array:
    """
    2D FFT over the last two axes

    :param m:
    :param shift:
    :return ft2:
    """
    return ftn(m, axes=(-2, -1), shift=shift)


def ift2(m: array,
         shift: bool = True) -> array:
    """
    Inverse function for ft2()

    :param m:
    :param shift:
    :return ift2:
    """
    return iftn(m, axes=(-2, -1), shift=shift)


def ft3(m: array,
        shift: bool = True) -> array:
    """
    3D FFT over the last three axes

    :param m:
    :param shift:
    :return ft3:
    """
    return ftn(m, axes=(-3, -2, -1), shift=shift)


def ift3(m: array,
         shift: bool = True) -> array:
    """
    Inverse to ft3()

    :param m:
    :param shift:
    :return ift3:
    """
    return iftn(m, axes=(-3, -2, -1), shift=shift)


def get_fft_pos(n: int,
                dr: float = 1.) -> np.ndarray:
    """
    Real space positions matching the centered FFT convention, (arange(n) - n // 2) * dr

    :param n:
    :param dr:
    :return pos:
    """
    return (np.arange(n) - n // 2) * dr

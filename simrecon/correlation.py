"""
Estimate SIM parameters from the cross-correlation of separated bands.

Band 0 contains :math:`O(f) H_0(f)` and the band 1 component contains :math:`m e^{i \\phi} O(f - k) H_1(f)`.
Shifting band 1 by -k and correlating with band 0 over the frequencies both bands share gives

.. math::

  C(k) = \\frac{\\sum_r b_1(r) e^{-2 \\pi i k \\cdot r} b_0^*(r)}{\\sum_r |b_0(r)|^2} \\approx m e^{i \\phi}

The shift k maximizing :math:`|C(k)|` is the illumination wave vector, the phase of C is the global phase offset,
and the magnitude is the modulation depth.

All functions accept 2D (ny x nx) or 3D (nz x ny x nx) spectra in the centered FFT convention. Shifts are lateral
and measured in frequency pixels.
"""

from typing import Union, Optional
import numpy as np
from dask import delayed, compute
from simrecon.fft import iftn
from simrecon.sim_utils import get_frq_coords, get_phase_ramp, place_freq, fourier_shift
from simrecon.errors import DimensionMismatchError

try:
    import cupy as cp
except ImportError:
    cp = None

if cp:
    array = Union[np.ndarray, cp.ndarray]
else:
    array = np.ndarray


def _check_same_shape(band0: array, band1: array):
    if band0.shape != band1.shape:
        raise DimensionMismatchError(f"band shapes {band0.shape} and {band1.shape} differ")


def common_region(band0: array,
                  band1: array,
                  bn0: int,
                  bn1: int,
                  otf,
                  kx: float,
                  ky: float,
                  dist: float = 0.15,
                  weight_limit: float = 0.05,
                  divide_by_otf: bool = True,
                  exclude_dc: Optional[bool] = None) -> (array, array):
    """
    Restrict two bands to the frequency region they share when band1 is shifted by -k

    Band 0 is kept where both the OTF of band bn0 and the same OTF centered at -k exceed weight_limit. Band 1 is
    kept where both the OTF of band bn1 and the same OTF centered at +k exceed weight_limit.

    :param band0: spectrum of band 0
    :param band1: spectrum of band 1, content located at +k
    :param bn0: OTF band index for band0
    :param bn1: OTF band index for band1
    :param otf: OtfProvider or OtfProvider3D, with the pixel size set
    :param kx: shift in frequency pixels
    :param ky:
    :param dist: fraction of |k| excluded around the zero frequency and near |k|
    :param weight_limit: minimum OTF magnitude
    :param divide_by_otf: divide the surviving frequencies by their OTF
    :param exclude_dc: whether to zero the region near DC. By default, this is done for 2D data only
    :return band0_common, band1_common: new arrays
    """
    _check_same_shape(band0, band1)

    if exclude_dc is None:
        exclude_dc = band0.ndim == 2

    if cp and isinstance(band0, cp.ndarray):
        xp = cp
    else:
        xp = np

    shape = band0.shape
    weight0 = xp.asarray(otf.write_otf_vector(shape, bn0, 0, 0))
    weight1 = xp.asarray(otf.write_otf_vector(shape, bn1, 0, 0))
    wt0 = xp.asarray(otf.write_otf_vector(shape, bn0, -kx, -ky))
    wt1 = xp.asarray(otf.write_otf_vector(shape, bn1, kx, ky))

    mask0 = xp.logical_and(abs(weight0) >= weight_limit, abs(wt0) >= weight_limit)
    mask1 = xp.logical_and(abs(weight1) >= weight_limit, abs(wt1) >= weight_limit)

    b0 = xp.zeros(shape, dtype=complex)
    b1 = xp.zeros(shape, dtype=complex)
    if divide_by_otf:
        b0[mask0] = band0[mask0] / weight0[mask0]
        b1[mask1] = band1[mask1] / weight1[mask1]
    else:
        b0[mask0] = band0[mask0]
        b1[mask1] = band1[mask1]

    if exclude_dc:
        ny, nx = shape[-2:]
        rad = np.sqrt(np.expand_dims(get_frq_coords(nx), axis=0)**2 +
                      np.expand_dims(get_frq_coords(ny), axis=1)**2)
        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = rad / np.sqrt(kx**2 + ky**2)
        dc_mask = np.logical_or(ratio < dist, ratio > 1 - dist)

        # band1 pixels matching the excluded band0 pixels, to pixel precision
        dc_mask_shifted = np.roll(dc_mask, shift=(int(ky), int(kx)), axis=(-2, -1))

        b0[..., xp.asarray(dc_mask)] = 0
        b1[..., xp.asarray(dc_mask_shifted)] = 0

    return b0, b1


def locate_peak(vec: array,
                k_min: float) -> (float, float, float, float):
    """
    Find the pixel with the largest magnitude at distance > k_min from the zero frequency. For 3D spectra
    only the kz = 0 plane is searched

    :param vec: spectrum
    :param k_min: minimum distance from zero frequency in pixels
    :return x, y, magnitude, phase: x and y are signed pixel coordinates relative to the zero frequency
    """
    if vec.ndim == 3:
        vec = vec[vec.shape[0] // 2]

    if cp and isinstance(vec, cp.ndarray):
        vec = vec.get()

    ny, nx = vec.shape
    fx = get_frq_coords(nx)
    fy = get_frq_coords(ny)
    rad = np.sqrt(np.expand_dims(fx, axis=0)**2 + np.expand_dims(fy, axis=1)**2)

    mag = np.abs(vec)
    mag[rad <= k_min] = -1
    iy, ix = np.unravel_index(np.argmax(mag), mag.shape)

    return float(fx[ix]), float(fy[iy]), float(abs(vec[iy, ix])), float(np.angle(vec[iy, ix]))


def _shifted_correlation(b1_real: array,
                         b0_real: array,
                         kx: float,
                         ky: float,
                         norm: float) -> complex:
    """
    Correlation between b0 and b1 after moving the spectrum of b1 by -k
    """
    use_gpu = cp and isinstance(b1_real, cp.ndarray)
    ramp = get_phase_ramp(b1_real.shape, -kx, -ky, use_gpu=use_gpu)
    corr = (b1_real * ramp * b0_real.conj()).sum() / norm

    return complex(corr)


def fit_peak(band0: array,
             band1: array,
             bn0: int,
             bn1: int,
             otf,
             kx: float,
             ky: float,
             weight_limit: float,
             search: float,
             cntrl: Optional[np.ndarray] = None,
             project_for_search: bool = False,
             scheduler: str = "threads",
             log=None) -> (float, float, float, float):
    """
    Refine the shift between band0 and band1 by searching a 10 x 10 grid of cross-correlations in three rounds.
    After each round, the grid is centered on the best point and shrunk by a factor of 5.

    :param band0: spectrum of band 0
    :param band1: spectrum of band 1
    :param bn0: OTF band index for band0
    :param bn1: OTF band index for band1
    :param otf: OtfProvider or OtfProvider3D with the pixel size set
    :param kx: starting guess for shift in frequency pixels
    :param ky:
    :param weight_limit: minimum OTF magnitude of the common region
    :param search: initial search range, grid covers k +/- search
    :param cntrl: optional 10 x 30 array which is filled with the normalized correlation magnitudes of each round
    :param project_for_search: for 3D data, sum along z in real space before computing the correlations
    :param scheduler: dask scheduler used to evaluate the grid. Use "synchronous" when this function
      is already called from a parallel context
    :param log: function used to print progress messages
    :return kx, ky, phase, magnitude:
    """
    _check_same_shape(band0, band1)

    if log is None:
        def log(s): pass

    phase = 0.
    mag = 0.
    for it in range(3):
        b0, b1 = common_region(band0, band1, bn0, bn1, otf, kx, ky, 0.15, weight_limit, True)

        b0 = iftn(b0)
        b1 = iftn(b1)
        if project_for_search and b0.ndim == 3:
            b0 = b0.sum(axis=0)
            b1 = b1.sum(axis=0)

        norm = float((abs(b0)**2).sum())

        log(f"peak, search round {it:d}: kx [{kx - search:6.3f} -- {kx + search:6.3f}],"
            f" ky [{ky - search:6.3f} -- {ky + search:6.3f}]")

        offsets = (np.arange(10) - 4.5) / 4.5 * search
        r = []
        for yi in range(10):
            for xi in range(10):
                r.append(delayed(_shifted_correlation)(b1, b0, kx + offsets[xi], ky + offsets[yi], norm))
        corr = np.array(compute(*r, scheduler=scheduler)).reshape((10, 10))

        corr_mag = np.abs(corr)
        yi, xi = np.unravel_index(np.argmax(corr_mag), corr_mag.shape)

        if cntrl is not None:
            cmax = corr_mag.max()
            cmin = corr_mag.min()
            if cmax > cmin:
                cntrl[:, 10 * it:10 * (it + 1)] = (corr_mag - cmin) / (cmax - cmin)
            else:
                cntrl[:, 10 * it:10 * (it + 1)] = 0

        kx = kx + offsets[xi]
        ky = ky + offsets[yi]
        phase = float(np.angle(corr[yi, xi]))
        mag = float(corr_mag[yi, xi])

        log(f"peak, new kx, ky: {kx:6.3f} {ky:6.3f} ({np.sqrt(kx**2 + ky**2):6.3f})"
            f" phase {phase:6.3f} mag {mag:5.4e}")

        search /= 5

    return float(kx), float(ky), phase, mag


def get_peak(band0: array,
             band1: array,
             bn0: int,
             bn1: int,
             otf,
             kx: float,
             ky: float,
             weight_limit: float) -> complex:
    """
    Complex cross-correlation of band0 and band1 at a fixed shift k

    :param band0:
    :param band1:
    :param bn0:
    :param bn1:
    :param otf:
    :param kx:
    :param ky:
    :param weight_limit:
    :return corr: magnitude is the modulation depth, angle is the phase offset
    """
    _check_same_shape(band0, band1)

    b0, b1 = common_region(band0, band1, bn0, bn1, otf, kx, ky, 0.15, weight_limit, True)
    b0 = iftn(b0)
    b1 = iftn(b1)

    return _shifted_correlation(b1, b0, kx, ky, float((abs(b0)**2).sum()))


def auto_correlation(img_ft: array,
                     kx: float,
                     ky: float) -> complex:
    """
    Auto-correlation of a raw image spectrum at shift k, used to determine the pattern phase of single images
    following Wicker et al. The angle of the result is the phase of the illumination pattern.

    :param img_ft: n x n spectrum
    :param kx:
    :param ky:
    :return corr:
    """
    if img_ft.ndim != 2 or img_ft.shape[0] != img_ft.shape[1]:
        raise DimensionMismatchError(f"auto-correlation requires a square image, but shape was {img_ft.shape}")

    a = place_freq(img_ft)
    b = fourier_shift(a, kx, ky)

    return complex((a * b.conj()).sum() / (abs(a)**2).sum())

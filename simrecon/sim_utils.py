"""
Numerical helper functions for SIM reconstruction: zero-padding spectra into the 2x oversampled reconstruction
grid, sub-pixel Fourier shifts, power spectra and real-space conversion, border fading and intensity clipping.

Spectra use the centered convention (see simrecon.fft). 2D arrays are ny x nx, 3D arrays nz x ny x nx. Lateral
operations (zero-padding, shifting) always act on the last two axes.
"""

from typing import Union, Optional
from collections.abc import Sequence
import numpy as np
from simrecon.fft import ftn, iftn, get_fft_pos
from simrecon.sim_param import ClipScale

try:
    import cupy as cp
except ImportError:
    cp = None

if cp:
    array = Union[np.ndarray, cp.ndarray]
else:
    array = np.ndarray


def get_frq_coords(n: int) -> np.ndarray:
    """
    Signed frequency (or position) coordinates in pixels for an axis of length n in the centered convention

    :param n: axis length
    :return coords: arange(n) - n // 2
    """
    return get_fft_pos(n).astype(int)


def place_freq(vec_ft: array,
               mag: Sequence[int] = (2, 2)) -> array:
    """
    Place a spectrum into a larger, zero-padded spectrum. This corresponds to band-limited interpolation of the
    real-space image. Only the last two (lateral) axes are expanded.

    The frequency pixel size is unchanged: if the image has nx pixels of size dx, the expanded image has mag * nx
    pixels of size dx / mag, so frequency pixel positions keep their meaning.

    The expanded array is normalized so that the real-space values match after an inverse FFT.

    :param vec_ft: frequency space representation of image, zero frequency at index n // 2
    :param mag: (my, mx) integer factors by which to expand the last two axes
    :return vec_ft_pad: expanded array
    """

    if cp and isinstance(vec_ft, cp.ndarray):
        xp = cp
    else:
        xp = np

    facts = np.ones(vec_ft.ndim, dtype=int)
    facts[-2:] = mag
    axes = [vec_ft.ndim - 2, vec_ft.ndim - 1]

    # if extra padding not even (i.e. if initial array was odd) then put one more on the left
    pad_width = [(int(np.ceil((f - 1) * vec_ft.shape[ii] / 2)),
                  (f - 1) * vec_ft.shape[ii] // 2) for ii, f in enumerate(facts)]

    vec_ft_pad = xp.pad(vec_ft,
                        pad_width=pad_width,
                        mode="constant",
                        constant_values=0) * np.prod(mag)

    # for even sizes the unpaired Nyquist frequency -N/2 of the small array gains a partner at +N/2 in the
    # large array. Split the weight evenly so a real image stays real.
    for m, a in zip(mag, axes):
        if vec_ft.shape[a] % 2 == 1 or m == 1:
            continue

        old_nyquist_ind = m * vec_ft.shape[a] // 2 - vec_ft.shape[a] // 2
        nyquist_slice = [slice(None)] * vec_ft.ndim
        nyquist_slice[a] = slice(old_nyquist_ind, old_nyquist_ind + 1)
        vec_ft_pad[tuple(nyquist_slice)] *= 0.5

        pair_ind = old_nyquist_ind + vec_ft.shape[a]
        pair_slice = [slice(None)] * vec_ft.ndim
        pair_slice[a] = slice(pair_ind, pair_ind + 1)
        vec_ft_pad[tuple(pair_slice)] = vec_ft_pad[tuple(nyquist_slice)]

    return vec_ft_pad


def get_phase_ramp(shape: Sequence[int],
                   kx: float,
                   ky: float,
                   kz: float = 0.,
                   use_gpu: bool = False) -> array:
    """
    Real-space phase ramp exp(2 pi i (kx * x / nx + ky * y / ny + kz * z / nz)) with the origin at pixel n // 2.
    Multiplying a real-space image by this ramp moves its spectrum by (kx, ky, kz) frequency pixels.

    :param shape: ny x nx or nz x ny x nx
    :param kx: shift along the last axis, in frequency pixels
    :param ky: shift along the second to last axis
    :param kz: shift along the third to last axis (3D only)
    :param use_gpu:
    :return ramp: complex array of size shape
    """
    xp = cp if use_gpu and cp else np

    ny, nx = shape[-2:]
    x = xp.asarray(get_frq_coords(nx))
    y = xp.asarray(get_frq_coords(ny))

    arg = kx * x[None, :] / nx + ky * y[:, None] / ny
    if len(shape) == 3:
        nz = shape[0]
        z = xp.asarray(get_frq_coords(nz))
        arg = arg[None, :, :] + kz * z[:, None, None] / nz

    return xp.exp(2j * np.pi * arg)


def fourier_shift(vec_ft: array,
                   kx: float,
                   ky: float,
                   kz: float = 0.) -> array:
    """
    Move frequency space data by (kx, ky, kz) pixels with sub-pixel precision, by multiplying a phase ramp in
    real space. Given img_ft(f), return img_ft(f - k).

    This is exact for integer shifts and is band-limited interpolation otherwise.

    :param vec_ft: spectrum, 2D or 3D
    :param kx: shift in frequency pixels along the last axis
    :param ky: shift along the second to last axis
    :param kz: shift along the first axis of a 3D spectrum
    :return vec_ft_shifted: new array
    """
    use_gpu = cp and isinstance(vec_ft, cp.ndarray)
    ramp = get_phase_ramp(vec_ft.shape, kx, ky, kz, use_gpu=use_gpu)

    return ftn(iftn(vec_ft) * ramp)


def paste_and_fourier_shift(vec_ft: array,
                            kx: float,
                            ky: float,
                            fast: bool = False) -> array:
    """
    Place a spectrum into the 2x oversampled grid and move it by (kx, ky) pixels.

    In standard mode the spectrum is zero-padded and then Fourier shifted on the large grid. In fast mode only
    the fractional part of the shift is carried out on the small grid, and the integer part by moving the
    result within the large grid.

    :param vec_ft: ny x nx or nz x ny x nx spectrum
    :param kx:
    :param ky:
    :param fast:
    :return shifted: spectrum of the 2x oversampled image
    """
    if not fast:
        return fourier_shift(place_freq(vec_ft), kx, ky)

    if cp and isinstance(vec_ft, cp.ndarray):
        xp = cp
    else:
        xp = np

    kx_int = int(np.floor(kx))
    ky_int = int(np.floor(ky))

    small_shifted = fourier_shift(vec_ft, kx - kx_int, ky - ky_int)

    return xp.roll(place_freq(small_shifted), shift=(ky_int, kx_int), axis=(-2, -1))


def pw_spec(vec_ft: array) -> array:
    """
    Power spectrum of a 2D spectrum, or of the z-projection of a 3D spectrum

    :param vec_ft:
    :return pw:
    """
    if vec_ft.ndim == 3:
        vec_ft = vec_ft.sum(axis=0)

    return abs(vec_ft) ** 2


def spatial(vec_ft: array,
            clip_scale: Optional[ClipScale] = None) -> array:
    """
    Return the real part of the real-space representation of a spectrum, optionally clipped and scaled

    :param vec_ft: 2D or 3D spectrum
    :param clip_scale: ClipScale.CLIP sets negative values to zero, ClipScale.BOTH additionally scales to 0...255
    :return img:
    """
    img = iftn(vec_ft).real

    if clip_scale == ClipScale.CLIP:
        img = clip_and_scale(img, clip=True, scale=False)
    elif clip_scale == ClipScale.BOTH:
        img = clip_and_scale(img, clip=True, scale=True)

    return img


def fade_border_cos(img: array,
                    px: int) -> array:
    """
    Fade the outer px pixels of the last two axes to zero by multiplying with sin^2, mapped from [0, px] to
    [0, pi/2]. This reduces edge artifacts before zero-padding the spectrum.

    :param img: ny x nx or n0 x ... x ny x nx
    :param px: width of faded border in pixels
    :return img_faded: new array
    """
    if cp and isinstance(img, cp.ndarray):
        xp = cp
    else:
        xp = np

    if px <= 0:
        return img.copy()

    ny, nx = img.shape[-2:]
    fac = 1. / px * np.pi / 2.

    def window(n):
        w = np.ones(n)
        inds = np.arange(px)
        w[:px] *= np.sin(inds * fac) ** 2
        # mirror image of the leading edge
        w[n - px:] *= np.sin(inds[::-1] * fac) ** 2
        return w

    return img * xp.asarray(np.outer(window(ny), window(nx)))


def subtract_background(img: array,
                        bgr: float) -> (array, float):
    """
    Subtract a constant background and clip negative values to zero

    :param img:
    :param bgr: value to subtract
    :return img_sub, clipped_fraction: fraction of pixels which were clipped
    """
    img_sub = img - bgr
    clipped = img_sub < 0
    img_sub[clipped] = 0

    return img_sub, float(clipped.sum()) / clipped.size


def clip_and_scale(img: array,
                   clip: bool = True,
                   scale: bool = True) -> array:
    """
    Scale 0...max to 0...255 and/or set negative values to zero

    :param img:
    :param clip:
    :param scale:
    :return img_out: new array
    """
    img_out = img.copy()

    if scale:
        vmax = img_out.max()
        if vmax > 0:
            img_out *= 255. / vmax

    if clip:
        img_out[img_out < 0] = 0

    return img_out

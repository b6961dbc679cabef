"""
Richardson-Lucy deconvolution with a known OTF

.. math::

  u_{j+1} = u_j \\left[ \\left( \\frac{d}{u_j \\ast h} \\right) \\star h \\right]

where :math:`\\ast` is convolution, :math:`\\star` correlation, d the observed image and :math:`u_0 = d`.
Convolutions are computed with centered FFT's over all axes, so this works for 2D and 3D arrays.
"""

from typing import Union
import numpy as np
from simrecon.fft import ftn, iftn
from simrecon.errors import DimensionMismatchError

try:
    import cupy as cp
except ImportError:
    cp = None

if cp:
    array = Union[np.ndarray, cp.ndarray]
else:
    array = np.ndarray


def deconvolve(img: array,
               otf: array,
               steps: int,
               input_in_freq_space: bool = False,
               log=None,
               eps: float = 1e-12) -> array:
    """
    Run a fixed number of Richardson-Lucy steps. The result is written back to img.

    :param img: observed image, in real space or frequency space (centered convention). Should be complex
      when input_in_freq_space is True
    :param otf: OTF with the same shape as img, in the centered convention
    :param steps: number of iterations
    :param input_in_freq_space: whether img is given as a spectrum. The result is then also a spectrum
    :param log: function called with a message containing the change of each iteration
    :param eps: blurred estimates with magnitude below eps are replaced by eps before dividing
    :return img: the input array, now holding the deconvolved image
    """
    if img.shape != otf.shape:
        raise DimensionMismatchError(f"image shape {img.shape} and OTF shape {otf.shape} differ")

    if log is None:
        def log(s): pass

    if input_in_freq_space:
        observed = iftn(img)
    else:
        observed = img.astype(complex)

    otf_conj = otf.conj()
    deconv = observed.copy()
    for ii in range(steps):
        # blurred estimate u_j * h
        blurred = iftn(ftn(deconv) * otf)
        blurred = np.where(abs(blurred) < eps, eps, blurred)
        # correction (d / (u_j * h)) correlated with h
        correction = iftn(ftn(observed / blurred) * otf_conj)

        deconv_next = deconv * correction

        err = float(np.sqrt((abs(deconv_next - deconv) ** 2).sum())) / deconv.size
        log(f"RL-iteration {ii:d}: {err:.6g}")

        deconv = deconv_next

    if input_in_freq_space:
        deconv = ftn(deconv)

    if np.iscomplexobj(img):
        img[...] = deconv
    else:
        img[...] = deconv.real

    return img

"""
Separate the frequency bands which are mixed in each raw SIM image.

For an illumination pattern with nbands harmonics, the spectrum of the image taken at phase :math:`\\phi_p` is

.. math::

  D_p(f) = \\left[ c_0 S_0(f) + \\sum_{b=1}^{B-1} \\frac{c_b}{2}
           \\left( e^{i b \\phi_p} S_b^+(f) + e^{-i b \\phi_p} S_b^-(f) \\right) \\right]

i.e. :math:`D = M S` with M a nphases x (2 nbands - 1) matrix. The components S are recovered by applying the
(pseudo-)inverse of M. Component 0 is the DC band, component 2b - 1 holds the band b content located at +p(b)
and component 2b holds the mirrored content at -p(b).
"""

from typing import Union, Optional
from collections.abc import Sequence
import numpy as np
from simrecon.errors import InvalidParameterError, DimensionMismatchError, NumericalDegeneracy

try:
    import cupy as cp
except ImportError:
    cp = None

if cp:
    array = Union[np.ndarray, cp.ndarray]
else:
    array = np.ndarray

# matrices with a larger condition number are treated as singular
_max_condition_number = 1e12


def get_band_mixing_matrix(phases: Sequence[Sequence[float]],
                           bands: int,
                           factors: Optional[Sequence[float]] = None) -> np.ndarray:
    """
    Forward matrix M which maps the band components to the measured images

    .. math::

      M_{p, 0} = c_0, \\quad M_{p, 2j + 1} = c_{j + 1} e^{i \\phi_{j, p}},
      \\quad M_{p, 2j + 2} = c_{j + 1} e^{-i \\phi_{j, p}}

    :param phases: (bands - 1) x nphases array of phases. Row j gives the phases of band j + 1
    :param bands: number of bands, including the DC band
    :param factors: relative strength of each band. If None, [1, 0.5, 0.5, ...] is used. Otherwise
      the entries for bands >= 1 are multiplied by 0.5
    :return mat: nphases x (2 * bands - 1) complex matrix
    """
    if bands < 2:
        raise InvalidParameterError(f"need at least two bands for band separation, but bands={bands:d}")

    try:
        phases = np.array(phases, dtype=float)
    except ValueError as e:
        raise InvalidParameterError("phases for all bands must have the same length") from e

    if phases.ndim != 2:
        raise InvalidParameterError("phases must be a (bands - 1) x nphases array")

    if phases.shape[0] != bands - 1:
        raise InvalidParameterError(f"expected phases for {bands - 1:d} bands, but got {phases.shape[0]:d}")

    nphases = phases.shape[1]
    if nphases < 2 * bands - 1:
        raise InvalidParameterError(f"{nphases:d} phases are not enough to separate {bands:d} bands,"
                                    f" need at least {2 * bands - 1:d}")

    if factors is None:
        facs = np.concatenate((np.array([1.]), 0.5 * np.ones(bands - 1)))
    else:
        if len(factors) != bands:
            raise InvalidParameterError(f"expected {bands:d} factors, but got {len(factors):d}")
        facs = np.array(factors, dtype=float)
        facs[1:] *= 0.5

    mat = np.zeros((nphases, 2 * bands - 1), dtype=complex)
    mat[:, 0] = facs[0]
    for jj in range(bands - 1):
        mat[:, 2 * jj + 1] = facs[jj + 1] * np.exp(1j * phases[jj])
        mat[:, 2 * jj + 2] = facs[jj + 1] * np.exp(-1j * phases[jj])

    return mat


def create_separation_matrix(phases: Sequence[Sequence[float]],
                             bands: int,
                             factors: Optional[Sequence[float]] = None) -> np.ndarray:
    """
    Get inverse of the band mixing matrix, which maps measured data to separated (but unshifted) bands

    :param phases: (bands - 1) x nphases array of phases
    :param bands:
    :param factors:
    :return mixing_mat_inv: (2 * bands - 1) x nphases
    """
    mixing_mat = get_band_mixing_matrix(phases, bands, factors)

    if mixing_mat.shape[0] == mixing_mat.shape[1]:
        # direct inversion
        if np.linalg.cond(mixing_mat) > _max_condition_number:
            raise NumericalDegeneracy("band separation matrix is singular, check that the phases are distinct")

        try:
            mixing_mat_inv = np.linalg.inv(mixing_mat)
        except np.linalg.LinAlgError as e:
            raise NumericalDegeneracy("band separation matrix is singular") from e
    else:
        # pseudo-inverse
        mixing_mat_inv = np.linalg.pinv(mixing_mat)

    return mixing_mat_inv


def separate_bands(spectra: Union[Sequence[array], array],
                   phases: Sequence[float],
                   bands: int,
                   factors: Optional[Sequence[float]] = None) -> array:
    """
    Separate the bands of one SIM direction

    :param spectra: nphases x ny x nx (or nphases x nz x ny x nx) Fourier transforms of the raw images
    :param phases: phase of the first harmonic in each image. Band b uses phases b * phases
    :param bands: number of bands
    :param factors: relative band strengths, see get_band_mixing_matrix()
    :return components: (2 * bands - 1) x ny x nx separated components
    """
    if isinstance(spectra, (list, tuple)):
        if cp and any(isinstance(s, cp.ndarray) for s in spectra):
            spectra = cp.stack([cp.asarray(s) for s in spectra], axis=0)
        else:
            spectra = np.stack(spectra, axis=0)

    if cp and isinstance(spectra, cp.ndarray):
        xp = cp
    else:
        xp = np

    phases = np.asarray(phases, dtype=float)
    if spectra.shape[0] != len(phases):
        raise DimensionMismatchError(f"number of spectra ({spectra.shape[0]:d}) and"
                                     f" number of phases ({len(phases):d}) differ")

    band_phases = np.stack([b * phases for b in range(1, bands)], axis=0)
    mixing_mat_inv = xp.asarray(create_separation_matrix(band_phases, bands, factors))

    # components[b] = sum_p M^{-1}[b, p] * spectra[p]
    components = xp.tensordot(mixing_mat_inv, spectra, axes=(1, 0))

    return components


def separate_bands_equidistant(spectra: Union[Sequence[array], array],
                               phase_offset: float,
                               bands: int,
                               factors: Optional[Sequence[float]] = None) -> array:
    """
    Separate bands assuming equidistant phases 2 pi p / nphases + phase_offset

    :param spectra: nphases x ny x nx
    :param phase_offset:
    :param bands:
    :param factors:
    :return components:
    """
    nphases = len(spectra)
    phases = 2 * np.pi * np.arange(nphases) / nphases + phase_offset

    return separate_bands(spectra, phases, bands, factors)

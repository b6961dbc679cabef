"""
Radially symmetric optical transfer functions (OTF's) for SIM reconstruction.

The 2D OTF is stored as a table of complex samples per band, indexed by the lateral spatial frequency in
cycles/micron. It is either measured, or estimated from the ideal OTF of a circular pupil with an empirical
curvature correction

.. math::

  OTF(v) = \\frac{2}{\\pi} \\left[\\arccos(v) - v \\sqrt{1 - v^2} \\right] a^v, \\quad v = f / f_c

where :math:`f_c = 2 NA / \\lambda` is the cutoff frequency. An optional attenuation (notch) suppresses the
region around zero frequency, which is strongly affected by out-of-focus light

.. math::

  att(f) = 1 - s \\exp \\left[ -\\frac{f^2}{2 (w / 2.355)^2} \\right]

The 3D OTF is stored as a lateral x axial table per band, with the axial coordinate using |kz|.

Before an OTF can be rasterized onto an array, the frequency pixel size of that array must be set with
set_pixel_size(). Arrays use the centered FFT convention with kx along the last axis.
"""

from copy import deepcopy
from typing import Union, Optional
from collections.abc import Sequence
import numpy as np
from scipy.ndimage import map_coordinates
from simrecon.errors import InvalidParameterError
from simrecon.sim_utils import get_frq_coords

try:
    import cupy as cp
except ImportError:
    cp = None

if cp:
    array = Union[np.ndarray, cp.ndarray]
else:
    array = np.ndarray


def ideal_otf(dist: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    OTF of an ideal, aberration-free circular pupil, with the frequency normalized to the cutoff.
    Zero outside [0, 1].

    :param dist: frequency divided by cutoff frequency
    :return otf:
    """
    dist = np.asarray(dist, dtype=float)

    with np.errstate(invalid="ignore"):
        val = (2 / np.pi) * (np.arccos(dist) - dist * np.sqrt(1 - dist**2))

    val = np.where(np.logical_or(dist < 0, dist > 1), 0., val)

    return val[()]


def attenuation_value(dist: Union[float, np.ndarray],
                      strength: float,
                      fwhm: float) -> Union[float, np.ndarray]:
    """
    Gaussian notch attenuation

    :param dist: distance from center in cycles/micron
    :param strength: attenuation at dist = 0 is 1 - strength
    :param fwhm: full-width at half-maximum of the notch in cycles/micron
    :return att:
    """
    return 1 - strength * np.exp(-np.asarray(dist)**2 / (2 * (fwhm / 2.355)**2))


def _get_lateral_dist(shape: Sequence[int],
                      kx: float,
                      ky: float) -> np.ndarray:
    """
    Distance in frequency pixels of every pixel in the last two axes from (kx, ky)

    :param shape:
    :param kx:
    :param ky:
    :return rad: ny x nx
    """
    ny, nx = shape[-2:]
    fx = get_frq_coords(nx) - kx
    fy = get_frq_coords(ny) - ky

    return np.sqrt(np.expand_dims(fx, axis=0)**2 + np.expand_dims(fy, axis=1)**2)


def _as_array_like(otf: np.ndarray,
                   vec: array) -> array:
    if cp and isinstance(vec, cp.ndarray):
        return cp.asarray(otf)
    return otf


class OtfProvider:
    def __init__(self,
                 vals: np.ndarray,
                 cycles_per_micron: float,
                 na: float,
                 wavelength: float,
                 is_estimate: bool = False,
                 estimate_a: Optional[float] = None):
        """
        Radially symmetric 2D OTF. Use the factory methods from_estimate() and from_data() instead of the
        constructor directly.

        :param vals: nbands x nsamples complex array. Sample i corresponds to i * cycles_per_micron
        :param cycles_per_micron: spacing of samples
        :param na: numerical aperture
        :param wavelength: emission wavelength in nm
        :param is_estimate: whether the samples were generated from an estimate
        :param estimate_a: curvature correction used for the estimate
        """
        vals = np.array(vals, dtype=complex, copy=True)
        if vals.ndim == 1:
            vals = np.expand_dims(vals, axis=0)
        if vals.ndim != 2:
            raise InvalidParameterError(f"OTF samples must be an nbands x nsamples array, but had shape {vals.shape}")

        if cycles_per_micron <= 0:
            raise InvalidParameterError(f"sample spacing must be positive, but was {cycles_per_micron:.3g}")

        # sample table is never modified after construction
        self._vals = vals
        self._vals.setflags(write=False)

        self.cycles_per_micron = float(cycles_per_micron)
        self.na = float(na)
        self.wavelength = float(wavelength)
        self.cutoff = 1000 / (self.wavelength / self.na / 2)

        self.is_estimate = is_estimate
        self.estimate_a = estimate_a

        self.att_strength = 0.99
        self.att_fwhm = 1.2
        self.use_attenuation = False

        # frequency pixel size of output arrays
        self.vec_cycles_per_micron = None

    @classmethod
    def from_estimate(cls,
                      na: float,
                      wavelength: float,
                      a: float,
                      nsamples: int = 512):
        """
        Create OTF from the ideal OTF times a^(f / cutoff)

        :param na: numerical aperture, in [0.3, 2.2]
        :param wavelength: emission wavelength in nm, in [300, 1500]
        :param a: curvature correction factor, in [0, 1]
        :param nsamples: number of samples between 0 and the cutoff
        :return otf:
        """
        if a < 0 or a > 1 or na < 0.3 or na > 2.2 or wavelength < 300 or wavelength > 1500:
            raise InvalidParameterError(f"unphysical OTF parameters: NA={na:.3f}, wavelength={wavelength:.1f}nm,"
                                        f" a={a:.3f}")

        cutoff = 1000 / (wavelength / na / 2)
        v = np.arange(nsamples) / nsamples
        vals = ideal_otf(v) * a ** v

        return cls(vals,
                   cutoff / nsamples,
                   na,
                   wavelength,
                   is_estimate=True,
                   estimate_a=a)

    @classmethod
    def from_data(cls,
                  bands: int,
                  samples: np.ndarray,
                  cycles_per_micron: float,
                  na: float,
                  wavelength: float):
        """
        Create OTF from measured samples

        :param bands: number of bands
        :param samples: bands x nsamples complex array
        :param cycles_per_micron: spacing of samples
        :param na:
        :param wavelength: emission wavelength in nm
        :return otf:
        """
        samples = np.atleast_2d(np.asarray(samples))
        if samples.shape[0] != bands:
            raise InvalidParameterError(f"expected samples for {bands:d} bands, but got {samples.shape[0]:d}")

        return cls(samples, cycles_per_micron, na, wavelength, is_estimate=False)

    @property
    def vals(self) -> np.ndarray:
        return self._vals

    @property
    def nbands(self) -> int:
        return self._vals.shape[0]

    @property
    def nsamples(self) -> int:
        return self._vals.shape[1]

    @property
    def is_multiband(self) -> bool:
        return self.nbands > 1

    @property
    def is_attenuate(self) -> bool:
        return self.use_attenuation

    def get_cutoff(self) -> float:
        """
        :return cutoff: OTF support in cycles/micron
        """
        return self.cutoff

    def _check_band(self, band: int) -> int:
        if not self.is_multiband:
            band = 0

        if band < 0 or band >= self.nbands:
            raise InvalidParameterError(f"band index must be in [0, {self.nbands - 1:d}], but was {band:d}")

        return band

    def get_otf_val(self,
                    band: int,
                    cycl: Union[float, np.ndarray],
                    use_attenuation: bool = False) -> Union[complex, np.ndarray]:
        """
        Linearly interpolated OTF value at frequency cycl. Zero at or beyond the cutoff and beyond the
        sample table.

        :param band: band index. Single-band OTF's return band 0 for any band
        :param cycl: frequency in cycles/micron. Scalar or array
        :param use_attenuation: multiply by the attenuation
        :return val: complex OTF value(s)
        """
        band = self._check_band(band)

        cycl = np.asarray(cycl, dtype=float)
        if np.any(cycl < 0):
            raise InvalidParameterError("OTF frequency must be non-negative")

        pos = cycl / self.cycles_per_micron
        grid = np.arange(self.nsamples)
        val = np.interp(pos, grid, self._vals[band].real) + 1j * np.interp(pos, grid, self._vals[band].imag)

        outside = np.logical_or(cycl >= self.cutoff, np.ceil(pos) >= self.nsamples)
        val = np.where(outside, 0, val)

        if use_attenuation:
            val = val * self.get_att_val(band, cycl)

        return val[()]

    def get_att_val(self,
                    band: int,
                    cycl: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        """
        Attenuation value at frequency cycl, using the current attenuation parameters. 1 beyond the cutoff.

        :param band: currently all bands share the same attenuation
        :param cycl:
        :return att:
        """
        self._check_band(band)

        cycl = np.asarray(cycl, dtype=float)
        if np.any(cycl < 0):
            raise InvalidParameterError("OTF frequency must be non-negative")

        att = np.where(cycl >= self.cutoff, 1., attenuation_value(cycl, self.att_strength, self.att_fwhm))

        return att[()]

    def set_attenuation(self,
                        strength: float,
                        fwhm: float):
        """
        Set attenuation parameters and switch attenuation on

        :param strength: in [0, 1]
        :param fwhm: in cycles/micron
        """
        self.att_strength = float(strength)
        self.att_fwhm = float(fwhm)
        self.use_attenuation = True

    def switch_attenuation(self, on: bool):
        self.use_attenuation = on

    def set_pixel_size(self, cycles_per_micron: float):
        """
        Set frequency pixel size of arrays the OTF is written to

        :param cycles_per_micron: 1 / (n * dx)
        """
        if cycles_per_micron <= 0:
            raise InvalidParameterError(f"pixel size must be positive, but was {cycles_per_micron:.3g}")

        self.vec_cycles_per_micron = float(cycles_per_micron)

    def _check_pixel_size(self):
        if self.vec_cycles_per_micron is None:
            raise InvalidParameterError("vector pixel size not initialized, call set_pixel_size() first")

    # #############################################
    # rasterize OTF
    # #############################################
    def otf_to_vector(self,
                      vec: Union[array, Sequence[int]],
                      band: int,
                      kx: float,
                      ky: float,
                      use_attenuation: bool,
                      write: bool) -> array:
        """
        Rasterize the OTF centered at (kx, ky), in frequency pixels relative to the array center

        :param vec: ny x nx array to multiply by the conjugate OTF, or shape of array to write
        :param band:
        :param kx:
        :param ky:
        :param use_attenuation:
        :param write: if True, return the OTF itself. Otherwise, return vec * conj(OTF)
        :return result: new array. Zero where the distance from (kx, ky) exceeds the cutoff
        """
        self._check_pixel_size()

        shape = vec if write else vec.shape
        cycl = _get_lateral_dist(shape, kx, ky) * self.vec_cycles_per_micron
        otf = self.get_otf_val(band, cycl, use_attenuation)
        otf[cycl > self.cutoff] = 0

        if write:
            return otf

        return vec * _as_array_like(otf.conj(), vec)

    def write_otf_vector(self,
                         shape: Sequence[int],
                         band: int,
                         kx: float = 0.,
                         ky: float = 0.) -> np.ndarray:
        """
        OTF centered at (kx, ky), without attenuation
        """
        return self.otf_to_vector(shape, band, kx, ky, use_attenuation=False, write=True)

    def write_otf_with_att_vector(self,
                                  shape: Sequence[int],
                                  band: int,
                                  kx: float = 0.,
                                  ky: float = 0.) -> np.ndarray:
        """
        OTF centered at (kx, ky), including the attenuation if it is switched on
        """
        return self.otf_to_vector(shape, band, kx, ky, use_attenuation=self.use_attenuation, write=True)

    def apply_otf(self,
                  vec: array,
                  band: int,
                  kx: float = 0.,
                  ky: float = 0.) -> array:
        """
        Multiply by the conjugate OTF centered at (kx, ky), including the attenuation if it is switched on
        """
        return self.otf_to_vector(vec, band, kx, ky, use_attenuation=self.use_attenuation, write=False)

    def mask_otf(self,
                 vec: array,
                 kx: float = 0.,
                 ky: float = 0.) -> array:
        """
        Set all frequencies further than the cutoff from (kx, ky) to zero

        :param vec:
        :param kx:
        :param ky:
        :return vec_masked: new array
        """
        self._check_pixel_size()

        cycl = _get_lateral_dist(vec.shape, kx, ky) * self.vec_cycles_per_micron
        mask = _as_array_like(cycl <= self.cutoff, vec)

        return vec * mask

    def write_apo_vector(self,
                         shape: Sequence[int],
                         bend: float,
                         cutoff_factor: float) -> np.ndarray:
        """
        Apodization function ideal_otf(f / (cutoff * cutoff_factor))^bend

        :param shape:
        :param bend: exponent
        :param cutoff_factor: support of the apodization relative to the OTF cutoff
        :return apo:
        """
        self._check_pixel_size()

        cycl = _get_lateral_dist(shape, 0, 0) * self.vec_cycles_per_micron
        return ideal_otf(cycl / (self.cutoff * cutoff_factor)) ** bend

    def write_attenuation_vector(self,
                                 shape: Sequence[int],
                                 strength: float,
                                 fwhm: float,
                                 kx: float = 0.,
                                 ky: float = 0.) -> np.ndarray:
        """
        Attenuation centered at (kx, ky) with the given parameters, independent of the OTF attenuation settings

        :param shape:
        :param strength:
        :param fwhm: in cycles/micron
        :param kx:
        :param ky:
        :return att:
        """
        self._check_pixel_size()

        cycl = _get_lateral_dist(shape, kx, ky) * self.vec_cycles_per_micron
        return attenuation_value(cycl, strength, fwhm)

    def print_state(self) -> str:
        """
        :return description: short description of the OTF
        """
        desc = f"NA {self.na:4.2f}, lambda {self.wavelength:4.0f}, "
        if self.is_estimate:
            desc += f"(est., a={self.estimate_a:4.2f})"
        else:
            desc += "(from file)"

        return desc

    def duplicate(self):
        return deepcopy(self)

    def __repr__(self):
        return f"OtfProvider({self.print_state():s})"


class OtfProvider3D:
    def __init__(self,
                 vals: np.ndarray,
                 cycles_per_micron_lateral: float,
                 cycles_per_micron_axial: float,
                 na: float = 1.4,
                 wavelength: float = 300.,
                 immersion_n: float = 1.518,
                 name: str = "no-name-yet",
                 meta: str = "no extra information"):
        """
        3D OTF, radially symmetric in the lateral direction and symmetric in kz.

        :param vals: nbands x nsamples_axial x nsamples_lateral complex array. Sample (iz, ixy) corresponds to
          axial frequency iz * cycles_per_micron_axial and lateral frequency ixy * cycles_per_micron_lateral
        :param cycles_per_micron_lateral:
        :param cycles_per_micron_axial:
        :param na:
        :param wavelength: emission wavelength in nm
        :param immersion_n: refractive index of immersion medium
        :param name:
        :param meta:
        """
        vals = np.array(vals, dtype=complex, copy=True)
        if vals.ndim != 3:
            raise InvalidParameterError(f"3D OTF samples must be an nbands x naxial x nlateral array,"
                                        f" but had shape {vals.shape}")

        if cycles_per_micron_lateral <= 0 or cycles_per_micron_axial <= 0:
            raise InvalidParameterError("sample spacings must be positive")

        self._vals = vals
        self._vals.setflags(write=False)

        self.cycles_per_micron_lateral = float(cycles_per_micron_lateral)
        self.cycles_per_micron_axial = float(cycles_per_micron_axial)
        self.immersion_n = float(immersion_n)
        self.name = name.strip()
        self.meta = meta.strip()

        self._na = float(na)
        self._wavelength = float(wavelength)
        self._calc_cutoff()

        self.vec_cycles_per_micron_lateral = None
        self.vec_cycles_per_micron_axial = None

    @classmethod
    def create_from_data(cls,
                         bands_data: Sequence[np.ndarray],
                         cycles_per_micron_lateral: float,
                         cycles_per_micron_axial: float,
                         samples_lateral: int,
                         samples_axial: int,
                         **kwargs):
        """
        Initialize OTF from flat arrays of interleaved real and imaginary parts, as stored on disk

        :param bands_data: one array of length 2 * samples_axial * samples_lateral per band. The lateral
          index runs fastest
        :param cycles_per_micron_lateral:
        :param cycles_per_micron_axial:
        :param samples_lateral:
        :param samples_axial:
        :param kwargs: passed through to the constructor
        :return otf:
        """
        vals = []
        for ii, bd in enumerate(bands_data):
            bd = np.asarray(bd, dtype=float)
            if bd.size != 2 * samples_axial * samples_lateral:
                raise InvalidParameterError(f"OTF data length mismatch for band {ii:d}: {bd.size:d} != "
                                            f"2 x {samples_axial:d} x {samples_lateral:d}")

            vals.append((bd[::2] + 1j * bd[1::2]).reshape((samples_axial, samples_lateral)))

        return cls(np.stack(vals, axis=0), cycles_per_micron_lateral, cycles_per_micron_axial, **kwargs)

    def _calc_cutoff(self):
        n = self.immersion_n
        self.cutoff_lateral = 1000 / (self._wavelength / self._na / 2)
        self.cutoff_axial = (n - np.sqrt(n**2 - self._na**2)) / (self._wavelength / 1000)

    @property
    def na(self) -> float:
        return self._na

    @na.setter
    def na(self, value: float):
        self._na = float(value)
        self._calc_cutoff()

    @property
    def wavelength(self) -> float:
        return self._wavelength

    @wavelength.setter
    def wavelength(self, value: float):
        self._wavelength = float(value)
        self._calc_cutoff()

    @property
    def vals(self) -> np.ndarray:
        return self._vals

    @property
    def nbands(self) -> int:
        return self._vals.shape[0]

    @property
    def samples_axial(self) -> int:
        return self._vals.shape[1]

    @property
    def samples_lateral(self) -> int:
        return self._vals.shape[2]

    @property
    def is_multiband(self) -> bool:
        return self.nbands > 1

    def get_cutoff(self) -> float:
        return self.cutoff_lateral

    def get_otf_val(self,
                    band: int,
                    cycl_lateral: Union[float, np.ndarray],
                    cycl_axial: Union[float, np.ndarray]) -> Union[complex, np.ndarray]:
        """
        Bilinearly interpolated OTF value

        :param band:
        :param cycl_lateral: lateral frequency in cycles/micron, non-negative
        :param cycl_axial: axial frequency in cycles/micron, non-negative
        :return val:
        """
        if not self.is_multiband:
            band = 0
        if band < 0 or band >= self.nbands:
            raise InvalidParameterError(f"band index must be in [0, {self.nbands - 1:d}], but was {band:d}")

        cycl_lateral, cycl_axial = np.broadcast_arrays(np.asarray(cycl_lateral, dtype=float),
                                                       np.asarray(cycl_axial, dtype=float))
        if np.any(cycl_lateral < 0) or np.any(cycl_axial < 0):
            raise InvalidParameterError("OTF frequencies must be non-negative")

        xpos = cycl_lateral / self.cycles_per_micron_lateral
        zpos = cycl_axial / self.cycles_per_micron_axial

        coords = np.stack((zpos.ravel(), xpos.ravel()), axis=0)
        re = map_coordinates(self._vals[band].real, coords, order=1, mode="constant", cval=0.)
        im = map_coordinates(self._vals[band].imag, coords, order=1, mode="constant", cval=0.)
        val = (re + 1j * im).reshape(xpos.shape)

        outside = np.logical_or.reduce((cycl_lateral >= self.cutoff_lateral,
                                        cycl_axial >= self.cutoff_axial,
                                        np.ceil(xpos) >= self.samples_lateral,
                                        np.ceil(zpos) >= self.samples_axial))
        val[outside] = 0

        return val[()]

    def set_pixel_size(self,
                       cycles_per_micron_lateral: float,
                       cycles_per_micron_axial: float):
        """
        Set frequency pixel sizes of arrays the OTF is written to

        :param cycles_per_micron_lateral: 1 / (nx * dx)
        :param cycles_per_micron_axial: 1 / (nz * dz)
        """
        if cycles_per_micron_lateral <= 0 or cycles_per_micron_axial <= 0:
            raise InvalidParameterError("pixel size must be positive")

        self.vec_cycles_per_micron_lateral = float(cycles_per_micron_lateral)
        self.vec_cycles_per_micron_axial = float(cycles_per_micron_axial)

    def _get_coords(self,
                    shape: Sequence[int],
                    kx: float,
                    ky: float) -> (np.ndarray, np.ndarray):
        if self.vec_cycles_per_micron_lateral is None or self.vec_cycles_per_micron_axial is None:
            raise InvalidParameterError("vector pixel size not initialized, call set_pixel_size() first")

        if len(shape) != 3:
            raise InvalidParameterError(f"3D OTF requires nz x ny x nx arrays, but shape was {shape}")

        nz = shape[0]
        cycl_lat = _get_lateral_dist(shape, kx, ky)[None, :, :] * self.vec_cycles_per_micron_lateral
        cycl_ax = np.abs(get_frq_coords(nz))[:, None, None] * self.vec_cycles_per_micron_axial

        return np.broadcast_arrays(cycl_lat, cycl_ax)

    def otf_to_vector(self,
                      vec: Union[array, Sequence[int]],
                      band: int,
                      kx: float,
                      ky: float,
                      write: bool) -> array:
        """
        Rasterize the OTF with lateral center (kx, ky)

        :param vec: nz x ny x nx array to multiply by the conjugate OTF, or shape of the array to write
        :param band:
        :param kx:
        :param ky:
        :param write: if True, return the OTF itself. Otherwise, return vec * conj(OTF)
        :return result: new array
        """
        shape = vec if write else vec.shape
        cycl_lat, cycl_ax = self._get_coords(shape, kx, ky)

        otf = self.get_otf_val(band, cycl_lat, cycl_ax)
        otf[np.logical_or(cycl_lat > self.cutoff_lateral, cycl_ax > self.cutoff_axial)] = 0

        if write:
            return otf

        return vec * _as_array_like(otf.conj(), vec)

    def write_otf_vector(self,
                         shape: Sequence[int],
                         band: int,
                         kx: float = 0.,
                         ky: float = 0.) -> np.ndarray:
        return self.otf_to_vector(shape, band, kx, ky, write=True)

    def apply_otf(self,
                  vec: array,
                  band: int,
                  kx: float = 0.,
                  ky: float = 0.) -> array:
        return self.otf_to_vector(vec, band, kx, ky, write=False)

    def mask_otf(self,
                 vec: array,
                 kx: float = 0.,
                 ky: float = 0.) -> array:
        """
        Set frequencies outside the lateral or axial support, relative to (kx, ky), to zero
        """
        cycl_lat, cycl_ax = self._get_coords(vec.shape, kx, ky)
        mask = np.logical_and(cycl_lat <= self.cutoff_lateral, cycl_ax <= self.cutoff_axial)

        return vec * _as_array_like(mask, vec)

    def apotize(self,
                vec: array,
                multiple_lateral: float,
                multiple_axial: float,
                use_cos: bool) -> array:
        """
        Apodize with an elliptical window of lateral size multiple_lateral * cutoff_lateral and axial size
        multiple_axial * cutoff_axial

        :param vec: nz x ny x nx spectrum
        :param multiple_lateral:
        :param multiple_axial:
        :param use_cos: window is cos(d * pi / 2) if True, and 1 - d otherwise
        :return vec_apodized: new array
        """
        cycl_lat, cycl_ax = self._get_coords(vec.shape, 0, 0)
        dist = np.hypot(cycl_lat / self.cutoff_lateral / multiple_lateral,
                        cycl_ax / self.cutoff_axial / multiple_axial)

        if use_cos:
            apo = np.cos(dist * np.pi / 2)
        else:
            apo = 1 - dist
        apo[dist > 1] = 0

        return vec * _as_array_like(apo, vec)

    def print_state(self) -> str:
        return f"NA {self.na:4.2f}, lambda {self.wavelength:4.0f}, (from file)"

    def get_otf_info_string(self) -> str:
        """
        :return info: multi-line description of OTF metadata
        """
        info = "OTF (meta)data\n------"
        info += f"\n            name: {self.name:s}"
        info += f"\n            meta: {self.meta:s}"
        info += f"\n              NA: {self.na:4.3f}"
        info += f"\n     n immersion: {self.immersion_n:4.3f}"
        info += f"\n           bands: {self.nbands:d}"
        info += f"\n  em. wavelength: {self.wavelength:.0f}"
        info += f"\n samples lateral: {self.samples_lateral:d}"
        info += f"\n   samples axial: {self.samples_axial:d}"
        info += f"\npxl size lateral: {self.cycles_per_micron_lateral:7.5f}"
        info += f"\n  pxl size axial: {self.cycles_per_micron_axial:7.5f}"
        info += f"\n     lat. cutoff: {self.cutoff_lateral:7.5f} (1/um) -> {1000 / self.cutoff_lateral:5.0f} nm"
        info += f"\n   axial. cutoff: {self.cutoff_axial:7.5f} (1/um) -> {1000 / self.cutoff_axial:5.0f} nm"

        return info

    def duplicate(self):
        return deepcopy(self)

    def __repr__(self):
        return f"{self.name:s} (@{int(self.wavelength):4d} nm)"

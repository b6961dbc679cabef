"""
Parameter estimation and reconstruction for 2D and 3D SIM data.

The raw images of one pattern direction are separated into band components (see band_separation). The
pattern wave vector, global phase and modulation depths are estimated by cross-correlating the components
(see correlation). The components are then multiplied by the conjugate OTF, moved to their true position in a
2x oversampled spectrum, summed over all directions, and filtered by a generalized Wiener filter or
Richardson-Lucy deconvolution.

The functions here work with SimParam and the OTF providers. The SimReconstruction class wraps one
reconstruction session, including logging and saving results. Typical use is

>>> sim_obj = SimReconstruction(imgs, param)
>>> sim_obj.estimate_parameters()
>>> sim_obj.reconstruct()
>>> sim_obj.print_parameters()
>>> sim_obj.save_imgs("results")
"""

from sys import stdout
from time import perf_counter
from warnings import warn
from typing import Union, Optional
from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum
# parallelization
from dask import delayed, compute
from dask.diagnostics import ProgressBar
import psutil
# numerics
import numpy as np
# working with external files
from pathlib import Path
from io import StringIO
# loading and exporting data
import json
import tifffile
import h5py
# code from this package
from simrecon.fft import ft2, ift2, ft3, ift3
from simrecon.sim_utils import place_freq, fourier_shift, spatial, fade_border_cos
from simrecon.sim_param import SimParam, ClipScale, ParameterEstimationResult, FitQuality
from simrecon.band_separation import separate_bands, separate_bands_equidistant
from simrecon.correlation import locate_peak, fit_peak, get_peak, auto_correlation
from simrecon.wiener_filter import WienerFilter, WienerFilter3D
from simrecon.rl_deconvolution import deconvolve
from simrecon.otf import OtfProvider3D
from simrecon.errors import InvalidParameterError, DimensionMismatchError

try:
    import cupy as cp
except ImportError:
    cp = None

if cp:
    array = Union[np.ndarray, cp.ndarray]
else:
    array = np.ndarray


class FitLevel(IntEnum):
    """
    How much of the 3D parameter estimation to run. Each level includes the ones below it
    """
    NONE = 0
    REFINE_PHASE = 1
    REFINE_PEAK = 2
    FIND_PEAK = 3


@dataclass
class ReconstructionResult:
    """
    Output of a reconstruction

    Attributes:
        sim: super-resolved image, 2ny x 2nx (or nz x 2ny x 2nx)
        widefield: widefield comparison image on the same grid
        sim_ft: spectrum of the super-resolved image before conversion to real space
        widefield_ft: spectrum of the widefield image
    """
    sim: np.ndarray
    widefield: np.ndarray
    sim_ft: np.ndarray
    widefield_ft: np.ndarray


def _no_log(s: str):
    pass


def _get_num_workers() -> int:
    n = psutil.cpu_count(logical=False)
    return n if n is not None else 1


def _check_input(param: SimParam,
                 in_fft: Union[Sequence[Sequence[array]], array],
                 ndim: int):
    if len(in_fft) != param.nr_dirs:
        raise DimensionMismatchError(f"expected spectra for {param.nr_dirs:d} directions, but got {len(in_fft):d}")

    for d, spectra in enumerate(in_fft):
        if len(spectra) != param.dir(d).nr_phases:
            raise DimensionMismatchError(f"expected {param.dir(d).nr_phases:d} phases for direction {d:d},"
                                         f" but got {len(spectra):d}")

        for s in spectra:
            if s.ndim != ndim or s.shape[-2:] != (param.img_size, param.img_size):
                raise DimensionMismatchError(f"spectrum shape {s.shape} does not match image size "
                                             f"{param.img_size:d} for {ndim:d}D reconstruction")


# #############################################
# input preparation
# #############################################
def fft_raw_images(imgs: array,
                   param: SimParam,
                   fade_border: int = 10) -> np.ndarray:
    """
    Sort a stack of raw 2D frames by direction and phase, fade their borders, and Fourier transform them

    :param imgs: nframes x ny x nx stack, ordered according to param.img_seq
    :param param: SimParam with the image size set
    :param fade_border: width of the faded border in pixels
    :return in_fft: ndirs x nphases x ny x nx spectra
    """
    return _fft_raw_images(imgs, param, 1, fade_border)[:, :, 0]


def fft_raw_images_3d(imgs: array,
                      param: SimParam,
                      fade_border: int = 10) -> np.ndarray:
    """
    Sort a stack of raw frames by direction, phase and z, fade the border of each slice, and Fourier
    transform each z-stack in 3D

    :param imgs: nframes x ny x nx stack, ordered according to param.img_seq
    :param param: SimParam with the image size and z-stack set
    :param fade_border: width of the faded border in pixels
    :return in_fft: ndirs x nphases x nz x ny x nx spectra
    """
    if param.stack_size is None:
        raise InvalidParameterError("z-stack not set in SimParam")

    return ft3(_fft_raw_images(imgs, param, param.stack_size, fade_border, transform=False))


def _fft_raw_images(imgs: array,
                    param: SimParam,
                    nz: int,
                    fade_border: int,
                    transform: bool = True) -> np.ndarray:
    nframes = param.img_per_z * nz
    if imgs.ndim != 3 or imgs.shape[0] < nframes:
        raise DimensionMismatchError(f"expected at least {nframes:d} frames, but image stack had shape {imgs.shape}")

    if imgs.shape[-2:] != (param.img_size, param.img_size):
        raise DimensionMismatchError(f"frames of shape {imgs.shape[-2:]} do not match image size {param.img_size:d}")

    ndirs = param.nr_dirs
    nphases = param.nr_phases
    n = param.img_size

    stack = np.zeros((ndirs, nphases, nz, n, n), dtype=complex)
    for a in range(ndirs):
        for p in range(nphases):
            for z in range(nz):
                pos = param.img_seq.calc_pos(a, p, z, ndirs, nphases, nz)
                stack[a, p, z] = fade_border_cos(np.asarray(imgs[pos], dtype=float), fade_border)

    if transform:
        stack = ft2(stack)

    return stack


# #############################################
# parameter estimation
# #############################################
def _estimate_direction(param: SimParam,
                        spectra: array,
                        dir_index: int,
                        fit_band: int,
                        fit_exclude: float,
                        otf_att: np.ndarray,
                        log) -> ParameterEstimationResult:
    otf = param.otf
    direction = param.dir(dir_index)
    nbands = direction.nr_bands

    # component indices of the low band (phase) and high band (shift vector). Same for two-beam data
    lb = 1
    hb = 3 if nbands == 3 else 1
    fb = lb if fit_band == 1 else hb
    fit_otf_band = min(fit_band, nbands - 1)

    separate = separate_bands_equidistant(spectra, 0, nbands, None)

    # attenuation suppresses the region around DC, which does not help the correlation
    c0 = ift2(separate[0] * otf_att)
    cx = ift2(separate[fb] * otf_att)
    corr = ft2(cx * c0.conj())

    min_dist = fit_exclude * otf.get_cutoff() / param.cycles_per_micron
    x, y, _, _ = locate_peak(corr, min_dist)
    log(f"Peak: (dir {dir_index:d}) located (min {min_dist:4.0f}) at x {x:5.0f} y {y:5.0f}")

    cntrl = np.zeros((10, 30))
    kx, ky, _, _ = fit_peak(separate[0], separate[fb], 0, fit_otf_band, otf, x, y, 0.05, 2.5,
                            cntrl=cntrl, scheduler="synchronous", log=log)

    if lb != hb:
        # the fit gave the shift of band 1 if fit_band == 1, but the outer band shift is stored
        if fit_band == 1:
            kx *= 2
            ky *= 2

        p1 = get_peak(separate[0], separate[lb], 0, 1, otf, kx / 2, ky / 2, 0.05)
        p2 = get_peak(separate[0], separate[hb], 0, 2, otf, kx, ky, 0.05)
        peaks = [p1, p2]

        log(f"Peak: (dir {dir_index:d}): fitted --> x {kx:7.3f} y {ky:7.3f} p {np.angle(p1):7.3f}"
            f" (m {abs(p1):7.3f}, {abs(p2):7.3f})")
    else:
        p1 = get_peak(separate[0], separate[1], 0, 1, otf, kx, ky, 0.05)
        peaks = [p1]

        log(f"Peak: (dir {dir_index:d}): fitted --> x {kx:7.3f} y {ky:7.3f} p {np.angle(p1):7.3f}"
            f" (m {abs(p1):7.3f})")

    return ParameterEstimationResult(dir_index=dir_index,
                                     px=kx,
                                     py=ky,
                                     phase_offset=float(np.angle(p1)),
                                     modulations=[1.] + [float(abs(p)) for p in peaks],
                                     peak_magnitudes=[float(abs(p)) for p in peaks])


def estimate_parameters(param: SimParam,
                        in_fft: Union[Sequence[Sequence[array]], array],
                        fit_band: int = 2,
                        fit_exclude: float = 0.6,
                        log=None) -> list[ParameterEstimationResult]:
    """
    Estimate the pattern wave vector, global phase offset and modulation depths of each direction from the
    cross-correlation of band 0 with the higher bands. The results are not stored in param, use
    SimParam.apply_estimate() for that.

    :param param: SimParam with image size and OTF set
    :param in_fft: ndirs x nphases x ny x nx spectra of the raw images
    :param fit_band: band whose correlation with band 0 is used to locate the peak, 1 or 2
    :param fit_exclude: region around DC excluded from the peak search, as a fraction of the OTF cutoff
    :param log: function used to print progress messages
    :return results: one ParameterEstimationResult per direction
    """
    if fit_band not in (1, 2):
        raise InvalidParameterError(f"fit_band must be 1 or 2, but was {fit_band}")

    if param.otf is None:
        raise InvalidParameterError("no OTF set in SimParam")

    _check_input(param, in_fft, 2)

    if log is None:
        log = _no_log

    tstart = perf_counter()

    shape = (param.img_size, param.img_size)
    otf_att = param.otf.write_attenuation_vector(shape, 0.99, 0.15 * param.otf.get_cutoff())

    r = []
    for d in range(param.nr_dirs):
        r.append(delayed(_estimate_direction)(param, in_fft[d], d, fit_band, fit_exclude, otf_att, log))
    results = list(compute(*r, scheduler="threads", num_workers=_get_num_workers()))

    for res in results:
        quality = res.fit_quality
        if quality in (FitQuality.WEAK, FitQuality.VERY_LOW, FitQuality.NO_FIT):
            log(f"direction {res.dir_index:d}: modulation {res.modulations[-1]:.3f} is {quality.value:s}")

    log(f"estimating parameters for {param.nr_dirs:d} directions took {perf_counter() - tstart:.2f}s")

    return results


def refine_phases_wicker(param: SimParam,
                         in_fft: Union[Sequence[Sequence[array]], array],
                         log=None):
    """
    Determine the pattern phase of each raw image from its auto-correlation at the band 1 shift, following
    Wicker et al. The phases are stored in param as individual phases and the global offset is reset.

    :param param: SimParam with pattern shifts already set
    :param in_fft: ndirs x nphases x n x n spectra
    :param log:
    """
    _check_input(param, in_fft, 2)

    if log is None:
        log = _no_log

    for d in range(param.nr_dirs):
        direction = param.dir(d)

        phases = []
        for ii in range(direction.nr_phases):
            ac = param.otf.apply_otf(in_fft[d][ii], 0)
            corr = auto_correlation(ac, direction.px(1), direction.py(1))
            phases.append(float(np.angle(corr)))

            log(f"a{d:d} img{ii:d}: auto-correlation phase {phases[-1]:7.3f}")

        direction.set_phases(phases, True)


# #############################################
# 2D reconstruction
# #############################################
def _shift_components(separate: array,
                      direction) -> list[array]:
    """
    Move components to their true positions in the 2x oversampled spectrum. Component 2b - 1 is moved by
    -p(b) and component 2b by +p(b)
    """
    shifted = [place_freq(separate[0])]
    for b in range(1, direction.nr_bands):
        px = direction.px(b)
        py = direction.py(b)
        shifted.append(fourier_shift(place_freq(separate[2 * b - 1]), -px, -py))
        shifted.append(fourier_shift(place_freq(separate[2 * b]), px, py))

    return shifted


def _component_center(direction,
                      ii: int) -> (float, float):
    """
    Center of the OTF of shifted component ii
    """
    b = (ii + 1) // 2
    if ii == 0:
        return 0., 0.
    elif ii % 2 == 1:
        return -direction.px(b), -direction.py(b)
    else:
        return direction.px(b), direction.py(b)


def run_reconstruction(param: SimParam,
                       in_fft: Union[Sequence[Sequence[array]], array],
                       otf_before_shift: bool = True,
                       clip_scale: Optional[ClipScale] = None,
                       log=None) -> ReconstructionResult:
    """
    Reconstruct a 2D SIM image using the current parameters and filter plan

    :param param: SimParam with image size, OTF and pattern parameters set
    :param in_fft: ndirs x nphases x n x n spectra
    :param otf_before_shift: multiply components by the conjugate OTF before shifting them. Otherwise, the
      shifted OTF is applied after the shift
    :param clip_scale: post-processing of the real-space images. If None, param.clip_scale is used
    :param log: function used to print progress messages
    :return result:
    """
    if param.otf is None:
        raise InvalidParameterError("no OTF set in SimParam")

    _check_input(param, in_fft, 2)

    if log is None:
        log = _no_log

    if clip_scale is None:
        clip_scale = param.clip_scale

    tstart = perf_counter()

    otf = param.otf
    plan = param.filter_plan
    n = param.img_size
    shape = (n, n)
    shape2x = (2 * n, 2 * n)

    if plan.use_wiener_filter:
        wfilter = WienerFilter(param, log=log)

    # #############################################
    # combine bands of all directions
    # #############################################
    full_result = np.zeros(shape2x, dtype=complex)
    for d in range(param.nr_dirs):
        direction = param.dir(d)

        spectra = np.array(in_fft[d], dtype=complex, copy=True)
        if plan.use_rl_on_input:
            otf_rl = otf.write_otf_vector(shape, 0, 0, 0)
            for ii in range(len(spectra)):
                deconvolve(spectra[ii], otf_rl, param.rl_iterations, True, log=log)

        separate = separate_bands(spectra, direction.get_phases(), direction.nr_bands,
                                  direction.get_modulations())

        if otf_before_shift and plan.use_wiener_filter:
            separate = [otf.apply_otf(separate[ii], (ii + 1) // 2) for ii in range(direction.nr_comp)]

        shifted = _shift_components(separate, direction)

        if plan.use_wiener_filter:
            for ii in range(direction.nr_comp):
                kx, ky = _component_center(direction, ii)
                if otf_before_shift:
                    shifted[ii] = otf.mask_otf(shifted[ii], kx, ky)
                else:
                    shifted[ii] = otf.apply_otf(shifted[ii], (ii + 1) // 2, kx, ky)

        if plan.use_rl_on_output:
            shifted[0] = shifted[0] / param.nr_dirs

        for s in shifted:
            full_result += s

    # #############################################
    # widefield comparison from band 0 only
    # #############################################
    widefield = np.zeros(shape2x, dtype=complex)
    for d in range(param.nr_dirs):
        direction = param.dir(d)
        separate = separate_bands(in_fft[d], direction.get_phases(), direction.nr_bands,
                                  direction.get_modulations())
        widefield += place_freq(separate[0])

    # #############################################
    # filter
    # #############################################
    if plan.use_wiener_filter:
        w = param.wiener_parameter
        full_result *= wfilter.get_denominator(w)
        full_result *= otf.write_apo_vector(shape2x, param.apo_bend, param.apo_cutoff)

        widefield = otf.otf_to_vector(widefield, 0, 0, 0, use_attenuation=False, write=False)
        widefield *= wfilter.get_widefield_denominator(w)
        widefield = otf.mask_otf(widefield, 0, 0)

    if plan.use_rl_on_output:
        # effective OTF of the summed components
        otf_sim = np.zeros(shape2x, dtype=complex)
        for d in range(param.nr_dirs):
            direction = param.dir(d)
            otf_sim += otf.write_otf_vector(shape2x, 0, 0, 0) / param.nr_dirs
            for b in range(1, direction.nr_bands):
                otf_sim += otf.write_otf_vector(shape2x, b, direction.px(b), direction.py(b))
                otf_sim += otf.write_otf_vector(shape2x, b, -direction.px(b), -direction.py(b))

        deconvolve(full_result, otf_sim, param.rl_iterations, True, log=log)
        deconvolve(widefield, otf.write_otf_vector(shape2x, 0, 0, 0), param.rl_iterations, True, log=log)

    log(f"2D reconstruction took {perf_counter() - tstart:.2f}s")

    return ReconstructionResult(sim=spatial(full_result, clip_scale),
                                widefield=spatial(widefield, clip_scale),
                                sim_ft=full_result,
                                widefield_ft=widefield)


# #############################################
# 3D reconstruction
# #############################################
def _estimate_direction_3d(param: SimParam,
                           otf3d: OtfProvider3D,
                           spectra: array,
                           dir_index: int,
                           fit_level: FitLevel,
                           log) -> ParameterEstimationResult:
    direction = param.dir(dir_index)
    nbands = direction.nr_bands
    outer = nbands - 1

    lb = 1
    hb = 3 if nbands == 3 else 1

    separate = separate_bands_equidistant(spectra, 0, nbands, None)

    # compensate the OTF, so the correlation is not dominated by low frequencies
    shape = separate[0].shape
    c0 = ift3(separate[0] / (otf3d.write_otf_vector(shape, 0, 0, 0) + 0.01))
    c2 = ift3(separate[hb] / (otf3d.write_otf_vector(shape, outer, 0, 0) + 0.01))
    corr = ft3(c2 * c0.conj())

    min_dist = 0.5 * otf3d.get_cutoff() / param.cycles_per_micron

    kx = direction.px(outer)
    ky = direction.py(outer)
    kx_preset = kx
    ky_preset = ky
    if fit_level >= FitLevel.FIND_PEAK:
        kx, ky, _, _ = locate_peak(corr, min_dist)
        log(f"a{dir_index:d}: peak located (min {min_dist:4.0f}) at x {kx:5.0f} y {ky:5.0f}")
    else:
        log(f"a{dir_index:d}: using preset peak at x {kx:7.3f} y {ky:7.3f}")

    if fit_level >= FitLevel.REFINE_PEAK:
        kx, ky, _, _ = fit_peak(separate[0], separate[hb], 0, outer, otf3d, kx, ky, 0.005, 2.5,
                                scheduler="synchronous", log=log)
        log(f"a{dir_index:d}: peak refined to x {kx:7.3f} y {ky:7.3f},"
            f" moved by {np.hypot(kx - kx_preset, ky - ky_preset):7.3f}")

    if lb != hb:
        # TODO: use the band 1 OTF here once measured 3D OTFs provide it reliably
        p1 = get_peak(separate[0], separate[lb], 0, outer, otf3d, kx / 2, ky / 2, 0.0075)
        p2 = get_peak(separate[0], separate[hb], 0, outer, otf3d, kx, ky, 0.005)
        peaks = [p1, p2]

        log(f"a{dir_index:d}: peak and phase --> x {kx:7.3f} y {ky:7.3f} p {np.angle(p1):7.3f}"
            f" (m {abs(p1):7.3f}, {abs(p2):7.3f})")
    else:
        p1 = get_peak(separate[0], separate[1], 0, 1, otf3d, kx, ky, 0.05)
        peaks = [p1]

        log(f"a{dir_index:d}: peak and phase --> x {kx:7.3f} y {ky:7.3f} p {np.angle(p1):7.3f}"
            f" (m {abs(p1):7.3f})")

    return ParameterEstimationResult(dir_index=dir_index,
                                     px=kx,
                                     py=ky,
                                     phase_offset=float(np.angle(p1)),
                                     modulations=[1.] + [float(abs(p)) for p in peaks],
                                     peak_magnitudes=[float(abs(p)) for p in peaks])


def run_reconstruction_3d(param: SimParam,
                          otf3d: OtfProvider3D,
                          in_fft: Union[Sequence[Sequence[array]], array],
                          fit_level: FitLevel = FitLevel.FIND_PEAK,
                          log=None) -> ReconstructionResult:
    """
    Estimate parameters (depending on fit_level) and reconstruct a 3D SIM stack with the 3D Wiener filter.
    Estimated parameters are stored in param.

    :param param: SimParam with image size and z-stack set
    :param otf3d: 3D OTF
    :param in_fft: ndirs x nphases x nz x n x n spectra, as returned by fft_raw_images_3d()
    :param fit_level: FitLevel.FIND_PEAK searches for the pattern peak, REFINE_PEAK starts from the shifts in
      param, REFINE_PHASE only determines phases and modulation depths, and NONE uses param as is
    :param log: function used to print progress messages
    :return result: images are nz x 2n x 2n
    """
    if param.stack_size is None:
        raise InvalidParameterError("z-stack not set in SimParam")

    _check_input(param, in_fft, 3)
    for spectra in in_fft:
        for s in spectra:
            if s.shape[0] != param.stack_size:
                raise DimensionMismatchError(f"expected {param.stack_size:d} slices, but spectrum had shape "
                                             f"{s.shape}")

    if log is None:
        log = _no_log

    fit_level = FitLevel(fit_level)
    otf3d.set_pixel_size(param.cycles_per_micron, param.cycles_per_micron_z)

    # #############################################
    # parameter estimation
    # #############################################
    if fit_level >= FitLevel.REFINE_PHASE:
        tstart = perf_counter()

        r = []
        for d in range(param.nr_dirs):
            r.append(delayed(_estimate_direction_3d)(param, otf3d, in_fft[d], d, fit_level, log))
        results = compute(*r, scheduler="threads", num_workers=_get_num_workers())

        for res in results:
            param.apply_estimate(res)

        log(f"3D parameter estimation took {perf_counter() - tstart:.2f}s")

    # #############################################
    # reconstruction
    # #############################################
    tstart = perf_counter()

    wfilter = WienerFilter3D(param, otf3d, log=log)
    nz = param.stack_size
    shape2x = (nz, 2 * param.img_size, 2 * param.img_size)

    full_result = np.zeros(shape2x, dtype=complex)
    widefield = np.zeros(shape2x, dtype=complex)
    for d in range(param.nr_dirs):
        direction = param.dir(d)
        factors = [1.] + [0.8] * (direction.nr_bands - 1)

        separate = separate_bands(in_fft[d], direction.get_phases(), direction.nr_bands, factors)
        widefield += place_freq(separate[0])

        separate = [otf3d.apply_otf(separate[ii], (ii + 1) // 2) for ii in range(direction.nr_comp)]
        for s in _shift_components(separate, direction):
            full_result += s

    w = param.wiener_parameter
    full_result *= wfilter.get_denominator(w)
    full_result = otf3d.apotize(full_result, 2.0, 1.4, False)

    widefield *= wfilter.get_widefield_denominator(w)

    log(f"3D reconstruction took {perf_counter() - tstart:.2f}s")
    log(param.pretty_print(True))

    return ReconstructionResult(sim=spatial(full_result, param.clip_scale),
                                widefield=spatial(widefield, param.clip_scale),
                                sim_ft=full_result,
                                widefield_ft=widefield)


# #############################################
# reconstruction session
# #############################################
class SimReconstruction:
    def __init__(self,
                 imgs: np.ndarray,
                 param: SimParam,
                 otf3d: Optional[OtfProvider3D] = None,
                 fade_border: int = 10,
                 print_to_terminal: bool = True):
        """
        Reconstruct one SIM dataset. Holds the raw frames, the parameters, the results and a log of all
        messages printed during the reconstruction.

        :param imgs: nframes x ny x nx stack of raw frames, ordered according to param.img_seq
        :param param: SimParam with image size and OTF set. For 3D reconstruction, the z-stack must also be set
        :param otf3d: 3D OTF. If provided, reconstruct() runs the 3D reconstruction
        :param fade_border: width of the border faded before the FFT, in pixels
        :param print_to_terminal: print log messages to stdout
        """

        # #############################################
        # logging and printing results
        # #############################################
        self._streams = []
        self.log = StringIO()  # can save this stream to a file later if desired
        self.add_stream(self.log)
        if print_to_terminal:
            self.add_stream(stdout)

        self.param = param
        self.otf3d = otf3d
        self.fade_border = fade_border
        self.imgs = np.asarray(imgs)

        self.estimates = None
        self.result = None

        tstart = perf_counter()
        if self.otf3d is not None:
            self.imgs_ft = fft_raw_images_3d(self.imgs, self.param, self.fade_border)
        else:
            self.imgs_ft = fft_raw_images(self.imgs, self.param, self.fade_border)
        self.print_log(f"FFT of {self.imgs.shape[0]:d} raw frames took {perf_counter() - tstart:.2f}s")

    @property
    def sim_sr(self) -> Optional[np.ndarray]:
        return None if self.result is None else self.result.sim

    @property
    def widefield(self) -> Optional[np.ndarray]:
        return None if self.result is None else self.result.widefield

    def estimate_parameters(self,
                            fit_band: int = 2,
                            fit_exclude: float = 0.6,
                            use_wicker_phases: bool = False):
        """
        Estimate 2D SIM parameters and store them in self.param

        :param fit_band: 1 or 2, see estimate_parameters()
        :param fit_exclude:
        :param use_wicker_phases: additionally determine individual phases by auto-correlation
        """
        if self.otf3d is not None:
            raise InvalidParameterError("3D parameters are estimated by reconstruct()")

        tstart = perf_counter()
        self.print_log("starting parameter estimation...")

        self.estimates = estimate_parameters(self.param, self.imgs_ft, fit_band, fit_exclude, log=self.print_log)
        mod_low, mod_high = self.param.mod_limits
        for res in self.estimates:
            self.param.dir(res.dir_index).reset_phases()
            self.param.apply_estimate(res)

            for b, m in enumerate(res.modulations[1:], start=1):
                if not mod_low < m < mod_high:
                    warn(f"modulation depth {m:.3f} of band {b:d}, direction {res.dir_index:d} is outside"
                         f" [{mod_low:.2f}, {mod_high:.2f}] and will be clamped")

        if use_wicker_phases:
            refine_phases_wicker(self.param, self.imgs_ft, log=self.print_log)

        self.param.signal_runtime_change()
        self.print_log(f"parameter estimation took {perf_counter() - tstart:.2f}s")

    def reconstruct(self,
                    fit_level: FitLevel = FitLevel.FIND_PEAK,
                    otf_before_shift: bool = True) -> ReconstructionResult:
        """
        Reconstruct the SIM image with the current parameters

        :param fit_level: parameter estimation for 3D data, ignored in 2D
        :param otf_before_shift: see run_reconstruction()
        :return result:
        """
        tstart = perf_counter()
        if self.otf3d is not None:
            self.result = run_reconstruction_3d(self.param, self.otf3d, self.imgs_ft, fit_level, log=self.print_log)
        else:
            self.result = run_reconstruction(self.param, self.imgs_ft, otf_before_shift, log=self.print_log)

        self.print_log(f"reconstruction took {perf_counter() - tstart:.2f}s")

        return self.result

    def print_parameters(self):
        """
        Print parameters to the log
        """
        self.print_log(f"SIM reconstruction for {self.param.nr_dirs:d} directions, {self.param.nr_phases:d} phases"
                       f" and {self.param.nr_bands:d} bands")
        self.print_log(f"images are size {self.param.img_size:d}x{self.param.img_size:d}"
                       f" with pixel size {self.param.microns_per_pixel:.3f}um")
        if self.param.otf is not None:
            self.print_log(f"OTF: {self.param.otf.print_state():s}")
        self.print_log(f"filter: {self.param.filter_plan}")
        self.print_log(self.param.pretty_print(True))

        if self.estimates is not None:
            for res in self.estimates:
                self.print_log(f"direction {res.dir_index:d} fit quality: {res.fit_quality.value:s}")

    def add_stream(self,
                   stream):
        """
        Add stream to be used with print_log()

        :param stream:
        """
        if stream not in self._streams:
            self._streams.append(stream)

    def print_log(self,
                  string: str,
                  **kwargs):
        """
        Print result to stdout and to a log file.

        :param string: string to print
        :param kwargs: passed through to print()
        """
        for stream in self._streams:
            print(string, **kwargs, file=stream)

    def get_metadata(self) -> dict:
        """
        :return metadata: json serializable dictionary of parameters and the log
        """
        metadata = {"log": self.log.getvalue(),
                    "microns_per_pixel": self.param.microns_per_pixel,
                    "img_size": self.param.img_size,
                    "nr_bands": self.param.nr_bands,
                    "nr_dirs": self.param.nr_dirs,
                    "nr_phases": self.param.nr_phases,
                    "filter_plan": str(self.param.filter_plan),
                    "wiener_parameter": self.param.wiener_parameter,
                    "apodization_cutoff": self.param.apo_cutoff,
                    "apodization_bend": self.param.apo_bend,
                    "shifts": [self.param.dir(d).get_px_py(self.param.nr_bands - 1).tolist()
                               for d in range(self.param.nr_dirs)],
                    "phases": [self.param.dir(d).get_phases().tolist() for d in range(self.param.nr_dirs)],
                    "modulation_depths": [self.param.dir(d).get_modulations().tolist()
                                          for d in range(self.param.nr_dirs)],
                    }

        if self.param.otf is not None:
            metadata["otf"] = self.param.otf.print_state()

        if self.param.stack_size is not None:
            metadata["stack_size"] = self.param.stack_size
            metadata["microns_per_slice"] = self.param.microns_per_slice

        return metadata

    def save_imgs(self,
                  save_dir: Union[str, Path],
                  save_suffix: str = "",
                  save_prefix: str = "",
                  format: str = "tiff",
                  attributes: Optional[dict] = None) -> Path:
        """
        Save SIM results and metadata to file

        :param save_dir: directory to save results
        :param save_suffix:
        :param save_prefix:
        :param format: "tiff" or "hdf5". If tiff is used, metadata will be saved in a .json file
        :param attributes: dictionary passing extra attributes which will be saved with SIM data. This data
          must be json serializable
        :return metadata_fname: when saving as tiff, this will be an auxiliary json file. For hdf5,
          it will be the hdf5 file
        """
        if self.result is None:
            raise ValueError("no reconstruction to save, call reconstruct() first")

        if attributes is None:
            attributes = {}

        tstart_save = perf_counter()

        save_dir = Path(save_dir)
        save_dir.mkdir(exist_ok=True, parents=True)

        metadata = self.get_metadata()
        metadata.update(attributes)

        attrs = ["sim_sr", "widefield"]

        if format == "hdf5":
            fname = save_dir / f"{save_prefix:s}sim_results{save_suffix:s}.hdf5"
            with h5py.File(fname, "w") as f:
                for k, v in metadata.items():
                    f.attrs[k] = json.dumps(v) if isinstance(v, (list, dict)) else v

                for a in attrs:
                    f.create_dataset(a, data=np.asarray(getattr(self, a), dtype=np.float32))

        elif format == "tiff":
            fname = save_dir / f"{save_prefix:s}sim_reconstruction{save_suffix:s}.json"
            with open(fname, "w") as f:
                json.dump(metadata, f, indent="\t")

            # SIM images are sampled twice as finely as the raw data
            dxy = self.param.microns_per_pixel / 2

            def save_delayed(attr):
                def _save():
                    img = np.asarray(getattr(self, attr), dtype=np.float32)
                    tifffile.imwrite(save_dir / f"{save_prefix:s}{attr:s}{save_suffix:s}.tif",
                                     img,
                                     imagej=False,
                                     resolution=(1 / dxy, 1 / dxy),
                                     metadata={"Info": f"array type = {attr:s}",
                                               "unit": "um",
                                               'min': 0,
                                               'max': float(np.max(img))
                                               }
                                     )

                return delayed(_save)()

            future = [save_delayed(a) for a in attrs]

            self.print_log("saving images...")
            with ProgressBar():
                compute(future)
        else:
            raise ValueError(f"format was {format:s}, but the allowed values are {['tiff', 'hdf5']}")

        self.print_log(f"saving SIM images took {perf_counter() - tstart_save:.2f}s")

        return fname

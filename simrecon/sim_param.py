"""
SIM parameters: number of bands, directions and phases, pixel size, per-direction pattern wave vectors, phases
and modulation depths, and reconstruction filter settings.

Pattern wave vectors are given in frequency pixels of the raw image FFT, relative to the zero frequency,
with kx along the last array axis and ky along the second to last.
"""

from dataclasses import dataclass, field
from enum import Enum
from time import time_ns
from typing import Union, Optional
from collections.abc import Sequence
import numpy as np
from simrecon.errors import InvalidParameterError


class ClipScale(Enum):
    """
    Post-processing of real-space output images
    """
    BOTH = "clip&scale"
    CLIP = "clip zeros"
    NONE = "raw values"

    def __str__(self):
        return self.value


class ImgSeq(Enum):
    """
    Ordering of raw frames in an input stack. The letters give the index order from fastest to slowest
    changing: phase, angle, z
    """
    PAZ = "p,a,z (def)"
    PZA = "p,z,a (OMX)"
    ZAP = "z,a,p (Zeiss)"

    def __str__(self):
        return self.value

    @classmethod
    def from_name(cls, name: str):
        """
        :param name: one of "PAZ", "PZA" or "ZAP"
        :return img_seq: None if the name is unknown
        """
        try:
            return cls[name.strip()]
        except KeyError:
            return None

    def calc_pos(self,
                 ang: int,
                 pha: int,
                 z: int,
                 ang_max: int,
                 pha_max: int,
                 z_max: int) -> int:
        """
        Position of a raw frame in the input stack

        :param ang: angle index
        :param pha: phase index
        :param z: z-slice index
        :param ang_max: number of angles
        :param pha_max: number of phases
        :param z_max: number of z-slices
        :return pos:
        """
        if ang < 0 or ang >= ang_max or pha < 0 or pha >= pha_max or z < 0 or z >= z_max:
            raise InvalidParameterError(f"frame indices (ang={ang:d}, pha={pha:d}, z={z:d}) out of range for"
                                        f" ({ang_max:d}, {pha_max:d}, {z_max:d})")

        if self is ImgSeq.PZA:
            return pha + z * pha_max + ang * pha_max * z_max
        elif self is ImgSeq.ZAP:
            return z + ang * z_max + pha * z_max * ang_max
        else:
            return pha + ang * pha_max + z * pha_max * ang_max

    def calc_pos_with_time(self,
                           ang: int,
                           pha: int,
                           z: int,
                           t: int,
                           ang_max: int,
                           pha_max: int,
                           z_max: int) -> int:
        """
        Like calc_pos(), for a time series of image stacks

        :param t: time index
        """
        return self.calc_pos(ang, pha, z, ang_max, pha_max, z_max) + pha_max * z_max * ang_max * t

    def get_param(self):
        """
        Default parameters of the system this ordering is typical for

        :return param: SimParam or None
        """
        if self is ImgSeq.PZA:
            return SimParam.create(3, 3, 5, 512, 0.082, None)
        elif self is ImgSeq.ZAP:
            return SimParam.create(3, 5, 5, 1024, 0.064, None)

        return None


# #############################################
# filter plans
# #############################################
@dataclass(frozen=True)
class WienerPlan:
    """Generalized Wiener filter"""
    wiener_parameter: float = 0.05

    use_wiener_filter = True
    use_rl_on_input = False
    use_rl_on_output = False


@dataclass(frozen=True)
class RLInputPlan:
    """Richardson-Lucy deconvolution of the raw images, followed by a Wiener filter"""
    rl_iterations: int = 5
    wiener_parameter: float = 0.05

    use_wiener_filter = True
    use_rl_on_input = True
    use_rl_on_output = False


@dataclass(frozen=True)
class RLOutputPlan:
    """Richardson-Lucy deconvolution of the combined spectrum with the effective SIM OTF"""
    rl_iterations: int = 5

    use_wiener_filter = False
    use_rl_on_input = False
    use_rl_on_output = True


@dataclass(frozen=True)
class RLBothPlan:
    """Richardson-Lucy deconvolution of both the raw images and the combined spectrum"""
    rl_iterations: int = 5

    use_wiener_filter = False
    use_rl_on_input = True
    use_rl_on_output = True


FilterPlan = Union[WienerPlan, RLInputPlan, RLOutputPlan, RLBothPlan]


class FitQuality(Enum):
    """
    Classification of the fitted outer band modulation depth
    """
    GOOD = "good"
    USABLE = "usable"
    WEAK = "weak"
    VERY_LOW = "very low"
    NO_FIT = "no fit"

    @classmethod
    def from_modulation(cls, mod: float):
        if mod >= 0.7:
            return cls.GOOD
        elif mod >= 0.5:
            return cls.USABLE
        elif mod >= 0.3:
            return cls.WEAK
        elif mod >= 0.1:
            return cls.VERY_LOW

        return cls.NO_FIT


@dataclass
class ParameterEstimationResult:
    """
    Parameters estimated for one pattern direction

    Attributes:
        dir_index: direction index
        px: outer band shift along x, in frequency pixels
        py: outer band shift along y
        phase_offset: global phase offset in radians
        modulations: modulation depth of each band, starting with 1 for the DC band
        phases: explicitly determined phases of each image, if any
        peak_magnitudes: correlation magnitudes before clamping, one per band
    """
    dir_index: int
    px: float
    py: float
    phase_offset: float
    modulations: list[float]
    phases: Optional[list[float]] = None
    peak_magnitudes: list[float] = field(default_factory=list)

    @property
    def fit_quality(self) -> FitQuality:
        return FitQuality.from_modulation(self.modulations[-1])


class Dir:
    def __init__(self,
                 nr_bands: int,
                 nr_phases: int,
                 index: int = 0,
                 mod_low_limit: float = 0.3,
                 mod_high_limit: float = 1.1):
        """
        Parameters of one pattern direction

        :param nr_bands: number of bands, including the DC band
        :param nr_phases: number of phase steps
        :param index: direction index
        :param mod_low_limit: modulations are clamped to [mod_low_limit, mod_high_limit] when read back
        :param mod_high_limit:
        """
        if nr_bands < 2:
            raise InvalidParameterError(f"need at least 2 bands, but nr_bands={nr_bands:d}")
        if nr_phases < 2 * nr_bands - 1:
            raise InvalidParameterError(f"not enough phases ({nr_phases:d}) for {nr_bands:d} bands")

        self.nr_bands = nr_bands
        self.nr_phases = nr_phases
        self.index = index
        self.mod_low_limit = mod_low_limit
        self.mod_high_limit = mod_high_limit

        # shift of band 1
        self._px = 0.
        self._py = 0.
        self.pha_off = 0.
        self.modulations = np.ones(nr_bands)
        self.phases = None
        self.has_individual_phases = False
        self.reset_phases()

    @property
    def nr_comp(self) -> int:
        return 2 * self.nr_bands - 1

    def _check_band(self, band: int):
        if band < 0 or band >= self.nr_bands:
            raise InvalidParameterError(f"band index must be in [0, {self.nr_bands - 1:d}], but was {band:d}")

    # phases
    def set_pha_off(self, pha: float):
        self.pha_off = float(pha)

    def set_phases(self,
                   phases: Sequence[float],
                   reset: bool):
        """
        Set individual (not necessarily equidistant) phases

        :param phases: one phase per image
        :param reset: if True, also set the global phase offset to zero
        """
        if len(phases) != self.nr_phases:
            raise InvalidParameterError(f"expected {self.nr_phases:d} phases, but got {len(phases):d}")

        if reset:
            self.pha_off = 0.

        self.phases = np.array(phases, dtype=float)
        self.has_individual_phases = True

    def reset_phases(self):
        """
        Set equidistant phases 2 pi i / nr_phases
        """
        self.phases = 2 * np.pi * np.arange(self.nr_phases) / self.nr_phases
        self.has_individual_phases = False

    def get_phases(self) -> np.ndarray:
        """
        :return phases: phases including the global phase offset
        """
        return self.phases + self.pha_off

    # shifts
    def set_px_py(self, px: float, py: float):
        """
        Set the shift of the outermost band

        :param px: in frequency pixels
        :param py:
        """
        self._px = px / (self.nr_bands - 1)
        self._py = py / (self.nr_bands - 1)

    def px(self, band: int) -> float:
        self._check_band(band)
        return self._px * band

    def py(self, band: int) -> float:
        self._check_band(band)
        return self._py * band

    def get_px_py(self, band: int) -> np.ndarray:
        self._check_band(band)
        return np.array([self._px * band, self._py * band])

    def get_px_py_angle(self, band: int) -> float:
        self._check_band(band)
        return float(np.arctan2(self._py * band, self._px * band))

    def get_px_py_len(self, band: int) -> float:
        self._check_band(band)
        return float(np.hypot(self._px * band, self._py * band))

    # modulation
    def set_modulation(self, band: int, mod: float) -> bool:
        """
        :param band:
        :param mod:
        :return within_limits: whether mod_low_limit < mod < mod_high_limit
        """
        self._check_band(band)
        self.modulations[band] = mod

        return self.mod_low_limit < mod < self.mod_high_limit

    def get_modulations(self) -> np.ndarray:
        """
        :return modulations: clamped to [mod_low_limit, mod_high_limit]
        """
        return np.clip(self.modulations, self.mod_low_limit, self.mod_high_limit)


class SimParam:
    def __init__(self,
                 bands: int,
                 dirs: int,
                 phases: int,
                 mod_low_limit: float = 0.3,
                 mod_high_limit: float = 1.1):
        """
        Parameter record for a SIM dataset. Use create() to also set the image size and OTF.

        :param bands: number of bands, including the DC band
        :param dirs: number of pattern directions
        :param phases: number of phases per direction
        :param mod_low_limit:
        :param mod_high_limit:
        """
        if dirs < 1:
            raise InvalidParameterError(f"need at least one direction, but dirs={dirs:d}")

        self.nr_bands = bands
        self.nr_dirs = dirs
        self.nr_phases = phases
        self.dirs = [Dir(bands, phases, ii, mod_low_limit, mod_high_limit) for ii in range(dirs)]

        self.img_size = None
        self.microns_per_pixel = None
        self.cycles_per_micron = None

        self.stack_size = None
        self.microns_per_slice = None
        self.cycles_per_micron_z = None

        self.img_seq = ImgSeq.PAZ
        self.clip_scale = ClipScale.BOTH
        self.filter_plan = WienerPlan()
        self.apo_cutoff = 2.
        self.apo_bend = 0.9

        self._otf = None
        self.runtime_timestamp = 0

    @classmethod
    def create(cls,
               bands: int,
               dirs: int,
               phases: int,
               size: Optional[int] = None,
               microns_per_pxl: Optional[float] = None,
               otf=None,
               **kwargs):
        """
        :param bands:
        :param dirs:
        :param phases:
        :param size: image size in pixels. Images are size x size
        :param microns_per_pxl: pixel size in microns
        :param otf: OtfProvider
        :return param:
        """
        param = cls(bands, dirs, phases, **kwargs)
        if size is not None:
            param.set_pxl_size(size, microns_per_pxl)
        param.otf = otf

        return param

    def dir(self, ii: int) -> Dir:
        return self.dirs[ii]

    @property
    def img_per_z(self) -> int:
        return sum([d.nr_phases for d in self.dirs])

    def set_pxl_size(self, pxl: int, microns: float):
        """
        Set image size and pixel size, and propagate the frequency pixel size to the OTF

        :param pxl: image size in pixels
        :param microns: pixel size in microns
        """
        if pxl <= 0 or microns <= 0:
            raise InvalidParameterError(f"image size and pixel size must be positive, but were {pxl}, {microns}")

        self.img_size = int(pxl)
        self.microns_per_pixel = float(microns)
        self.cycles_per_micron = 1 / (pxl * microns)

        if self._otf is not None:
            self._otf.set_pixel_size(self.cycles_per_micron)

    def set_stack(self, size: int, microns_per_slice: float):
        """
        Set z-stack size for 3D reconstruction

        :param size: number of slices
        :param microns_per_slice: z-step in microns
        """
        if size <= 0 or microns_per_slice <= 0:
            raise InvalidParameterError(f"stack size and z-step must be positive, but were {size}, "
                                        f"{microns_per_slice}")

        self.stack_size = int(size)
        self.microns_per_slice = float(microns_per_slice)
        self.cycles_per_micron_z = 1 / (size * microns_per_slice)

    @property
    def otf(self):
        return self._otf

    @otf.setter
    def otf(self, otf):
        if otf is None:
            return

        self._otf = otf
        if self.cycles_per_micron is not None:
            otf.set_pixel_size(self.cycles_per_micron)

    @property
    def wiener_parameter(self) -> float:
        return getattr(self.filter_plan, "wiener_parameter", 0.05)

    @property
    def rl_iterations(self) -> int:
        return getattr(self.filter_plan, "rl_iterations", 5)

    @property
    def mod_limits(self) -> tuple[float, float]:
        return self.dirs[0].mod_low_limit, self.dirs[0].mod_high_limit

    def apply_estimate(self, result: ParameterEstimationResult):
        """
        Store estimated parameters for one direction

        :param result:
        """
        d = self.dir(result.dir_index)
        d.set_px_py(result.px, result.py)

        if result.phases is not None:
            d.set_phases(result.phases, True)
        d.set_pha_off(result.phase_offset)

        for b, m in enumerate(result.modulations):
            d.set_modulation(b, m)

    def signal_runtime_change(self) -> int:
        """
        Mark the parameters as changed

        :return timestamp:
        """
        self.runtime_timestamp = time_ns()
        return self.runtime_timestamp

    def compare_runtime_timestamp(self, timestamp: int) -> bool:
        """
        :param timestamp:
        :return is_older: True if timestamp is older than the last change of the parameters
        """
        return timestamp - self.runtime_timestamp < 0

    def pretty_print(self, pha_in_deg: bool = False) -> str:
        """
        Summary of the parameters

        :param pha_in_deg: print phases in degrees instead of radians
        :return summary:
        """
        pf = 180 / np.pi if pha_in_deg else 1

        summary = "#--- SIM parameter summary ---\n"
        if self.microns_per_pixel is not None:
            summary += f"# pxl {self.microns_per_pixel:7.5f} microns" \
                       f" (freq pxl {self.cycles_per_micron:8.6f} cycles/micron)\n ----\n"

        for d in self.dirs:
            b = d.nr_bands - 1
            summary += f"Nr bands: {b:d}, shift of outer-most band:\n"
            summary += f"px: {d.px(b):6.3f} py: {d.py(b):6.3f} (len {d.get_px_py_len(b):6.3f}) \n"
            summary += f"phases ({'deg' if pha_in_deg else 'rad'}) [ "
            for p in d.get_phases():
                summary += f"{p * pf:6.3f} "
            summary += " ]\n Modulation: [ "
            for m in d.get_modulations():
                summary += f"{m:6.3f} "
            summary += " ]\n ----\n"

        return summary

    def __repr__(self):
        return f"SimParam(bands={self.nr_bands:d}, dirs={self.nr_dirs:d}, phases={self.nr_phases:d})"

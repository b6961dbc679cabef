"""
Generalized Wiener filter for SIM reconstruction

.. math::

  S(f) = \\frac{\\sum_{d, b} H_b^*(f - p_{d, b}) C_{d, b}(f - p_{d, b})}
              {\\sum_{d, b} |H_b(f - p_{d, b})|^2 + |H_b(f + p_{d, b})|^2 + w^2}

The denominators are computed on the 2x oversampled reconstruction grid. Both the + and - shifts are
accumulated for every band, so the DC band contributes twice.
"""

from time import perf_counter
import numpy as np
from simrecon.sim_utils import get_frq_coords
from simrecon.errors import InvalidParameterError


def _reciprocal(acc: np.ndarray, wiener_param: float) -> np.ndarray:
    return 1 / (acc + wiener_param ** 2)


class WienerFilter:
    def __init__(self, param, log=None):
        """
        Wiener filter denominators for the parameters and OTF in param

        :param param: SimParam
        :param log: function used to print progress messages
        """
        if param.otf is None:
            raise InvalidParameterError("no OTF set in SimParam")

        self.param = param
        self.log = log if log is not None else lambda s: None
        self.denom = None
        self.update_cache()

    @property
    def shape(self) -> tuple[int, int]:
        return 2 * self.param.img_size, 2 * self.param.img_size

    def _get_dists(self, kx: float, ky: float) -> np.ndarray:
        ny, nx = self.shape
        fx = get_frq_coords(nx) - kx
        fy = get_frq_coords(ny) - ky

        return np.sqrt(np.expand_dims(fx, axis=0) ** 2 +
                       np.expand_dims(fy, axis=1) ** 2) * self.param.cycles_per_micron

    def add_wiener_denominator(self,
                               acc: np.ndarray,
                               d: int,
                               b: int,
                               use_attenuation: bool) -> np.ndarray:
        """
        Add |OTF_b(f - p_b)|^2 + |OTF_b(f + p_b)|^2 for direction d and band b to acc

        :param acc: 2ny x 2nx array, modified in place
        :param d: direction index
        :param b: band index
        :param use_attenuation: multiply each term by the OTF attenuation
        :return acc:
        """
        otf = self.param.otf
        direction = self.param.dir(d)

        for sign in [1, -1]:
            rad = self._get_dists(sign * direction.px(b), sign * direction.py(b))
            val = abs(otf.get_otf_val(b, rad, False)) ** 2
            if use_attenuation:
                val *= otf.get_att_val(b, rad)
            acc += val

        return acc

    def update_cache(self):
        """
        Recompute the denominator for all directions and bands
        """
        tstart = perf_counter()

        use_attenuation = self.param.otf.is_attenuate
        self.denom = np.zeros(self.shape)
        for d in range(self.param.nr_dirs):
            for b in range(self.param.dir(d).nr_bands):
                self.add_wiener_denominator(self.denom, d, b, use_attenuation)

        self.log(f"Wiener filter setup took {perf_counter() - tstart:.2f}s")

    def get_denominator(self, wiener_param: float) -> np.ndarray:
        """
        :param wiener_param:
        :return denom: 1 / (sum |OTF|^2 + w^2)
        """
        return _reciprocal(self.denom, wiener_param)

    def get_widefield_denominator(self, wiener_param: float) -> np.ndarray:
        """
        Denominator for filtering the widefield image, using only the DC band of the first direction

        :param wiener_param:
        :return denom:
        """
        acc = self.add_wiener_denominator(np.zeros(self.shape), 0, 0, False)
        return _reciprocal(acc, wiener_param)

    def get_intermediate_denominator(self,
                                     d: int,
                                     wiener_param: float,
                                     b: int = None) -> np.ndarray:
        """
        Denominator for a single direction, and optionally a single band

        :param d: direction index
        :param wiener_param:
        :param b: band index. If None, all bands of direction d are included
        :return denom:
        """
        use_attenuation = self.param.otf.is_attenuate
        bands = range(self.param.dir(d).nr_bands) if b is None else [b]

        acc = np.zeros(self.shape)
        for bb in bands:
            self.add_wiener_denominator(acc, d, bb, use_attenuation)

        return _reciprocal(acc, wiener_param)


class WienerFilter3D(WienerFilter):
    def __init__(self, param, otf3d, log=None):
        """
        3D Wiener filter. Lateral distances are measured from the shifted band centers, the axial coordinate
        is |kz|

        :param param: SimParam, with the z-stack set
        :param otf3d: OtfProvider3D
        :param log:
        """
        if param.stack_size is None:
            raise InvalidParameterError("z-stack not set in SimParam")

        self.otf3d = otf3d
        self.param = param
        self.log = log if log is not None else lambda s: None
        self.denom = None
        self.update_cache()

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.param.stack_size, 2 * self.param.img_size, 2 * self.param.img_size

    def add_wiener_denominator(self,
                               acc: np.ndarray,
                               d: int,
                               b: int,
                               use_attenuation: bool = False) -> np.ndarray:
        """
        Add |OTF_b(f - p_b)|^2 + |OTF_b(f + p_b)|^2 for direction d and band b to acc. The 3D OTF has no
        attenuation, so use_attenuation is ignored

        :param acc: nz x 2ny x 2nx array, modified in place
        :param d:
        :param b:
        :param use_attenuation:
        :return acc:
        """
        nz, ny, nx = self.shape
        direction = self.param.dir(d)
        cycl_ax = np.abs(get_frq_coords(nz)) * self.param.cycles_per_micron_z

        for sign in [1, -1]:
            rad = self._get_dists(sign * direction.px(b), sign * direction.py(b))
            val = abs(self.otf3d.get_otf_val(b, rad[None, :, :], cycl_ax[:, None, None])) ** 2
            acc += val

        return acc

    def _get_dists(self, kx: float, ky: float) -> np.ndarray:
        _, ny, nx = self.shape
        fx = get_frq_coords(nx) - kx
        fy = get_frq_coords(ny) - ky

        return np.sqrt(np.expand_dims(fx, axis=0) ** 2 +
                       np.expand_dims(fy, axis=1) ** 2) * self.param.cycles_per_micron

    def update_cache(self):
        tstart = perf_counter()

        self.denom = np.zeros(self.shape)
        for d in range(self.param.nr_dirs):
            for b in range(self.param.dir(d).nr_bands):
                self.add_wiener_denominator(self.denom, d, b)

        self.log(f"3D Wiener filter setup took {perf_counter() - tstart:.2f}s")

    def get_widefield_denominator(self, wiener_param: float) -> np.ndarray:
        acc = self.add_wiener_denominator(np.zeros(self.shape), 0, 0)
        return _reciprocal(acc, wiener_param)

    def get_intermediate_denominator(self,
                                     d: int,
                                     wiener_param: float,
                                     b: int = None) -> np.ndarray:
        bands = range(self.param.dir(d).nr_bands) if b is None else [b]

        acc = np.zeros(self.shape)
        for bb in bands:
            self.add_wiener_denominator(acc, d, bb)

        return _reciprocal(acc, wiener_param)

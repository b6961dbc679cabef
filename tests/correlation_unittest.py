"""
Tests for the band cross-correlation functions used in parameter estimation
"""
import unittest
import numpy as np
from simrecon.fft import ftn
from simrecon.sim_utils import fourier_shift
from simrecon.otf import OtfProvider
from simrecon.correlation import common_region, locate_peak, fit_peak, get_peak, auto_correlation
from simrecon.errors import DimensionMismatchError


class TestCorrelation(unittest.TestCase):

    def setUp(self):
        self.rng = np.random.default_rng(seed=4321)

        self.n = 128
        self.otf = OtfProvider.from_estimate(1.2, 500., 1.)
        self.otf.set_pixel_size(1 / (self.n * 0.0977))

    def _get_bands(self, kx, ky, mod, phase):
        """
        band 0 holds O(f) H(f), band 1 holds mod * exp(i phase) O(f - k) H(f)
        """
        obj_ft = ftn(self.rng.standard_normal((self.n, self.n)))
        otf_vec = self.otf.write_otf_vector((self.n, self.n), 0)

        band0 = obj_ft * otf_vec
        band1 = mod * np.exp(1j * phase) * fourier_shift(obj_ft, kx, ky) * otf_vec

        return band0, band1

    def test_locate_peak(self):
        n = 32
        vec = np.zeros((n, n), dtype=complex)
        vec[n // 2, n // 2] = 10.
        vec[n // 2 + 5, n // 2 - 7] = 3 * np.exp(0.5j)
        vec[n // 2 + 1, n // 2] = 5.

        x, y, mag, phase = locate_peak(vec, 2.)
        self.assertEqual(x, -7)
        self.assertEqual(y, 5)
        np.testing.assert_allclose(mag, 3.)
        np.testing.assert_allclose(phase, 0.5)

        # 3D spectra search the kz = 0 plane
        vec3 = np.zeros((4, n, n), dtype=complex)
        vec3[2] = vec
        vec3[0, n // 2 - 10, n // 2 + 10] = 100.
        x, y, _, _ = locate_peak(vec3, 2.)
        self.assertEqual((x, y), (-7, 5))

    def test_common_region(self):
        n = 64
        band0 = np.ones((n, n), dtype=complex)
        band1 = np.ones((n, n), dtype=complex)

        b0, b1 = common_region(band0, band1, 0, 0, self.otf, 12., 5., 0.15, 0.05, True)
        self.assertEqual(b0.shape, (n, n))
        self.assertEqual(b1.shape, (n, n))

        # zero frequency is excluded for 2D data
        self.assertEqual(b0[n // 2, n // 2], 0)

        b0, _ = common_region(band0, band1, 0, 0, self.otf, 12., 5., 0.15, 0.05, True, exclude_dc=False)
        np.testing.assert_allclose(b0[n // 2, n // 2], 1.)

        with self.assertRaises(DimensionMismatchError):
            common_region(band0, band1[:-1], 0, 0, self.otf, 12., 5.)

    def test_get_peak_integer_shift(self):
        """
        at an integer shift, the correlation is exactly mod * exp(i phase)
        """
        kx = 15
        ky = -9
        mod = 0.7
        phase = 1.1
        band0, band1 = self._get_bands(kx, ky, mod, phase)

        corr = get_peak(band0, band1, 0, 1, self.otf, kx, ky, 0.05)
        np.testing.assert_allclose(abs(corr), mod, rtol=1e-6)
        np.testing.assert_allclose(np.angle(corr), phase, atol=1e-6)

    def test_fit_peak(self):
        """
        refine a sub-pixel shift starting from the nearest integer pixel
        """
        kx = 18.1
        ky = -14.1
        mod = 0.6
        phase = -0.8
        band0, band1 = self._get_bands(kx, ky, mod, phase)

        cntrl = np.zeros((10, 30))
        kx_fit, ky_fit, phase_fit, mag_fit = fit_peak(band0, band1, 0, 1, self.otf, 18, -14, 0.05, 2.5,
                                                      cntrl=cntrl, scheduler="synchronous")

        np.testing.assert_allclose(kx_fit, kx, atol=0.05)
        np.testing.assert_allclose(ky_fit, ky, atol=0.05)
        np.testing.assert_allclose(mag_fit, mod, rtol=0.1)
        np.testing.assert_allclose(phase_fit, phase, atol=0.1)

        # every round of the search writes its normalized grid
        self.assertTrue(np.all(cntrl >= 0))
        self.assertTrue(np.all(cntrl <= 1))
        for it in range(3):
            np.testing.assert_allclose(cntrl[:, 10 * it:10 * (it + 1)].max(), 1.)

        corr = get_peak(band0, band1, 0, 1, self.otf, kx_fit, ky_fit, 0.05)
        np.testing.assert_allclose(abs(corr), mod, rtol=0.1)

    def test_auto_correlation(self):
        """
        phase of the auto-correlation at the pattern frequency is the pattern phase
        """
        n = self.n
        kx = 10
        ky = 6
        mod = 0.8
        phase = 0.7

        x = np.arange(n) - n // 2
        xx, yy = np.meshgrid(x, x)
        obj = 1 + 0.5 * self.rng.random((n, n))
        pattern = 1 + mod * np.cos(2 * np.pi * (kx * xx / n + ky * yy / n) + phase)
        img_ft = ftn(obj * pattern)

        corr = auto_correlation(img_ft, kx, ky)
        np.testing.assert_allclose(np.angle(corr), phase, atol=0.05)

        with self.assertRaises(DimensionMismatchError):
            auto_correlation(np.zeros((32, 64), dtype=complex), kx, ky)


if __name__ == "__main__":
    unittest.main()

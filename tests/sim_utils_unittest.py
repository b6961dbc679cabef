"""
Tests for the Fourier helpers in fft.py and sim_utils.py
"""
import unittest
import numpy as np
from simrecon.fft import ftn, iftn, ft2, ift2, ft3, ift3, get_fft_pos
from simrecon.sim_utils import get_frq_coords, place_freq, fourier_shift, paste_and_fourier_shift, pw_spec, \
    spatial, fade_border_cos, subtract_background, clip_and_scale
from simrecon.sim_param import ClipScale


class TestFFT(unittest.TestCase):

    def setUp(self):
        self.rng = np.random.default_rng(seed=11)

    def test_inverse(self):
        m = self.rng.random((6, 16, 16)) + 1j * self.rng.random((6, 16, 16))

        np.testing.assert_allclose(iftn(ftn(m)), m, atol=1e-12)
        np.testing.assert_allclose(ift2(ft2(m)), m, atol=1e-12)
        np.testing.assert_allclose(ift3(ft3(m)), m, atol=1e-12)
        np.testing.assert_allclose(iftn(ftn(m, shift=False), shift=False), m, atol=1e-12)

        # 2D transform of a stack acts on each slice
        np.testing.assert_allclose(ft2(m)[2], ftn(m[2]), atol=1e-10)

    def test_centered_convention(self):
        """
        a delta at the origin pixel n // 2 has a flat spectrum, and zero frequency is at index n // 2
        """
        n = 15
        delta = np.zeros((n, n))
        delta[n // 2, n // 2] = 1
        np.testing.assert_allclose(ftn(delta), np.ones((n, n)), atol=1e-12)

        np.testing.assert_allclose(get_fft_pos(4, 0.5), [-1., -0.5, 0., 0.5])
        np.testing.assert_allclose(get_frq_coords(5), [-2, -1, 0, 1, 2])


class TestSimUtils(unittest.TestCase):

    def setUp(self):
        self.rng = np.random.default_rng(seed=12)

    def test_place_freq(self):
        """
        zero-padding the spectrum interpolates the image, keeping the original samples
        """
        for n in [16, 17]:
            img = self.rng.random((n, n))
            img_up = iftn(place_freq(ftn(img)))

            self.assertEqual(img_up.shape, (2 * n, 2 * n))
            np.testing.assert_allclose(img_up.imag, 0, atol=1e-12)
            # original pixels sit at even (odd) indices for even (odd) n
            np.testing.assert_allclose(img_up.real[n % 2::2, n % 2::2], img, atol=1e-12)

        # only the last two axes are expanded
        self.assertEqual(place_freq(np.zeros((3, 8, 8))).shape, (3, 16, 16))

    def test_fourier_shift(self):
        """
        integer shifts are exact rolls, and shifting forth and back is the identity
        """
        v = self.rng.random((32, 32)) + 1j * self.rng.random((32, 32))

        np.testing.assert_allclose(fourier_shift(v, 3, -2), np.roll(v, shift=(-2, 3), axis=(0, 1)), atol=1e-12)
        np.testing.assert_allclose(fourier_shift(fourier_shift(v, 2.3, -1.7), -2.3, 1.7), v, atol=1e-12)

        v3 = self.rng.random((4, 16, 16))
        np.testing.assert_allclose(fourier_shift(v3, 1, 2, 1), np.roll(v3, shift=(1, 2, 1), axis=(0, 1, 2)),
                                   atol=1e-12)

    def test_paste_and_fourier_shift(self):
        v = self.rng.random((16, 16)) + 1j * self.rng.random((16, 16))

        standard = paste_and_fourier_shift(v, 5, -3)
        fast = paste_and_fourier_shift(v, 5, -3, fast=True)
        self.assertEqual(standard.shape, (32, 32))
        np.testing.assert_allclose(fast, standard, atol=1e-10)

    def test_pw_spec(self):
        v = self.rng.random((3, 8, 8)) + 1j * self.rng.random((3, 8, 8))

        np.testing.assert_allclose(pw_spec(v[0]), np.abs(v[0])**2)
        np.testing.assert_allclose(pw_spec(v), np.abs(v.sum(axis=0))**2)

    def test_spatial(self):
        img = self.rng.random((16, 16)) - 0.5
        img_ft = ftn(img)

        np.testing.assert_allclose(spatial(img_ft), img, atol=1e-12)

        clipped = spatial(img_ft, ClipScale.CLIP)
        self.assertTrue(np.all(clipped >= 0))
        np.testing.assert_allclose(clipped.max(), img.max(), atol=1e-12)

        scaled = spatial(img_ft, ClipScale.BOTH)
        np.testing.assert_allclose(scaled.max(), 255.)

    def test_fade_border(self):
        img = np.ones((32, 32))
        faded = fade_border_cos(img, 4)

        self.assertEqual(faded[0, 0], 0)
        self.assertEqual(faded[-1, 16], 0)
        np.testing.assert_allclose(faded[8:24, 8:24], 1.)

        # no fading returns a copy
        not_faded = fade_border_cos(img, 0)
        np.testing.assert_allclose(not_faded, img)
        self.assertIsNot(not_faded, img)

    def test_subtract_background(self):
        img = np.arange(10, dtype=float)
        img_sub, frac = subtract_background(img, 3.)

        np.testing.assert_allclose(img_sub, [0, 0, 0, 0, 1, 2, 3, 4, 5, 6])
        np.testing.assert_allclose(frac, 0.3)
        np.testing.assert_allclose(img, np.arange(10))

    def test_clip_and_scale(self):
        img = np.array([-1., 0., 2.])

        np.testing.assert_allclose(clip_and_scale(img), [0., 0., 255.])
        np.testing.assert_allclose(clip_and_scale(img, clip=False), [-127.5, 0., 255.])
        np.testing.assert_allclose(clip_and_scale(img, scale=False), [0., 0., 2.])
        np.testing.assert_allclose(img, [-1., 0., 2.])


if __name__ == "__main__":
    unittest.main()

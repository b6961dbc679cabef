"""
Tests for SIM parameter bookkeeping: image orderings, per-direction parameters and filter plans
"""
import unittest
import numpy as np
from simrecon.otf import OtfProvider
from simrecon.sim_param import SimParam, Dir, ImgSeq, FitQuality, ParameterEstimationResult, WienerPlan, \
    RLInputPlan, RLOutputPlan, RLBothPlan, ClipScale
from simrecon.errors import InvalidParameterError


class TestImgSeq(unittest.TestCase):

    def test_calc_pos(self):
        """
        check frame positions for all orderings, with 3 angles, 5 phases and 4 slices
        """
        self.assertEqual(ImgSeq.PAZ.calc_pos(1, 2, 3, 3, 5, 4), 2 + 1 * 5 + 3 * 15)
        self.assertEqual(ImgSeq.PZA.calc_pos(1, 2, 3, 3, 5, 4), 2 + 3 * 5 + 1 * 20)
        self.assertEqual(ImgSeq.ZAP.calc_pos(1, 2, 3, 3, 5, 4), 3 + 1 * 4 + 2 * 12)

        # first and last frame
        for seq in ImgSeq:
            self.assertEqual(seq.calc_pos(0, 0, 0, 3, 5, 4), 0)
            self.assertEqual(seq.calc_pos(2, 4, 3, 3, 5, 4), 3 * 5 * 4 - 1)

    def test_positions_unique(self):
        for seq in ImgSeq:
            pos = [seq.calc_pos(a, p, z, 3, 5, 4) for a in range(3) for p in range(5) for z in range(4)]
            self.assertEqual(sorted(pos), list(range(60)))

    def test_calc_pos_with_time(self):
        self.assertEqual(ImgSeq.PAZ.calc_pos_with_time(1, 2, 3, 2, 3, 5, 4), 52 + 2 * 60)

    def test_out_of_range(self):
        with self.assertRaises(InvalidParameterError):
            ImgSeq.PAZ.calc_pos(3, 0, 0, 3, 5, 4)

        with self.assertRaises(InvalidParameterError):
            ImgSeq.PZA.calc_pos(0, -1, 0, 3, 5, 4)

        with self.assertRaises(InvalidParameterError):
            ImgSeq.ZAP.calc_pos(0, 0, 4, 3, 5, 4)

    def test_from_name(self):
        self.assertIs(ImgSeq.from_name("PZA"), ImgSeq.PZA)
        self.assertIs(ImgSeq.from_name(" ZAP "), ImgSeq.ZAP)
        self.assertIsNone(ImgSeq.from_name("XYZ"))

        self.assertEqual(str(ImgSeq.PAZ), "p,a,z (def)")
        self.assertEqual(str(ClipScale.CLIP), "clip zeros")

    def test_get_param(self):
        param = ImgSeq.PZA.get_param()
        self.assertEqual((param.nr_bands, param.nr_dirs, param.nr_phases), (3, 3, 5))
        self.assertEqual(param.img_size, 512)

        param = ImgSeq.ZAP.get_param()
        self.assertEqual(param.nr_phases, 5)
        self.assertEqual(param.img_size, 1024)

        self.assertIsNone(ImgSeq.PAZ.get_param())


class TestDir(unittest.TestCase):

    def test_shifts(self):
        """
        the outer band shift is stored, inner bands scale linearly
        """
        d = Dir(3, 5)
        d.set_px_py(10., -4.)

        self.assertEqual(d.px(2), 10.)
        self.assertEqual(d.py(2), -4.)
        self.assertEqual(d.px(1), 5.)
        self.assertEqual(d.py(1), -2.)
        self.assertEqual(d.px(0), 0.)
        np.testing.assert_allclose(d.get_px_py(1), [5., -2.])
        np.testing.assert_allclose(d.get_px_py_len(2), np.sqrt(116.))
        np.testing.assert_allclose(d.get_px_py_angle(1), np.arctan2(-4., 10.))

        with self.assertRaises(InvalidParameterError):
            d.px(3)

    def test_phases(self):
        d = Dir(2, 3)
        np.testing.assert_allclose(d.get_phases(), 2 * np.pi * np.arange(3) / 3)
        self.assertFalse(d.has_individual_phases)

        d.set_pha_off(0.5)
        np.testing.assert_allclose(d.get_phases(), 2 * np.pi * np.arange(3) / 3 + 0.5)

        d.set_phases([0., 2., 4.], False)
        self.assertTrue(d.has_individual_phases)
        np.testing.assert_allclose(d.get_phases(), [0.5, 2.5, 4.5])

        d.set_phases([0., 2., 4.], True)
        np.testing.assert_allclose(d.get_phases(), [0., 2., 4.])

        d.reset_phases()
        self.assertFalse(d.has_individual_phases)

        with self.assertRaises(InvalidParameterError):
            d.set_phases([0., 1.], False)

    def test_modulation(self):
        """
        stored modulations are raw values, reading them back clamps to the limits
        """
        d = Dir(3, 5, mod_low_limit=0.3, mod_high_limit=1.1)

        self.assertTrue(d.set_modulation(1, 0.8))
        self.assertFalse(d.set_modulation(2, 0.1))
        np.testing.assert_allclose(d.modulations, [1., 0.8, 0.1])
        np.testing.assert_allclose(d.get_modulations(), [1., 0.8, 0.3])

        self.assertFalse(d.set_modulation(2, 1.5))
        np.testing.assert_allclose(d.get_modulations()[2], 1.1)

    def test_invalid(self):
        with self.assertRaises(InvalidParameterError):
            Dir(1, 3)

        with self.assertRaises(InvalidParameterError):
            Dir(3, 4)


class TestSimParam(unittest.TestCase):

    def test_create(self):
        otf = OtfProvider.from_estimate(1.4, 525., 0.3)
        param = SimParam.create(3, 3, 5, 512, 0.08, otf)

        self.assertEqual(len(param.dirs), 3)
        self.assertEqual(param.img_per_z, 15)
        np.testing.assert_allclose(param.cycles_per_micron, 1 / (512 * 0.08))

        # pixel size is propagated to the OTF
        np.testing.assert_allclose(otf.vec_cycles_per_micron, param.cycles_per_micron)
        param.set_pxl_size(256, 0.08)
        np.testing.assert_allclose(otf.vec_cycles_per_micron, 1 / (256 * 0.08))

        with self.assertRaises(InvalidParameterError):
            param.set_pxl_size(0, 0.08)

    def test_stack(self):
        param = SimParam(2, 3, 3)
        self.assertIsNone(param.stack_size)

        param.set_stack(16, 0.125)
        self.assertEqual(param.stack_size, 16)
        np.testing.assert_allclose(param.cycles_per_micron_z, 0.5)

        with self.assertRaises(InvalidParameterError):
            param.set_stack(16, -0.1)

    def test_filter_plans(self):
        param = SimParam(3, 3, 5)
        self.assertTrue(param.filter_plan.use_wiener_filter)
        np.testing.assert_allclose(param.wiener_parameter, 0.05)

        param.filter_plan = WienerPlan(0.1)
        np.testing.assert_allclose(param.wiener_parameter, 0.1)

        param.filter_plan = RLInputPlan(rl_iterations=7)
        self.assertTrue(param.filter_plan.use_rl_on_input)
        self.assertTrue(param.filter_plan.use_wiener_filter)
        self.assertEqual(param.rl_iterations, 7)

        param.filter_plan = RLOutputPlan(3)
        self.assertFalse(param.filter_plan.use_wiener_filter)
        self.assertTrue(param.filter_plan.use_rl_on_output)
        self.assertEqual(param.rl_iterations, 3)

        plan = RLBothPlan()
        self.assertTrue(plan.use_rl_on_input and plan.use_rl_on_output)

    def test_fit_quality(self):
        self.assertIs(FitQuality.from_modulation(0.9), FitQuality.GOOD)
        self.assertIs(FitQuality.from_modulation(0.6), FitQuality.USABLE)
        self.assertIs(FitQuality.from_modulation(0.4), FitQuality.WEAK)
        self.assertIs(FitQuality.from_modulation(0.2), FitQuality.VERY_LOW)
        self.assertIs(FitQuality.from_modulation(0.05), FitQuality.NO_FIT)

        result = ParameterEstimationResult(0, 10., 5., 0.3, [1., 0.6, 0.45])
        self.assertIs(result.fit_quality, FitQuality.WEAK)

    def test_apply_estimate(self):
        param = SimParam(3, 2, 5)
        param.dir(1).set_pha_off(1.)

        result = ParameterEstimationResult(1, 12., -6., 0.4, [1., 0.7, 0.5])
        param.apply_estimate(result)

        d = param.dir(1)
        self.assertEqual(d.px(2), 12.)
        self.assertEqual(d.py(1), -3.)
        np.testing.assert_allclose(d.pha_off, 0.4)
        np.testing.assert_allclose(d.modulations, [1., 0.7, 0.5])
        self.assertFalse(d.has_individual_phases)

        # direction 0 is untouched
        self.assertEqual(param.dir(0).px(2), 0.)

        phases = [0., 1., 2.5, 3.5, 5.]
        param.apply_estimate(ParameterEstimationResult(0, 3., 4., 0.2, [1., 0.9, 0.8], phases=phases))
        self.assertTrue(param.dir(0).has_individual_phases)
        np.testing.assert_allclose(param.dir(0).get_phases(), np.array(phases) + 0.2)

    def test_runtime_timestamp(self):
        param = SimParam(3, 3, 5)
        ts = param.signal_runtime_change()
        self.assertFalse(param.compare_runtime_timestamp(ts))
        self.assertTrue(param.compare_runtime_timestamp(ts - 1))

    def test_pretty_print(self):
        param = SimParam.create(3, 2, 5, 128, 0.1)
        param.dir(0).set_px_py(20., 10.)
        summary = param.pretty_print(pha_in_deg=True)

        self.assertIn("SIM parameter summary", summary)
        self.assertIn("px: 20.000 py: 10.000", summary)
        self.assertIn("deg", summary)


if __name__ == "__main__":
    unittest.main()
